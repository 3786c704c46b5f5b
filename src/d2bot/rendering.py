from __future__ import annotations

from typing import Any, Dict, List, Tuple

from markdown_it import MarkdownIt
from sulguk import transform_html

from .constants import DEFAULT_CHUNK_LEN


def render_markdown(md: str) -> Tuple[str, List[Dict[str, Any]]]:
    """
    Convert Markdown to Telegram text + entities, so no parse_mode escaping is needed.
    """
    html = MarkdownIt("commonmark", {"html": False}).render(md or "")
    rendered = transform_html(html)

    # Telegram requires MessageEntity.language (if present) to be a String.
    entities: List[Dict[str, Any]] = []
    for e in rendered.entities:
        d = dict(e)
        if "language" in d and not isinstance(d["language"], str):
            d.pop("language", None)
        entities.append(d)
    return rendered.text.rstrip(), entities


def chunk_text(text: str, limit: int = DEFAULT_CHUNK_LEN) -> List[str]:
    """Split `text` into pieces of at most `limit` chars, cutting after the
    last line break that fits, or hard at `limit` when a line is too long."""
    chunks: List[str] = []
    rest = text or ""
    while len(rest) > limit:
        cut = rest.rfind("\n", 0, limit) + 1
        if cut == 0:
            cut = limit
        chunks.append(rest[:cut])
        rest = rest[cut:]
    chunks.append(rest)
    return chunks
