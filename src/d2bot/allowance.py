from __future__ import annotations

from collections.abc import Collection

from .model import IncomingUpdate


def is_allowed(allowed_ids: Collection[str], username: str | None) -> bool:
    """Anonymous senders (no username) are never allowed."""
    if username is None:
        return False
    return username in allowed_ids


def is_update_allowed(allowed_ids: Collection[str], update: IncomingUpdate) -> bool:
    if update.sender is None:
        return False
    return is_allowed(allowed_ids, update.sender.username)
