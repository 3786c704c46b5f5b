from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

import anyio

from .constants import (
    ACTION_TIMEOUT_S,
    DEFAULT_CHUNK_LEN,
    RENDERED_FILENAME,
    REQUEST_TIMEOUT_S,
)
from .rendering import chunk_text, render_markdown
from .telegram_client import BotApi, TelegramError

logger = logging.getLogger(__name__)


class Responder:
    """
    Best-effort replies. Every call is bounded by its own timeout and reports
    failure as False after logging it; nothing is raised to the caller.
    """

    def __init__(
        self,
        bot: BotApi,
        *,
        request_timeout_s: float = REQUEST_TIMEOUT_S,
        action_timeout_s: float = ACTION_TIMEOUT_S,
    ) -> None:
        self.bot = bot
        self.request_timeout_s = request_timeout_s
        self.action_timeout_s = action_timeout_s

    async def send_text(
        self,
        chat_id: int,
        text: str,
        *,
        reply_to: Optional[int] = None,
        entities: Optional[List[Dict[str, Any]]] = None,
        what: str = "message",
    ) -> bool:
        chunks = [text] if entities else chunk_text(text, limit=DEFAULT_CHUNK_LEN)
        for chunk in chunks:
            try:
                with anyio.fail_after(self.request_timeout_s):
                    await self.bot.send_message(
                        chat_id=chat_id,
                        text=chunk,
                        reply_to_message_id=reply_to,
                        entities=entities,
                    )
            except TelegramError as e:
                logger.error("failed to send %s: %s", what, e.description)
                return False
            except TimeoutError:
                logger.error("failed to send %s: timed out", what)
                return False
        return True

    async def send_markdown(
        self,
        chat_id: int,
        md: str,
        *,
        reply_to: Optional[int] = None,
        what: str = "message",
    ) -> bool:
        text, entities = render_markdown(md)
        return await self.send_text(
            chat_id, text, reply_to=reply_to, entities=entities, what=what
        )

    async def send_document(
        self,
        chat_id: int,
        data: bytes,
        *,
        reply_to: Optional[int] = None,
        filename: str = RENDERED_FILENAME,
    ) -> bool:
        try:
            with anyio.fail_after(self.request_timeout_s):
                await self.bot.send_document(
                    chat_id=chat_id,
                    data=data,
                    filename=filename,
                    reply_to_message_id=reply_to,
                )
        except TelegramError as e:
            logger.error("failed to send rendered image: %s", e.description)
            return False
        except TimeoutError:
            logger.error("failed to send rendered image: timed out")
            return False
        return True

    async def set_reaction(self, chat_id: int, message_id: int, emoji: str) -> bool:
        try:
            with anyio.fail_after(self.request_timeout_s):
                await self.bot.set_message_reaction(chat_id, message_id, emoji)
        except TelegramError as e:
            logger.warning("failed to set reaction: %s", e.description)
            return False
        except TimeoutError:
            logger.warning("failed to set reaction: timed out")
            return False
        return True

    async def send_typing(self, chat_id: int) -> None:
        with anyio.move_on_after(self.action_timeout_s):
            try:
                await self.bot.send_chat_action(chat_id, "typing")
            except TelegramError:
                pass
