from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable

import anyio

from .allowance import is_update_allowed
from .config import BotConfig
from .constants import (
    COMMAND_HELP,
    COMMAND_PRIVACY,
    COMMAND_START,
    D2_FILE_EXTENSION,
    MAX_DOCUMENT_BYTES,
    MESSAGE_FILE_TOO_LARGE,
    MESSAGE_HELP,
    MESSAGE_NO_MATCHING_COMMAND,
    MESSAGE_NOT_D2_FILE,
    MESSAGE_NOT_SUPPORTED,
    MESSAGE_PRIVACY,
    MESSAGE_RENDER_FAILED,
    REACTION_RENDERED,
    REQUEST_TIMEOUT_S,
)
from .model import (
    CommandMessage,
    DocumentMessage,
    IncomingUpdate,
    TextMessage,
    UnsupportedUpdate,
)
from .renderer import RenderFailure, Renderer
from .responder import Responder
from .telegram_client import BotApi, TelegramError

logger = logging.getLogger(__name__)

CommandHandler = Callable[[CommandMessage], Awaitable[None]]


class Dispatcher:
    """Routes one update at a time; safe to run concurrently for distinct updates."""

    def __init__(
        self,
        *,
        cfg: BotConfig,
        bot: BotApi,
        renderer: Renderer,
        responder: Responder | None = None,
        request_timeout_s: float = REQUEST_TIMEOUT_S,
        bot_username: str | None = None,
    ) -> None:
        self.cfg = cfg
        self.bot = bot
        self.renderer = renderer
        self.responder = responder or Responder(bot)
        self.request_timeout_s = request_timeout_s
        self.bot_username = bot_username
        self.commands: dict[str, CommandHandler] = {
            COMMAND_START: self.handle_help,
            COMMAND_HELP: self.handle_help,
            COMMAND_PRIVACY: self.handle_privacy,
        }

    def _allowed(self, update: IncomingUpdate) -> bool:
        if is_update_allowed(self.cfg.allowed_ids, update):
            return True
        if self.cfg.is_verbose:
            logger.debug("update not allowed: %r", update)
        return False

    def _addressed_to_me(self, update: CommandMessage) -> bool:
        if update.addressee is None or self.bot_username is None:
            return True
        return update.addressee == self.bot_username.lower()

    async def dispatch(self, update: IncomingUpdate) -> None:
        if isinstance(update, CommandMessage):
            if not self._addressed_to_me(update):
                logger.debug(
                    "ignoring %s addressed to @%s", update.command, update.addressee
                )
                return
            handler = self.commands.get(update.command, self.handle_no_matching_command)
            await handler(update)
        elif isinstance(update, TextMessage):
            await self.handle_text(update)
        elif isinstance(update, DocumentMessage):
            await self.handle_document(update)
        elif isinstance(update, UnsupportedUpdate):
            await self.handle_unsupported(update)

    async def handle_help(self, update: CommandMessage) -> None:
        if not self._allowed(update) or update.chat_id is None:
            return
        await self.responder.send_markdown(
            update.chat_id, MESSAGE_HELP, what="help message"
        )

    async def handle_privacy(self, update: CommandMessage) -> None:
        if update.chat_id is None:
            return
        await self.responder.send_markdown(
            update.chat_id, MESSAGE_PRIVACY, what="privacy policy"
        )

    async def handle_no_matching_command(self, update: CommandMessage) -> None:
        if not self._allowed(update) or update.chat_id is None:
            return
        await self.responder.send_text(
            update.chat_id,
            MESSAGE_NO_MATCHING_COMMAND.format(command=update.command),
            what="no-matching-command message",
        )

    async def handle_text(self, update: TextMessage) -> None:
        if not self._allowed(update) or update.chat_id is None:
            return
        if update.edited:
            logger.debug("re-rendering edited message %s", update.message_id)
        await self.reply_rendered(update.chat_id, update.message_id, update.text)

    async def handle_document(self, update: DocumentMessage) -> None:
        if not self._allowed(update) or update.chat_id is None:
            return
        document = update.document
        if document.file_name is None:
            logger.info("ignoring document without a file name: %s", document.file_id)
            return
        if not document.file_name.endswith(D2_FILE_EXTENSION):
            await self.responder.send_text(
                update.chat_id,
                MESSAGE_NOT_D2_FILE.format(file_name=document.file_name),
                reply_to=update.message_id,
                what="file rejection",
            )
            return
        if document.file_size is not None and document.file_size > MAX_DOCUMENT_BYTES:
            await self.responder.send_text(
                update.chat_id,
                MESSAGE_FILE_TOO_LARGE.format(
                    file_name=document.file_name, file_size=document.file_size
                ),
                reply_to=update.message_id,
                what="file rejection",
            )
            return

        content = await self._fetch_document(document.file_id)
        if content is None:
            return
        source = content.decode("utf-8", errors="replace")
        await self.reply_rendered(update.chat_id, update.message_id, source)

    async def _fetch_document(self, file_id: str) -> bytes | None:
        try:
            with anyio.fail_after(self.request_timeout_s):
                file = await self.bot.get_file(file_id)
        except (TelegramError, TimeoutError) as e:
            logger.error("failed to fetch file with id %s: %s", file_id, e)
            return None
        file_path = file.get("file_path") if isinstance(file, dict) else None
        if not isinstance(file_path, str) or not file_path:
            logger.error("no file path for file with id %s", file_id)
            return None
        try:
            with anyio.fail_after(self.request_timeout_s):
                return await self.bot.download_file(file_path)
        except (TelegramError, TimeoutError) as e:
            logger.error("failed to fetch '%s': %s", file_path, e)
            return None

    async def handle_unsupported(self, update: UnsupportedUpdate) -> None:
        if not self._allowed(update):
            return
        if update.chat_id is None:
            logger.info("no usable message in update %s (%s)", update.update_id, update.kind)
            return
        await self.responder.send_text(
            update.chat_id,
            MESSAGE_NOT_SUPPORTED,
            reply_to=update.message_id,
            what="not-supported message",
        )

    async def reply_rendered(
        self, chat_id: int, message_id: int | None, source: str
    ) -> None:
        await self.responder.send_typing(chat_id)

        result = await self.renderer.render(source)
        if isinstance(result, RenderFailure):
            reason = result.describe()
            logger.error("failed to render message: %s", reason)
            await self.responder.send_text(
                chat_id,
                MESSAGE_RENDER_FAILED.format(reason=reason),
                reply_to=message_id,
                what="render error",
            )
            return

        sent = await self.responder.send_document(
            chat_id, result.image, reply_to=message_id
        )
        if sent and message_id is not None:
            await self.responder.set_reaction(chat_id, message_id, REACTION_RENDERED)
