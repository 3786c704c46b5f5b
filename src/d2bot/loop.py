from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from typing import Any, Protocol

import anyio

from .config import BotConfig
from .constants import POLL_TIMEOUT_MARGIN_S
from .dispatch import Dispatcher
from .model import IncomingUpdate, parse_update
from .telegram_client import TelegramError

logger = logging.getLogger(__name__)


class PollingBot(Protocol):
    async def get_me(self) -> dict[str, Any]: ...

    async def delete_webhook(self, drop_pending_updates: bool = False) -> bool: ...

    async def get_updates(
        self,
        offset: int | None,
        timeout_s: int = 50,
        allowed_updates: list[str] | None = None,
        request_timeout_s: float | None = None,
    ) -> list[dict[str, Any]]: ...


async def prepare_bot(bot: PollingBot) -> dict[str, Any]:
    """Check the token and switch the bot to polling mode; raises TelegramError."""
    me = await bot.get_me()
    await bot.delete_webhook(drop_pending_updates=False)
    logger.info(
        "starting bot: @%s (%s)", me.get("username"), me.get("first_name") or ""
    )
    return me


async def poll_updates(
    bot: PollingBot, *, interval: int, offset: int | None = None
) -> AsyncIterator[IncomingUpdate]:
    while True:
        try:
            with anyio.fail_after(interval + POLL_TIMEOUT_MARGIN_S):
                updates = await bot.get_updates(
                    offset=offset,
                    timeout_s=interval,
                    request_timeout_s=interval + POLL_TIMEOUT_MARGIN_S,
                )
        except (TelegramError, TimeoutError) as e:
            logger.error("[poll] failed to poll updates: %s", e)
            await anyio.sleep(interval)
            continue

        for raw in updates:
            update_id = raw.get("update_id")
            if isinstance(update_id, int):
                offset = update_id + 1
            yield parse_update(raw)


async def _dispatch_logged(dispatcher: Dispatcher, update: IncomingUpdate) -> None:
    try:
        await dispatcher.dispatch(update)
    except Exception:
        logger.exception("[dispatch] update %s failed", update.update_id)


async def run_main_loop(
    cfg: BotConfig, bot: PollingBot, dispatcher: Dispatcher
) -> None:
    me = await prepare_bot(bot)
    username = me.get("username")
    dispatcher.bot_username = username if isinstance(username, str) else None
    async with anyio.create_task_group() as tg:
        async for update in poll_updates(bot, interval=cfg.monitor_interval):
            tg.start_soon(_dispatch_logged, dispatcher, update)
