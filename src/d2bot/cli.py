from __future__ import annotations

import logging
from functools import partial
from typing import Optional

import anyio
import typer

from . import __version__
from .config import BotConfig, ConfigError, load_config
from .dispatch import Dispatcher
from .loop import run_main_loop
from .png import install_browsers
from .renderer import D2Renderer
from .telegram_client import TelegramClient, TelegramError

logger = logging.getLogger(__name__)

USAGE = """Usage:

  $ d2bot [CONFIG_FILE_PATH]
"""


def setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    if not verbose:
        # request lines carry the bot token
        logging.getLogger("httpx").setLevel(logging.WARNING)
        logging.getLogger("httpcore").setLevel(logging.WARNING)


async def _serve(cfg: BotConfig, *, install: bool) -> None:
    if install and not await install_browsers():
        raise typer.Exit(code=1)
    async with TelegramClient(cfg.bot_token) as bot:
        dispatcher = Dispatcher(
            cfg=cfg,
            bot=bot,
            renderer=D2Renderer.from_config(cfg),
        )
        await run_main_loop(cfg, bot, dispatcher)


def run(
    config_path: Optional[str] = typer.Argument(
        None,
        metavar="CONFIG_FILE_PATH",
        help="Path to the JSON (or JSON with comments) config file.",
        show_default=False,
    ),
    install: bool = typer.Option(
        True,
        "--install-browsers/--no-install-browsers",
        help="Install Playwright's Chromium before starting.",
    ),
) -> None:
    if config_path is None:
        typer.echo(USAGE)
        raise typer.Exit(code=0)

    try:
        cfg = load_config(config_path)
    except ConfigError as e:
        typer.echo(f"error: {e}", err=True)
        raise typer.Exit(code=1)

    setup_logging(cfg.is_verbose)
    logger.info("d2bot %s", __version__)
    try:
        anyio.run(partial(_serve, cfg, install=install))
    except TelegramError as e:
        logger.error("failed to start bot: %s", e.description)
        raise typer.Exit(code=1)
    except KeyboardInterrupt:
        logger.info("stopped")


def main() -> None:
    typer.run(run)


if __name__ == "__main__":
    main()
