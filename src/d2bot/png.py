"""SVG -> PNG rasterization in a headless Chromium driven by Playwright.

Each call launches its own driver and browser and tears both down before
returning, so no page state is shared between requests.
"""

from __future__ import annotations

import logging
import sys
from collections.abc import AsyncIterator
from contextlib import AsyncExitStack, asynccontextmanager
from typing import TYPE_CHECKING, Awaitable, Callable, Protocol

import anyio
from playwright.async_api import async_playwright

from .utils.subprocess import run_captured

if TYPE_CHECKING:
    from playwright.async_api import Browser

logger = logging.getLogger(__name__)

_PAGE_TEMPLATE = """<!DOCTYPE html>
<html><head><style>
html, body {{ margin: 0; padding: 0; background: white; }}
svg {{ display: block; }}
</style></head>
<body>{svg}</body></html>
"""


class Rasterizer(Protocol):
    async def rasterize(self, svg: bytes) -> bytes: ...


async def _release(what: str, close: Callable[[], Awaitable[None]]) -> None:
    with anyio.CancelScope(shield=True):
        try:
            await close()
        except Exception as e:
            logger.warning("[png] failed to release %s: %s", what, e)
        else:
            logger.debug("[png] %s released", what)


class PlaywrightRasterizer:
    def __init__(self, *, headless: bool = True) -> None:
        self.headless = headless

    @asynccontextmanager
    async def engine(self) -> AsyncIterator[Browser]:
        async with AsyncExitStack() as stack:
            # a started driver must reach the exit stack, even when cancelled
            with anyio.CancelScope(shield=True):
                playwright = await async_playwright().start()
            stack.push_async_callback(_release, "driver", playwright.stop)

            browser = await playwright.chromium.launch(headless=self.headless)
            stack.push_async_callback(_release, "chromium", browser.close)
            logger.debug("[png] chromium launched")
            yield browser

    async def rasterize(self, svg: bytes) -> bytes:
        async with self.engine() as browser:
            page = await browser.new_page()
            await page.set_content(
                _PAGE_TEMPLATE.format(svg=svg.decode("utf-8", errors="replace")),
                wait_until="load",
            )
            element = page.locator("svg").first
            return await element.screenshot(type="png")


async def install_browsers() -> bool:
    """Run `playwright install chromium`; the download is skipped when present."""
    logger.info("Installing Playwright Chromium (skipped if already present)...")
    result = await run_captured(sys.executable, "-m", "playwright", "install", "chromium")
    if result.returncode != 0:
        logger.error(
            "failed to install playwright browsers (rc=%s): %s",
            result.returncode,
            result.stderr.decode("utf-8", errors="replace").strip(),
        )
        return False
    return True
