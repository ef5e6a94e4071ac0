"""
Headless browser rendering for pages that need client-side rendering.
"""
import logging
from typing import Awaitable, Callable, Optional

from playwright.async_api import async_playwright

from .config import Config, config

logger = logging.getLogger(__name__)

# Signature shared by the real renderer and test doubles: url -> page markup.
Renderer = Callable[[str], Awaitable[str]]


async def render_page(url: str, cfg: Config = config, headless: Optional[bool] = None) -> str:
    """
    Open ``url`` in Chromium and return the rendered markup.

    A fresh browser is launched and closed per call.
    """
    is_headless = cfg.HEADLESS if headless is None else headless
    launch_args = ["--disable-blink-features=AutomationControlled"]
    if is_headless:
        launch_args += ["--disable-dev-shm-usage", "--no-sandbox", "--disable-gpu"]

    async with async_playwright() as p:
        browser = await p.chromium.launch(headless=is_headless, args=launch_args)
        try:
            context = await browser.new_context(
                viewport={"width": 1280, "height": 900},
                user_agent=cfg.USER_AGENT,
                locale="en-US",
            )
            context.set_default_timeout(cfg.RENDER_TIMEOUT_MS)
            context.set_default_navigation_timeout(cfg.RENDER_TIMEOUT_MS)

            page = await context.new_page()
            logger.info(">>> Rendering %s (headless=%s)", url, is_headless)
            await page.goto(url, timeout=cfg.RENDER_TIMEOUT_MS, wait_until="domcontentloaded")
            markup = await page.content()
            await context.close()
            return markup
        finally:
            await browser.close()
