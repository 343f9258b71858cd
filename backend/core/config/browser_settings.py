# ------------------------------ IMPORTS ------------------------------
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional
import logging

from playwright.async_api import async_playwright, Page

from core.config.settings import settings, TIMEOUT_NAVIGATION

logger = logging.getLogger(__name__)

# ------------------------------ BROWSER DEFAULTS ------------------------------
DEFAULT_VIEWPORT = {"width": 1920, "height": 1080}

BROWSER_LAUNCH_ARGS = [
    "--no-sandbox",
    "--disable-dev-shm-usage",
    "--disable-blink-features=AutomationControlled",
]

ANTI_DETECTION_SCRIPT = (
    "Object.defineProperty(navigator, 'webdriver', { get: () => undefined });"
)

# ------------------------------ BROWSER SESSION ------------------------------
@asynccontextmanager
async def browser_session(
    headless: Optional[bool] = None,
    user_agent: Optional[str] = None,
    viewport: dict = DEFAULT_VIEWPORT,
    timeout: int = TIMEOUT_NAVIGATION,
) -> AsyncIterator[Page]:
    """Launch Chromium with standardized settings and close everything on exit.

    The yielded page owns a fresh context; cookies and storage are restored by
    the authenticator, not here.
    """
    config = settings.browser
    if headless is None:
        headless = config.headless

    launch_options = {"headless": headless, "args": BROWSER_LAUNCH_ARGS}
    if config.proxy_url:
        logger.info("Using proxy for browser connections")
        launch_options["proxy"] = {"server": config.proxy_url}

    playwright = await async_playwright().start()
    browser = None
    try:
        browser = await playwright.chromium.launch(**launch_options)
        context = await browser.new_context(
            user_agent=user_agent or config.user_agent,
            viewport=viewport,
            locale=config.locale,
            timezone_id=config.timezone_id,
        )

        page = await context.new_page()
        page.set_default_timeout(timeout)
        await page.add_init_script(ANTI_DETECTION_SCRIPT)

        yield page

    finally:
        if browser:
            try:
                await browser.close()
                logger.info("Browser closed successfully")
            except Exception as e:
                logger.warning(f"Error closing browser: {e}")
        await playwright.stop()

# ------------------------------ END OF FILE ------------------------------
