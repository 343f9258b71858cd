# ------------------------------ IMPORTS ------------------------------
import logging
import re
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional, Sequence, Tuple

from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from core.config.settings import settings, TIMEOUT_NAVIGATION, TIMEOUT_NETWORK_IDLE
from .page import ElementHandle, PageHandle

logger = logging.getLogger(__name__)

# ------------------------------ COMMON EXTRACTION HELPERS ------------------------------

def extract_with_regex(text: str, pattern: str, group: int = 1, flags: int = 0) -> Optional[str]:
    """Extract text using regex pattern."""
    if not text:
        return None
    match = re.search(pattern, text, flags)
    return match.group(group) if match else None

# ------------------------------ ELEMENT LOOKUP HELPERS ------------------------------

async def find_first_visible(target, selectors: Sequence[str]) -> Tuple[Optional[str], Optional[ElementHandle]]:
    """Try selectors in rank order and return the first visible match with its selector."""
    for selector in selectors:
        try:
            element = await target.query_selector(selector)
            if element and await element.is_visible():
                return selector, element
        except Exception:
            continue
    return None, None

async def find_all_visible(target, selector: str) -> List[ElementHandle]:
    """Return every visible element matching selector."""
    try:
        elements = await target.query_selector_all(selector)
    except Exception as e:
        logger.debug(f"Error querying {selector}: {e}")
        return []

    visible = []
    for element in elements:
        try:
            if await element.is_visible():
                visible.append(element)
        except Exception:
            continue
    return visible

async def any_visible(target, selectors: Sequence[str]) -> bool:
    """Check if any of the selectors matches a visible element."""
    selector, _ = await find_first_visible(target, selectors)
    return selector is not None

async def click_first_visible(target, selectors: Sequence[str], label: str) -> bool:
    """Click the first visible match. Returns False when nothing matched."""
    selector, element = await find_first_visible(target, selectors)
    if not element:
        return False
    await element.click()
    logger.info(f"Clicked {label}: {selector}")
    return True

# ------------------------------ NAVIGATION HELPERS ------------------------------

async def navigate_to_page(page: PageHandle, url: str, page_name: str, wait_until: str = "load") -> None:
    """Navigate and wait for the load event. Errors propagate to the caller."""
    logger.info(f"Navigating to {page_name}...")
    await page.goto(url, wait_until=wait_until, timeout=TIMEOUT_NAVIGATION)

async def wait_for_settle(page: PageHandle, timeout: int = TIMEOUT_NETWORK_IDLE) -> bool:
    """Wait for network idle; a timeout is logged and tolerated."""
    try:
        await page.wait_for_load_state("networkidle", timeout=timeout)
        return True
    except PlaywrightTimeoutError:
        logger.warning("Network idle timeout, continuing anyway")
        return False

# ------------------------------ DIAGNOSTICS ------------------------------

async def save_screenshot(page: PageHandle, prefix: str, directory: Optional[str] = None) -> Optional[str]:
    """Capture a full-page screenshot. Returns its path, or None if capture failed."""
    try:
        screenshot_dir = Path(directory or settings.storage.screenshot_dir)
        screenshot_dir.mkdir(parents=True, exist_ok=True)

        timestamp = datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%S%f")
        screenshot_path = screenshot_dir / f"{prefix}_{timestamp}.png"

        await page.screenshot(path=str(screenshot_path), full_page=True)
        logger.info(f"Screenshot saved: {screenshot_path}")
        return str(screenshot_path)

    except Exception as e:
        logger.error(f"Failed to save screenshot: {e}")
        return None

# ------------------------------ END OF FILE ------------------------------
