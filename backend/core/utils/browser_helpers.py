# ------------------------------ IMPORTS ------------------------------
import asyncio
import logging
import random
from typing import Awaitable, Callable, Optional, Tuple, TypeVar

from core.config.settings import settings

logger = logging.getLogger(__name__)

T = TypeVar("T")

# ------------------------------ TEXT EXTRACTION HELPERS ------------------------------

async def safe_text(element, default: Optional[str] = None) -> Optional[str]:
    """Safely extract and strip the rendered text of an element."""
    if not element:
        return default
    text = await element.inner_text()
    return text.strip() if text else default

# ------------------------------ PACING HELPERS ------------------------------

async def random_sleep(bounds: Tuple[int, int]) -> None:
    """Sleep for a random duration between bounds[0] and bounds[1] milliseconds."""
    low, high = bounds
    await asyncio.sleep(random.randint(low, high) * settings.browser.delay_scale / 1000)

# ------------------------------ RETRY HELPERS ------------------------------

async def retry_async(
    func: Callable[[], Awaitable[T]],
    max_attempts: int = 3,
    base_delay: float = 1.0,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> T:
    """Call func until it succeeds, doubling the delay after each failure.

    The last exception is re-raised once max_attempts is exhausted.
    """
    last_error: Optional[BaseException] = None
    for attempt in range(1, max_attempts + 1):
        try:
            return await func()
        except Exception as e:
            last_error = e
            if attempt < max_attempts:
                delay = base_delay * 2 ** (attempt - 1)
                logger.debug(f"Attempt {attempt}/{max_attempts} failed ({e}), retrying in {delay:.1f}s")
                await sleep(delay)
    raise last_error

# ------------------------------ END OF FILE ------------------------------
