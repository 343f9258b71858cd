# ------------------------------ IMPORTS ------------------------------
import asyncio
import logging
import time
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Awaitable, Callable, Optional, Tuple

import requests
from pydantic import BaseModel

from core.config.settings import settings
from core.utils.browser_helpers import retry_async
from .exceptions import RelayProtocolError, TwoFactorTimeoutError

logger = logging.getLogger(__name__)

CODE_TTL = timedelta(minutes=10)
CLEAR_ATTEMPTS = 3
CLEAR_BASE_DELAY = 1.0

# ------------------------------ RELAY PAYLOADS ------------------------------

class RelayResponse(BaseModel):
    """Body returned by GET {url}?secret=..."""
    success: bool
    code: Optional[str] = None
    timestamp: Optional[str] = None
    source: Optional[str] = None
    error: Optional[str] = None

@dataclass(frozen=True)
class OneTimeCode:
    code: str
    captured_at: datetime
    relay_timestamp: Optional[str] = None

    @property
    def expires_at(self) -> datetime:
        return self.captured_at + CODE_TTL

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        return (now or datetime.now(timezone.utc)) >= self.expires_at

def parse_timestamp(raw: Optional[str]) -> Optional[datetime]:
    """Parse an ISO-8601 relay timestamp; naive values are taken as UTC."""
    if not raw:
        return None
    try:
        parsed = datetime.fromisoformat(raw.replace("Z", "+00:00"))
    except ValueError:
        return None
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)

# ------------------------------ OTP CHANNEL ------------------------------

class OtpChannel:
    """Polls the email relay for the login one-time code and invalidates it after reading."""

    def __init__(
        self,
        url: Optional[str] = None,
        secret: Optional[str] = None,
        request_timeout: Optional[float] = None,
        http: Optional[requests.Session] = None,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        config = settings.relay
        self.url = url or config.url
        self.secret = secret or config.secret
        self.request_timeout = request_timeout or config.request_timeout_seconds
        self._http = http or requests.Session()
        self._clock = clock
        self._sleep = sleep
        self._last_consumed: Optional[Tuple[str, Optional[str]]] = None

    # ------------------------------ HTTP ------------------------------

    async def fetch_code(self) -> Optional[OneTimeCode]:
        """Single GET against the relay. Returns None when no code is available yet."""
        response = await asyncio.to_thread(
            self._http.get,
            self.url,
            params={"secret": self.secret},
            headers={"Accept": "application/json"},
            timeout=self.request_timeout,
        )

        if response.status_code != 200:
            raise RelayProtocolError(f"Relay returned status {response.status_code}")

        try:
            payload = RelayResponse.model_validate(response.json())
        except ValueError as e:
            # requests' JSONDecodeError and pydantic's ValidationError both land here
            snippet = (response.text or "")[:80].replace("\n", " ")
            raise RelayProtocolError(f"Relay returned a non-JSON or unexpected body: {snippet!r}") from e

        if not payload.success:
            if payload.error == "Unauthorized":
                raise RelayProtocolError("Relay rejected the shared secret")
            logger.debug(f"No code yet: {payload.error}")
            return None

        if not payload.code:
            return None

        captured_at = parse_timestamp(payload.timestamp) or datetime.now(timezone.utc)
        return OneTimeCode(code=payload.code.strip(), captured_at=captured_at, relay_timestamp=payload.timestamp)

    async def _post_clear(self) -> None:
        response = await asyncio.to_thread(
            self._http.post,
            self.url,
            params={"secret": self.secret, "action": "clear"},
            timeout=self.request_timeout,
        )
        if response.status_code != 200:
            raise RelayProtocolError(f"Relay clear returned status {response.status_code}")

    async def clear_code(self) -> bool:
        """Invalidate the relay's cached code so it cannot be read twice."""
        try:
            await retry_async(self._post_clear, max_attempts=CLEAR_ATTEMPTS, base_delay=CLEAR_BASE_DELAY, sleep=self._sleep)
            return True
        except (RelayProtocolError, requests.RequestException) as e:
            logger.warning(f"Failed to clear relay cache: {e}")
            return False

    # ------------------------------ WAIT LOOP ------------------------------

    def _already_consumed(self, otp: OneTimeCode) -> bool:
        # keyed on what the relay sent; captured_at is synthesized when timestamp is missing
        return self._last_consumed == (otp.code, otp.relay_timestamp)

    async def wait_for_code(self, max_wait: Optional[float] = None, poll_interval: Optional[float] = None) -> str:
        """Poll until the relay reports a fresh code or max_wait seconds of wall clock elapse."""
        max_wait = max_wait if max_wait is not None else settings.relay.max_wait_seconds
        poll_interval = poll_interval if poll_interval is not None else settings.relay.poll_interval_seconds

        logger.info("Waiting for 2FA code via relay...")
        start = self._clock()
        polls = 0

        while self._clock() - start < max_wait:
            polls += 1
            try:
                otp = await self.fetch_code()
            except (RelayProtocolError, requests.RequestException) as e:
                logger.warning(f"Error fetching 2FA code: {e}")
                otp = None

            if otp:
                if otp.is_expired():
                    logger.info(f"Ignoring expired code captured at {otp.captured_at.isoformat()}")
                elif self._already_consumed(otp):
                    logger.debug("Relay still serves the code we already used")
                else:
                    logger.info(f"Found 2FA code after {polls} poll(s)")
                    self._last_consumed = (otp.code, otp.relay_timestamp)
                    await self.clear_code()
                    return otp.code

            remaining = max_wait - (self._clock() - start)
            if remaining <= 0:
                break
            await self._sleep(min(poll_interval, remaining))

        raise TwoFactorTimeoutError(f"Timeout waiting for 2FA code after {max_wait:g} seconds ({polls} polls)")

# ------------------------------ END OF FILE ------------------------------
