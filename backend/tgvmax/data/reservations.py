# ------------------------------ IMPORTS ------------------------------
import logging
import re
import time
from datetime import date, datetime, timedelta, timezone
from typing import Any, Dict, List, Optional, Tuple
from zoneinfo import ZoneInfo

from core.config.settings import settings, DELAY_MEDIUM, DELAY_PAGE_LOAD
from core.utils.browser_helpers import random_sleep, safe_text
from tgvmax.exceptions import HarvestError, SessionExpiredError
from tgvmax.models import Reservation
from .helpers import (
    extract_with_regex, find_first_visible, click_first_visible,
    navigate_to_page, save_screenshot, wait_for_settle,
)
from .page import ElementHandle, PageHandle
from .selectors import (
    RESERVATIONS_URL, LOGIN_URL_MARKERS, TRIPS_TAB_SELECTORS, RESERVATION_CARD_SELECTORS,
    CONFIRM_BUTTON_SELECTOR, CONFIRM_BUTTON_SELECTORS,
    NEEDS_CONFIRMATION_PATTERN, ROUTE_PATTERN, TIME_PATTERN, TIME_MARKER_PATTERN,
    STATION_AFTER_TIME_PATTERN, TRAIN_NUMBER_PATTERN, CARD_TRAIN_NUMBER_PATTERN,
    LONG_DATE_PATTERN, SHORT_DATE_PATTERN, MONTHS,
)

logger = logging.getLogger(__name__)

UNKNOWN = "Unknown"
CONFIRMATION_WINDOW = timedelta(hours=48)

# Upper bounds on ancestor walks so a malformed page cannot make the in-page
# scripts climb the whole document. A trip card sits well within these depths.
MAX_CONTAINER_DEPTH = 15
MAX_ANCESTOR_DEPTH = 10

# ------------------------------ IN-PAGE SCRIPTS ------------------------------
# Climbs from a confirm button to the smallest ancestor holding at least two
# <time> markers (departure and arrival) and returns its raw content.
CONTAINER_SCRIPT = """(el, maxDepth) => {
    let container = el.parentElement;
    let depth = 0;
    while (container && depth < maxDepth && container.querySelectorAll('time').length < 2) {
        container = container.parentElement;
        depth++;
    }
    if (!container || container.querySelectorAll('time').length < 2) {
        return null;
    }
    const times = [];
    const datetimes = [];
    container.querySelectorAll('time').forEach(t => {
        const text = (t.textContent || '').trim();
        if (text) times.push(text);
        const dt = t.getAttribute('datetime');
        if (dt) datetimes.push(dt);
    });
    return { text: container.innerText || '', times: times, datetimes: datetimes };
}"""

ANCESTOR_TEXTS_SCRIPT = """(el, maxDepth) => {
    const texts = [];
    let parent = el.parentElement;
    for (let i = 0; i < maxDepth && parent; i++) {
        texts.push(parent.innerText || '');
        parent = parent.parentElement;
    }
    return texts;
}"""

# ------------------------------ WINDOW HELPERS ------------------------------

def portal_timezone() -> ZoneInfo:
    return ZoneInfo(settings.browser.timezone_id)

def hours_until_departure(reservation: Reservation, now: Optional[datetime] = None) -> float:
    now = now or datetime.now(timezone.utc)
    return (reservation.departure - now).total_seconds() / 3600

def needs_confirmation(reservation: Reservation, now: Optional[datetime] = None) -> bool:
    """True when departure is within the next 48 hours (exclusive of now)."""
    hours = hours_until_departure(reservation, now)
    return 0 < hours <= CONFIRMATION_WINDOW.total_seconds() / 3600

# ------------------------------ PARSING HELPERS ------------------------------

def _new_reservation_id(index: int) -> str:
    return f"reservation-{index}-{int(time.time() * 1000)}"

def parse_time(text: Optional[str]) -> Optional[Tuple[int, int]]:
    """Parse '18h28' or '18:28' into (hour, minute)."""
    if not text:
        return None
    match = re.search(TIME_PATTERN, text)
    if not match:
        return None
    hour, minute = int(match.group(1)), int(match.group(2))
    if hour > 23 or minute > 59:
        return None
    return hour, minute

def parse_french_date(text: str, pattern: str = LONG_DATE_PATTERN, today: Optional[date] = None) -> Optional[date]:
    """Parse a French natural-language date. A missing year means the current one."""
    match = re.search(pattern, text or "", re.IGNORECASE)
    if not match:
        return None

    month = MONTHS.get(match.group(2).lower())
    if not month:
        return None
    year = int(match.group(3)) if match.group(3) else (today or date.today()).year

    try:
        return date(year, month, int(match.group(1)))
    except ValueError:
        return None

def parse_machine_datetime(raw: str, tz: ZoneInfo) -> Optional[datetime]:
    """Parse a <time datetime="..."> value; date-only values come back at midnight."""
    try:
        parsed = datetime.fromisoformat(raw.strip().replace("Z", "+00:00"))
    except ValueError:
        return None
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=tz)

def build_departure(day: date, departure_time: Optional[str], tz: ZoneInfo) -> datetime:
    hour_minute = parse_time(departure_time) or (0, 0)
    return datetime(day.year, day.month, day.day, hour_minute[0], hour_minute[1], tzinfo=tz)

def extract_stations(text: str) -> List[str]:
    """Upper-case station names that follow a time marker, in page order."""
    stations = []
    for match in re.findall(STATION_AFTER_TIME_PATTERN, text or ""):
        station = match.strip()
        if len(station) > 2:
            stations.append(station)
    return stations

def parse_container(data: Dict[str, Any], index: int, confirmable: bool, now: Optional[datetime] = None) -> Optional[Reservation]:
    """Turn the raw content of a trip container into a Reservation."""
    if not data:
        return None

    tz = portal_timezone()
    now = now or datetime.now(tz)
    text = data.get("text") or ""
    times = [t for t in (data.get("times") or []) if re.match(TIME_MARKER_PATTERN, t)]
    datetimes = data.get("datetimes") or []

    stations = extract_stations(text)
    departure_time = times[0] if times else None
    arrival_time = times[1] if len(times) > 1 else None
    train_number = extract_with_regex(text, TRAIN_NUMBER_PATTERN, flags=re.IGNORECASE)

    departure = None
    for raw in datetimes:
        parsed = parse_machine_datetime(raw, tz)
        if parsed:
            departure = parsed if "T" in raw else build_departure(parsed.date(), departure_time, tz)
            break
    if departure is None:
        day = parse_french_date(text, LONG_DATE_PATTERN, now.date()) or now.astimezone(tz).date()
        departure = build_departure(day, departure_time, tz)

    if not stations and not times and not train_number:
        return None

    return Reservation(
        id=_new_reservation_id(index),
        origin=stations[0] if stations else UNKNOWN,
        destination=stations[1] if len(stations) > 1 else UNKNOWN,
        departure=departure,
        departure_time=departure_time or UNKNOWN,
        arrival_time=arrival_time,
        train_number=train_number or UNKNOWN,
        confirmable=confirmable,
    )

def parse_reservation_card_text(text: str, index: int, confirmable: bool = True, now: Optional[datetime] = None) -> Optional[Reservation]:
    """Parse a reservation card. Cards that do not ask for confirmation yield None."""
    if not text or not re.search(NEEDS_CONFIRMATION_PATTERN, text, re.IGNORECASE):
        return None

    tz = portal_timezone()
    now = now or datetime.now(tz)

    route = re.search(ROUTE_PATTERN, text, re.IGNORECASE)
    time_match = re.search(TIME_PATTERN, text)
    departure_time = f"{int(time_match.group(1))}h{time_match.group(2)}" if time_match else None
    day = parse_french_date(text, SHORT_DATE_PATTERN, now.date()) or now.astimezone(tz).date()

    return Reservation(
        id=_new_reservation_id(index),
        origin=route.group(1).strip() if route else UNKNOWN,
        destination=route.group(2).strip() if route else UNKNOWN,
        departure=build_departure(day, departure_time, tz),
        departure_time=departure_time or UNKNOWN,
        train_number=extract_with_regex(text, CARD_TRAIN_NUMBER_PATTERN, flags=re.IGNORECASE) or UNKNOWN,
        confirmable=confirmable,
    )

# ------------------------------ BUTTON LOOKUP ------------------------------

def proximity_score(ancestor_texts: List[str], reservation: Reservation) -> Optional[int]:
    """Rank how closely a button is bound to a reservation; lower is closer, None is unrelated.

    An ancestor naming both stations beats any ancestor naming only one.
    """
    stations = [s.lower() for s in (reservation.origin, reservation.destination) if s and s != UNKNOWN]
    if not stations:
        return None

    lowered = [text.lower() for text in ancestor_texts]
    for depth, text in enumerate(lowered):
        if all(station in text for station in stations):
            return depth
    for depth, text in enumerate(lowered):
        if any(station in text for station in stations):
            return MAX_ANCESTOR_DEPTH + depth
    return None

async def find_confirm_button_for(
    page: PageHandle,
    reservation: Reservation,
    allow_fallback: bool = True,
    visible_only: bool = True,
    both_stations: bool = False,
) -> Tuple[Optional[ElementHandle], bool]:
    """Locate the confirm control for a reservation.

    Returns (button, matched) where matched is False when the first-visible
    fallback was used. With both_stations, only ancestors naming both
    stations count as a binding.
    """
    for selector in CONFIRM_BUTTON_SELECTORS:
        try:
            buttons = await page.query_selector_all(selector)
        except Exception:
            continue

        best, best_score = None, None
        for button in buttons:
            try:
                texts = await button.evaluate(ANCESTOR_TEXTS_SCRIPT, MAX_ANCESTOR_DEPTH)
                score = proximity_score(texts or [], reservation)
                if score is None or (both_stations and score >= MAX_ANCESTOR_DEPTH):
                    continue
                if visible_only and not await button.is_visible():
                    continue
            except Exception:
                continue
            if best_score is None or score < best_score:
                best, best_score = button, score

        if best:
            return best, True

    if allow_fallback:
        _, button = await find_first_visible(page, CONFIRM_BUTTON_SELECTORS)
        if button:
            logger.info(f"No confirm button bound to {reservation.route}, using the first visible one")
        return button, False

    return None, False

# ------------------------------ HARVESTER ------------------------------

class ReservationHarvester:
    """Discovers reservations on the portal's trips page."""

    def __init__(self, page: PageHandle, account_name: str = "", proof_screenshots: Optional[bool] = None):
        self.page = page
        self.account_name = account_name
        self.proof_screenshots = settings.browser.screenshot_on_error if proof_screenshots is None else proof_screenshots
        self.last_screenshot_path: Optional[str] = None

    @property
    def _prefix(self) -> str:
        return f"[{self.account_name}] " if self.account_name else ""

    async def navigate_to_reservations(self) -> None:
        """Open the trips view. Raises SessionExpiredError when bounced to login."""
        await navigate_to_page(self.page, RESERVATIONS_URL, "reservations page")
        await wait_for_settle(self.page)
        await random_sleep(DELAY_PAGE_LOAD)

        current_url = self.page.url.lower()
        if any(marker in current_url for marker in LOGIN_URL_MARKERS):
            raise SessionExpiredError("Session expired - redirected to login page")

        if await click_first_visible(self.page, TRIPS_TAB_SELECTORS, "trips tab"):
            await wait_for_settle(self.page)
            await random_sleep(DELAY_MEDIUM)

    async def fetch_pending_reservations(self) -> List[Reservation]:
        """Return every reservation found on the page, in page order."""
        logger.info(f"{self._prefix}Fetching pending reservations...")
        await self.navigate_to_reservations()
        await random_sleep(DELAY_PAGE_LOAD)

        reservations = await self._harvest_from_cards()
        if reservations is not None:
            return reservations

        logger.info(f"{self._prefix}No specific reservation elements found, anchoring on confirm buttons...")
        try:
            return await self._harvest_from_buttons()
        except HarvestError as e:
            logger.error(f"{self._prefix}{e}")
            return []

    async def _harvest_from_cards(self) -> Optional[List[Reservation]]:
        """Per-card strategy. None when no card selector matched anything."""
        for selector in RESERVATION_CARD_SELECTORS:
            try:
                cards = await self.page.query_selector_all(selector)
            except Exception:
                continue
            if not cards:
                continue

            logger.info(f"{self._prefix}Found {len(cards)} reservation elements with selector: {selector}")
            reservations = []
            for index, card in enumerate(cards):
                try:
                    text = await safe_text(card, "")
                    button = await card.query_selector(CONFIRM_BUTTON_SELECTOR)
                    confirmable = not await button.is_disabled() if button else True
                    reservation = parse_reservation_card_text(text, index, confirmable)
                except Exception as e:
                    logger.warning(f"{self._prefix}Failed to parse reservation {index}: {e}")
                    continue
                if reservation:
                    reservations.append(reservation)

            logger.info(f"{self._prefix}Found {len(reservations)} reservations needing confirmation")
            return reservations

        return None

    async def _harvest_from_buttons(self) -> List[Reservation]:
        """Button-anchored strategy: one reservation per confirm button, disabled ones included."""
        buttons = await self.page.query_selector_all(CONFIRM_BUTTON_SELECTOR)
        logger.info(f"{self._prefix}Found {len(buttons)} confirm buttons on page")

        if self.proof_screenshots:
            prefix = "reservations_page" if buttons else "no_confirm_buttons"
            self.last_screenshot_path = await save_screenshot(self.page, prefix)

        reservations = []
        for index, button in enumerate(buttons):
            try:
                disabled = await button.is_disabled()
                data = await button.evaluate(CONTAINER_SCRIPT, MAX_CONTAINER_DEPTH)
            except Exception as e:
                logger.warning(f"{self._prefix}Failed to read confirm button {index}: {e}")
                continue

            reservation = parse_container(data, index, confirmable=not disabled)
            if not reservation:
                logger.warning(f"{self._prefix}Could not find trip details for button {index}")
                continue

            logger.info(
                f"{self._prefix}Button {index} (disabled={disabled}): {reservation.route}, "
                f"times={reservation.departure_time}/{reservation.arrival_time}, train={reservation.train_number}"
            )
            if disabled:
                logger.info(f"{self._prefix}Reservation {reservation.route} has a disabled confirm button (too early to confirm)")
            reservations.append(reservation)

        if buttons and not reservations:
            raise HarvestError(f"Found {len(buttons)} confirm buttons but could not extract any reservation")
        return reservations

# ------------------------------ END OF FILE ------------------------------
