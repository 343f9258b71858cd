# ------------------------------ IMPORTS ------------------------------
import logging
from typing import Optional

from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from core.config.settings import settings, TIMEOUT_MODAL, TIMEOUT_MODAL_SETTLE, DELAY_SHORT, DELAY_PAGE_LOAD
from core.utils.browser_helpers import random_sleep
from tgvmax.exceptions import ConfirmationError
from tgvmax.models import ConfirmationResult, Reservation, ReservationStatus
from tgvmax.notifications import EventType, NotificationSink, emit
from .helpers import save_screenshot, wait_for_settle
from .page import ElementHandle, PageHandle
from .reservations import find_confirm_button_for, needs_confirmation
from .selectors import CONFIRM_MODAL_SELECTOR

logger = logging.getLogger(__name__)

# ------------------------------ PAGE STEPS ------------------------------

async def handle_confirmation_dialog(page: PageHandle, timeout: int = TIMEOUT_MODAL) -> bool:
    """Click through the secondary confirmation modal. Its absence is not an error."""
    try:
        logger.info("Waiting for confirmation modal...")
        modal_button = await page.wait_for_selector(CONFIRM_MODAL_SELECTOR, state="visible", timeout=timeout)
    except PlaywrightTimeoutError:
        logger.info("No confirmation modal appeared")
        return False

    if not modal_button:
        return False

    await random_sleep(DELAY_SHORT)
    await modal_button.click()
    logger.info("Clicked the confirmation button in the modal")
    await wait_for_settle(page, timeout=TIMEOUT_MODAL_SETTLE)
    return True

async def _control_state_confirms(button: ElementHandle) -> bool:
    if not await button.is_visible():
        logger.info("Confirm button is gone or no longer visible - success")
        return True

    if await button.is_disabled():
        logger.info("Confirm button is now disabled - success")
        return True

    logger.warning("Confirm button is still enabled - confirmation failed")
    return False

async def verify_confirmation(page: PageHandle, reservation: Reservation, clicked: Optional[ElementHandle] = None) -> bool:
    """Decide from the clicked control's state whether the confirmation went through.

    A detached handle reports not visible. The control is only looked up again
    when the handle itself errors, and then only a control whose ancestors name
    both stations counts.
    """
    logger.info("Verifying confirmation status...")
    if clicked is not None:
        try:
            return await _control_state_confirms(clicked)
        except Exception as e:
            logger.info(f"Clicked confirm button is unusable ({e}), looking it up again")

    button, _ = await find_confirm_button_for(
        page, reservation, allow_fallback=False, visible_only=False, both_stations=True,
    )
    if not button:
        logger.info("Confirm button not found - success")
        return True

    return await _control_state_confirms(button)

# ------------------------------ CONFIRMER ------------------------------

class ReservationConfirmer:
    """Confirms reservations one at a time and reports each outcome."""

    def __init__(
        self,
        page: PageHandle,
        notifier: NotificationSink,
        account_name: str = "",
        screenshot_on_error: Optional[bool] = None,
    ):
        self.page = page
        self.notifier = notifier
        self.account_name = account_name
        self.screenshot_on_error = settings.browser.screenshot_on_error if screenshot_on_error is None else screenshot_on_error

    async def confirm_reservation(self, reservation: Reservation) -> ConfirmationResult:
        logger.info(f"[{self.account_name}] Attempting to confirm: {reservation.route}")

        if not reservation.confirmable:
            logger.info(f"[{self.account_name}] Confirmation not yet available for: {reservation.route} (button disabled)")
            return ConfirmationResult(reservation=reservation, success=False, skipped=True)

        if not needs_confirmation(reservation):
            logger.warning(f"[{self.account_name}] {reservation.route} departs outside the 48h window but the portal allows confirming it")

        try:
            button, _ = await find_confirm_button_for(self.page, reservation)
            if not button:
                raise ConfirmationError("Could not find confirm button")

            if await button.is_disabled():
                logger.info(f"[{self.account_name}] Confirm button is disabled for: {reservation.route}")
                return ConfirmationResult(reservation=reservation, success=False, skipped=True)

            await button.click()
            logger.info("Clicked confirm button")

            dialog_handled = await handle_confirmation_dialog(self.page)
            logger.info(f"Dialog handling result: {'dialog found and clicked' if dialog_handled else 'no dialog found'}")

            await wait_for_settle(self.page)
            await random_sleep(DELAY_PAGE_LOAD)

            if not await verify_confirmation(self.page, reservation, clicked=button):
                raise ConfirmationError("Confirmation verification failed")

            reservation.status = ReservationStatus.CONFIRMED
            logger.info(f"[{self.account_name}] Successfully confirmed: {reservation.route}")
            await emit(self.notifier, EventType.CONFIRMATION_SUCCESS, self.account_name, reservation=reservation.to_dict())
            return ConfirmationResult(reservation=reservation, success=True)

        except Exception as e:
            error_message = str(e) or e.__class__.__name__
            logger.error(f"[{self.account_name}] Failed to confirm {reservation.route}: {error_message}")

            screenshot_path = None
            if self.screenshot_on_error:
                screenshot_path = await save_screenshot(self.page, f"confirm_fail_{reservation.id}")

            await emit(
                self.notifier, EventType.CONFIRMATION_FAILURE, self.account_name,
                screenshot_path=screenshot_path, reservation=reservation.to_dict(), error=error_message,
            )
            return ConfirmationResult(reservation=reservation, success=False, error=error_message)

# ------------------------------ END OF FILE ------------------------------
