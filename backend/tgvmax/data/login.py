# ------------------------------ IMPORTS ------------------------------
import logging
from enum import Enum
from typing import Dict, List, Optional

from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from core.config.settings import (
    Account, settings,
    TIMEOUT_RELOAD, TIMEOUT_SELECTOR_WAIT,
    DELAY_TYPING, DELAY_SHORT, DELAY_MEDIUM, DELAY_PAGE_LOAD, DELAY_FORM_SUBMIT, DELAY_TWO_FACTOR_PROBE,
)
from core.security.session import SessionData, SessionStore
from core.utils.browser_helpers import random_sleep
from tgvmax.exceptions import AuthenticationError
from tgvmax.notifications import EventType, NotificationSink, emit
from tgvmax.relay import OtpChannel
from .helpers import (
    any_visible, click_first_visible, find_all_visible, find_first_visible,
    navigate_to_page, save_screenshot, wait_for_settle,
)
from .page import PageHandle
from .selectors import (
    PORTAL_URL, COOKIE_CONSENT_SELECTORS, LOGGED_IN_SELECTORS, LOGIN_BUTTON_SELECTORS,
    EMAIL_FORM_SELECTOR, EMAIL_SELECTORS, PASSWORD_SELECTORS, SUBMIT_SELECTORS,
    TWO_FACTOR_INDICATORS, DIGIT_FIELD_SELECTORS, CODE_FIELD_SELECTORS, TWO_FACTOR_SUBMIT_SELECTORS,
)

logger = logging.getLogger(__name__)

# ------------------------------ IN-PAGE SCRIPTS ------------------------------
READ_LOCAL_STORAGE_SCRIPT = """() => {
    const items = {};
    for (let i = 0; i < window.localStorage.length; i++) {
        const key = window.localStorage.key(i);
        if (key) {
            items[key] = window.localStorage.getItem(key) || '';
        }
    }
    return items;
}"""

WRITE_LOCAL_STORAGE_SCRIPT = """(storage) => {
    for (const [key, value] of Object.entries(storage)) {
        window.localStorage.setItem(key, value);
    }
}"""

USER_AGENT_SCRIPT = "() => navigator.userAgent"

# ------------------------------ STATES ------------------------------
class AuthState(Enum):
    INIT = "init"
    PORTAL_LOADED = "portal_loaded"
    ALREADY_AUTHENTICATED = "already_authenticated"
    NEEDS_LOGIN = "needs_login"
    CREDENTIALS_SUBMITTED = "credentials_submitted"
    OTP_NOT_REQUIRED = "otp_not_required"
    OTP_REQUIRED = "otp_required"
    AWAITING_CODE = "awaiting_code"
    CODE_SUBMITTED = "code_submitted"
    VERIFY_LOGIN = "verify_login"
    DONE = "done"
    FAILED = "failed"

# ------------------------------ PAGE STEPS ------------------------------

async def handle_cookie_consent(page: PageHandle) -> bool:
    """Dismiss the cookie consent modal if one is showing."""
    selector, button = await find_first_visible(page, COOKIE_CONSENT_SELECTORS)
    if not button:
        logger.info("No cookie consent modal found or already accepted")
        return False

    try:
        await random_sleep(DELAY_SHORT)
        await button.click()
        logger.info(f"Cookie consent handled: {selector}")
        await random_sleep(DELAY_MEDIUM)
        return True
    except Exception as e:
        logger.warning(f"Cookie consent handling failed: {e}")
        return False

async def check_logged_in(page: PageHandle) -> bool:
    """Check if a logged-in indicator is visible."""
    return await any_visible(page, LOGGED_IN_SELECTORS)

async def restore_local_storage(page: PageHandle, storage: Dict[str, str]) -> None:
    """Write a saved localStorage snapshot into the page and reload to apply it."""
    await page.evaluate(WRITE_LOCAL_STORAGE_SCRIPT, storage)
    logger.info("Restored localStorage from saved session")

    try:
        await page.reload(wait_until="load", timeout=TIMEOUT_RELOAD)
        await random_sleep(DELAY_PAGE_LOAD)
    except PlaywrightTimeoutError as e:
        logger.warning(f"Page reload timed out, continuing anyway: {e}")

async def click_login_button(page: PageHandle) -> None:
    if not await click_first_visible(page, LOGIN_BUTTON_SELECTORS, "login button"):
        raise AuthenticationError("Could not find login button")
    await wait_for_settle(page)

async def _fill_field(page: PageHandle, selectors: List[str], value: str, label: str) -> None:
    _, field = await find_first_visible(page, selectors)
    if not field:
        raise AuthenticationError(f"Could not find the {label} field")

    await field.click()
    await random_sleep(DELAY_TYPING)
    await field.fill(value)
    logger.info(f"{label.capitalize()} entered")

async def _submit_form(page: PageHandle, label: str) -> None:
    if not await click_first_visible(page, SUBMIT_SELECTORS, label):
        logger.warning(f"No submit button found for {label}")
    await wait_for_settle(page)

async def fill_credentials(page: PageHandle, account: Account) -> None:
    """Fill identity then secret, submitting each step and waiting for the portal to settle."""
    logger.info(f"[{account.name}] Filling in credentials...")

    try:
        await page.wait_for_selector(EMAIL_FORM_SELECTOR, timeout=TIMEOUT_SELECTOR_WAIT)
    except PlaywrightTimeoutError as e:
        raise AuthenticationError("Login form did not appear") from e
    await random_sleep(DELAY_SHORT)

    await _fill_field(page, EMAIL_SELECTORS, account.email, "email")
    await random_sleep(DELAY_SHORT)
    await _submit_form(page, "email submit")
    await random_sleep(DELAY_FORM_SUBMIT)

    await _fill_field(page, PASSWORD_SELECTORS, account.password, "password")
    await random_sleep(DELAY_SHORT)
    await _submit_form(page, "login form submit")

async def is_two_factor_required(page: PageHandle) -> bool:
    """Probe for one-time-code affordances after the credentials step."""
    await random_sleep(DELAY_TWO_FACTOR_PROBE)
    if await any_visible(page, TWO_FACTOR_INDICATORS):
        logger.info("2FA verification required")
        return True
    return False

async def submit_two_factor_code(page: PageHandle, code: str) -> None:
    """Enter the code, one field per digit when the form has them, else in a single field."""
    logger.info("Entering 2FA code...")

    for selector in DIGIT_FIELD_SELECTORS:
        fields = await find_all_visible(page, selector)
        if len(fields) >= len(code):
            logger.info(f"Found {len(fields)} separate digit fields")
            for field, digit in zip(fields, code):
                await field.click()
                await random_sleep(DELAY_TYPING)
                await field.fill(digit)
            logger.info("2FA code entered (separate fields)")
            break
    else:
        _, field = await find_first_visible(page, CODE_FIELD_SELECTORS)
        if not field:
            raise AuthenticationError("Could not find the one-time code input")
        await field.click()
        await random_sleep(DELAY_TYPING)
        await field.fill(code)
        logger.info("2FA code entered (single field)")

    await random_sleep(DELAY_SHORT)
    if not await click_first_visible(page, TWO_FACTOR_SUBMIT_SELECTORS, "2FA submit"):
        logger.warning("No 2FA submit button found, relying on auto-submit")
    await wait_for_settle(page)

async def capture_session(page: PageHandle) -> SessionData:
    """Snapshot cookies, localStorage and the client signature of the page."""
    cookies = await page.context.cookies()
    local_storage = await page.evaluate(READ_LOCAL_STORAGE_SCRIPT)
    user_agent = await page.evaluate(USER_AGENT_SCRIPT)
    return SessionData.capture(cookies=cookies, local_storage=local_storage or {}, user_agent=user_agent or "")

# ------------------------------ AUTHENTICATOR ------------------------------

class Authenticator:
    """Brings a page to an authenticated state for one account.

    Transitions: INIT -> PORTAL_LOADED -> ALREADY_AUTHENTICATED -> DONE, or
    PORTAL_LOADED -> NEEDS_LOGIN -> CREDENTIALS_SUBMITTED -> (OTP_NOT_REQUIRED |
    OTP_REQUIRED -> AWAITING_CODE -> CODE_SUBMITTED) -> VERIFY_LOGIN -> DONE.
    Any failure ends in FAILED and raises AuthenticationError.
    """

    def __init__(
        self,
        session_store: SessionStore,
        otp_channel: OtpChannel,
        notifier: NotificationSink,
        screenshot_on_error: Optional[bool] = None,
    ):
        self.session_store = session_store
        self.otp_channel = otp_channel
        self.notifier = notifier
        self.screenshot_on_error = settings.browser.screenshot_on_error if screenshot_on_error is None else screenshot_on_error

    def _advance(self, account: Account, states: List[AuthState], state: AuthState) -> None:
        logger.debug(f"[{account.name}] auth state {states[-1].value} -> {state.value}")
        states.append(state)

    async def authenticate(self, page: PageHandle, account: Account) -> List[AuthState]:
        """Run the login state machine. Returns the states traversed, ending in DONE."""
        states = [AuthState.INIT]
        saved = self.session_store.load(account)

        try:
            if saved and saved.cookies:
                await page.context.add_cookies(saved.cookies)
                logger.info(f"[{account.name}] Restored cookies from saved session")

            await navigate_to_page(page, PORTAL_URL, "MAX portal")
            await random_sleep(DELAY_PAGE_LOAD)

            if saved and saved.local_storage:
                await restore_local_storage(page, saved.local_storage)

            self._advance(account, states, AuthState.PORTAL_LOADED)
            await handle_cookie_consent(page)

            if await check_logged_in(page):
                logger.info(f"[{account.name}] Already logged in with existing session")
                self._advance(account, states, AuthState.ALREADY_AUTHENTICATED)
                self._advance(account, states, AuthState.DONE)
                return states

            logger.info(f"[{account.name}] Not logged in, proceeding with authentication...")
            self._advance(account, states, AuthState.NEEDS_LOGIN)
            await emit(self.notifier, EventType.AUTH_REQUIRED, account.name)

            await click_login_button(page)
            await random_sleep(DELAY_PAGE_LOAD)

            # The portal sometimes restores the session once the login page opens
            if await check_logged_in(page):
                logger.info(f"[{account.name}] Already logged in")
                self._advance(account, states, AuthState.ALREADY_AUTHENTICATED)
                self._advance(account, states, AuthState.DONE)
                return states

            await fill_credentials(page, account)
            self._advance(account, states, AuthState.CREDENTIALS_SUBMITTED)

            if await is_two_factor_required(page):
                self._advance(account, states, AuthState.OTP_REQUIRED)
                self._advance(account, states, AuthState.AWAITING_CODE)
                code = await self.otp_channel.wait_for_code()
                await submit_two_factor_code(page, code)
                self._advance(account, states, AuthState.CODE_SUBMITTED)
            else:
                self._advance(account, states, AuthState.OTP_NOT_REQUIRED)

            self._advance(account, states, AuthState.VERIFY_LOGIN)
            await wait_for_settle(page)
            await random_sleep(DELAY_PAGE_LOAD)

            if not await check_logged_in(page):
                raise AuthenticationError("Login verification failed")

            await self._persist_session(page, account)
            self._advance(account, states, AuthState.DONE)
            logger.info(f"[{account.name}] Authentication successful")
            await emit(self.notifier, EventType.AUTH_SUCCESS, account.name)
            return states

        except AuthenticationError as e:
            self._advance(account, states, AuthState.FAILED)
            await self._report_failure(page, account, e)
            raise

        except Exception as e:
            self._advance(account, states, AuthState.FAILED)
            await self._report_failure(page, account, e)
            raise AuthenticationError(f"Authentication failed: {e}") from e

    async def _persist_session(self, page: PageHandle, account: Account) -> None:
        try:
            session = await capture_session(page)
            self.session_store.save(account, session)
        except OSError:
            logger.warning(f"[{account.name}] Continuing without a saved session")

    async def _report_failure(self, page: PageHandle, account: Account, error: Exception) -> None:
        logger.error(f"[{account.name}] Authentication failed: {error}")
        screenshot_path = None
        if self.screenshot_on_error:
            screenshot_path = await save_screenshot(page, f"auth_error_{account.session_key}")
        await emit(self.notifier, EventType.AUTH_FAILURE, account.name, screenshot_path=screenshot_path, error=str(error))

# ------------------------------ END OF FILE ------------------------------
