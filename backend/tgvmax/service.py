# ------------------------------ IMPORTS ------------------------------
import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, AsyncContextManager, Callable, Dict, List, Optional, Sequence

from core.config.browser_settings import browser_session
from core.config.settings import Account, settings, DELAY_BETWEEN_RESERVATIONS
from core.security.session import SessionStore
from core.utils.browser_helpers import random_sleep
from tgvmax.data.confirmation import ReservationConfirmer
from tgvmax.data.login import Authenticator
from tgvmax.data.page import PageHandle
from tgvmax.data.reservations import ReservationHarvester
from tgvmax.exceptions import AuthenticationError, RunInProgressError, SessionExpiredError
from tgvmax.models import AccountResult, Reservation
from tgvmax.notifications import EventType, LoggingNotificationSink, NotificationSink, emit
from tgvmax.relay import OtpChannel

# ------------------------------ LOGGING ------------------------------
logger = logging.getLogger(__name__)

# ------------------------------ ENUMS ------------------------------
class RunMode(Enum):
    CONFIRM = "confirm"
    CHECK = "check"

class RunStatus(Enum):
    IDLE = "idle"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"

# ------------------------------ ACCOUNT ORCHESTRATOR ------------------------------
class AccountOrchestrator:
    """Processes every configured account in turn, each in its own browser."""

    def __init__(
        self,
        notifier: Optional[NotificationSink] = None,
        session_store: Optional[SessionStore] = None,
        otp_channel: Optional[OtpChannel] = None,
        authenticator: Optional[Authenticator] = None,
        browser_factory: Callable[[], AsyncContextManager[PageHandle]] = browser_session,
        harvester_factory: Callable[..., ReservationHarvester] = ReservationHarvester,
        confirmer_factory: Callable[..., ReservationConfirmer] = ReservationConfirmer,
    ):
        self.notifier = notifier or LoggingNotificationSink()
        self.session_store = session_store or SessionStore()
        self.authenticator = authenticator or Authenticator(self.session_store, otp_channel or OtpChannel(), self.notifier)
        self.browser_factory = browser_factory
        self.harvester_factory = harvester_factory
        self.confirmer_factory = confirmer_factory

    async def run(self, accounts: Sequence[Account], check_only: bool = False) -> List[AccountResult]:
        """One pass over all accounts. Returns one result per account, in input order."""
        mode = RunMode.CHECK if check_only else RunMode.CONFIRM
        logger.info(f"Starting {mode.value} run for {len(accounts)} account(s)")
        await emit(self.notifier, EventType.STARTUP, mode=mode.value, accounts=[a.name for a in accounts])

        results = []
        for account in accounts:
            result = await self._process_account(account, check_only)
            results.append(result)
            logger.info(
                f"[{account.name}] Done: {result.reservations_found} found, {result.confirmed} confirmed, "
                f"{result.failed} failed, {result.skipped} skipped"
                + (f", error: {result.error}" if result.error else "")
            )

        await emit(self.notifier, EventType.RUN_COMPLETE, results=[r.to_dict() for r in results])
        logger.info(f"Run complete: {sum(r.confirmed for r in results)} confirmed across {len(results)} account(s)")
        return results

    async def _process_account(self, account: Account, check_only: bool) -> AccountResult:
        logger.info(f"[{account.name}] Processing account...")
        authenticated = False
        try:
            async with self.browser_factory() as page:
                await self.authenticator.authenticate(page, account)
                authenticated = True

                reservations = await self._harvest(page, account)
                await emit(
                    self.notifier, EventType.RESERVATIONS_FOUND, account.name,
                    reservations=[r.to_dict() for r in reservations],
                )

                if check_only:
                    logger.info(f"[{account.name}] Check only, {len(reservations)} reservation(s) left untouched")
                    return AccountResult(account_name=account.name, reservations_found=len(reservations))

                confirmations = await self._confirm_all(page, account, reservations)
                return AccountResult(
                    account_name=account.name,
                    results=confirmations,
                    reservations_found=len(reservations),
                )

        except AuthenticationError as e:
            # The authenticator has already reported this failure
            return AccountResult.account_failure(account.name, str(e))

        except SessionExpiredError as e:
            logger.error(f"[{account.name}] Session expired again after re-authentication: {e}")
            await emit(self.notifier, EventType.AUTH_FAILURE, account.name, error=str(e))
            return AccountResult.account_failure(account.name, str(e))

        except Exception as e:
            logger.exception(f"[{account.name}] Unexpected error while processing account: {e}")
            await emit(self.notifier, EventType.AUTH_FAILURE, account.name, error=str(e))
            return AccountResult.account_failure(account.name, str(e) or e.__class__.__name__, authenticated=authenticated)

    async def _harvest(self, page: PageHandle, account: Account) -> List[Reservation]:
        harvester = self.harvester_factory(page, account_name=account.name)
        try:
            return await harvester.fetch_pending_reservations()
        except SessionExpiredError:
            logger.warning(f"[{account.name}] Session expired, re-authenticating...")
            self.session_store.clear(account)
            await self.authenticator.authenticate(page, account)
            return await harvester.fetch_pending_reservations()

    async def _confirm_all(self, page: PageHandle, account: Account, reservations: List[Reservation]) -> list:
        confirmer = self.confirmer_factory(page, self.notifier, account_name=account.name)
        results = []
        for index, reservation in enumerate(reservations):
            if index > 0:
                await random_sleep(DELAY_BETWEEN_RESERVATIONS)
            results.append(await confirmer.confirm_reservation(reservation))
        return results

# ------------------------------ RUN STATE ------------------------------
@dataclass
class RunState:
    """Single-slot run guard shared by every trigger."""
    lock: asyncio.Lock = field(default_factory=asyncio.Lock)
    status: RunStatus = RunStatus.IDLE
    mode: Optional[RunMode] = None
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None
    last_results: List[AccountResult] = field(default_factory=list)
    last_error: Optional[str] = None

    @property
    def is_running(self) -> bool:
        return self.lock.locked()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "is_running": self.is_running,
            "status": self.status.value,
            "mode": self.mode.value if self.mode else None,
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "finished_at": self.finished_at.isoformat() if self.finished_at else None,
            "last_results": [r.to_dict() for r in self.last_results],
            "last_error": self.last_error,
        }

# ------------------------------ CONFIRMATION SERVICE ------------------------------
class ConfirmationService:
    """Starts runs in the background and refuses overlapping ones."""

    def __init__(
        self,
        orchestrator: Optional[AccountOrchestrator] = None,
        state: Optional[RunState] = None,
        accounts: Optional[Callable[[], Sequence[Account]]] = None,
    ):
        self._orchestrator = orchestrator
        self.state = state or RunState()
        self._accounts = accounts or (lambda: settings.accounts)
        self._background_tasks: set = set()

    @property
    def orchestrator(self) -> AccountOrchestrator:
        if self._orchestrator is None:
            self._orchestrator = AccountOrchestrator()
        return self._orchestrator

    async def trigger(self, mode: RunMode) -> asyncio.Task:
        """Schedule a run and return at once. Raises RunInProgressError when one is active."""
        if self.state.is_running:
            raise RunInProgressError(f"A {self.state.mode.value} run is already in progress")

        accounts = list(self._accounts())
        await self.state.lock.acquire()
        self.state.status = RunStatus.RUNNING
        self.state.mode = mode
        self.state.started_at = datetime.now(timezone.utc)
        self.state.finished_at = None
        self.state.last_error = None

        task = asyncio.create_task(self._execute(mode, accounts))
        self._background_tasks.add(task)
        task.add_done_callback(self._background_tasks.discard)
        logger.info(f"Queued {mode.value} run")
        return task

    async def _execute(self, mode: RunMode, accounts: Sequence[Account]) -> None:
        try:
            results = await self.orchestrator.run(accounts, check_only=mode == RunMode.CHECK)
            self.state.last_results = results
            self.state.status = RunStatus.COMPLETED
        except Exception as e:
            logger.exception(f"Run failed: {e}")
            self.state.last_error = str(e)
            self.state.status = RunStatus.FAILED
        finally:
            self.state.finished_at = datetime.now(timezone.utc)
            self.state.lock.release()

    def get_status(self) -> Dict[str, Any]:
        return self.state.to_dict()

# ------------------------------ END OF FILE ------------------------------
