# ------------------------------ IMPORTS ------------------------------
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import List, Optional

# ------------------------------ ENUMS ------------------------------
class ReservationStatus(Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"

# ------------------------------ RESERVATIONS ------------------------------
@dataclass
class Reservation:
    """A trip discovered on the reservations page. Never persisted."""
    id: str
    origin: str
    destination: str
    departure: datetime
    departure_time: str
    train_number: str
    arrival_time: Optional[str] = None
    status: ReservationStatus = ReservationStatus.PENDING
    confirmable: bool = True

    @property
    def route(self) -> str:
        return f"{self.origin} → {self.destination}"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "origin": self.origin,
            "destination": self.destination,
            "departure": self.departure.isoformat(),
            "departure_time": self.departure_time,
            "arrival_time": self.arrival_time,
            "train_number": self.train_number,
            "status": self.status.value,
            "confirmable": self.confirmable,
        }

@dataclass(frozen=True)
class ConfirmationResult:
    reservation: Reservation
    success: bool
    error: Optional[str] = None
    skipped: bool = False

# ------------------------------ ACCOUNT RESULTS ------------------------------
@dataclass(frozen=True)
class AccountResult:
    """Per-account outcome of one run."""
    account_name: str
    authenticated: bool = True
    error: Optional[str] = None
    results: List[ConfirmationResult] = field(default_factory=list)
    reservations_found: int = 0

    @property
    def confirmed(self) -> int:
        return sum(1 for r in self.results if r.success)

    @property
    def failed(self) -> int:
        return sum(1 for r in self.results if not r.success and not r.skipped)

    @property
    def skipped(self) -> int:
        return sum(1 for r in self.results if r.skipped)

    @property
    def succeeded(self) -> bool:
        return self.authenticated and self.error is None and self.failed == 0

    @classmethod
    def account_failure(cls, account_name: str, error: str, authenticated: bool = False) -> "AccountResult":
        """Result recorded when the account could not be processed at all."""
        return cls(account_name=account_name, authenticated=authenticated, error=error)

    def to_dict(self) -> dict:
        return {
            "account_name": self.account_name,
            "authenticated": self.authenticated,
            "error": self.error,
            "reservations_found": self.reservations_found,
            "confirmed": self.confirmed,
            "failed": self.failed,
            "skipped": self.skipped,
            "succeeded": self.succeeded,
        }

# ------------------------------ END OF FILE ------------------------------
