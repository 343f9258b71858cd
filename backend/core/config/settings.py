# ------------------------------ IMPORTS ------------------------------
import os
import json
import logging
from typing import List, Optional
from dataclasses import dataclass, field
from dotenv import load_dotenv

from tgvmax.exceptions import ConfigError

load_dotenv()

# ------------------------------ TIMING CONSTANTS (ms) ------------------------------
TIMEOUT_NAVIGATION = 30000
TIMEOUT_RELOAD = 15000
TIMEOUT_SELECTOR_WAIT = 10000
TIMEOUT_NETWORK_IDLE = 15000
TIMEOUT_MODAL = 5000
TIMEOUT_MODAL_SETTLE = 30000
TIMEOUT_QUICK_CHECK = 3000

DELAY_TYPING = (200, 400)
DELAY_SHORT = (500, 1000)
DELAY_MEDIUM = (1000, 2000)
DELAY_PAGE_LOAD = (2000, 3000)
DELAY_LONG = (2000, 4000)
DELAY_FORM_SUBMIT = (1500, 3000)
DELAY_BETWEEN_RESERVATIONS = (2000, 4000)
DELAY_TWO_FACTOR_PROBE = (3000, 3000)

# ------------------------------ CONFIGURATION CLASSES ------------------------------
@dataclass(frozen=True)
class Account:
    """A portal account processed by each run."""
    name: str
    email: str
    password: str = field(repr=False)

    @property
    def session_key(self) -> str:
        """File stem for the persisted session of this account."""
        return "".join(c if c.isalnum() or c in "-_" else "_" for c in self.name.lower())

@dataclass
class BrowserConfig:
    """Browser configuration."""
    headless: bool = os.getenv("HEADLESS", "true").lower() == "true"
    screenshot_on_error: bool = os.getenv("SCREENSHOT_ON_ERROR", "true").lower() == "true"
    user_agent: str = os.getenv("USER_AGENT", "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/131.0.0.0 Safari/537.36")
    proxy_url: Optional[str] = os.getenv("PROXY_URL") or None
    locale: str = os.getenv("BROWSER_LOCALE", "fr-FR")
    timezone_id: str = os.getenv("BROWSER_TIMEZONE", "Europe/Paris")
    # Multiplier applied to every human-like pause; 0 disables pacing
    delay_scale: float = float(os.getenv("DELAY_SCALE", "1.0"))

@dataclass
class RelayConfig:
    """One-time-code relay configuration."""
    url: str = os.getenv("WEBHOOK_URL", "")
    secret: str = os.getenv("WEBHOOK_SECRET", "")
    max_wait_seconds: float = float(os.getenv("OTP_MAX_WAIT_SECONDS", "120"))
    poll_interval_seconds: float = float(os.getenv("OTP_POLL_INTERVAL_SECONDS", "5"))
    request_timeout_seconds: float = float(os.getenv("OTP_REQUEST_TIMEOUT_SECONDS", "30"))

@dataclass
class StorageConfig:
    """Filesystem locations for sessions and screenshots."""
    session_dir: str = os.getenv("SESSION_DIR", os.path.join("data", "sessions"))
    screenshot_dir: str = os.getenv("SCREENSHOT_DIR", os.path.join("data", "screenshots"))

@dataclass
class APIConfig:
    """API configuration."""
    host: str = os.getenv("API_HOST", "0.0.0.0")
    port: int = int(os.getenv("API_PORT", "8000"))

# ------------------------------ ACCOUNT PARSING ------------------------------

def parse_accounts(raw_accounts: Optional[str] = None, email: Optional[str] = None, password: Optional[str] = None, name: Optional[str] = None) -> List[Account]:
    """Build the account list from the ACCOUNTS JSON or the single-account variables."""
    if raw_accounts:
        try:
            entries = json.loads(raw_accounts)
        except json.JSONDecodeError as e:
            raise ConfigError(f"ACCOUNTS is not valid JSON: {e}") from e

        if not isinstance(entries, list) or not entries:
            raise ConfigError("ACCOUNTS must be a non-empty JSON list")

        accounts = []
        for index, entry in enumerate(entries):
            if not isinstance(entry, dict):
                raise ConfigError(f"ACCOUNTS[{index}] must be an object")
            missing = [key for key in ("name", "email", "password") if not entry.get(key)]
            if missing:
                raise ConfigError(f"ACCOUNTS[{index}] is missing: {', '.join(missing)}")
            accounts.append(Account(name=entry["name"], email=entry["email"], password=entry["password"]))

        names = [account.session_key for account in accounts]
        if len(set(names)) != len(names):
            raise ConfigError("Account names must be unique")
        return accounts

    if email and password:
        return [Account(name=name or "default", email=email, password=password)]

    raise ConfigError("No account configured: set ACCOUNTS or SNCF_EMAIL and SNCF_PASSWORD")

# ------------------------------ MAIN SETTINGS CLASS ------------------------------

class Settings:
    """Main application settings."""

    def __init__(self):
        self.browser = BrowserConfig()
        self.relay = RelayConfig()
        self.storage = StorageConfig()
        self.api = APIConfig()
        self._accounts: Optional[List[Account]] = None

        self._setup_logging()

    def _setup_logging(self):
        """Configure application logging."""
        log_level = os.getenv("LOG_LEVEL", "INFO").upper()
        logging.basicConfig(
            level=getattr(logging, log_level, logging.INFO),
            format="%(asctime)s [%(levelname)s] %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S"
        )

    @property
    def accounts(self) -> List[Account]:
        if self._accounts is None:
            self._accounts = parse_accounts(
                os.getenv("ACCOUNTS"),
                os.getenv("SNCF_EMAIL"),
                os.getenv("SNCF_PASSWORD"),
                os.getenv("SNCF_ACCOUNT_NAME"),
            )
        return self._accounts

    def validate(self) -> None:
        """Fail fast on missing or malformed required settings."""
        if not self.relay.url:
            raise ConfigError("Missing required environment variable: WEBHOOK_URL")
        if not self.relay.secret:
            raise ConfigError("Missing required environment variable: WEBHOOK_SECRET")
        if self.relay.max_wait_seconds <= 0 or self.relay.poll_interval_seconds <= 0:
            raise ConfigError("OTP wait and poll interval must be positive")
        if not self.accounts:
            raise ConfigError("No account configured")

# ------------------------------ GLOBAL SETTINGS INSTANCE ------------------------------
settings = Settings()

# ------------------------------ END OF FILE ------------------------------
