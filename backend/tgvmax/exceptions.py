# ------------------------------ EXCEPTIONS ------------------------------

class MaxConfirmError(Exception):
    """Base class for every error raised by the confirmation service."""

class ConfigError(MaxConfirmError):
    """Missing or malformed required configuration. Fatal at startup."""

class AuthenticationError(MaxConfirmError):
    """Login could not be verified after a full attempt. Fatal for one account."""

class TwoFactorTimeoutError(AuthenticationError):
    """The relay never produced a usable one-time code within the wait window."""

class SessionExpiredError(MaxConfirmError):
    """An authenticated navigation was redirected to the login page."""

class HarvestError(MaxConfirmError):
    """Confirm controls were found but no reservation could be extracted."""

class ConfirmationError(MaxConfirmError):
    """The confirm control was missing or still enabled after clicking."""

class RelayProtocolError(MaxConfirmError):
    """The code relay answered with a non-200 status, HTML, or an error payload."""

class RunInProgressError(MaxConfirmError):
    """A run was requested while another one still holds the run lock."""

# ------------------------------ END OF FILE ------------------------------
