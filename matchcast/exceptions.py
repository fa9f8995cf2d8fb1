"""
Custom exceptions for the match prediction engine.

Absence of data is a normal outcome and is modelled by DataNotFoundError,
which callers translate into cooldown entries. Provider failures
(network, timeout, auth) always propagate to the caller.

Usage:
    from matchcast.exceptions import DataNotFoundError, ProviderError

    try:
        matches = await provider.get_matches_between_teams("Arsenal", "Chelsea")
    except DataNotFoundError:
        matches = []
    except ProviderError as e:
        print(f"Provider failed ({e.code}): {e}")
"""

from typing import Optional


class MatchCastError(Exception):
    """
    Base exception for all match prediction errors.

    All custom exceptions inherit from this, allowing:
        except MatchCastError:
            # Catch any system error
    """
    pass


# =============================================================================
# INPUT ERRORS
# =============================================================================

class ValidationError(MatchCastError):
    """
    Request rejected before any I/O.

    Raised when:
    - A team name is missing or blank
    - Home and away team are the same team
    """

    def __init__(self, field: str, message: str):
        self.field = field
        super().__init__(f"Invalid {field}: {message}")


# =============================================================================
# PROVIDER ERRORS
# =============================================================================

class ProviderError(MatchCastError):
    """
    Error talking to an external match or prediction provider.

    Subclasses carry a stable ``code`` so callers can branch without
    isinstance chains.
    """

    code = "PROVIDER_ERROR"

    def __init__(
        self,
        source: str,
        message: Optional[str] = None,
        original_error: Optional[BaseException] = None,
    ):
        self.source = source
        self.original_error = original_error
        msg = f"Error fetching from {source}"
        if message:
            msg += f": {message}"
        if original_error:
            msg += f" (caused by: {type(original_error).__name__}: {original_error})"
        super().__init__(msg)


class NetworkError(ProviderError):
    """Connection-level failure (DNS, refused, reset)."""

    code = "NETWORK_ERROR"


class RequestTimeoutError(ProviderError):
    """Provider call exceeded its deadline."""

    code = "TIMEOUT_ERROR"

    def __init__(self, source: str, timeout: float, original_error: Optional[BaseException] = None):
        self.timeout = timeout
        super().__init__(source, f"timed out after {timeout:g}s", original_error)


class AbortedError(ProviderError):
    """Caller cancelled the request through its signal."""

    code = "ABORTED_ERROR"

    def __init__(self, source: str, message: str = "request aborted"):
        super().__init__(source, message)


class ServiceError(ProviderError):
    """
    Provider answered with an error status.

    Raised when:
    - Backend returns a 4xx/5xx response
    - Remote procedure is missing or fails
    """

    code = "SERVICE_ERROR"

    def __init__(
        self,
        source: str,
        message: Optional[str] = None,
        status_code: Optional[int] = None,
        original_error: Optional[BaseException] = None,
    ):
        self.status_code = status_code
        if status_code is not None:
            message = f"{message or 'request failed'} (status: {status_code})"
        super().__init__(source, message, original_error)


class AuthenticationError(ServiceError):
    """Credentials missing or rejected (401/403)."""

    code = "AUTH_ERROR"


class DataNotFoundError(MatchCastError):
    """
    No historical data exists for a team pair.

    Not a failure: coordinators record a cooldown for the pair instead of
    surfacing this to the user.
    """

    code = "DATA_NOT_FOUND"

    def __init__(self, home_team: str, away_team: str):
        self.home_team = home_team
        self.away_team = away_team
        super().__init__(f"No matches found between {home_team} and {away_team}")


# =============================================================================
# COMPUTATION ERRORS
# =============================================================================

class ComputationError(MatchCastError):
    """
    Worker-side failure while computing a prediction.

    Not data dependent, so no cooldown is recorded for it.
    """

    def __init__(self, message: str, request_type: Optional[str] = None):
        self.request_type = request_type
        prefix = f"{request_type} failed" if request_type else "Computation failed"
        super().__init__(f"{prefix}: {message}")


# =============================================================================
# CONFIGURATION ERRORS
# =============================================================================

class ConfigurationError(MatchCastError):
    """
    Configuration or setup error.

    Raised when:
    - An enum-like setting has an unsupported value
    - A required provider URL is missing
    """

    def __init__(self, setting: str, message: str):
        self.setting = setting
        super().__init__(f"Configuration error ({setting}): {message}")
