"""
Error Handling Module for the AdMob dashboard.
Provides the error taxonomy, a retrying decorator for metrics API calls
and structured error handling for export phases.
"""

import time
import logging
import functools
from typing import TypeVar, Callable, Any

import requests

logger = logging.getLogger(__name__)

F = TypeVar("F", bound=Callable[..., Any])


class FetchFailure(Exception):
    """Base exception for network and auth failures of the API collaborators."""

    def __init__(self, message: str, status_code: int | str | None = None, endpoint: str = ""):
        self.status_code = status_code
        self.endpoint = endpoint
        super().__init__(message)


class AuthenticationError(FetchFailure):
    """Raised when API authentication fails (401/403)."""


class CredentialError(AuthenticationError):
    """Raised when no bearer token can be obtained from the credential provider."""


class RateLimitError(FetchFailure):
    """Raised when API rate limit is exceeded (429)."""


class ServerError(FetchFailure):
    """Raised for server-side errors (5xx)."""


class NoAccountFoundError(FetchFailure):
    """Raised when the account listing holds no publisher account."""


class MalformedRecordError(ValueError):
    """Raised when a single report item cannot be turned into a record."""

    def __init__(self, message: str, index: int | None = None, details: dict | None = None):
        self.index = index
        self.details = details or {}
        super().__init__(message)


class MalformedDateError(MalformedRecordError):
    """Raised when a DATE dimension value is not a valid YYYYMMDD string."""


class PipelinePhaseError(Exception):
    """Base exception for pipeline phase errors."""

    def __init__(self, message: str, phase: str = "", details: dict | None = None):
        self.phase = phase
        self.details = details or {}
        super().__init__(message)


class ExportError(PipelinePhaseError):
    """Raised when data export fails."""

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message, phase="EXPORT", details=details)


class DataValidationError(PipelinePhaseError):
    """Raised when data validation fails before a pipeline phase."""

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message, phase="VALIDATION", details=details)


def _response_text(response: requests.Response | None) -> str:
    return response.text if response is not None else ""


def _backoff_delay(attempt: int, base_delay: float, max_delay: float) -> float:
    return min(base_delay * (2 ** (attempt - 1)), max_delay)


def _exhausted_error(status_code: int, max_retries: int, endpoint: str) -> FetchFailure:
    if status_code == 429:
        return RateLimitError(
            f"Rate limit exceeded after {max_retries} retries",
            status_code=status_code,
            endpoint=endpoint,
        )
    return ServerError(
        f"Server error after {max_retries} retries: HTTP {status_code}",
        status_code=status_code,
        endpoint=endpoint,
    )


def handle_api_errors(
    max_retries: int = 3,
    base_delay: float = 1.0,
    max_delay: float = 30.0,
    retryable_status_codes: tuple[int, ...] = (429, 500, 502, 503, 504),
) -> Callable[[F], F]:
    """
    Retry a single AdMob HTTP call and translate its failures into FetchFailure.

    401/403 fail fast as AuthenticationError. Timeouts, connection errors and
    the retryable status codes back off exponentially; once the attempts are
    used up they surface as FetchFailure, RateLimitError or ServerError.

    Args:
        max_retries: Total number of attempts.
        base_delay: Delay before the second attempt, doubled for each further one.
        max_delay: Upper bound for a single delay.
        retryable_status_codes: HTTP status codes that are retried.
    """

    def decorator(func: F) -> F:
        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            name = func.__name__
            last_exception: Exception | None = None

            for attempt in range(1, max_retries + 1):
                delay = _backoff_delay(attempt, base_delay, max_delay)
                final = attempt == max_retries
                try:
                    return func(*args, **kwargs)

                except requests.exceptions.HTTPError as exc:
                    response = exc.response
                    status_code = response.status_code if response is not None else None
                    endpoint = response.url if response is not None else ""
                    body = _response_text(response)

                    if status_code in (401, 403):
                        logger.error("[%s] HTTP %s from %s: %s", name, status_code, endpoint, body)
                        raise AuthenticationError(
                            f"Authentication failed: HTTP {status_code}",
                            status_code=status_code,
                            endpoint=endpoint,
                        ) from exc

                    if status_code not in retryable_status_codes:
                        logger.error("[%s] HTTP %s from %s: %s", name, status_code, endpoint, body)
                        raise FetchFailure(
                            f"AdMob API error: HTTP {status_code} {body}".strip(),
                            status_code=status_code,
                            endpoint=endpoint,
                        ) from exc

                    last_exception = exc
                    if final:
                        raise _exhausted_error(status_code, max_retries, endpoint) from exc
                    logger.warning(
                        "[%s] HTTP %s (attempt %d/%d), retrying in %.1fs",
                        name, status_code, attempt, max_retries, delay,
                    )

                except (requests.exceptions.Timeout, requests.exceptions.ConnectionError) as exc:
                    timed_out = isinstance(exc, requests.exceptions.Timeout)
                    last_exception = exc
                    if final:
                        if timed_out:
                            raise FetchFailure(
                                f"Request timed out after {max_retries} retries",
                                status_code="TIMEOUT",
                            ) from exc
                        raise FetchFailure(
                            f"Connection failed after {max_retries} retries: {exc}",
                            status_code="CONNECTION_ERROR",
                        ) from exc
                    logger.warning(
                        "[%s] %s (attempt %d/%d), retrying in %.1fs",
                        name, "Timeout" if timed_out else "Connection error", attempt, max_retries, delay,
                    )

                except FetchFailure:
                    raise

                except Exception as exc:
                    logger.error("[%s] Unexpected error: %s", name, exc, exc_info=True)
                    raise FetchFailure(
                        f"Unexpected error in {name}: {exc}",
                        status_code="ERROR",
                    ) from exc

                time.sleep(delay)

            raise FetchFailure(f"{name} failed after {max_retries} retries") from last_exception

        return wrapper  # type: ignore[return-value]

    return decorator


def handle_pipeline_phase(
    phase_name: str,
    error_cls: type[PipelinePhaseError] = PipelinePhaseError,
) -> Callable[[F], F]:
    """
    Log an export phase and wrap its unexpected failures into `error_cls`.

    PipelinePhaseError instances pass through unchanged.
    """

    def decorator(func: F) -> F:
        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            started = time.perf_counter()
            logger.info("[%s] %s started", phase_name, func.__name__)
            try:
                result = func(*args, **kwargs)
            except PipelinePhaseError:
                raise
            except Exception as exc:
                logger.error("[%s] %s failed: %s", phase_name, func.__name__, exc, exc_info=True)
                raise error_cls(
                    f"{phase_name} failed in {func.__name__}: {exc}",
                    details={"function": func.__name__, "original_error": str(exc)},
                ) from exc
            logger.info(
                "[%s] %s finished in %.2fs", phase_name, func.__name__, time.perf_counter() - started
            )
            return result

        return wrapper  # type: ignore[return-value]

    return decorator
