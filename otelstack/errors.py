from __future__ import annotations


class OtelStackError(Exception):
    pass


class ConfigurationError(OtelStackError):
    pass


# --- launch stage ---


class LaunchError(OtelStackError):
    """A backend container could not be brought up."""

    def __init__(self, message: str, service: str | None = None):
        super().__init__(message)
        self.service = service


class NetworkCreationError(LaunchError):
    pass


class ReadinessTimeoutError(LaunchError):
    pass


class PortResolutionError(LaunchError):
    pass


class StackStartError(OtelStackError):
    """Raised by Stack.start() after the partially started stack was unwound.

    `stage` names the step that failed, `cause` is the error raised there and
    `unwind_errors` holds whatever went wrong while tearing down the services
    that had already started.
    """

    def __init__(self, stage: str, cause: BaseException, unwind_errors: list[BaseException] | None = None):
        self.stage = stage
        self.cause = cause
        self.unwind_errors = list(unwind_errors or [])
        msg = f"could not start {stage}: {cause}"
        if self.unwind_errors:
            details = "; ".join(f"{type(e).__name__}: {e}" for e in self.unwind_errors)
            msg += f" (errors while unwinding: {details})"
        super().__init__(msg)


class TeardownError(OtelStackError):
    def __init__(self, errors: list[BaseException]):
        self.errors = list(errors)
        details = "; ".join(f"{type(e).__name__}: {e}" for e in self.errors)
        super().__init__(f"{len(self.errors)} error(s) shutting down stack: {details}")


# --- query stage ---


class QueryError(OtelStackError):
    """Base for everything a query client raises.

    `endpoint` is the last URL that was requested and `attempts` how many
    requests were made before giving up.
    """

    def __init__(self, message: str, endpoint: str | None = None, attempts: int = 0):
        super().__init__(message)
        self.endpoint = endpoint
        self.attempts = attempts


class TransportError(QueryError):
    pass


class ResponseStatusError(QueryError):
    def __init__(self, message: str, status_code: int, endpoint: str | None = None, attempts: int = 0):
        super().__init__(message, endpoint=endpoint, attempts=attempts)
        self.status_code = status_code


class RetryableResponseError(ResponseStatusError):
    pass


class NonRetryableResponseError(ResponseStatusError):
    pass


class DecodeError(QueryError):
    pass


class InsufficientResultsError(QueryError):
    def __init__(self, message: str, expected: int, received: int, endpoint: str | None = None, attempts: int = 0):
        super().__init__(message, endpoint=endpoint, attempts=attempts)
        self.expected = expected
        self.received = received


class QueryCancelledError(QueryError):
    pass
