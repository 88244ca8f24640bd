"""Shared exception types for the recommender."""


class InvalidParameter(Exception):
    """Raised when a workload field is malformed or out of range.

    Carries the offending *field* name and *value* so the form layer can
    point at the input that needs fixing.
    """

    def __init__(self, field: str, value: object, reason: str) -> None:
        self.field = field
        self.value = value
        self.reason = reason
        super().__init__(f"Invalid {field}={value!r}: {reason}")


class CatalogExhausted(Exception):
    """Raised when no catalog accelerator supports the requested workload class.

    This is non-fatal: the selector falls back to the largest accelerator
    and says so in the justification.
    """

    def __init__(self, workload_class: str) -> None:
        self.workload_class = workload_class
        super().__init__(f"No catalog accelerator supports {workload_class} workloads")


class AdvisoryError(Exception):
    """Base class for advisory failures.

    Never escapes the advisory controller; each subclass causes a
    rule-based fallback.
    """


class AdvisoryUnavailable(AdvisoryError):
    """No advisory endpoint or credential is configured."""


class AdvisoryTimeout(AdvisoryError):
    """The advisory call did not settle before the deadline."""

    def __init__(self, timeout: float) -> None:
        self.timeout = timeout
        super().__init__(f"Advisory call did not finish within {timeout:g}s")


class AdvisoryTransportError(AdvisoryError):
    """Network failure or non-2xx response from the advisory service."""

    def __init__(self, details: str, status_code: int | None = None) -> None:
        self.details = details
        self.status_code = status_code
        prefix = f"HTTP {status_code}: " if status_code is not None else ""
        super().__init__(f"Advisory transport failed: {prefix}{details}")


class AdvisoryMalformedResponse(AdvisoryError):
    """The advisory response has no parseable JSON object."""


class AdvisoryValidationFailure(AdvisoryError):
    """The advisory JSON object is missing required fields or has bad values."""
