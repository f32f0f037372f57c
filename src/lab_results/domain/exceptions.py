"""Error taxonomy for the lab results service.

Transport layers translate these into response categories:
InvalidArgument -> bad input, SampleNotFound -> missing resource,
AlreadyValidated / NotReady / ConcurrencyConflict -> conflict,
InfrastructureFailure / OperationCancelled -> service unavailable.
"""


class DomainError(Exception):
    """Base class for all lab results errors."""
    pass


class InvalidArgument(DomainError, ValueError):
    """Malformed input to a value object or command."""
    pass


class SampleNotFound(DomainError):
    """Referenced sample (by id or code) does not exist."""

    def __init__(self, reference):
        self.reference = reference
        super().__init__(f"Sample {reference} not found.")


class AlreadyValidated(DomainError):
    def __init__(self):
        super().__init__("Result already validated.")


class NotReady(DomainError):
    def __init__(self, message: str = "Result must be completed before this action."):
        super().__init__(message)


class ConcurrencyConflict(DomainError):
    """Sample was modified by another writer since it was loaded."""

    def __init__(self, sample_id, expected_version: int):
        self.sample_id = sample_id
        self.expected_version = expected_version
        super().__init__(
            f"Sample {sample_id} was modified concurrently "
            f"(expected version {expected_version})."
        )


class InfrastructureFailure(DomainError):
    """A collaborator port (database, cache, mailer, ...) failed."""
    pass


class OperationCancelled(DomainError):
    pass
