"""
Custom exceptions for aeto

Well-defined error hierarchy enables precise error handling and
clear error messages for operators reading tenant conditions.

Fun fact: Kubernetes controllers never "fail" in the classic sense - they
report what went wrong and try again later. Our errors are built for that.
"""


class AetoError(Exception):
    """Base exception for all aeto errors"""

    pass


# Event store errors


class EventStoreError(AetoError):
    """Base class for event store errors"""

    pass


class UnboundEventType(EventStoreError):
    """
    Raised when a record carries an event type tag that was never registered

    The whole stream must be treated as unreadable - skipping the record
    would silently change the replayed state.
    """

    def __init__(self, event_type: str) -> None:
        self.event_type = event_type
        super().__init__(f"unbound event type, {event_type}")


class EventDecodeError(EventStoreError):
    """Raised when a record or its payload cannot be decoded"""

    pass


class StreamMismatch(EventStoreError):
    """Raised when a chunk belongs to a different stream than requested"""

    def __init__(self, expected: str, actual: str) -> None:
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"wrong expected stream id for chunk (expected={expected}, actual={actual})"
        )


class ChunkStoreError(EventStoreError):
    """Raised on failures in the chunk store backing the repository"""

    pass


class ChunkAlreadyExists(ChunkStoreError):
    """
    Raised when a chunk with the same id already exists

    Chunks are append-only - an existing chunk is never overwritten.
    """

    def __init__(self, stream_id: str, chunk_id: str) -> None:
        self.stream_id = stream_id
        self.chunk_id = chunk_id
        super().__init__(f"chunk {chunk_id} already exists in stream {stream_id}")


# Invariant violations


class InvariantViolation(AetoError):
    """
    Raised when a domain invariant does not hold

    These are never auto-corrected - they require operator intervention.
    """

    pass


class MultipleActiveResourceSets(InvariantViolation):
    """Raised when replay results in more than one active resource set"""

    def __init__(self, active: int) -> None:
        self.active = active
        super().__init__(
            f"replay resulted in multiple active ResourceSets (active={active})"
        )


# Template and parameter errors


class TemplateError(AetoError):
    """Base class for resource template errors"""

    pass


class TemplateRenderError(TemplateError):
    """Raised when a template fails to parse or execute"""

    pass


class ManifestParseError(TemplateError):
    """Raised when rendered output cannot be parsed into manifests"""

    pass


class ParameterError(AetoError):
    """Base class for parameter validation errors"""

    pass


class RequiredParameterMissing(ParameterError):
    """Raised when a required parameter has neither a value nor a default"""

    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"required parameter {name} has no value")


class ParameterValidationFailed(ParameterError):
    """Raised when one or more parameters of a template fail validation"""

    def __init__(self, errors: list[ParameterError]) -> None:
        self.errors = errors
        super().__init__(
            "validation failed: " + "; ".join(str(e) for e in errors)
        )


class InvalidValueReference(ParameterError):
    """Raised when a value reference is malformed or cannot be resolved"""

    pass


class ValueReferenceNotFound(InvalidValueReference):
    """Raised when the target of a value reference does not exist"""

    pass


# Cluster errors


class ResourceNotFound(AetoError):
    """Raised by the cluster collaborator when an object does not exist"""

    def __init__(self, kind: str, name: str) -> None:
        self.kind = kind
        self.name = name
        super().__init__(f"{kind} {name} not found")


class GenerateError(AetoError):
    """
    Raised when one or more resource groups failed to generate

    Carries every individual failure plus the partial result so the
    caller can still act on the groups that rendered.
    """

    def __init__(self, errors: list[Exception], result: object = None) -> None:
        self.errors = errors
        self.result = result
        super().__init__(
            "failed to generate resources from blueprint, "
            f"encountered {len(errors)} error(s)"
        )
