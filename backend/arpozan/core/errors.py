"""
Error taxonomy for the data-access layer

Every failure the layer can report is one of these exceptions. They never
escape a repository: BaseRepository converts them into failed Envelopes.
Only BackendError takes part in the retry/fallback policy.
"""
from typing import Optional


class DataAccessError(Exception):
    """Base class for every error the data-access layer reports"""

    kind: str = "internal"
    status_code: int = 500

    def __init__(self, message: str = "Internal error"):
        super().__init__(message)
        self.message = message


class ValidationError(DataAccessError):
    """Malformed or missing input, detected before any backend call"""

    kind = "validation"
    status_code = 400


class NotFoundError(DataAccessError):
    kind = "not_found"
    status_code = 404

    def __init__(self, entity: str, entity_id: Optional[str] = None):
        message = f"{entity} not found" if entity_id is None else f"{entity} {entity_id} not found"
        super().__init__(message)
        self.entity = entity
        self.entity_id = entity_id


class ConflictError(DataAccessError):
    """Uniqueness violation (slug, email, composite keys)"""

    kind = "conflict"
    status_code = 409

    def __init__(self, field: Optional[str] = None):
        super().__init__("duplicate")
        self.field = field


class AuthError(DataAccessError):
    """Caller lacks the identity or role required for the operation"""

    kind = "auth"
    status_code = 401

    def __init__(self, message: str = "Authentication required", status_code: int = 401):
        super().__init__(message)
        self.status_code = status_code


class RateLimitError(DataAccessError):
    kind = "rate_limit"
    status_code = 429

    def __init__(self, retry_after: int = 1):
        super().__init__(f"Rate limit exceeded. Try again in {retry_after} seconds.")
        self.retry_after = retry_after


class BackendError(DataAccessError):
    """
    The live backend failed for reasons unrelated to the data itself
    (network, timeout, misconfiguration). Triggers retry-then-fallback.
    """

    kind = "backend"
    status_code = 503


class PartialOrderError(DataAccessError):
    """
    An order header was persisted but its items could not all be written.

    The header stays in 'pending' status so it can be found and repaired.
    """

    kind = "partial_order"
    status_code = 500

    def __init__(self, order_id: str, reason: str):
        super().__init__(f"Order {order_id} was only partially written: {reason}")
        self.order_id = order_id
        self.reason = reason
