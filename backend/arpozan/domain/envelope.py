"""
Response Envelope

Uniform {success, data | error} wrapper returned by every repository and
aggregation operation.
"""
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field

from arpozan.core.errors import DataAccessError


class Envelope(BaseModel):
    """
    Result of a data-access operation

    Fields:
        success: Whether the operation succeeded
        data: Payload on success (may legitimately be None, e.g. a missing record)
        error: Human readable message on failure
        kind: Error kind on failure (validation, not_found, conflict, auth,
              rate_limit, backend, partial_order, internal)
    """

    success: bool = Field(..., description="Whether the operation succeeded")
    data: Any = Field(None, description="Payload on success")
    error: Optional[str] = Field(None, description="Error message on failure")
    kind: Optional[str] = Field(None, description="Error kind on failure")

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    @classmethod
    def ok(cls, data: Any = None) -> "Envelope":
        return cls(success=True, data=data)

    @classmethod
    def fail(cls, error: DataAccessError) -> "Envelope":
        return cls(success=False, error=error.message, kind=error.kind)

    @property
    def status_code(self) -> int:
        """HTTP status matching the envelope (200 on success)"""
        if self.success:
            return 200
        return _STATUS_BY_KIND.get(self.kind, 500)

    def unwrap(self) -> Any:
        """Return data or raise the matching DataAccessError"""
        if self.success:
            return self.data
        error = DataAccessError(self.error or "Internal error")
        error.kind = self.kind or "internal"
        error.status_code = self.status_code
        raise error

    def to_dict(self) -> dict:
        """
        Wire representation

        Success always carries a 'data' key, even when the payload is None.
        Domain models inside the payload are dumped in JSON mode.
        """
        if self.success:
            return {"success": True, "data": _jsonable(self.data)}
        return {"success": False, "error": self.error, "kind": self.kind}


_STATUS_BY_KIND = {
    "validation": 400,
    "auth": 401,
    "not_found": 404,
    "conflict": 409,
    "rate_limit": 429,
    "partial_order": 500,
    "internal": 500,
    "backend": 503,
}


def _jsonable(value: Any) -> Any:
    if isinstance(value, BaseModel):
        if hasattr(value, "to_dict"):
            return value.to_dict()
        return value.model_dump(mode="json")
    if isinstance(value, dict):
        return {key: _jsonable(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [_jsonable(item) for item in value]
    return value
