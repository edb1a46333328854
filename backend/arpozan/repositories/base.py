"""
Base Repository - shared CRUD over the selected backend

Every public method returns an Envelope; DataAccessError subclasses and
pydantic validation errors are converted at this boundary and never reach
the caller. Backend calls go through BackendSelector.run so the
retry-then-fallback policy applies to each operation as a whole.

Author: Arpozan
"""
import logging
import uuid
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Type, get_args

from pydantic import BaseModel, TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from arpozan.backends.base import DataBackend
from arpozan.backends.selector import BackendSelector, get_backend_selector
from arpozan.core.errors import DataAccessError, NotFoundError, ValidationError
from arpozan.domain.envelope import Envelope
from arpozan.domain.query import QueryDescriptor

logger = logging.getLogger(__name__)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def new_id() -> str:
    return str(uuid.uuid4())


def plain_values(data: Dict[str, Any]) -> Dict[str, Any]:
    """Enum members replaced by their values, recursively"""
    result = {}
    for key, value in data.items():
        if isinstance(value, Enum):
            value = value.value
        elif isinstance(value, dict):
            value = plain_values(value)
        elif isinstance(value, list):
            value = [item.value if isinstance(item, Enum) else item for item in value]
        result[key] = value
    return result


def describe_validation_error(error: PydanticValidationError) -> str:
    """One readable line out of a pydantic ValidationError"""
    parts = []
    for detail in error.errors():
        location = ".".join(str(part) for part in detail.get("loc", ())) or "input"
        parts.append(f"{location}: {detail.get('msg', 'invalid value')}")
    return "; ".join(parts) or "Invalid input"


def is_numeric_annotation(annotation: Any) -> bool:
    """True for int/float/Decimal columns, optional or not (bool excluded)"""
    options = [arg for arg in get_args(annotation) if arg is not type(None)] or [annotation]
    return all(
        isinstance(option, type) and issubclass(option, (int, float, Decimal)) and not issubclass(option, bool)
        for option in options
    )


class BaseRepository:
    """
    Generic repository for one table

    Subclasses set:
        table: Table name
        entity_name: Name used in error messages
        model: Domain model built from each row
        create_schema / update_schema: Input schemas (unknown keys rejected)
        search_fields: Columns searched when a descriptor carries search text
        embedded_fields: Model fields that are not table columns
    """

    table: str = ""
    entity_name: str = "Record"
    model: Type[BaseModel]
    create_schema: Optional[Type[BaseModel]] = None
    update_schema: Optional[Type[BaseModel]] = None
    search_fields: tuple = ()
    embedded_fields: frozenset = frozenset()

    def __init__(self, selector: Optional[BackendSelector] = None):
        self._selector = selector

    @property
    def selector(self) -> BackendSelector:
        return self._selector or get_backend_selector()

    @property
    def columns(self) -> frozenset:
        return frozenset(self.model.model_fields) - self.embedded_fields

    # ------------------------------------------------------------------
    # Plumbing
    # ------------------------------------------------------------------

    def _run(self, operation: Callable[[DataBackend], Any]) -> Any:
        return self.selector.run(operation)

    def _guard(self, action: str, work: Callable[[], Any]) -> Envelope:
        """Run work() and wrap its outcome in an Envelope"""
        try:
            return Envelope.ok(work())
        except DataAccessError as e:
            logger.warning(f"{self.entity_name} {action} failed ({e.kind}): {e.message}")
            return Envelope.fail(e)
        except PydanticValidationError as e:
            return Envelope.fail(ValidationError(describe_validation_error(e)))
        except Exception:
            logger.exception(f"Unexpected error during {self.entity_name} {action}")
            return Envelope.fail(DataAccessError("Internal error"))

    def _validate(self, schema: Type[BaseModel], attributes: Any) -> BaseModel:
        if isinstance(attributes, schema):
            return attributes
        if attributes is None:
            raise ValidationError(f"{self.entity_name} attributes are required")
        if isinstance(attributes, BaseModel):
            attributes = attributes.model_dump(exclude_unset=True)
        if not isinstance(attributes, dict):
            raise ValidationError(f"{self.entity_name} attributes must be an object")
        return schema.model_validate(attributes)

    def _prepare_descriptor(self, descriptor: Optional[QueryDescriptor]) -> QueryDescriptor:
        descriptor = descriptor or QueryDescriptor()
        if descriptor.search_text and not descriptor.search_fields:
            descriptor = descriptor.model_copy(update={"search_fields": tuple(self.search_fields)})

        unknown = sorted(descriptor.referenced_fields() - self.columns)
        if unknown:
            raise ValidationError(f"Unknown {self.entity_name.lower()} field(s): {', '.join(unknown)}")

        not_numeric = sorted(
            field for field in descriptor.numeric_range
            if not is_numeric_annotation(self.model.model_fields[field].annotation)
        )
        if not_numeric:
            raise ValidationError(f"Numeric range on non-numeric field(s): {', '.join(not_numeric)}")

        if descriptor.equality_filters:
            coerced = {
                field: self._coerce_filter(field, expected)
                for field, expected in descriptor.equality_filters.items()
            }
            descriptor = descriptor.model_copy(update={"equality_filters": coerced})
        return descriptor

    def _coerce_filter(self, field: str, expected: Any) -> Any:
        """Filter value converted to the column's type ("true" -> True, "5" -> 5)"""
        if expected is None:
            return None
        adapter = TypeAdapter(self.model.model_fields[field].annotation)
        try:
            if isinstance(expected, (list, tuple, set, frozenset)):
                return [adapter.validate_python(option) for option in expected]
            return adapter.validate_python(expected)
        except PydanticValidationError:
            raise ValidationError(f"Invalid value for {self.entity_name.lower()} field {field}: {expected!r}")

    def _to_model(self, row: Dict[str, Any]) -> BaseModel:
        return self.model.model_validate(row)

    def _hydrate(self, backend: DataBackend, rows: List[Dict[str, Any]]) -> List[BaseModel]:
        """Turn rows into models; subclasses embed related rows here"""
        return [self._to_model(row) for row in rows]

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_all(self, descriptor: Optional[QueryDescriptor] = None) -> Envelope:
        """
        One page of records

        Returns:
            Envelope with {"items", "total", "total_pages"}; total counts every
            row matching the filters, not just this page.
        """
        def work():
            prepared = self._prepare_descriptor(descriptor)

            def load(backend: DataBackend):
                result = backend.execute(self.table, prepared)
                return self._hydrate(backend, result.rows), result.total

            items, total = self._run(load)
            return {"items": items, "total": total, "total_pages": prepared.total_pages(total)}

        return self._guard("get_all", work)

    def get_by_id(self, record_id: str) -> Envelope:
        """Single record, or success with None when it does not exist"""
        def work():
            if not record_id:
                raise ValidationError(f"{self.entity_name} id is required")

            def load(backend: DataBackend):
                row = backend.fetch_by_id(self.table, str(record_id))
                return self._hydrate(backend, [row])[0] if row else None

            return self._run(load)

        return self._guard("get_by_id", work)

    def _find_one(self, filters: Dict[str, Any]) -> Optional[BaseModel]:
        def load(backend: DataBackend):
            rows = backend.find_where(self.table, filters)
            return self._hydrate(backend, rows[:1])[0] if rows else None

        return self._run(load)

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def _prepare_create(self, payload: BaseModel) -> Dict[str, Any]:
        """Row to insert for a validated create payload"""
        now = utc_now()
        row = plain_values(payload.model_dump())
        row["id"] = new_id()
        if "created_at" in self.columns:
            row["created_at"] = now
        if "updated_at" in self.columns:
            row["updated_at"] = now
        return row

    def _prepare_update(self, record_id: str, changes: Dict[str, Any]) -> Dict[str, Any]:
        return changes

    def _after_update(self, backend: DataBackend, record: BaseModel) -> None:
        """Runs on the same backend right after a successful update"""

    def create(self, attributes: Any) -> Envelope:
        def work():
            if self.create_schema is None:
                raise ValidationError(f"{self.entity_name} records cannot be created here")
            payload = self._validate(self.create_schema, attributes)
            row = self._prepare_create(payload)

            def store(backend: DataBackend):
                stored = backend.insert(self.table, row)
                return self._hydrate(backend, [stored])[0]

            created = self._run(store)
            logger.info(f"{self.entity_name} {row['id']} created")
            return created

        return self._guard("create", work)

    def update(self, record_id: str, attributes: Any) -> Envelope:
        def work():
            if self.update_schema is None:
                raise ValidationError(f"{self.entity_name} records cannot be updated")
            if not record_id:
                raise ValidationError(f"{self.entity_name} id is required")
            payload = self._validate(self.update_schema, attributes)
            changes = plain_values(payload.model_dump(exclude_unset=True))
            if not changes:
                raise ValidationError("No fields to update")
            changes = self._prepare_update(str(record_id), changes)
            if "updated_at" in self.columns:
                changes["updated_at"] = utc_now()

            def store(backend: DataBackend):
                current = backend.fetch_by_id(self.table, str(record_id))
                if current is None:
                    raise NotFoundError(self.entity_name, str(record_id))
                # The merged row must still be a valid record before anything is written
                self._to_model({**current, **changes})

                stored = backend.update(self.table, str(record_id), changes)
                if stored is None:
                    raise NotFoundError(self.entity_name, str(record_id))
                record = self._hydrate(backend, [stored])[0]
                self._after_update(backend, record)
                return record

            return self._run(store)

        return self._guard("update", work)

    def _delete(self, backend: DataBackend, record_id: str) -> None:
        """Hard delete; subclasses apply their soft-delete policy here"""
        if not backend.delete(self.table, record_id):
            raise NotFoundError(self.entity_name, record_id)

    def delete(self, record_id: str) -> Envelope:
        def work():
            if not record_id:
                raise ValidationError(f"{self.entity_name} id is required")
            self._run(lambda backend: self._delete(backend, str(record_id)))
            logger.info(f"{self.entity_name} {record_id} deleted")
            return None

        return self._guard("delete", work)
