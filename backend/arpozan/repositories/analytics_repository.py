"""
Analytics Metric Repository

Metrics are append-only: update and delete always fail with a
validation error.
"""
from typing import Any, Dict, Optional

from arpozan.core.errors import ValidationError
from arpozan.domain import tables
from arpozan.domain.analytics import AnalyticsMetric, AnalyticsMetricCreate
from arpozan.domain.envelope import Envelope
from arpozan.repositories.base import BaseRepository, utc_now


class AnalyticsMetricRepository(BaseRepository):
    table = tables.ANALYTICS
    entity_name = "Analytics metric"
    model = AnalyticsMetric
    create_schema = AnalyticsMetricCreate
    search_fields = ("metric_name",)

    def _prepare_create(self, payload: AnalyticsMetricCreate) -> Dict[str, Any]:
        row = super()._prepare_create(payload)
        row["recorded_at"] = utc_now()
        return row

    def record(self, name: str, value: float, data: Optional[Dict[str, Any]] = None) -> Envelope:
        """Shortcut for create(metric_name=name, metric_value=value, metric_data=data)"""
        return self.create({"metric_name": name, "metric_value": value, "metric_data": data or {}})

    def update(self, record_id: str, attributes: Any) -> Envelope:
        return Envelope.fail(ValidationError("Analytics metrics cannot be modified"))

    def delete(self, record_id: str) -> Envelope:
        return Envelope.fail(ValidationError("Analytics metrics cannot be deleted"))
