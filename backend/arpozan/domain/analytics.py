"""
Analytics Metric Domain Model

Metrics are write-once: there is no update schema.
"""
from datetime import datetime
from typing import Any, Dict

from pydantic import BaseModel, ConfigDict, Field, field_validator


class AnalyticsMetric(BaseModel):
    id: str = Field(..., description="Metric ID")
    metric_name: str = Field(..., description="Metric name")
    metric_value: float = Field(..., description="Numeric value")
    metric_data: Dict[str, Any] = Field(default_factory=dict, description="Free-form context")
    recorded_at: datetime = Field(..., description="When the metric was recorded")

    model_config = ConfigDict(from_attributes=True)

    @field_validator("metric_data", mode="before")
    @classmethod
    def none_as_empty(cls, value):
        return value or {}

    def to_dict(self) -> dict:
        return self.model_dump(mode="json")


class AnalyticsMetricCreate(BaseModel):
    metric_name: str = Field(..., min_length=1)
    metric_value: float
    metric_data: Dict[str, Any] = Field(default_factory=dict)

    model_config = ConfigDict(extra="forbid")
