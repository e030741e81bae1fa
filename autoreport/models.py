"""
Value types shared by every pipeline stage.

All types are frozen dataclasses; each stage builds new instances instead of
mutating what it was given. ``to_dict`` renders the camelCase shape consumed
by the export and persistence collaborators.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from enum import Enum
from typing import Any, Mapping, Optional, Union

CellValue = Union[None, str, int, float, bool, datetime, date]
Record = Mapping[str, CellValue]


class DataType(str, Enum):
    STRING = "string"
    NUMBER = "number"
    DATE = "date"
    CURRENCY = "currency"

    @classmethod
    def parse(cls, value: "str | DataType") -> "DataType":
        if isinstance(value, DataType):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            allowed = ", ".join(member.value for member in cls)
            raise ValueError(f"Unknown data type '{value}'. Allowed: {allowed}") from None

    @property
    def is_numeric(self) -> bool:
        return self in (DataType.NUMBER, DataType.CURRENCY)


def _json_scalar(value: Any) -> Any:
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return value


@dataclass(frozen=True)
class ColumnMapping:
    source_column: str
    target_field: str
    data_type: DataType = DataType.STRING

    def __post_init__(self) -> None:
        object.__setattr__(self, "data_type", DataType.parse(self.data_type))

    def to_dict(self) -> dict[str, str]:
        return {
            "sourceColumn": self.source_column,
            "targetField": self.target_field,
            "dataType": self.data_type.value,
        }

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "ColumnMapping":
        return cls(
            source_column=str(payload["sourceColumn"]),
            target_field=str(payload["targetField"]),
            data_type=DataType.parse(payload.get("dataType", DataType.STRING)),
        )


@dataclass(frozen=True)
class ReportTemplate:
    id: str
    name: str
    description: str
    type: str
    required_fields: tuple[str, ...]
    optional_fields: tuple[str, ...] = ()

    @property
    def fields(self) -> tuple[str, ...]:
        return self.required_fields + self.optional_fields

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "type": self.type,
            "requiredFields": list(self.required_fields),
            "optionalFields": list(self.optional_fields),
        }


@dataclass(frozen=True)
class ValidationError:
    """One data-quality finding for a single (row, mapped column) pair.

    ``row`` is 1-based. This is a plain record collected into a list, it is
    never raised.
    """

    row: int
    column: str
    message: str
    value: CellValue = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "row": self.row,
            "column": self.column,
            "message": self.message,
            "value": _json_scalar(self.value),
        }


@dataclass(frozen=True)
class Summary:
    total_rows: int
    total_amount: Optional[float] = None
    average_amount: Optional[float] = None
    period: Optional[str] = None
    categories: Optional[dict[str, int]] = None
    amount_count: int = 0

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"totalRows": self.total_rows}
        if self.total_amount is not None:
            payload["totalAmount"] = self.total_amount
        if self.average_amount is not None:
            payload["averageAmount"] = self.average_amount
        if self.period is not None:
            payload["period"] = self.period
        if self.categories is not None:
            payload["categories"] = dict(self.categories)
        return payload


@dataclass(frozen=True)
class ProcessedData:
    raw_data: tuple[dict[str, CellValue], ...]
    columns: tuple[str, ...]
    mappings: tuple[ColumnMapping, ...]
    summary: Summary
    errors: tuple[ValidationError, ...]

    def to_dict(self) -> dict[str, Any]:
        return {
            "rawData": [
                {key: _json_scalar(value) for key, value in record.items()}
                for record in self.raw_data
            ],
            "columns": list(self.columns),
            "mappings": [mapping.to_dict() for mapping in self.mappings],
            "summary": self.summary.to_dict(),
            "errors": [error.to_dict() for error in self.errors],
        }


@dataclass(frozen=True)
class ReportConfig:
    title: str
    period: str = ""
    template: Optional[ReportTemplate] = None
    include_charts: bool = False
    group_by: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "title": self.title,
            "period": self.period,
            "template": self.template.to_dict() if self.template else None,
            "includeCharts": self.include_charts,
            "groupBy": self.group_by,
        }


@dataclass(frozen=True)
class ReportHistoryEntry:
    id: str
    title: str
    template_name: str
    period: str
    total_rows: int
    exported_at: str
    total_amount: Optional[float] = None
    exported_formats: tuple[str, ...] = ()
    mappings: tuple[ColumnMapping, ...] = ()
    summary: Optional[Summary] = None
    config: Optional[ReportConfig] = None

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "id": self.id,
            "title": self.title,
            "templateName": self.template_name,
            "period": self.period,
            "totalRows": self.total_rows,
            "exportedAt": self.exported_at,
            "exportedFormats": list(self.exported_formats),
            "mappings": [mapping.to_dict() for mapping in self.mappings],
            "summary": self.summary.to_dict() if self.summary else None,
            "config": self.config.to_dict() if self.config else None,
        }
        if self.total_amount is not None:
            payload["totalAmount"] = self.total_amount
        return payload
