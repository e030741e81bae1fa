"""Built-in report templates: which semantic fields each report kind needs."""

from __future__ import annotations

from typing import Optional

from autoreport.models import ReportTemplate

REPORT_TEMPLATES: tuple[ReportTemplate, ...] = (
    ReportTemplate(
        id="financial-summary",
        name="Financial Summary",
        description="Generate financial reports with income, expenses, and balance calculations",
        type="financial",
        required_fields=("date", "amount", "category"),
        optional_fields=("description", "reference", "notes"),
    ),
    ReportTemplate(
        id="attendance-report",
        name="Attendance Report",
        description="Track attendance records with summaries by person and date",
        type="attendance",
        required_fields=("date", "name", "status"),
        optional_fields=("check_in", "check_out", "department", "notes"),
    ),
    ReportTemplate(
        id="inventory-report",
        name="Inventory Report",
        description="Monitor inventory levels, stock movements, and valuations",
        type="inventory",
        required_fields=("item_name", "quantity", "unit_price"),
        optional_fields=("category", "sku", "location", "date"),
    ),
)


def get_template_by_id(template_id: str) -> Optional[ReportTemplate]:
    for template in REPORT_TEMPLATES:
        if template.id == template_id:
            return template
    return None


def require_template(template_id: str) -> ReportTemplate:
    template = get_template_by_id(template_id)
    if template is None:
        known = ", ".join(template.id for template in REPORT_TEMPLATES)
        raise KeyError(f"Unknown template '{template_id}'. Available: {known}")
    return template


def get_required_fields(template_id: str) -> list[str]:
    template = get_template_by_id(template_id)
    return list(template.required_fields) if template else []


def is_field_required(template_id: str, field_name: str) -> bool:
    return field_name.lower() in get_required_fields(template_id)


def template_fields(template_id: str) -> list[str]:
    """Required then optional fields, the order the matcher is fed."""
    template = get_template_by_id(template_id)
    return list(template.fields) if template else []
