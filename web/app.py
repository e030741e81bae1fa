#!/usr/bin/env python3
from __future__ import annotations

import io
import logging
from datetime import date
from pathlib import Path
from typing import Optional

import pandas as pd
import streamlit as st

from autoreport.assembler import preview_rows, process_data
from autoreport.column_types import infer_column_types
from autoreport.config import Settings, load_settings
from autoreport.exporter import export_excel, export_filename
from autoreport.field_matcher import FieldMatcher, load_field_table
from autoreport.loader import ALL_FORMATS, DecodedTable, MalformedInputError, decode, format_for_suffix
from autoreport.mapping_rules import check_mappings, mapping_stats
from autoreport.models import ColumnMapping, ReportConfig, ReportTemplate
from autoreport.templates import REPORT_TEMPLATES, get_template_by_id

STEPS = ["Upload", "Map", "Preview & Export"]
UNMAPPED = "(not mapped)"

logger = logging.getLogger("autoreport.web")


@st.cache_resource(show_spinner=False)
def get_settings() -> Settings:
    settings = load_settings()
    logging.basicConfig(level=getattr(logging, settings.log_level))
    return settings


@st.cache_resource(show_spinner=False)
def get_matcher(field_table_path: Optional[str]) -> FieldMatcher:
    if field_table_path:
        return FieldMatcher(load_field_table(field_table_path))
    return FieldMatcher()


def ensure_state() -> None:
    st.session_state.setdefault("step", 0)
    st.session_state.setdefault("table", None)
    st.session_state.setdefault("file_name", None)
    st.session_state.setdefault("template_id", REPORT_TEMPLATES[0].id)
    st.session_state.setdefault("mappings", [])
    st.session_state.setdefault("matched_for", None)


def go_to(step: int) -> None:
    st.session_state["step"] = step
    st.rerun()


def set_visuals() -> None:
    st.set_page_config(page_title="autoreport", page_icon="📊", layout="wide", initial_sidebar_state="collapsed")
    st.markdown(
        """
        <style>
        .step-current { font-weight: 700; }
        .step-done { color: #4CAF50; }
        .step-todo { color: #8b8ba3; }
        </style>
        """,
        unsafe_allow_html=True,
    )


def render_progress(current: int) -> None:
    parts = []
    for index, label in enumerate(STEPS):
        css = "step-current" if index == current else "step-done" if index < current else "step-todo"
        parts.append(f'<span class="{css}">{index + 1}. {label}</span>')
    st.markdown(" &rarr; ".join(parts), unsafe_allow_html=True)


# ── Step 1: Upload ─────────────────────────────────────────────────────

def decode_upload(name: str, payload: bytes, settings: Settings) -> DecodedTable:
    suffix = Path(name).suffix.lower()
    fmt = format_for_suffix(suffix)
    delimiter = "\t" if suffix == ".tsv" else None
    return decode(payload, fmt, suffix=suffix, delimiter=delimiter, max_bytes=settings.max_upload_bytes)


def render_upload(settings: Settings) -> None:
    st.subheader("Upload a spreadsheet")
    st.caption(f"Maximum size: {settings.max_upload_bytes // (1024 * 1024)} MB. The first row must hold the column names.")
    upload = st.file_uploader(
        "Data file",
        type=[ext.lstrip(".") for ext in sorted(ALL_FORMATS)],
        key="upload_input",
    )
    if upload is None:
        return
    try:
        table = decode_upload(upload.name, upload.getvalue(), settings)
    except (MalformedInputError, ImportError, UnicodeDecodeError) as exc:
        st.error(str(exc))
        return

    for warning in table.warnings:
        st.warning(warning)
    st.success(f"{table.row_count} rows, {len(table.columns)} columns")
    types = infer_column_types(table.records, table.columns)
    st.caption(" · ".join(f"{name}: {kind}" for name, kind in types.items()))
    st.dataframe(pd.DataFrame(table.records[:10], columns=table.columns), width="stretch")

    if st.button("Continue to mapping", type="primary"):
        if st.session_state.get("file_name") != upload.name:
            st.session_state["matched_for"] = None
        st.session_state["table"] = table
        st.session_state["file_name"] = upload.name
        go_to(1)


# ── Step 2: Map ────────────────────────────────────────────────────────

def seed_mappings(table: DecodedTable, template: ReportTemplate, matcher: FieldMatcher) -> None:
    """Run the matcher once per (file, template); later visits keep the user's edits."""
    key = (st.session_state["file_name"], template.id)
    if st.session_state.get("matched_for") == key:
        return
    for field_name in template.fields:
        st.session_state.pop(f"map_{field_name}", None)
    st.session_state["mappings"] = matcher.match(table.columns, template.required_fields, template.optional_fields)
    st.session_state["matched_for"] = key


def render_field_selector(
    field_name: str,
    required: bool,
    table: DecodedTable,
    mappings: list[ColumnMapping],
    matcher: FieldMatcher,
) -> Optional[ColumnMapping]:
    current = next((m.source_column for m in mappings if m.target_field == field_name), None)
    suggestions = matcher.suggest(field_name, table.columns, mappings)
    options = [UNMAPPED] + table.columns
    index = options.index(current) if current in options else 0
    label = f"{field_name} {'*' if required else ''}".strip()
    help_text = f"Suggested: {', '.join(suggestions)}" if suggestions else None
    choice = st.selectbox(label, options, index=index, key=f"map_{field_name}", help=help_text)
    if choice == UNMAPPED:
        return None
    return ColumnMapping(choice, field_name, matcher.data_type_for(field_name))


def render_mapping(settings: Settings) -> None:
    table: DecodedTable = st.session_state["table"]
    matcher = get_matcher(settings.field_table_path)

    ids = [t.id for t in REPORT_TEMPLATES]
    template_id = st.selectbox(
        "Report template",
        ids,
        index=ids.index(st.session_state["template_id"]),
        format_func=lambda value: get_template_by_id(value).name,
    )
    st.session_state["template_id"] = template_id
    template = get_template_by_id(template_id)
    st.caption(template.description)

    seed_mappings(table, template, matcher)
    if st.button("Re-run auto matching"):
        st.session_state["matched_for"] = None
        st.rerun()

    mappings: list[ColumnMapping] = []
    left, right = st.columns(2)
    with left:
        st.markdown("**Required fields**")
        for field_name in template.required_fields:
            mapping = render_field_selector(field_name, True, table, st.session_state["mappings"], matcher)
            if mapping:
                mappings.append(mapping)
    with right:
        st.markdown("**Optional fields**")
        for field_name in template.optional_fields:
            mapping = render_field_selector(field_name, False, table, st.session_state["mappings"], matcher)
            if mapping:
                mappings.append(mapping)
    st.session_state["mappings"] = mappings

    stats = mapping_stats(mappings, template.required_fields, template.optional_fields)
    st.progress(stats["completion"] / 100, text=f"{stats['total']} fields mapped ({stats['completion']}%)")
    check = check_mappings(mappings, table.columns, template.required_fields)
    if check.error:
        st.warning(check.error)

    back, forward = st.columns(2)
    if back.button("Back", width="stretch"):
        go_to(0)
    if forward.button("Continue to preview", type="primary", width="stretch", disabled=not check.valid):
        go_to(2)


# ── Step 3: Preview & Export ───────────────────────────────────────────

def render_preview(settings: Settings) -> None:
    table: DecodedTable = st.session_state["table"]
    template = get_template_by_id(st.session_state["template_id"])
    mappings = st.session_state["mappings"]
    processed = process_data(table.records, mappings, display_date_format=settings.display_date_format)
    summary = processed.summary

    title = st.text_input("Report title", value=template.name)
    period = st.text_input("Period", value=summary.period or "")

    metrics = st.columns(4)
    metrics[0].metric("Rows", summary.total_rows)
    metrics[1].metric("Total amount", "N/A" if summary.total_amount is None else f"{summary.total_amount:,.2f}")
    metrics[2].metric("Average amount", "N/A" if summary.average_amount is None else f"{summary.average_amount:,.2f}")
    metrics[3].metric("Validation errors", len(processed.errors))

    if summary.categories:
        st.markdown("**Categories**")
        st.bar_chart(pd.Series(summary.categories, name="count"))

    if processed.errors:
        st.warning(f"{len(processed.errors)} cells failed validation. The report can still be exported.")
        st.dataframe(pd.DataFrame([e.to_dict() for e in processed.errors]), width="stretch", hide_index=True)

    st.markdown(f"**Preview** (first {settings.max_preview_rows} rows)")
    st.dataframe(pd.DataFrame(preview_rows(processed, settings.max_preview_rows)), width="stretch")

    config = ReportConfig(title=title or template.name, period=period, template=template)
    buffer = io.BytesIO()
    export_excel(processed, config, buffer)

    back, download = st.columns(2)
    if back.button("Back to mapping", width="stretch"):
        go_to(1)
    download.download_button(
        "Download Excel",
        data=buffer.getvalue(),
        file_name=export_filename(config.title, "xlsx", date.today()),
        mime="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
        type="primary",
        width="stretch",
    )


def main() -> None:
    set_visuals()
    ensure_state()
    settings = get_settings()

    st.title("autoreport")
    st.caption("Upload a spreadsheet, map its columns to a report template, and export a summary workbook.")

    step = st.session_state["step"]
    if step > 0 and st.session_state.get("table") is None:
        step = 0
    render_progress(step)

    if step == 0:
        render_upload(settings)
    elif step == 1:
        render_mapping(settings)
    else:
        render_preview(settings)


if __name__ == "__main__":
    main()
