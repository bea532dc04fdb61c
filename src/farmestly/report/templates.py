"""Report HTML rendering.

``render_report_html`` is a pure function of its inputs: it never touches the
database or the clock, so the same records always give the same document.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Optional, Sequence

from jinja2 import BaseLoader, Environment

from farmestly.db.repos.account_repo import FarmLookups
from farmestly.domain.enums import DateRange, ReportType

COLORS = {
    "primary": "#42210B",
    "secondary": "#E37F1B",
    "secondary_light": "#fbf2ec",
    "primary_light": "#A09085",
}

DATE_RANGE_TITLES = {
    DateRange.ALL: "All Time",
    DateRange.MONTH: "Last Month",
    DateRange.QUARTER: "Last Quarter",
    DateRange.YEAR: "Last Year",
    DateRange.CUSTOM: "Custom Range",
}

# report type -> (record attribute, lookup map name, "No <Thing>" label)
GROUPINGS = {
    ReportType.FIELD: ("field_id", "fields", "No Field"),
    ReportType.MACHINE: ("machine_id", "machines", "No Machine"),
    ReportType.JOB_TYPE: ("job_type", None, "No Job Type"),
    ReportType.ATTACHMENT: ("attachment_id", "attachments", "No Attachment"),
    ReportType.TOOL: ("tool_id", "tools", "No Tool"),
}

_REPORT_TEMPLATE = """<!DOCTYPE html>
<html>
<head>
<meta charset="UTF-8">
<style>
  @page { margin: 6mm 5mm; }
  * { box-sizing: border-box; margin: 0; padding: 0; }
  body { font-family: 'Geologica', sans-serif; color: {{ c.primary }}; line-height: 1.18; font-size: 11px; padding: 6px 8px 44px 8px; }
  .header-row { display: flex; justify-content: space-between; align-items: center; margin-bottom: 10px; padding-bottom: 8px; border-bottom: 1px solid {{ c.primary }}; }
  .brand { font-size: 13px; font-weight: 700; color: {{ c.secondary }}; }
  .header-info { text-align: right; }
  .header-info h1 { font-size: 16px; font-weight: 700; margin-bottom: 2px; }
  .header-info .meta { font-size: 10px; color: {{ c.primary_light }}; }
  .section { margin-bottom: 16px; page-break-inside: avoid; }
  table { width: 100%; border-collapse: collapse; font-size: 9px; }
  th { padding: 6px; text-align: left; font-weight: 600; }
  td { padding: 5px 6px; border-bottom: 1px solid {{ c.primary_light }}; }
  tr:nth-child(even) { background: {{ c.secondary_light }}; }
  .group-header { border-left: 3px solid {{ c.secondary }}; color: {{ c.secondary }}; padding: 6px 10px; font-weight: 700; font-size: 12px; margin: 10px 0 8px; }
  .no-data { text-align: center; padding: 16px; color: {{ c.primary_light }}; background: {{ c.secondary_light }}; font-weight: 500; font-size: 10px; }
  .footer { position: fixed; left: 0; right: 0; bottom: 6px; height: 34px; padding-top: 6px; border-top: 1px solid {{ c.primary_light }}; text-align: center; font-size: 8px; color: {{ c.primary_light }}; }
</style>
</head>
<body>
<div class="header-row">
  <div class="brand">Farmestly</div>
  <div class="header-info">
    <h1>{{ farm_name }} Farm Report</h1>
    <div class="meta">{{ generated_on }} &bull; {{ range_title }} &bull; {{ total }} records</div>
  </div>
</div>
{% macro job_table(rows) -%}
{% if rows %}
<table>
  <thead><tr><th>Date</th><th>Job Type</th><th>Field</th><th>Machine</th><th>Duration</th><th>Notes</th></tr></thead>
  <tbody>
  {% for row in rows %}
    <tr><td>{{ row.date }}</td><td>{{ row.job_type }}</td><td>{{ row.field }}</td><td>{{ row.machine }}</td><td>{{ row.duration }}</td><td>{{ row.notes }}</td></tr>
  {% endfor %}
  </tbody>
</table>
{% else %}
<div class="no-data">No records found</div>
{% endif %}
{%- endmacro %}
{% if groups is none %}
<div class="section">{{ job_table(rows) }}</div>
{% else %}
{% for label, group_rows in groups %}
<div class="section">
  <div class="group-header">{{ label }} ({{ group_rows | length }} jobs)</div>
  {{ job_table(group_rows) }}
</div>
{% else %}
<div class="section"><div class="no-data">No records found</div></div>
{% endfor %}
{% endif %}
<div class="footer">Generated by Farmestly &bull; {{ year }}</div>
</body>
</html>
"""

_env = Environment(loader=BaseLoader(), autoescape=True)
_template = _env.from_string(_REPORT_TEMPLATE)


@dataclass(frozen=True)
class ReportRow:
    date: str
    job_type: str
    field: str
    machine: str
    duration: str
    notes: str


def format_date(value: Optional[datetime]) -> str:
    if value is None:
        return "N/A"
    return f"{value:%b} {value.day}, {value.year}"


def format_duration(ms: Optional[int]) -> str:
    if ms is None or ms < 0:
        return "N/A"
    total_seconds = ms // 1000
    hours, minutes = total_seconds // 3600, (total_seconds % 3600) // 60
    if hours > 0:
        return f"{hours}h {minutes}m"
    if minutes > 0:
        return f"{minutes}m"
    return "<1m"


def capitalize_first(value: Any) -> str:
    text = str(value) if value is not None else ""
    return text[:1].upper() + text[1:]


def _to_row(record: Any, lookups: FarmLookups) -> ReportRow:
    return ReportRow(
        date=format_date(record.start_time),
        job_type=capitalize_first(record.job_type),
        field=lookups.fields.get(record.field_id) or "Unknown",
        machine=record.machine_name or lookups.machines.get(record.machine_id) or "-",
        duration=format_duration(record.duration_ms),
        notes=record.notes or "-",
    )


def group_label(record: Any, report_type: ReportType, lookups: FarmLookups) -> str:
    """Label of the group a record falls into for a grouped report."""
    attr, lookup_name, missing_label = GROUPINGS[report_type]
    if report_type == ReportType.JOB_TYPE and record.job_title:
        return record.job_title

    raw = getattr(record, attr)
    if not raw:
        return missing_label
    if lookup_name is not None:
        name = getattr(lookups, lookup_name).get(raw)
        if name:
            return name
    if report_type == ReportType.MACHINE and record.machine_name:
        return record.machine_name
    return capitalize_first(raw)


def render_report_html(
    report_type: ReportType | str,
    date_range: DateRange | str,
    farm_name: str,
    records: Sequence[Any],
    lookups: Optional[FarmLookups],
    generated_at: datetime,
) -> str:
    """Render the report document for ``records`` (already sorted newest first)."""
    report_type = ReportType(report_type)
    date_range = DateRange(date_range)
    lookups = lookups or FarmLookups()

    rows = [_to_row(r, lookups) for r in records]
    groups = None
    if report_type != ReportType.CHRONOLOGICAL:
        grouped: dict[str, list[ReportRow]] = {}
        for record, row in zip(records, rows):
            grouped.setdefault(group_label(record, report_type, lookups), []).append(row)
        groups = sorted(grouped.items(), key=lambda item: (item[0].casefold(), item[0]))

    return _template.render(
        c=COLORS,
        farm_name=farm_name,
        generated_on=format_date(generated_at),
        range_title=DATE_RANGE_TITLES[date_range],
        total=len(records),
        rows=rows,
        groups=groups,
        year=generated_at.year,
    )
