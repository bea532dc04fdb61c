"""HTML body of the "your report is ready" e-mail."""

from datetime import datetime
from typing import Optional

from jinja2 import BaseLoader, Environment

from farmestly.domain.enums import DateRange, ReportType

REPORT_TYPE_LABELS = {
    ReportType.CHRONOLOGICAL: "Chronological",
    ReportType.FIELD: "By Field",
    ReportType.MACHINE: "By Machine",
    ReportType.JOB_TYPE: "By Job Type",
    ReportType.ATTACHMENT: "By Attachment",
    ReportType.TOOL: "By Tool",
}

DATE_RANGE_LABELS = {
    DateRange.ALL: "All Time",
    DateRange.MONTH: "This Month",
    DateRange.QUARTER: "This Quarter",
    DateRange.YEAR: "This Year",
    DateRange.CUSTOM: "Custom Range",
}

_EMAIL_TEMPLATE = """<!DOCTYPE html>
<html>
<head>
<meta charset="utf-8">
<meta name="viewport" content="width=device-width, initial-scale=1.0">
</head>
<body style="margin:0;padding:0;font-family:-apple-system,BlinkMacSystemFont,'Segoe UI',Roboto,Arial,sans-serif;background-color:#f5f5f5;">
<table role="presentation" style="width:100%;border-collapse:collapse;background-color:#f5f5f5;">
<tr><td align="center" style="padding:40px 20px;">
<table role="presentation" style="max-width:600px;width:100%;border-collapse:collapse;background-color:#ffffff;border-radius:8px;">
  <tr>
    <td style="padding:40px 40px 30px;background:#2E7D32;border-radius:8px 8px 0 0;text-align:center;">
      {% if farm_logo %}<img src="{{ farm_logo }}" alt="{{ farm_name }}" style="max-width:80px;max-height:80px;margin-bottom:16px;border-radius:8px;" /><br>{% endif %}
      <h1 style="margin:0;color:#ffffff;font-size:28px;font-weight:600;">{{ farm_name }}</h1>
      <p style="margin:10px 0 0;color:rgba(255,255,255,0.9);font-size:14px;">Farm Report Generated</p>
    </td>
  </tr>
  <tr>
    <td style="padding:40px;">
      <h2 style="margin:0 0 20px;color:#2E7D32;font-size:20px;font-weight:600;">Your Farm Report is Ready</h2>
      <p style="margin:0 0 16px;color:#333333;font-size:15px;line-height:1.6;">Hello,</p>
      {% if download_url %}
      <p style="margin:0 0 16px;color:#333333;font-size:15px;line-height:1.6;">Your farm report has been successfully generated. Due to its size, please use the button below to download it. The link will expire in {{ expiry_minutes }} minutes.</p>
      <table role="presentation" style="width:100%;border-collapse:collapse;margin:24px 0;">
        <tr><td align="center">
          <a href="{{ download_url }}" style="display:inline-block;padding:14px 32px;background:#2E7D32;color:#ffffff;text-decoration:none;font-size:16px;font-weight:600;border-radius:8px;">Download Report</a>
        </td></tr>
      </table>
      <p style="margin:0;color:#888888;font-size:12px;text-align:center;">This link will expire in {{ expiry_minutes }} minutes.</p>
      {% else %}
      <p style="margin:0 0 16px;color:#333333;font-size:15px;line-height:1.6;">Your farm report has been successfully generated and is attached to this email. The report includes detailed information about your farm operations{% if not all_time %} for the selected date range{% endif %}.</p>
      {% endif %}
      <table role="presentation" style="width:100%;border-collapse:collapse;margin:24px 0;background-color:#f1f8f4;border-left:4px solid #4CAF50;">
        <tr><td style="padding:16px 20px;">
          <p style="margin:0 0 8px;color:#2E7D32;font-size:13px;font-weight:600;text-transform:uppercase;">Report Details</p>
          <p style="margin:0;color:#555555;font-size:14px;line-height:1.5;">
            <strong>Type:</strong> {{ type_label }}<br>
            <strong>Period:</strong> {{ period_label }}<br>
            <strong>Generated:</strong> {{ generated }}
          </p>
        </td></tr>
      </table>
    </td>
  </tr>
  <tr>
    <td style="padding:30px 40px;background-color:#fafafa;border-radius:0 0 8px 8px;border-top:1px solid #e0e0e0;">
      <p style="margin:0;color:#888888;font-size:12px;line-height:1.5;text-align:center;">This is an automated message from your farm management system.<br>&copy; {{ year }} {{ farm_name }}. All rights reserved.</p>
    </td>
  </tr>
</table>
</td></tr>
</table>
</body>
</html>
"""

_env = Environment(loader=BaseLoader(), autoescape=True)
_template = _env.from_string(_EMAIL_TEMPLATE)


def report_email_subject(farm_name: str, generated_at: datetime) -> str:
    return f"{farm_name} - Farm Report ({generated_at:%b} {generated_at.day}, {generated_at.year})"


def build_report_email_html(
    farm_name: str,
    report_type: ReportType | str,
    date_range: DateRange | str,
    generated_at: datetime,
    farm_logo: Optional[str] = None,
    download_url: Optional[str] = None,
    expiry_minutes: int = 30,
) -> str:
    """Build the e-mail body. Without ``download_url`` the PDF is assumed attached."""
    report_type = ReportType(report_type)
    date_range = DateRange(date_range)
    return _template.render(
        farm_name=farm_name,
        farm_logo=farm_logo,
        download_url=download_url,
        expiry_minutes=expiry_minutes,
        all_time=date_range == DateRange.ALL,
        type_label=REPORT_TYPE_LABELS[report_type],
        period_label=DATE_RANGE_LABELS[date_range],
        generated=f"{generated_at:%b} {generated_at.day}, {generated_at.year} {generated_at:%H:%M} UTC",
        year=generated_at.year,
    )
