"""Run reporting for netsert.

Formats live result lines and renders finished runs as a text summary,
JSON, or an HTML report built from Jinja2 templates.
"""

from .report_generator import ReportGenerator, format_result_line

__all__ = ["ReportGenerator", "format_result_line"]
