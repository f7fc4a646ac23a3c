"""frameworkbench.report: レポートの描画と保存."""

from .exporter import (
    CSV_COLUMNS,
    ReportExporter,
    SerializedReport,
    load_report,
    serialize,
    write_artifacts,
)
from .markdown_renderer import render_markdown
from .summary import format_summary_table, log_summary

__all__ = [
    "CSV_COLUMNS",
    "ReportExporter",
    "SerializedReport",
    "format_summary_table",
    "load_report",
    "log_summary",
    "render_markdown",
    "serialize",
    "write_artifacts",
]
