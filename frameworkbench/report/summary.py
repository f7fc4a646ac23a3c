"""計測終了時にログへ出すセットアップ別の要約表."""

from __future__ import annotations

import logging
from typing import List, Optional

from frameworkbench.benchmark.models import Report
from frameworkbench.benchmark.utils import REPORT_LOGGER_NAME

LOGGER = logging.getLogger(REPORT_LOGGER_NAME)

SUMMARY_HEADERS = ["Setup", "Req/sec", "Latency(ms)", "P95(ms)", "Success%"]


def _fmt(value: Optional[float], suffix: str = "") -> str:
    if value is None:
        return "-"
    return f"{value:.2f}{suffix}"


def format_summary_table(report: Report) -> List[str]:
    """RPS 降順の要約表を列幅をそろえた行のリストで返す.

    Args:
        report: 対象レポート.

    Returns:
        ヘッダー, 区切り線, セットアップごとの行. 結果が無ければ空リスト.
    """
    if len(report.results) == 0:
        return []

    rows = [SUMMARY_HEADERS]
    for result in report.results:
        rows.append(
            [
                result.setup.name,
                _fmt(result.requests_per_second),
                _fmt(result.latency.average),
                _fmt(result.latency.p95),
                _fmt((1.0 - result.error_rate) * 100.0, "%"),
            ]
        )
    widths = [max(len(row[i]) for row in rows) for i in range(len(SUMMARY_HEADERS))]

    lines = []
    for row in rows:
        cells = [row[0].ljust(widths[0])]
        cells.extend(cell.rjust(width) for cell, width in zip(row[1:], widths[1:]))
        lines.append("  ".join(cells))
    lines.insert(1, "-" * len(lines[0]))
    return lines


def log_summary(report: Report, logger: Optional[logging.Logger] = None) -> None:
    """要約表を1行ずつ INFO で出力する."""
    logger = logger or LOGGER
    lines = format_summary_table(report)
    if len(lines) == 0:
        logger.warning("表示できる計測結果がありません")
        return
    for line in lines:
        logger.info("%s", line)
