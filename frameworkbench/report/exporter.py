"""
レポートの JSON / CSV / Markdown 出力.

CSV の列構成と順序は履歴比較のため固定する.
"""

from __future__ import annotations

import csv
import io
import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from frameworkbench.benchmark.errors import SerializationError
from frameworkbench.benchmark.models import Report
from frameworkbench.benchmark.utils import REPORT_LOGGER_NAME, now_local_timestamp

from .markdown_renderer import render_markdown

CSV_COLUMNS = [
    "environment",
    "runtime",
    "framework",
    "requests_per_sec",
    "avg_latency_ms",
    "p50_latency_ms",
    "p90_latency_ms",
    "p99_latency_ms",
    "throughput_bytes_per_sec",
    "total_requests",
    "errors",
    "timeouts",
    "rps_stddev",
    "latency_stddev",
]

JSON_FILENAME = "benchmark_results.json"
CSV_FILENAME = "benchmark_results.csv"
MARKDOWN_FILENAME = "BENCHMARK_REPORT.md"
HISTORY_DIRNAME = "historical"


@dataclass(frozen=True)
class SerializedReport:
    """シリアライズ済みのレポート."""

    json: str
    csv: str


def report_to_rows(report: Report) -> List[Dict[str, Any]]:
    """集計結果を CSV 行へ平坦化する.

    Args:
        report: 対象レポート.

    Returns:
        CSV_COLUMNS をキーに持つ辞書のリスト.
    """
    environment = report.environment.get("label", "")
    rows: List[Dict[str, Any]] = []
    for result in report.results:
        rows.append(
            {
                "environment": environment,
                "runtime": result.setup.runtime,
                "framework": result.setup.framework,
                "requests_per_sec": result.requests_per_second,
                "avg_latency_ms": result.latency.average,
                "p50_latency_ms": result.latency.p50,
                "p90_latency_ms": result.latency.p90,
                "p99_latency_ms": result.latency.p99,
                "throughput_bytes_per_sec": result.throughput,
                "total_requests": result.total_requests,
                "errors": result.errors,
                "timeouts": result.timeouts,
                "rps_stddev": result.std_rps,
                "latency_stddev": result.std_latency,
            }
        )
    return rows


def serialize(report: Report) -> SerializedReport:
    """レポートを JSON と CSV の文字列へ変換する.

    Args:
        report: 対象レポート.

    Returns:
        JSON (レポート全体) と CSV (結果1件につき1行).
    """
    buffer = io.StringIO()
    writer = csv.DictWriter(buffer, fieldnames=CSV_COLUMNS, lineterminator="\n")
    writer.writeheader()
    for row in report_to_rows(report):
        writer.writerow({column: row.get(column) for column in CSV_COLUMNS})

    return SerializedReport(
        json=json.dumps(report.to_dict(), ensure_ascii=False, indent=2) + "\n",
        csv=buffer.getvalue(),
    )


class ReportExporter:
    """
    レポート成果物の書き出し.

    出力ディレクトリ直下に固定名の JSON / CSV / Markdown を置き,
    `historical/` にタイムスタンプ付きの JSON を残す.

    Args:
        output_dir (str | Path): 出力ディレクトリ
        logger (logging.Logger, optional): ロガーインスタンス
    """

    def __init__(
        self,
        output_dir: Union[str, Path],
        logger: Optional[logging.Logger] = None,
    ):
        """ReportExporterを初期化."""
        self.output_dir = Path(output_dir)

        if logger is None:
            self.logger = logging.getLogger(REPORT_LOGGER_NAME)
        else:
            self.logger = logger

    def _history_path(self, timestamp: Optional[str] = None) -> Path:
        """
        履歴用 JSON のパスを構築.

        Args:
            timestamp (str, optional): `YYYYMMDD_HHMMSS` 形式の時刻. None なら現在時刻.

        Returns:
            Path: historical/benchmark_{timestamp}.json
        """
        stamp = timestamp or now_local_timestamp()
        return self.output_dir / HISTORY_DIRNAME / f"benchmark_{stamp}.json"

    def _write_text(self, path: Path, text: str) -> None:
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            with open(path, "w", encoding="utf-8", newline="\n") as f:
                f.write(text)
        except OSError as exc:
            raise SerializationError(f"ファイルを書き出せませんでした: {path}: {exc}") from exc
        self.logger.debug("書き出しました: %s", path)

    def export(
        self,
        report: Report,
        readme_path: Optional[Path] = None,
        timestamp: Optional[str] = None,
        archive: bool = True,
    ) -> Dict[str, Path]:
        """
        全成果物を書き出す.

        Args:
            report (Report): 対象レポート
            readme_path (Path, optional): Markdown を README としても書き出す場合のパス
            timestamp (str, optional): 履歴ファイル名に使う時刻
            archive (bool): historical/ へ JSON を残すかどうか

        Returns:
            Dict[str, Path]: 種別ごとの出力パス

        Raises:
            SerializationError: いずれかのファイルを書き出せなかった場合
        """
        serialized = serialize(report)
        markdown = render_markdown(report)

        paths = {
            "json": self.output_dir / JSON_FILENAME,
            "csv": self.output_dir / CSV_FILENAME,
            "markdown": self.output_dir / MARKDOWN_FILENAME,
        }
        self._write_text(paths["json"], serialized.json)
        self._write_text(paths["csv"], serialized.csv)
        self._write_text(paths["markdown"], markdown)
        if archive:
            paths["history"] = self._history_path(timestamp)
            self._write_text(paths["history"], serialized.json)
        if readme_path is not None:
            paths["readme"] = Path(readme_path)
            self._write_text(paths["readme"], markdown)

        self.logger.info("結果を保存しました: %s", self.output_dir)
        return paths


def write_artifacts(
    report: Report,
    output_dir: Union[str, Path],
    readme_path: Optional[Path] = None,
    timestamp: Optional[str] = None,
    archive: bool = True,
) -> Dict[str, Path]:
    """レポート成果物を書き出す. ReportExporter.export の薄いラッパー."""
    return ReportExporter(output_dir).export(
        report, readme_path=readme_path, timestamp=timestamp, archive=archive
    )


def load_report(path: Path) -> Report:
    """保存済みの benchmark_results.json を読み込む.

    Args:
        path: JSON ファイルパス.

    Returns:
        復元したレポート.

    Raises:
        FileNotFoundError: ファイルが存在しない場合.
        OSError: ファイルを読み込めない場合.
        ValueError: 内容がレポート形式でない場合.
    """
    if not path.exists():
        raise FileNotFoundError(f"結果ファイルが見つかりません: {path}")
    with open(path, "r", encoding="utf-8") as f:
        payload = json.load(f)
    if not isinstance(payload, dict):
        raise ValueError(f"結果ファイルのルートは辞書である必要があります: {path}")
    try:
        return Report.from_dict(payload)
    except (KeyError, TypeError) as exc:
        raise ValueError(f"結果ファイルの形式が不正です: {path}: {exc}") from exc
