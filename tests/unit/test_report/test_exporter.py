"""レポート成果物の書き出しと読み込みのテスト."""

import csv
import io
import json
from pathlib import Path

import pytest

from frameworkbench.benchmark.errors import SerializationError
from frameworkbench.benchmark.models import Report
from frameworkbench.report.exporter import (
    CSV_COLUMNS,
    ReportExporter,
    load_report,
    serialize,
    write_artifacts,
)


class TestSerialize:
    """serialize のテスト."""

    def test_csv_header_is_fixed(self, sample_report):
        """CSV の列構成と順序は固定."""
        header = serialize(sample_report).csv.splitlines()[0]

        assert header == (
            "environment,runtime,framework,requests_per_sec,avg_latency_ms,"
            "p50_latency_ms,p90_latency_ms,p99_latency_ms,throughput_bytes_per_sec,"
            "total_requests,errors,timeouts,rps_stddev,latency_stddev"
        )
        assert header.split(",") == CSV_COLUMNS

    def test_one_row_per_result(self, sample_report):
        """成功したセットアップ1件につき1行. 失敗は含めない."""
        rows = list(csv.DictReader(io.StringIO(serialize(sample_report).csv)))

        assert [(r["framework"], r["runtime"]) for r in rows] == [
            ("hono", "bun"),
            ("express", "bun"),
            ("express", "node"),
        ]
        assert rows[2]["environment"] == "Linux-x86_64-8cpu"
        assert rows[2]["errors"] == "3"
        assert rows[2]["timeouts"] == "1"
        assert float(rows[0]["requests_per_sec"]) == 200.0

    def test_missing_values_are_empty_cells(self, sample_report):
        """計測されなかった値は空欄になる."""
        rows = list(csv.DictReader(io.StringIO(serialize(sample_report).csv)))
        assert all(row["p50_latency_ms"] != "" for row in rows)

        payload = sample_report.to_dict()
        payload["results"][0]["latency"]["p50"] = None
        modified = serialize(Report.from_dict(payload))
        first = next(csv.DictReader(io.StringIO(modified.csv)))
        assert first["p50_latency_ms"] == ""

    def test_json_is_full_report(self, sample_report):
        """JSON はレポート全体を含む."""
        payload = json.loads(serialize(sample_report).json)

        assert payload["summary"]["total_setups"] == 4
        assert payload["failures"][0]["setup"]["name"] == "Fastify on bun"
        assert serialize(sample_report).json.endswith("\n")


class TestWriteArtifacts:
    """write_artifacts のテスト."""

    def test_writes_all_files(self, sample_report, tmp_path):
        """固定名の3ファイルと履歴 JSON を書き出す."""
        paths = write_artifacts(sample_report, tmp_path, timestamp="20261019_093000")

        assert paths["json"] == tmp_path / "benchmark_results.json"
        assert paths["csv"] == tmp_path / "benchmark_results.csv"
        assert paths["markdown"] == tmp_path / "BENCHMARK_REPORT.md"
        assert paths["history"] == tmp_path / "historical" / "benchmark_20261019_093000.json"
        for path in paths.values():
            assert path.exists()
        assert paths["history"].read_text(encoding="utf-8") == paths["json"].read_text(
            encoding="utf-8"
        )

    def test_readme_copy(self, sample_report, tmp_path):
        """README のパスを指定すると Markdown を複製する."""
        readme = tmp_path / "docs" / "README.md"
        paths = write_artifacts(sample_report, tmp_path / "results", readme_path=readme)

        assert paths["readme"] == readme
        assert readme.read_text(encoding="utf-8") == paths["markdown"].read_text(
            encoding="utf-8"
        )

    def test_archive_can_be_disabled(self, sample_report, tmp_path):
        """archive=False なら historical/ を作らない."""
        paths = write_artifacts(sample_report, tmp_path, archive=False)

        assert "history" not in paths
        assert not (tmp_path / "historical").exists()

    def test_unwritable_output_dir(self, sample_report, tmp_path):
        """書き出せない場合は SerializationError."""
        blocker = tmp_path / "not_a_dir"
        blocker.write_text("x", encoding="utf-8")

        with pytest.raises(SerializationError):
            ReportExporter(blocker / "results").export(sample_report)


class TestLoadReport:
    """load_report のテスト."""

    def test_round_trip(self, sample_report, tmp_path):
        """書き出した JSON から同じレポートを復元する."""
        paths = write_artifacts(sample_report, tmp_path, archive=False)
        assert load_report(paths["json"]) == sample_report

    def test_missing_file(self, tmp_path):
        """存在しないファイルは FileNotFoundError."""
        with pytest.raises(FileNotFoundError):
            load_report(tmp_path / "missing.json")

    @pytest.mark.parametrize("content", ["[]", '{"results": []}', "not json"])
    def test_invalid_content(self, tmp_path, content):
        """レポート形式でない内容は ValueError."""
        path = Path(tmp_path) / "broken.json"
        path.write_text(content, encoding="utf-8")

        with pytest.raises(ValueError):
            load_report(path)
