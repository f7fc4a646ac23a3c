"""結果モデルのテスト."""

import json

import pytest

from frameworkbench.benchmark.models import (
    REPORT_SCHEMA_VERSION,
    AggregatedResult,
    Report,
    RunResult,
)


class TestSetup:
    """Setup のテスト."""

    def test_url(self, make_setup):
        """ポートとエンドポイントから URL を組み立てる."""
        assert make_setup(port=3001).url == "http://localhost:3001/"
        assert make_setup(endpoint="health").url == "http://localhost:3000/health"


class TestAggregatedResult:
    """AggregatedResult のテスト."""

    def test_error_rate(self, make_setup):
        """失敗リクエストの割合を計算する."""
        aggregate = AggregatedResult(
            setup=make_setup(),
            runs=1,
            attempted_runs=1,
            total_requests=200,
            errors=2,
            timeouts=1,
            non_2xx=1,
        )
        assert aggregate.error_rate == pytest.approx(0.02)

    def test_from_dict_defaults(self, make_setup):
        """省略された項目は既定値で補う."""
        aggregate = AggregatedResult.from_dict(
            {"setup": make_setup().to_dict(), "runs": 2, "requests_per_second": 10}
        )

        assert aggregate.attempted_runs == 2
        assert aggregate.requests_per_second == 10.0
        assert aggregate.throughput is None
        assert aggregate.raw_runs == []


class TestRunResult:
    """RunResult のテスト."""

    def test_failed_requests(self):
        """エラー, タイムアウト, 非2xx を合計する."""
        assert RunResult(errors=1, timeouts=2, non_2xx=3).failed_requests == 6


class TestReport:
    """Report のテスト."""

    def test_json_round_trip(self, sample_report):
        """JSON を経由しても同じレポートに戻る."""
        payload = json.loads(json.dumps(sample_report.to_dict()))
        restored = Report.from_dict(payload)

        assert restored == sample_report

    def test_metadata(self, sample_report):
        """スキーマバージョンと生成元を記録する."""
        metadata = sample_report.to_dict()["metadata"]

        assert metadata["schema_version"] == REPORT_SCHEMA_VERSION
        assert metadata["generator"] == "frameworkbench"
        assert metadata["timestamp"] == "2026-10-19T09:30:00Z"

    def test_summary_is_serialized(self, sample_report):
        """要約は派生値として出力される."""
        assert sample_report.to_dict()["summary"]["failed_setups"] == 1
