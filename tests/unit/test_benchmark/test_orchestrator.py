"""ベンチマーク全体の実行とランキングのテスト."""

import pytest

from frameworkbench.benchmark.models import AggregatedResult, LatencyStats, RunResult
from frameworkbench.benchmark.orchestrator import (
    build_report,
    compute_comparisons,
    rank_by_latency,
    rank_by_rps,
    run_all,
    runtime_improvement,
)
from frameworkbench.config.bench_config import BenchmarkConfig


def _aggregate(setup, rps, latency=1.0, std_rps=0.0):
    return AggregatedResult(
        setup=setup,
        runs=1,
        attempted_runs=1,
        requests_per_second=rps,
        std_rps=std_rps,
        latency=LatencyStats(average=latency),
    )


class TestRankings:
    """ランキングのテスト."""

    def test_rps_ranking_is_stable(self, make_setup):
        """同じ RPS の結果は入力順を保って並ぶ."""
        results = [
            _aggregate(make_setup("A"), 50.0),
            _aggregate(make_setup("B"), 90.0),
            _aggregate(make_setup("C"), 90.0),
            _aggregate(make_setup("D"), 30.0),
        ]
        ranking = rank_by_rps(results)

        assert [entry.name for entry in ranking] == [
            "B on node",
            "C on node",
            "A on node",
            "D on node",
        ]
        assert [entry.rank for entry in ranking] == [1, 2, 3, 4]

    def test_rps_ranking_carries_std_dev(self, make_setup):
        """ランキングに標準偏差を含める."""
        ranking = rank_by_rps([_aggregate(make_setup(), 10.0, std_rps=1.5)])
        assert ranking[0].std_dev == 1.5

    def test_latency_ranking_ascending(self, make_setup):
        """平均レイテンシの昇順. 平均を持たない結果は含めない."""
        results = [
            _aggregate(make_setup("A"), 10.0, latency=3.0),
            _aggregate(make_setup("B"), 10.0, latency=None),
            _aggregate(make_setup("C"), 10.0, latency=1.0),
            _aggregate(make_setup("D"), 10.0, latency=3.0),
        ]
        ranking = rank_by_latency(results)

        assert [entry.name for entry in ranking] == ["C on node", "A on node", "D on node"]
        assert ranking[0].value == 1.0

    def test_sentinel_results_are_not_ranked(self, make_setup):
        """runs == 0 の結果は順位付けしない."""
        empty = AggregatedResult(setup=make_setup("Z"), runs=0, attempted_runs=3)
        ranking = rank_by_rps([empty, _aggregate(make_setup("A"), 1.0)])

        assert [entry.name for entry in ranking] == ["A on node"]


class TestComparisons:
    """ランタイム比較のテスト."""

    def test_improvement_percentage(self):
        """node 100 と bun 150 なら +50%."""
        assert runtime_improvement(100.0, 150.0) == 50.0
        assert runtime_improvement(200.0, 100.0) == -50.0

    def test_zero_baseline(self):
        """基準が0なら None."""
        assert runtime_improvement(0.0, 10.0) is None

    def test_compute_comparisons(self, make_setup):
        """フレームワークごとに基準と比較対象を組にする."""
        results = [
            _aggregate(make_setup("X", "bun"), 150.0, latency=2.0),
            _aggregate(make_setup("X", "node"), 100.0, latency=4.0),
            _aggregate(make_setup("Y", "node"), 80.0),
        ]
        comparisons = compute_comparisons(results, "node", "bun")

        assert len(comparisons) == 1
        comparison = comparisons[0]
        assert comparison.framework == "x"
        assert comparison.baseline_rps == 100.0
        assert comparison.candidate_rps == 150.0
        assert comparison.improvement_pct == pytest.approx(50.0)
        assert comparison.latency_improvement_pct == pytest.approx(50.0)

    def test_configurable_runtime_pair(self, make_setup):
        """比較するランタイムの組は変更できる."""
        results = [
            _aggregate(make_setup("X", "node"), 100.0),
            _aggregate(make_setup("X", "deno"), 120.0),
        ]
        comparisons = compute_comparisons(results, "node", "deno")

        assert comparisons[0].candidate_runtime == "deno"
        assert comparisons[0].improvement_pct == pytest.approx(20.0)


class TestBuildReport:
    """build_report のテスト."""

    def test_results_are_sorted_by_rps(self, sample_report):
        """results は RPS の降順."""
        assert [r.setup.name for r in sample_report.results] == [
            "Hono on bun",
            "Express on bun",
            "Express on node",
        ]

    def test_is_pure(self, make_setup):
        """同じ入力からは同じレポートを作る."""
        results = [_aggregate(make_setup("A"), 10.0), _aggregate(make_setup("B"), 20.0)]
        kwargs = dict(
            configuration={"runs": 1},
            environment={"label": "test"},
            timestamp="2026-01-01T00:00:00Z",
            load_tool="wrk",
        )
        first = build_report(results, [], **kwargs)
        second = build_report(results, [], **kwargs)

        assert first.to_dict() == second.to_dict()
        assert [r.setup.name for r in results] == ["A on node", "B on node"]

    def test_summary(self, sample_report):
        """件数とフレームワーク一覧を要約する."""
        summary = sample_report.summary

        assert summary["total_setups"] == 4
        assert summary["successful_setups"] == 3
        assert summary["failed_setups"] == 1
        assert summary["frameworks"] == ["hono", "express"]
        assert summary["runtimes"] == ["bun", "node"]


class TestRunAll:
    """run_all のテスト."""

    def test_never_healthy_setup_is_reported_as_failure(
        self, make_setup, fake_supervisor_cls, fake_driver_cls, recording_sleep
    ):
        """応答しないセットアップがあっても後続のセットアップは実行される."""
        express = make_setup("Express", "node", port=3000)
        broken = make_setup("Fastify", "node", port=3001)
        hono = make_setup("Hono", "node", port=3002)
        config = BenchmarkConfig(runs=3, warmup_time_ms=0, cooldown_time_ms=0)
        supervisor = fake_supervisor_cls(unhealthy=[broken.name])
        driver = fake_driver_cls(
            {
                express.url: [RunResult(requests_per_second=100.0)] * 3,
                hono.url: [RunResult(requests_per_second=300.0)] * 3,
            }
        )

        report = run_all(
            [express, broken, hono],
            config,
            supervisor,
            driver,
            environment={"label": "test"},
            sleep=recording_sleep,
        )

        assert [r.setup.name for r in report.results] == [hono.name, express.name]
        ranked = [entry.name for entry in report.rankings.by_requests_per_second]
        assert broken.name not in ranked
        assert len(report.failures) == 1
        failure = report.failures[0]
        assert failure.setup == broken
        assert failure.error_type == "ZeroSuccessfulRuns"
        assert failure.attempted_runs == 3
        assert len(failure.dropped_runs) == 3
        started = [event[1] for event in supervisor.events if event[0] == "start"]
        assert started == [express.name] * 3 + [broken.name] * 3 + [hono.name] * 3

    def test_unexpected_exception_does_not_abort(
        self, make_setup, fake_supervisor_cls, fake_driver_cls, recording_sleep
    ):
        """run 単位以外の例外も失敗として記録し, 次へ進む."""
        first = make_setup("Express", "node", port=3000)
        second = make_setup("Hono", "node", port=3002)

        class ExplodingDriver(fake_driver_cls):
            def measure(self, url, config):
                if url == first.url:
                    raise RuntimeError("unexpected")
                return super().measure(url, config)

        report = run_all(
            [first, second],
            BenchmarkConfig(runs=1, warmup_time_ms=0, cooldown_time_ms=0),
            fake_supervisor_cls(),
            ExplodingDriver(),
            sleep=recording_sleep,
        )

        assert [f.error_type for f in report.failures] == ["RuntimeError"]
        assert [r.setup.name for r in report.results] == [second.name]

    def test_metadata_and_configuration(
        self, make_setup, fake_supervisor_cls, fake_driver_cls, recording_sleep
    ):
        """メタ情報と設定値を記録する."""
        config = BenchmarkConfig(runs=1, warmup_time_ms=0, cooldown_time_ms=0)
        report = run_all(
            [make_setup()],
            config,
            fake_supervisor_cls(),
            fake_driver_cls(),
            sleep=recording_sleep,
        )

        assert report.metadata.load_tool == "wrk"
        assert report.metadata.generator == "frameworkbench"
        assert report.configuration["runs"] == 1
        assert report.configuration["health_check"]["max_attempts"] == 20
        assert report.metadata.timestamp.endswith("Z")
