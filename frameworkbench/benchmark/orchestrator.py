"""全セットアップの逐次実行とレポート構築."""

from __future__ import annotations

import logging
import time
from typing import Any, Callable, Dict, List, Optional, Sequence

from frameworkbench import __version__
from frameworkbench.benchmark.aggregator import ensure_successful, run_setup
from frameworkbench.benchmark.errors import ZeroSuccessfulRuns
from frameworkbench.benchmark.load_driver import LoadDriver
from frameworkbench.benchmark.models import (
    AggregatedResult,
    RankingEntry,
    Rankings,
    Report,
    ReportMetadata,
    RuntimeComparison,
    Setup,
    SetupFailure,
)
from frameworkbench.benchmark.supervisor import ProcessSupervisor
from frameworkbench.benchmark.utils import LOGGER_NAME, now_utc_iso
from frameworkbench.config.bench_config import BenchmarkConfig

LOGGER = logging.getLogger(LOGGER_NAME)


def runtime_improvement(baseline: float, candidate: float) -> Optional[float]:
    """ベースラインに対する改善率 (%) を返す. ベースラインが0なら None."""
    if baseline == 0:
        return None
    return (candidate - baseline) / baseline * 100.0


def rank_by_rps(results: Sequence[AggregatedResult]) -> List[RankingEntry]:
    """RPS の降順ランキングを作成する. 同値は入力順を保つ."""
    ordered = sorted(
        (r for r in results if r.has_data),
        key=lambda r: r.requests_per_second or 0.0,
        reverse=True,
    )
    return [
        RankingEntry(
            rank=index,
            name=result.setup.name,
            value=result.requests_per_second or 0.0,
            std_dev=result.std_rps,
        )
        for index, result in enumerate(ordered, start=1)
    ]


def rank_by_latency(results: Sequence[AggregatedResult]) -> List[RankingEntry]:
    """平均レイテンシの昇順ランキングを作成する.

    平均レイテンシを持たない結果は順位付けしない.
    """
    measured = [r for r in results if r.has_data and r.latency.average is not None]
    ordered = sorted(measured, key=lambda r: r.latency.average)
    return [
        RankingEntry(
            rank=index,
            name=result.setup.name,
            value=result.latency.average,
            std_dev=result.std_latency,
        )
        for index, result in enumerate(ordered, start=1)
    ]


def compute_comparisons(
    results: Sequence[AggregatedResult],
    baseline_runtime: str = "node",
    candidate_runtime: str = "bun",
) -> List[RuntimeComparison]:
    """フレームワークごとに2ランタイムを比較する.

    両ランタイムの結果がそろったフレームワークだけを対象にする.

    Args:
        results: 集計結果.
        baseline_runtime: 基準ランタイム.
        candidate_runtime: 比較対象ランタイム.

    Returns:
        フレームワークの出現順に並べた比較結果.
    """
    by_framework: Dict[str, Dict[str, AggregatedResult]] = {}
    for result in results:
        if not result.has_data:
            continue
        by_framework.setdefault(result.setup.framework, {}).setdefault(
            result.setup.runtime, result
        )

    comparisons: List[RuntimeComparison] = []
    for framework, by_runtime in by_framework.items():
        baseline = by_runtime.get(baseline_runtime)
        candidate = by_runtime.get(candidate_runtime)
        if baseline is None or candidate is None:
            continue

        baseline_rps = baseline.requests_per_second or 0.0
        candidate_rps = candidate.requests_per_second or 0.0
        baseline_latency = baseline.latency.average
        candidate_latency = candidate.latency.average
        latency_improvement = None
        if baseline_latency is not None and candidate_latency is not None:
            # レイテンシは低いほど良いので正負を反転する
            change = runtime_improvement(baseline_latency, candidate_latency)
            latency_improvement = None if change is None else 0.0 - change

        comparisons.append(
            RuntimeComparison(
                framework=framework,
                baseline_runtime=baseline_runtime,
                candidate_runtime=candidate_runtime,
                baseline_rps=baseline_rps,
                candidate_rps=candidate_rps,
                baseline_latency=baseline_latency,
                candidate_latency=candidate_latency,
                improvement_pct=runtime_improvement(baseline_rps, candidate_rps),
                latency_improvement_pct=latency_improvement,
            )
        )
    return comparisons


def build_report(
    results: Sequence[AggregatedResult],
    failures: Sequence[SetupFailure],
    configuration: Dict[str, Any],
    environment: Dict[str, Any],
    timestamp: str,
    load_tool: str,
    baseline_runtime: str = "node",
    candidate_runtime: str = "bun",
    tool_version: str = __version__,
) -> Report:
    """集計結果からレポートを構築する.

    副作用を持たないため, 保存済み結果からの再構築にも使う.

    Returns:
        ランキングと比較を含むレポート.
    """
    with_data = [r for r in results if r.has_data]
    ordered_results = sorted(
        with_data, key=lambda r: r.requests_per_second or 0.0, reverse=True
    )

    return Report(
        metadata=ReportMetadata(
            timestamp=timestamp,
            tool_version=tool_version,
            load_tool=load_tool,
        ),
        environment=dict(environment),
        configuration=dict(configuration),
        results=ordered_results,
        rankings=Rankings(
            by_requests_per_second=rank_by_rps(with_data),
            by_latency=rank_by_latency(with_data),
        ),
        comparisons=compute_comparisons(with_data, baseline_runtime, candidate_runtime),
        failures=list(failures),
    )


def run_all(
    setups: Sequence[Setup],
    config: BenchmarkConfig,
    supervisor: ProcessSupervisor,
    driver: LoadDriver,
    environment: Optional[Dict[str, Any]] = None,
    sleep: Callable[[float], None] = time.sleep,
) -> Report:
    """全セットアップを指定順に1つずつ実行してレポートを返す.

    あるセットアップが例外を送出したり成功 run が0件だった場合も,
    失敗として記録して次のセットアップへ進む.

    Args:
        setups: 実行対象.
        config: ベンチマーク設定.
        supervisor: プロセス管理.
        driver: 負荷生成ツール.
        environment: 環境情報.
        sleep: 待機関数.

    Returns:
        ベンチマークレポート.
    """
    results: List[AggregatedResult] = []
    failures: List[SetupFailure] = []
    total = len(setups)

    for index, setup in enumerate(setups, start=1):
        LOGGER.info("[%s/%s] %s のベンチマークを開始します", index, total, setup.name)
        try:
            aggregate = run_setup(setup, config, supervisor, driver, sleep=sleep)
        except Exception as exc:  # noqa: BLE001
            LOGGER.error(
                "セットアップの実行に失敗しました setup=%s port=%s error=%s",
                setup.name,
                setup.port,
                exc,
                exc_info=True,
            )
            failures.append(
                SetupFailure(
                    setup=setup,
                    error_type=type(exc).__name__,
                    message=str(exc),
                    attempted_runs=config.runs,
                )
            )
            continue

        try:
            results.append(ensure_successful(aggregate))
        except ZeroSuccessfulRuns as exc:
            LOGGER.error("%s", exc)
            failures.append(
                SetupFailure(
                    setup=setup,
                    error_type=type(exc).__name__,
                    message=str(exc),
                    attempted_runs=aggregate.attempted_runs,
                    dropped_runs=list(aggregate.dropped_runs),
                )
            )
            continue

        LOGGER.info(
            "%s: rps=%.2f (±%.2f) runs=%s/%s",
            setup.name,
            aggregate.requests_per_second or 0.0,
            aggregate.std_rps,
            aggregate.runs,
            aggregate.attempted_runs,
        )

    return build_report(
        results,
        failures,
        configuration=config.model_dump(mode="json"),
        environment=environment or {},
        timestamp=now_utc_iso(),
        load_tool=config.load_tool,
        baseline_runtime=config.baseline_runtime,
        candidate_runtime=config.comparison_runtime,
    )
