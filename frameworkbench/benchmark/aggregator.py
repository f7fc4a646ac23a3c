"""セットアップ単位の繰り返し実行と統計集計."""

from __future__ import annotations

import logging
import time
from statistics import mean, pstdev
from typing import Callable, Iterable, List, Optional, Sequence

from frameworkbench.benchmark.errors import (
    HealthCheckTimeout,
    RunError,
    ServerExitedError,
    ZeroSuccessfulRuns,
)
from frameworkbench.benchmark.load_driver import LoadDriver
from frameworkbench.benchmark.models import (
    AggregatedResult,
    DroppedRun,
    LatencyStats,
    RunResult,
    Setup,
)
from frameworkbench.benchmark.supervisor import ProcessSupervisor
from frameworkbench.benchmark.utils import LOGGER_NAME
from frameworkbench.config.bench_config import BenchmarkConfig

LOGGER = logging.getLogger(LOGGER_NAME)


def _mean_or_none(values: Iterable[Optional[float]]) -> Optional[float]:
    """None を除いた平均を返す. 値がなければ None."""
    present = [v for v in values if v is not None]
    if len(present) == 0:
        return None
    return mean(present)


def aggregate_runs(
    setup: Setup,
    runs: Sequence[RunResult],
    attempted_runs: Optional[int] = None,
    dropped_runs: Optional[Sequence[DroppedRun]] = None,
) -> AggregatedResult:
    """成功した run の計測値を集計する.

    RPS, レイテンシ, スループットは平均し, 件数系は合計する.
    標準偏差は母標準偏差 (N で割る) を使う.

    Args:
        setup: 対象セットアップ.
        runs: 成功した run の計測値.
        attempted_runs: 試行した run 数. None なら成功数と同じ.
        dropped_runs: 除外した run の記録.

    Returns:
        集計結果. run が0件なら `runs == 0` の番兵値.
    """
    dropped = list(dropped_runs or [])
    attempted = len(runs) + len(dropped) if attempted_runs is None else attempted_runs
    if len(runs) == 0:
        return AggregatedResult(
            setup=setup,
            runs=0,
            attempted_runs=attempted,
            dropped_runs=dropped,
        )

    rps_values = [run.requests_per_second for run in runs]
    avg_latencies = [
        run.latency.average for run in runs if run.latency.average is not None
    ]

    latency = LatencyStats(
        average=_mean_or_none(avg_latencies),
        p50=_mean_or_none(run.latency.p50 for run in runs),
        p75=_mean_or_none(run.latency.p75 for run in runs),
        p90=_mean_or_none(run.latency.p90 for run in runs),
        p95=_mean_or_none(run.latency.p95 for run in runs),
        p99=_mean_or_none(run.latency.p99 for run in runs),
        max=_mean_or_none(run.latency.max for run in runs),
    )

    return AggregatedResult(
        setup=setup,
        runs=len(runs),
        attempted_runs=attempted,
        requests_per_second=mean(rps_values),
        std_rps=pstdev(rps_values),
        latency=latency,
        std_latency=pstdev(avg_latencies) if avg_latencies else 0.0,
        throughput=mean(run.throughput for run in runs),
        total_requests=sum(run.total_requests for run in runs),
        errors=sum(run.errors for run in runs),
        timeouts=sum(run.timeouts for run in runs),
        non_2xx=sum(run.non_2xx for run in runs),
        raw_runs=list(runs),
        dropped_runs=dropped,
    )


def ensure_successful(aggregate: AggregatedResult) -> AggregatedResult:
    """成功 run が1件以上あることを確認する.

    Raises:
        ZeroSuccessfulRuns: 全 run が失敗していた場合.
    """
    if not aggregate.has_data:
        reasons = sorted({run.reason for run in aggregate.dropped_runs})
        raise ZeroSuccessfulRuns(
            f"{aggregate.setup.name}: {aggregate.attempted_runs} 回の run がすべて失敗しました"
            + (f" ({', '.join(reasons)})" if reasons else "")
        )
    return aggregate


def _execute_run(
    setup: Setup,
    config: BenchmarkConfig,
    supervisor: ProcessSupervisor,
    driver: LoadDriver,
    run_index: int,
    sleep: Callable[[float], None],
) -> RunResult:
    """起動, 計測, 停止を1回分実行する.

    Raises:
        RunError: この run を除外すべき失敗が起きた場合.
            メッセージにはサーバー出力の末尾を含める.
    """
    handle = supervisor.start(setup, run_index=run_index)
    failure: Optional[RunError] = None
    result = RunResult()
    try:
        sleep(config.warmup_seconds)
        healthy = supervisor.wait_healthy(
            handle,
            setup.port,
            setup.endpoint,
            config.health_check.max_attempts,
            config.health_check.poll_interval_seconds,
        )
        if not healthy:
            raise HealthCheckTimeout(
                f"{config.health_check.max_attempts} 回の試行でヘルスチェックに"
                f"応答しませんでした: {setup.url}"
            )
        result = driver.measure(setup.url, config)
        if not handle.is_alive:
            raise ServerExitedError(
                f"計測中にサーバーが終了しました (exit={handle.process.returncode}): "
                f"{setup.url}"
            )
    except RunError as exc:
        failure = exc
    finally:
        supervisor.stop(handle, config.grace_period_ms)

    if failure is not None:
        output = handle.output_tail()
        detail = f"{failure} | server output: {output}" if output else str(failure)
        raise type(failure)(detail) from failure

    sleep(config.cooldown_seconds)
    return result


def run_setup(
    setup: Setup,
    config: BenchmarkConfig,
    supervisor: ProcessSupervisor,
    driver: LoadDriver,
    sleep: Callable[[float], None] = time.sleep,
) -> AggregatedResult:
    """1セットアップを `config.runs` 回実行して集計する.

    run 単位の失敗 (起動失敗, ヘルスチェック失敗, 負荷ツール起動失敗,
    計測中のサーバー終了) は
    ここで DroppedRun に変換し, 呼び出し元へは送出しない.

    Args:
        setup: 対象セットアップ.
        config: ベンチマーク設定.
        supervisor: プロセス管理.
        driver: 負荷生成ツール.
        sleep: 待機関数.

    Returns:
        集計結果.
    """
    raw_runs: List[RunResult] = []
    dropped_runs: List[DroppedRun] = []

    for run_index in range(1, config.runs + 1):
        LOGGER.info(
            "setup=%s run=%s/%s port=%s",
            setup.name,
            run_index,
            config.runs,
            setup.port,
        )
        try:
            result = _execute_run(setup, config, supervisor, driver, run_index, sleep)
        except RunError as exc:
            dropped = DroppedRun(
                run_index=run_index,
                reason=type(exc).__name__,
                detail=str(exc),
            )
            dropped_runs.append(dropped)
            LOGGER.warning(
                "run を除外しました setup=%s port=%s run=%s/%s reason=%s detail=%s",
                setup.name,
                setup.port,
                run_index,
                config.runs,
                dropped.reason,
                dropped.detail,
            )
            continue

        raw_runs.append(result)
        LOGGER.info(
            "setup=%s run=%s/%s rps=%.2f avg_latency=%s ms errors=%s",
            setup.name,
            run_index,
            config.runs,
            result.requests_per_second,
            result.latency.average,
            result.failed_requests,
        )

    return aggregate_runs(
        setup,
        raw_runs,
        attempted_runs=config.runs,
        dropped_runs=dropped_runs,
    )
