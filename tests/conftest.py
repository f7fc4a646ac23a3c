"""テスト共通フィクスチャ."""

from types import SimpleNamespace
from typing import Dict, Iterable, List, Optional

import pytest

from frameworkbench.benchmark.errors import LoadDriverError, SpawnError
from frameworkbench.benchmark.models import (
    AggregatedResult,
    LatencyStats,
    RunResult,
    Setup,
    SetupFailure,
)
from frameworkbench.benchmark.orchestrator import build_report

WRK_SAMPLE_OUTPUT = """\
Running 10s test @ http://localhost:3000/
  12 threads and 100 connections
  Thread Stats   Avg      Stdev     Max   +/- Stdev
    Latency     2.10ms  850.00us  45.30ms   91.20%
    Req/Sec     1.03k   120.45     1.50k    75.00%
  Latency Distribution
     50%    1.20ms
     75%    2.00ms
     90%    3.40ms
     99%    9.90ms
  1000 requests in 10s, 15.00MB read
  Socket errors: connect 1, read 2, write 3, timeout 4
  Non-2xx or 3xx responses: 5
Requests/sec:  12345.67
Transfer/sec:      1.50MB
"""


@pytest.fixture
def wrk_output() -> str:
    """wrk --latency の代表的な出力."""
    return WRK_SAMPLE_OUTPUT


@pytest.fixture
def make_setup():
    """Setup を作成するファクトリフィクスチャ.

    Example:
        >>> def test_example(make_setup):
        ...     setup = make_setup("Hono", "bun", port=3002)
        ...     assert setup.name == "Hono on bun"
    """

    def _create(
        framework: str = "Express",
        runtime: str = "node",
        *,
        port: int = 3000,
        script: str = "server.js",
        endpoint: str = "/",
    ) -> Setup:
        return Setup(
            name=f"{framework} on {runtime}",
            runtime=runtime,
            framework=framework.lower(),
            script=script,
            port=port,
            endpoint=endpoint,
        )

    return _create


@pytest.fixture
def make_run_result():
    """RunResult を作成するファクトリフィクスチャ."""

    def _create(
        rps: float = 100.0,
        avg_latency: Optional[float] = 1.0,
        *,
        throughput: float = 1024.0,
        total_requests: int = 1000,
        errors: int = 0,
        timeouts: int = 0,
        non_2xx: int = 0,
        p50: Optional[float] = None,
        p99: Optional[float] = None,
    ) -> RunResult:
        return RunResult(
            requests_per_second=rps,
            latency=LatencyStats(average=avg_latency, p50=p50, p99=p99),
            throughput=throughput,
            total_requests=total_requests,
            errors=errors,
            timeouts=timeouts,
            non_2xx=non_2xx,
        )

    return _create


class FakeHandle:
    """ProcessSupervisor.start が返すハンドルの代替."""

    def __init__(self, setup: Setup, run_index: int) -> None:
        self.setup = setup
        self.run_index = run_index
        self.stop_count = 0
        self.process = SimpleNamespace(returncode=None)

    @property
    def is_alive(self) -> bool:
        return self.process.returncode is None

    def output_tail(self, max_chars: int = 800) -> str:
        return f"{self.setup.name} stderr"


class FakeSupervisor:
    """プロセスを起動せずに呼び出し順だけを記録する Supervisor."""

    def __init__(
        self,
        unhealthy: Iterable[str] = (),
        spawn_failures: Iterable[str] = (),
        crash_after_health: Iterable[str] = (),
    ) -> None:
        self.unhealthy = set(unhealthy)
        self.spawn_failures = set(spawn_failures)
        self.crash_after_health = set(crash_after_health)
        self.events: List[tuple] = []
        self.handles: List[FakeHandle] = []

    def start(self, setup: Setup, run_index: int = 1) -> FakeHandle:
        if setup.name in self.spawn_failures:
            raise SpawnError(f"ランタイムが PATH に見つかりません: {setup.runtime}")
        self.events.append(("start", setup.name, run_index))
        handle = FakeHandle(setup, run_index)
        self.handles.append(handle)
        return handle

    def wait_healthy(self, handle, port=None, endpoint=None, max_attempts=None, poll_interval=None):
        self.events.append(("health", handle.setup.name, handle.run_index))
        if handle.setup.name in self.crash_after_health:
            handle.process.returncode = 1
            return True
        return handle.setup.name not in self.unhealthy

    def stop(self, handle, grace_period_ms=1000):
        self.events.append(("stop", handle.setup.name, handle.run_index))
        handle.stop_count += 1

    def kill_all(self):
        self.events.append(("kill_all",))


class FakeDriver:
    """URL ごとに決めた計測値を返す LoadDriver."""

    def __init__(
        self,
        results: Optional[Dict[str, List[RunResult]]] = None,
        failing_urls: Iterable[str] = (),
    ) -> None:
        self.results = {url: list(runs) for url, runs in (results or {}).items()}
        self.failing_urls = set(failing_urls)
        self.calls: List[str] = []

    def measure(self, url, config):
        self.calls.append(url)
        if url in self.failing_urls:
            raise LoadDriverError("wrk が PATH に見つかりません: wrk")
        queue = self.results.get(url)
        if queue:
            return queue.pop(0)
        return RunResult(requests_per_second=100.0, latency=LatencyStats(average=1.0))


@pytest.fixture
def fake_supervisor_cls():
    """FakeSupervisor クラス. 引数で異常系を指定して生成する."""
    return FakeSupervisor


@pytest.fixture
def fake_driver_cls():
    """FakeDriver クラス."""
    return FakeDriver


@pytest.fixture
def sleep_calls():
    """待機関数の呼び出し記録."""
    return []


@pytest.fixture
def recording_sleep(sleep_calls):
    """実際には待たずに引数だけを記録する待機関数."""
    return sleep_calls.append


@pytest.fixture
def sample_report(make_setup):
    """成功3件と失敗1件を含むレポート."""
    express_node = AggregatedResult(
        setup=make_setup("Express", "node", port=3000),
        runs=3,
        attempted_runs=3,
        requests_per_second=100.0,
        std_rps=5.0,
        latency=LatencyStats(average=4.0, p50=3.5, p90=6.0, p99=9.0),
        std_latency=0.5,
        throughput=2 * 1024 * 1024,
        total_requests=30000,
        errors=3,
        timeouts=1,
    )
    express_bun = AggregatedResult(
        setup=make_setup("Express", "bun", port=3000),
        runs=3,
        attempted_runs=3,
        requests_per_second=150.0,
        std_rps=2.0,
        latency=LatencyStats(average=3.0, p50=2.5, p90=4.0, p99=7.0),
        std_latency=0.25,
        throughput=3 * 1024 * 1024,
        total_requests=45000,
    )
    hono_bun = AggregatedResult(
        setup=make_setup("Hono", "bun", port=3002),
        runs=2,
        attempted_runs=3,
        requests_per_second=200.0,
        std_rps=1.0,
        latency=LatencyStats(average=2.0, p50=1.5, p90=3.0, p99=5.0),
        std_latency=0.1,
        throughput=4 * 1024 * 1024,
        total_requests=60000,
    )
    failure = SetupFailure(
        setup=make_setup("Fastify", "bun", port=3001),
        error_type="ZeroSuccessfulRuns",
        message="Fastify on bun: 3 回の run がすべて失敗しました (HealthCheckTimeout)",
        attempted_runs=3,
    )
    return build_report(
        [express_node, express_bun, hono_bun],
        [failure],
        configuration={"connections": 100, "duration_seconds": 30, "runs": 3},
        environment={"label": "Linux-x86_64-8cpu", "os": "Linux"},
        timestamp="2026-10-19T09:30:00Z",
        load_tool="wrk",
        tool_version="0.1.0",
    )
