"""ベンチマーク結果の型定義."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

REPORT_SCHEMA_VERSION = "1.0.0"


def _optional_float(value: Any) -> Optional[float]:
    """None を保ったまま float へ変換する."""
    return None if value is None else float(value)


@dataclass(frozen=True)
class Setup:
    """ベンチマーク対象 (framework, runtime) の組."""

    name: str
    runtime: str
    framework: str
    script: str
    port: int
    endpoint: str = "/"

    @property
    def url(self) -> str:
        """負荷をかける URL."""
        endpoint = self.endpoint if self.endpoint.startswith("/") else f"/{self.endpoint}"
        return f"http://localhost:{self.port}{endpoint}"

    def to_dict(self) -> Dict[str, Any]:
        """辞書形式へ変換する.

        Returns:
            JSON出力可能な辞書.
        """
        return {
            "name": self.name,
            "runtime": self.runtime,
            "framework": self.framework,
            "script": self.script,
            "port": self.port,
            "endpoint": self.endpoint,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Setup":
        """Dict から作成."""
        return cls(
            name=data["name"],
            runtime=data["runtime"],
            framework=data["framework"],
            script=data["script"],
            port=int(data["port"]),
            endpoint=data.get("endpoint", "/"),
        )


@dataclass(frozen=True)
class LatencyStats:
    """レイテンシ分布. 単位はすべてミリ秒.

    ツールが出力しないパーセンタイルは None のままにする.
    """

    average: Optional[float] = None
    p50: Optional[float] = None
    p75: Optional[float] = None
    p90: Optional[float] = None
    p95: Optional[float] = None
    p99: Optional[float] = None
    max: Optional[float] = None

    def to_dict(self) -> Dict[str, Optional[float]]:
        """辞書形式へ変換する.

        Returns:
            JSON出力可能な辞書.
        """
        return {
            "average": self.average,
            "p50": self.p50,
            "p75": self.p75,
            "p90": self.p90,
            "p95": self.p95,
            "p99": self.p99,
            "max": self.max,
        }

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "LatencyStats":
        """Dict から作成."""
        payload = data or {}
        return cls(
            average=_optional_float(payload.get("average")),
            p50=_optional_float(payload.get("p50")),
            p75=_optional_float(payload.get("p75")),
            p90=_optional_float(payload.get("p90")),
            p95=_optional_float(payload.get("p95")),
            p99=_optional_float(payload.get("p99")),
            max=_optional_float(payload.get("max")),
        )


@dataclass(frozen=True)
class RunResult:
    """1回の負荷試験の計測値."""

    requests_per_second: float = 0.0
    latency: LatencyStats = field(default_factory=LatencyStats)
    throughput: float = 0.0
    total_requests: int = 0
    errors: int = 0
    timeouts: int = 0
    non_2xx: int = 0

    @property
    def failed_requests(self) -> int:
        """エラー, タイムアウト, 非2xx応答の合計."""
        return self.errors + self.timeouts + self.non_2xx

    def to_dict(self) -> Dict[str, Any]:
        """辞書形式へ変換する.

        Returns:
            JSON出力可能な辞書.
        """
        return {
            "requests_per_second": self.requests_per_second,
            "latency": self.latency.to_dict(),
            "throughput": self.throughput,
            "total_requests": self.total_requests,
            "errors": self.errors,
            "timeouts": self.timeouts,
            "non_2xx": self.non_2xx,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RunResult":
        """Dict から作成."""
        return cls(
            requests_per_second=float(data.get("requests_per_second", 0.0)),
            latency=LatencyStats.from_dict(data.get("latency")),
            throughput=float(data.get("throughput", 0.0)),
            total_requests=int(data.get("total_requests", 0)),
            errors=int(data.get("errors", 0)),
            timeouts=int(data.get("timeouts", 0)),
            non_2xx=int(data.get("non_2xx", 0)),
        )


@dataclass(frozen=True)
class DroppedRun:
    """集計対象から外れた run の記録."""

    run_index: int
    reason: str
    detail: str

    def to_dict(self) -> Dict[str, Any]:
        """辞書形式へ変換する."""
        return {"run_index": self.run_index, "reason": self.reason, "detail": self.detail}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "DroppedRun":
        """Dict から作成."""
        return cls(
            run_index=int(data["run_index"]),
            reason=str(data["reason"]),
            detail=str(data.get("detail", "")),
        )


@dataclass(frozen=True)
class AggregatedResult:
    """1セットアップ分の成功 run を集計した結果.

    `runs == 0` は計測値を持たない番兵値を表す.
    """

    setup: Setup
    runs: int
    attempted_runs: int
    requests_per_second: Optional[float] = None
    std_rps: float = 0.0
    latency: LatencyStats = field(default_factory=LatencyStats)
    std_latency: float = 0.0
    throughput: Optional[float] = None
    total_requests: int = 0
    errors: int = 0
    timeouts: int = 0
    non_2xx: int = 0
    raw_runs: List[RunResult] = field(default_factory=list)
    dropped_runs: List[DroppedRun] = field(default_factory=list)

    @property
    def has_data(self) -> bool:
        """成功した run が1件以上あるかどうか."""
        return self.runs > 0

    @property
    def error_rate(self) -> float:
        """全リクエストに対する失敗リクエストの割合."""
        if self.total_requests <= 0:
            return 0.0
        return (self.errors + self.timeouts + self.non_2xx) / self.total_requests

    def to_dict(self) -> Dict[str, Any]:
        """辞書形式へ変換する.

        Returns:
            JSON出力可能な辞書.
        """
        return {
            "setup": self.setup.to_dict(),
            "runs": self.runs,
            "attempted_runs": self.attempted_runs,
            "requests_per_second": self.requests_per_second,
            "std_rps": self.std_rps,
            "latency": self.latency.to_dict(),
            "std_latency": self.std_latency,
            "throughput": self.throughput,
            "total_requests": self.total_requests,
            "errors": self.errors,
            "timeouts": self.timeouts,
            "non_2xx": self.non_2xx,
            "error_rate": self.error_rate,
            "raw_runs": [run.to_dict() for run in self.raw_runs],
            "dropped_runs": [run.to_dict() for run in self.dropped_runs],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AggregatedResult":
        """Dict から作成. `error_rate` は派生値なので読み捨てる."""
        return cls(
            setup=Setup.from_dict(data["setup"]),
            runs=int(data["runs"]),
            attempted_runs=int(data.get("attempted_runs", data["runs"])),
            requests_per_second=_optional_float(data.get("requests_per_second")),
            std_rps=float(data.get("std_rps", 0.0)),
            latency=LatencyStats.from_dict(data.get("latency")),
            std_latency=float(data.get("std_latency", 0.0)),
            throughput=_optional_float(data.get("throughput")),
            total_requests=int(data.get("total_requests", 0)),
            errors=int(data.get("errors", 0)),
            timeouts=int(data.get("timeouts", 0)),
            non_2xx=int(data.get("non_2xx", 0)),
            raw_runs=[RunResult.from_dict(run) for run in data.get("raw_runs", [])],
            dropped_runs=[
                DroppedRun.from_dict(run) for run in data.get("dropped_runs", [])
            ],
        )


@dataclass(frozen=True)
class RankingEntry:
    """ランキングの1行."""

    rank: int
    name: str
    value: float
    std_dev: float

    def to_dict(self) -> Dict[str, Any]:
        """辞書形式へ変換する."""
        return {
            "rank": self.rank,
            "name": self.name,
            "value": self.value,
            "std_dev": self.std_dev,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RankingEntry":
        """Dict から作成."""
        return cls(
            rank=int(data["rank"]),
            name=str(data["name"]),
            value=float(data["value"]),
            std_dev=float(data.get("std_dev", 0.0)),
        )


@dataclass(frozen=True)
class Rankings:
    """RPS 降順と平均レイテンシ昇順のランキング."""

    by_requests_per_second: List[RankingEntry] = field(default_factory=list)
    by_latency: List[RankingEntry] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        """辞書形式へ変換する."""
        return {
            "by_requests_per_second": [e.to_dict() for e in self.by_requests_per_second],
            "by_latency": [e.to_dict() for e in self.by_latency],
        }

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "Rankings":
        """Dict から作成."""
        payload = data or {}
        return cls(
            by_requests_per_second=[
                RankingEntry.from_dict(e)
                for e in payload.get("by_requests_per_second", [])
            ],
            by_latency=[RankingEntry.from_dict(e) for e in payload.get("by_latency", [])],
        )


@dataclass(frozen=True)
class RuntimeComparison:
    """同一フレームワークにおける2ランタイムの比較.

    `improvement_pct` が正なら比較対象ランタイムの方が RPS が高い.
    `latency_improvement_pct` が正なら比較対象ランタイムの方がレイテンシが低い.
    """

    framework: str
    baseline_runtime: str
    candidate_runtime: str
    baseline_rps: float
    candidate_rps: float
    baseline_latency: Optional[float]
    candidate_latency: Optional[float]
    improvement_pct: Optional[float]
    latency_improvement_pct: Optional[float]

    def to_dict(self) -> Dict[str, Any]:
        """辞書形式へ変換する."""
        return {
            "framework": self.framework,
            "baseline_runtime": self.baseline_runtime,
            "candidate_runtime": self.candidate_runtime,
            "baseline_rps": self.baseline_rps,
            "candidate_rps": self.candidate_rps,
            "baseline_latency": self.baseline_latency,
            "candidate_latency": self.candidate_latency,
            "improvement_pct": self.improvement_pct,
            "latency_improvement_pct": self.latency_improvement_pct,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RuntimeComparison":
        """Dict から作成."""
        return cls(
            framework=str(data["framework"]),
            baseline_runtime=str(data["baseline_runtime"]),
            candidate_runtime=str(data["candidate_runtime"]),
            baseline_rps=float(data["baseline_rps"]),
            candidate_rps=float(data["candidate_rps"]),
            baseline_latency=_optional_float(data.get("baseline_latency")),
            candidate_latency=_optional_float(data.get("candidate_latency")),
            improvement_pct=_optional_float(data.get("improvement_pct")),
            latency_improvement_pct=_optional_float(data.get("latency_improvement_pct")),
        )


@dataclass(frozen=True)
class SetupFailure:
    """計測値を1件も得られなかったセットアップの記録."""

    setup: Setup
    error_type: str
    message: str
    attempted_runs: int = 0
    dropped_runs: List[DroppedRun] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        """辞書形式へ変換する."""
        return {
            "setup": self.setup.to_dict(),
            "error_type": self.error_type,
            "message": self.message,
            "attempted_runs": self.attempted_runs,
            "dropped_runs": [run.to_dict() for run in self.dropped_runs],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SetupFailure":
        """Dict から作成."""
        return cls(
            setup=Setup.from_dict(data["setup"]),
            error_type=str(data["error_type"]),
            message=str(data.get("message", "")),
            attempted_runs=int(data.get("attempted_runs", 0)),
            dropped_runs=[
                DroppedRun.from_dict(run) for run in data.get("dropped_runs", [])
            ],
        )


@dataclass(frozen=True)
class ReportMetadata:
    """レポートのメタ情報."""

    timestamp: str
    tool_version: str
    load_tool: str
    generator: str = "frameworkbench"
    schema_version: str = REPORT_SCHEMA_VERSION

    def to_dict(self) -> Dict[str, Any]:
        """辞書形式へ変換する."""
        return {
            "schema_version": self.schema_version,
            "timestamp": self.timestamp,
            "tool_version": self.tool_version,
            "generator": self.generator,
            "load_tool": self.load_tool,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ReportMetadata":
        """Dict から作成."""
        return cls(
            timestamp=str(data["timestamp"]),
            tool_version=str(data.get("tool_version", "")),
            load_tool=str(data.get("load_tool", "")),
            generator=str(data.get("generator", "frameworkbench")),
            schema_version=str(data.get("schema_version", REPORT_SCHEMA_VERSION)),
        )


@dataclass(frozen=True)
class Report:
    """ベンチマーク全体の出力. 生成後は変更しない."""

    metadata: ReportMetadata
    environment: Dict[str, Any]
    configuration: Dict[str, Any]
    results: List[AggregatedResult] = field(default_factory=list)
    rankings: Rankings = field(default_factory=Rankings)
    comparisons: List[RuntimeComparison] = field(default_factory=list)
    failures: List[SetupFailure] = field(default_factory=list)

    @property
    def summary(self) -> Dict[str, Any]:
        """件数などの要約."""
        return {
            "total_setups": len(self.results) + len(self.failures),
            "successful_setups": len(self.results),
            "failed_setups": len(self.failures),
            "frameworks": _unique(r.setup.framework for r in self.results),
            "runtimes": _unique(r.setup.runtime for r in self.results),
        }

    def to_dict(self) -> Dict[str, Any]:
        """辞書形式へ変換する.

        Returns:
            JSON出力可能な辞書.
        """
        return {
            "metadata": self.metadata.to_dict(),
            "environment": self.environment,
            "configuration": self.configuration,
            "summary": self.summary,
            "results": [result.to_dict() for result in self.results],
            "rankings": self.rankings.to_dict(),
            "comparisons": [c.to_dict() for c in self.comparisons],
            "failures": [f.to_dict() for f in self.failures],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Report":
        """Dict から作成. `summary` は派生値なので読み捨てる."""
        return cls(
            metadata=ReportMetadata.from_dict(data["metadata"]),
            environment=dict(data.get("environment", {})),
            configuration=dict(data.get("configuration", {})),
            results=[AggregatedResult.from_dict(r) for r in data.get("results", [])],
            rankings=Rankings.from_dict(data.get("rankings")),
            comparisons=[
                RuntimeComparison.from_dict(c) for c in data.get("comparisons", [])
            ],
            failures=[SetupFailure.from_dict(f) for f in data.get("failures", [])],
        )


def _unique(values: Any) -> List[str]:
    """出現順を保って重複を除く."""
    seen: List[str] = []
    for value in values:
        if value not in seen:
            seen.append(value)
    return seen
