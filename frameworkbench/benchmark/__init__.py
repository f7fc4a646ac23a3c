"""frameworkbench.benchmark: サーバー起動, 負荷計測, 集計."""

from .errors import (
    BenchmarkError,
    HealthCheckTimeout,
    LoadDriverError,
    LoadDriverInvocationError,
    RunError,
    SerializationError,
    ServerExitedError,
    SpawnError,
    ZeroSuccessfulRuns,
)
from .models import (
    AggregatedResult,
    DroppedRun,
    LatencyStats,
    RankingEntry,
    Rankings,
    Report,
    ReportMetadata,
    RunResult,
    RuntimeComparison,
    Setup,
    SetupFailure,
)

__all__ = [
    "AggregatedResult",
    "BenchmarkError",
    "DroppedRun",
    "HealthCheckTimeout",
    "LatencyStats",
    "LoadDriverError",
    "LoadDriverInvocationError",
    "RankingEntry",
    "Rankings",
    "Report",
    "ReportMetadata",
    "RunError",
    "RunResult",
    "RuntimeComparison",
    "SerializationError",
    "ServerExitedError",
    "Setup",
    "SetupFailure",
    "SpawnError",
    "ZeroSuccessfulRuns",
]
