"""frameworkbench.config: ベンチマーク設定."""

from .bench_config import BenchmarkConfig
from .matrix_loader import (
    FrameworkSpec,
    MatrixConfig,
    build_setups,
    default_matrix,
    load_matrix_config,
    resolve_benchmark_config,
)
from .sub_configs import HealthCheckConfig

__all__ = [
    "BenchmarkConfig",
    "HealthCheckConfig",
    "FrameworkSpec",
    "MatrixConfig",
    "build_setups",
    "default_matrix",
    "load_matrix_config",
    "resolve_benchmark_config",
]
