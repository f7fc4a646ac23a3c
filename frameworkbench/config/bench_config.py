"""frameworkbench.config.bench_config: 型付きベンチマーク設定の Pydantic モデル."""

from __future__ import annotations

import math
from typing import Any, Dict, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from .sub_configs import HealthCheckConfig

QUICK_PROFILE: Dict[str, Any] = {
    "connections": 10,
    "duration_seconds": 5,
    "threads": 2,
    "runs": 1,
    "warmup_time_ms": 1000,
    "cooldown_time_ms": 500,
}


class BenchmarkConfig(BaseModel):
    """負荷試験と run 繰り返しの設定."""

    model_config = ConfigDict(extra="forbid")

    connections: int = Field(default=100, gt=0)
    duration_seconds: int = Field(default=30, gt=0)
    pipelining: int = Field(default=1, gt=0)
    timeout_ms: int = Field(default=10000, gt=0)
    threads: int = Field(default=12, gt=0)
    warmup_time_ms: int = Field(default=3000, ge=0)
    cooldown_time_ms: int = Field(default=2000, ge=0)
    runs: int = Field(default=3, gt=0)
    grace_period_ms: int = Field(default=1000, ge=0)
    load_tool: Literal["wrk", "autocannon"] = "wrk"
    latency_stats: bool = True
    driver_overhead_seconds: int = Field(default=30, ge=0)
    health_check: HealthCheckConfig = Field(default_factory=HealthCheckConfig)
    baseline_runtime: str = "node"
    comparison_runtime: str = "bun"
    env_name: Optional[str] = None

    @field_validator("health_check", mode="before")
    @classmethod
    def health_check_from_dict(cls, v: Any) -> Any:
        """辞書指定のヘルスチェック設定を dataclass へ変換する."""
        if v is None or isinstance(v, dict):
            return HealthCheckConfig.from_dict(v)
        return v

    @field_validator("baseline_runtime", "comparison_runtime")
    @classmethod
    def runtime_must_not_be_empty(cls, v: str) -> str:
        """ランタイム名が空文字でないことを検証する."""
        if not v.strip():
            raise ValueError("ランタイム名は空文字を許可しません")
        return v.strip()

    @model_validator(mode="after")
    def validate_comparison_pair(self) -> "BenchmarkConfig":
        """比較するランタイムの組が異なることを検証する."""
        if self.baseline_runtime == self.comparison_runtime:
            raise ValueError(
                "baseline_runtime と comparison_runtime には異なるランタイムを"
                f"指定してください: {self.baseline_runtime}"
            )
        return self

    @property
    def warmup_seconds(self) -> float:
        """起動待ち時間 (秒)."""
        return self.warmup_time_ms / 1000.0

    @property
    def cooldown_seconds(self) -> float:
        """run 間のクールダウン (秒)."""
        return self.cooldown_time_ms / 1000.0

    @property
    def grace_period_seconds(self) -> float:
        """SIGTERM から SIGKILL までの猶予 (秒)."""
        return self.grace_period_ms / 1000.0

    @property
    def timeout_seconds(self) -> int:
        """負荷ツールへ渡すリクエストタイムアウト (秒, 切り上げ)."""
        return max(1, math.ceil(self.timeout_ms / 1000))

    @property
    def driver_timeout_seconds(self) -> int:
        """負荷ツール1回の実行に許す最大時間 (秒)."""
        return self.duration_seconds + self.driver_overhead_seconds

    @classmethod
    def quick(cls, **overrides: Any) -> "BenchmarkConfig":
        """CI のスモークテスト向けの短縮設定を作成する.

        Args:
            **overrides: さらに上書きする設定値.

        Returns:
            短縮設定.
        """
        payload = dict(QUICK_PROFILE)
        payload.update(overrides)
        return cls(**payload)
