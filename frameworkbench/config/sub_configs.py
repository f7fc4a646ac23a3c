"""frameworkbench.config.sub_configs: ネスト設定用 dataclass 定義."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional


@dataclass
class HealthCheckConfig:
    """ヘルスチェックのポーリング設定.

    起動時間はほぼ一定なので固定間隔でポーリングする.
    """

    max_attempts: int = 20
    poll_interval_ms: int = 500
    request_timeout_ms: int = 1000

    def __post_init__(self) -> None:
        """値の範囲を検証する."""
        if self.max_attempts <= 0:
            raise ValueError(
                f"max_attempts は正の整数である必要があります: {self.max_attempts}"
            )
        if self.poll_interval_ms < 0:
            raise ValueError(
                f"poll_interval_ms は0以上である必要があります: {self.poll_interval_ms}"
            )
        if self.request_timeout_ms <= 0:
            raise ValueError(
                "request_timeout_ms は正の整数である必要があります: "
                f"{self.request_timeout_ms}"
            )

    @property
    def poll_interval_seconds(self) -> float:
        """ポーリング間隔 (秒)."""
        return self.poll_interval_ms / 1000.0

    @property
    def request_timeout_seconds(self) -> float:
        """1回のヘルスチェックのタイムアウト (秒)."""
        return self.request_timeout_ms / 1000.0

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "HealthCheckConfig":
        """Dict から設定を作成."""
        payload = data or {}
        return cls(
            max_attempts=payload.get("max_attempts", 20),
            poll_interval_ms=payload.get("poll_interval_ms", 500),
            request_timeout_ms=payload.get("request_timeout_ms", 1000),
        )
