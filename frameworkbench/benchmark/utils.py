"""ベンチマーク実行の共通ユーティリティ."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Optional

from frameworkbench.logging import LoggerManager, LogLevel

LOGGER_NAME = "frameworkbench.benchmark"
REPORT_LOGGER_NAME = "frameworkbench.report"


def configure_logger(debug: bool = False, color: Optional[bool] = None) -> logging.Logger:
    """ベンチマーク用ロガーを初期化して返す.

    Args:
        debug: デバッグログを有効化するかどうか.
        color: 色付き出力の有無. None なら端末かどうかで決める.

    Returns:
        構成済みロガー.
    """
    manager = LoggerManager()
    if color is not None:
        manager.set_color_enabled(color)
    level = LogLevel.DEBUG if debug else LogLevel.INFO
    manager.set_default_level(level)
    for name in (LOGGER_NAME, REPORT_LOGGER_NAME):
        manager.get_logger(name, level=level)
        manager.set_logger_level(name, level)
    return manager.get_logger(LOGGER_NAME, level=level)


def now_utc_iso() -> str:
    """UTC現在時刻を ISO 8601 形式で返す.

    Returns:
        秒精度の UTC 時刻文字列 (例: `2026-10-19T09:30:00Z`).
    """
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def now_local_timestamp() -> str:
    """ファイル名に使うタイムスタンプを返す.

    Returns:
        `YYYYMMDD_HHMMSS` 形式の時刻文字列.
    """
    return datetime.now().strftime("%Y%m%d_%H%M%S")


def to_float(value: Any) -> Optional[float]:
    """任意値を float に変換する.

    Args:
        value: 変換対象値.

    Returns:
        変換後の float 値. 変換不能時は None.
    """
    if value is None:
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def to_int(value: Any) -> int:
    """任意値を int に変換する. 変換不能時は 0."""
    number = to_float(value)
    return int(number) if number is not None else 0


def tail_text(text: str, max_chars: int = 800) -> str:
    """ログ出力用に文字列の末尾だけを切り出す."""
    text = text.strip()
    if len(text) <= max_chars:
        return text
    return "..." + text[-max_chars:]
