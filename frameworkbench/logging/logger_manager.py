"""
frameworkbench.logging.logger_manager: ログ管理マネージャー.

colorlog の StreamHandler を標準エラーへ出す. 通常は時刻, レベル, メッセージだけ,
DEBUG 時は呼び出し元のファイル名と行番号も出す.
"""

import logging
import sys
from enum import Enum
from typing import Dict, List, Optional

import colorlog

DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
LOG_COLORS = {
    "DEBUG": "cyan",
    "INFO": "green",
    "WARN": "yellow",
    "ERROR": "red",
    "CRITICAL": "red,bg_white",
}


def build_format(debug: bool, use_color: bool) -> str:
    """ログ書式を組み立てる.

    Args:
        debug: ファイル名と行番号を含めるかどうか.
        use_color: レベル名を色付けするかどうか.

    Returns:
        logging 形式の書式文字列.
    """
    level = "%(levelname)-5.5s"
    if use_color:
        level = f"%(log_color)s{level}%(reset)s"
    location = "%(filename)-20s|%(lineno)03d|" if debug else ""
    return f"%(asctime)s|{level}|{location} %(message)s"


class SwitchableFormatter(logging.Formatter):
    """通常形式と DEBUG 形式を切り替えられるフォーマッタ.

    WARNING は WARN と短く表示する.
    """

    def __init__(self, use_color: bool, debug: bool = False) -> None:
        """フォーマッタを初期化."""
        super().__init__(datefmt=DATE_FORMAT)
        self.use_color = use_color
        self.debug = debug
        self._formatters = {
            flag: self._build(build_format(flag, use_color)) for flag in (False, True)
        }

    def _build(self, fmt: str) -> logging.Formatter:
        if self.use_color:
            return colorlog.ColoredFormatter(fmt, datefmt=DATE_FORMAT, log_colors=LOG_COLORS)
        return logging.Formatter(fmt, datefmt=DATE_FORMAT)

    def format(self, record: logging.LogRecord) -> str:
        """ログレコードを整形."""
        if record.levelname == "WARNING":
            record.levelname = "WARN"
        return str(self._formatters[self.debug].format(record))


class LogLevel(Enum):
    """ログレベル列挙型."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"


class LoggerManager:
    """
    ログ管理マネージャークラス.

    名前ごとにロガーを1度だけ構成し, 親ロガーへは伝播させない.

    Attributes:
        _loggers (Dict[str, logging.Logger]): 構成済みロガー
        _default_level (LogLevel): 新規ロガーのレベル
        _use_color (bool): 色付き出力を行うかどうか. 既定は標準エラーが端末かどうか
    """

    _instance: Optional["LoggerManager"] = None
    _loggers: Dict[str, logging.Logger] = {}

    def __new__(cls) -> "LoggerManager":
        """シングルトンパターンの実装."""
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __init__(self) -> None:
        """LoggerManagerを初期化."""
        if hasattr(self, "_initialized"):
            return
        self._default_level = LogLevel.INFO
        self._use_color = sys.stderr.isatty()
        self._initialized = True

    def get_logger(self, name: str, level: Optional[LogLevel] = None) -> logging.Logger:
        """
        指定された名前のロガーを取得または作成.

        Args:
            name (str): ロガー名
            level (LogLevel, optional): 新規作成時のログレベル

        Returns:
            logging.Logger: 構成済みロガー
        """
        if name not in self._loggers:
            logger = logging.getLogger(name)
            if not logger.handlers:
                logger.setLevel(getattr(logging, (level or self._default_level).value))
                handler = colorlog.StreamHandler()
                handler.setFormatter(
                    SwitchableFormatter(
                        self._use_color, debug=self._default_level == LogLevel.DEBUG
                    )
                )
                logger.addHandler(handler)
                logger.propagate = False
            self._loggers[name] = logger
        return self._loggers[name]

    def set_default_level(self, level: LogLevel) -> None:
        """
        デフォルトのログレベルを設定し, 既存ハンドラーの形式も切り替える.

        Args:
            level (LogLevel): 新しいデフォルトレベル
        """
        self._default_level = level
        for handler in self._handlers():
            handler.formatter.debug = level == LogLevel.DEBUG

    def set_color_enabled(self, enabled: bool) -> None:
        """
        色付き出力を切り替える. 既存ハンドラーにも反映する.

        Args:
            enabled (bool): 色付き出力を行う場合True
        """
        self._use_color = enabled
        debug = self._default_level == LogLevel.DEBUG
        for handler in self._handlers():
            handler.setFormatter(SwitchableFormatter(enabled, debug=debug))

    def set_logger_level(self, name: str, level: LogLevel) -> None:
        """
        特定のロガーのレベルを設定.

        Args:
            name (str): ロガー名
            level (LogLevel): 新しいログレベル
        """
        if name in self._loggers:
            self._loggers[name].setLevel(getattr(logging, level.value))

    def _handlers(self) -> List[logging.Handler]:
        return [
            handler
            for logger in self._loggers.values()
            for handler in logger.handlers
            if isinstance(handler.formatter, SwitchableFormatter)
        ]

    @classmethod
    def reset(cls) -> None:
        """シングルトンインスタンスと構成済みハンドラーを破棄する (テスト用)."""
        for logger in cls._loggers.values():
            for handler in list(logger.handlers):
                logger.removeHandler(handler)
        cls._instance = None
        cls._loggers.clear()
