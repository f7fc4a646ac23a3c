"""
frameworkbench.logging: ログ管理モジュール.

colorlogを使用したオブジェクト指向のログ管理システム
"""

from .logger_manager import LoggerManager, LogLevel

__all__ = ["LoggerManager", "LogLevel"]
