"""負荷生成ツール (wrk / autocannon) の呼び出し."""

from __future__ import annotations

import logging
import shutil
import subprocess
from typing import Dict, List, Optional, Type

from frameworkbench.benchmark.errors import LoadDriverError
from frameworkbench.benchmark.models import RunResult
from frameworkbench.benchmark.output_parsers import (
    ParsedOutput,
    WrkOutputParser,
    parse_autocannon_output,
)
from frameworkbench.benchmark.utils import LOGGER_NAME, tail_text
from frameworkbench.config.bench_config import BenchmarkConfig

LOGGER = logging.getLogger(LOGGER_NAME)


class LoadDriver:
    """負荷生成ツールの基底クラス.

    ツールを起動できない場合だけ LoadDriverError を送出する.
    接続拒否などで終了コードが非0でも, 出力をパースした結果をそのまま返す.
    """

    tool_name = ""

    def __init__(self, executable: Optional[str] = None) -> None:
        """LoadDriverを初期化.

        Args:
            executable: 実行ファイル名またはパス. None ならツール名を PATH から探す.
        """
        self.executable = executable or self.tool_name

    def build_command(self, url: str, config: BenchmarkConfig) -> List[str]:
        """実行ファイルに続く引数を構築する."""
        raise NotImplementedError

    def parse(self, output: str) -> ParsedOutput:
        """ツールの標準出力をパースする."""
        raise NotImplementedError

    def measure(self, url: str, config: BenchmarkConfig) -> RunResult:
        """URL に負荷をかけて計測値を返す.

        Args:
            url: 負荷対象 URL.
            config: ベンチマーク設定.

        Returns:
            計測値. 全リクエスト失敗時も例外にはせず返す.

        Raises:
            LoadDriverError: ツールが見つからない, 起動できない,
                または `duration + overhead` 秒以内に終了しない場合.
        """
        binary = shutil.which(self.executable)
        if binary is None:
            raise LoadDriverError(f"{self.tool_name} が PATH に見つかりません: {self.executable}")

        command = [binary] + self.build_command(url, config)
        LOGGER.debug("command=%s", " ".join(command))
        try:
            completed = subprocess.run(
                command,
                capture_output=True,
                text=True,
                encoding="utf-8",
                errors="replace",
                timeout=config.driver_timeout_seconds,
                check=False,
            )
        except subprocess.TimeoutExpired as exc:
            raise LoadDriverError(
                f"{self.tool_name} が {config.driver_timeout_seconds} 秒以内に終了しませんでした"
            ) from exc
        except OSError as exc:
            raise LoadDriverError(f"{self.tool_name} を起動できませんでした: {exc}") from exc

        if completed.returncode != 0:
            LOGGER.warning(
                "%s が終了コード %s で終了しました: %s",
                self.tool_name,
                completed.returncode,
                tail_text(completed.stderr or completed.stdout, 300),
            )

        parsed = self.parse(completed.stdout or "")
        if parsed.missing_fields:
            LOGGER.debug(
                "%s の出力に含まれない項目: %s",
                self.tool_name,
                ", ".join(parsed.missing_fields),
            )
        if parsed.ignored_lines:
            LOGGER.debug("読み飛ばした行数: %s", len(parsed.ignored_lines))
        return parsed.result


class WrkLoadDriver(LoadDriver):
    """wrk によるテキスト出力ベースの計測."""

    tool_name = "wrk"

    def __init__(self, executable: Optional[str] = None) -> None:
        """WrkLoadDriverを初期化."""
        super().__init__(executable)
        self._parser = WrkOutputParser()

    def build_command(self, url: str, config: BenchmarkConfig) -> List[str]:
        """wrk の引数を構築する. スレッド数は `[1, connections]` に収める."""
        threads = max(1, min(config.threads, config.connections))
        args = [
            "-c",
            str(config.connections),
            "-t",
            str(threads),
            "-d",
            f"{config.duration_seconds}s",
            "--timeout",
            f"{config.timeout_seconds}s",
        ]
        if config.latency_stats:
            args.append("--latency")
        args.append(url)
        return args

    def parse(self, output: str) -> ParsedOutput:
        """wrk の出力をパースする."""
        return self._parser.parse(output)


class AutocannonLoadDriver(LoadDriver):
    """autocannon の JSON 出力ベースの計測."""

    tool_name = "autocannon"

    def build_command(self, url: str, config: BenchmarkConfig) -> List[str]:
        """autocannon の引数を構築する."""
        return [
            "--json",
            "-c",
            str(config.connections),
            "-d",
            str(config.duration_seconds),
            "-p",
            str(config.pipelining),
            "-t",
            str(config.timeout_seconds),
            url,
        ]

    def parse(self, output: str) -> ParsedOutput:
        """autocannon の出力をパースする."""
        return parse_autocannon_output(output)


_DRIVERS: Dict[str, Type[LoadDriver]] = {
    "wrk": WrkLoadDriver,
    "autocannon": AutocannonLoadDriver,
}


def create_load_driver(tool: str, executable: Optional[str] = None) -> LoadDriver:
    """ツール名から LoadDriver を生成する.

    Args:
        tool: `wrk` または `autocannon`.
        executable: 実行ファイルの明示パス.

    Returns:
        対応する LoadDriver.

    Raises:
        ValueError: 未対応ツールの場合.
    """
    driver_cls = _DRIVERS.get(tool)
    if driver_cls is None:
        raise ValueError(f"未対応の負荷ツールです: {tool}")
    return driver_cls(executable)
