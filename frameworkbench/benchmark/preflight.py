"""計測前の環境検証.

ランタイムと負荷ツールの有無, サーバースクリプトとポートの状態を確認し,
各セットアップを1度だけ起動してヘルスチェックに応答するかを試す.
"""

from __future__ import annotations

import logging
import shutil
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, List, Sequence

from frameworkbench.benchmark.errors import SpawnError
from frameworkbench.benchmark.models import Setup
from frameworkbench.benchmark.supervisor import ProcessSupervisor, port_in_use
from frameworkbench.benchmark.utils import LOGGER_NAME
from frameworkbench.config.bench_config import BenchmarkConfig

LOGGER = logging.getLogger(LOGGER_NAME)


@dataclass
class CheckResult:
    """検証1項目の結果."""

    name: str
    passed: bool
    detail: str = ""


def check_executables(runtimes: Iterable[str], load_tool: str) -> List[CheckResult]:
    """ランタイムと負荷ツールが PATH 上にあるかを確認する."""
    results = []
    for name in list(dict.fromkeys(runtimes)) + [load_tool]:
        path = shutil.which(name)
        results.append(
            CheckResult(
                name=f"executable {name}",
                passed=path is not None,
                detail=path or "PATH に見つかりません",
            )
        )
    return results


def check_scripts(setups: Sequence[Setup], servers_dir: Path) -> List[CheckResult]:
    """サーバースクリプトが存在するかを確認する. 同じスクリプトは1度だけ調べる."""
    results = []
    for script in dict.fromkeys(setup.script for setup in setups):
        path = Path(servers_dir) / script
        results.append(
            CheckResult(
                name=f"script {script}",
                passed=path.is_file(),
                detail=str(path) if path.is_file() else f"見つかりません: {path}",
            )
        )
    return results


def check_ports(setups: Sequence[Setup]) -> List[CheckResult]:
    """各セットアップのポートが空いているかを確認する."""
    results = []
    for port in dict.fromkeys(setup.port for setup in setups):
        names = ", ".join(s.name for s in setups if s.port == port)
        in_use = port_in_use(port)
        results.append(
            CheckResult(
                name=f"port {port}",
                passed=not in_use,
                detail=f"使用中 ({names})" if in_use else names,
            )
        )
    return results


def smoke_test(
    setup: Setup, config: BenchmarkConfig, supervisor: ProcessSupervisor
) -> CheckResult:
    """セットアップを1度起動し, ヘルスチェックに応答するかを試して停止する.

    Args:
        setup: 対象セットアップ.
        config: ヘルスチェックと停止の設定.
        supervisor: プロセス管理.

    Returns:
        起動からヘルスチェックまでの結果. 失敗時はサーバー出力の末尾を含む.
    """
    name = f"smoke {setup.name}"
    try:
        handle = supervisor.start(setup, run_index=0)
    except SpawnError as exc:
        return CheckResult(name=name, passed=False, detail=str(exc))

    try:
        healthy = supervisor.wait_healthy(
            handle,
            setup.port,
            setup.endpoint,
            config.health_check.max_attempts,
            config.health_check.poll_interval_seconds,
        )
    finally:
        supervisor.stop(handle, config.grace_period_ms)

    if healthy:
        return CheckResult(name=name, passed=True, detail=setup.url)
    output = handle.output_tail(300)
    detail = f"{setup.url} が応答しませんでした"
    return CheckResult(name=name, passed=False, detail=f"{detail}: {output}" if output else detail)


def run_preflight(
    setups: Sequence[Setup],
    config: BenchmarkConfig,
    supervisor: ProcessSupervisor,
) -> List[CheckResult]:
    """全項目を検証して結果をログへ出力する.

    スモークテストはポートが空いているセットアップだけを対象にする.

    Args:
        setups: 対象セットアップ.
        config: ベンチマーク設定.
        supervisor: プロセス管理.

    Returns:
        検証結果の一覧.
    """
    results = check_executables((s.runtime for s in setups), config.load_tool)
    results.extend(check_scripts(setups, supervisor.servers_dir))
    port_results = check_ports(setups)
    results.extend(port_results)

    ports = dict.fromkeys(s.port for s in setups)
    busy = {port for port, r in zip(ports, port_results) if not r.passed}
    for setup in setups:
        if setup.port in busy:
            continue
        LOGGER.info("起動確認: %s", setup.name)
        results.append(smoke_test(setup, config, supervisor))

    passed = sum(1 for r in results if r.passed)
    width = max(len(r.name) for r in results)
    for result in results:
        status = "OK" if result.passed else "NG"
        log = LOGGER.info if result.passed else LOGGER.error
        log("%s : %s %s", result.name.ljust(width), status, result.detail)
    LOGGER.info("checks passed: %s/%s", passed, len(results))
    return results
