"""実行環境のスナップショット."""

from __future__ import annotations

import platform
import shutil
import subprocess
from typing import Any, Dict, Optional, Sequence

import psutil

NOT_AVAILABLE = "not available"


def resolve_env_name(configured_env_name: Optional[str] = None) -> str:
    """ベンチマーク結果に出力する環境名を解決する.

    Args:
        configured_env_name: 設定で指定された環境名.

    Returns:
        環境識別文字列 (例: `Linux-x86_64-8cpu`).
    """
    if configured_env_name:
        return configured_env_name
    cpu_count = psutil.cpu_count(logical=True) or 0
    return f"{platform.system()}-{platform.machine()}-{cpu_count}cpu"


def get_tool_version(executable: str, timeout: float = 5.0) -> str:
    """`<executable> --version` の出力1行目を返す.

    wrk は `--version` で非0終了するため終了コードは見ない.

    Args:
        executable: 実行ファイル名.
        timeout: 待機上限 (秒).

    Returns:
        バージョン文字列. 取得できない場合は `not available`.
    """
    binary = shutil.which(executable)
    if binary is None:
        return NOT_AVAILABLE
    try:
        completed = subprocess.run(
            [binary, "--version"],
            capture_output=True,
            text=True,
            encoding="utf-8",
            errors="replace",
            timeout=timeout,
            check=False,
        )
    except (OSError, subprocess.TimeoutExpired):
        return NOT_AVAILABLE
    output = (completed.stdout or completed.stderr or "").strip()
    if not output:
        return NOT_AVAILABLE
    return output.splitlines()[0].strip()


def _cpu_model() -> str:
    model = platform.processor()
    if model:
        return model
    try:
        with open("/proc/cpuinfo", "r", encoding="utf-8") as f:
            for line in f:
                if line.startswith("model name"):
                    return line.split(":", 1)[1].strip()
    except OSError:
        pass
    return platform.machine() or NOT_AVAILABLE


def collect_environment(
    runtimes: Sequence[str],
    load_tool: str,
    env_name: Optional[str] = None,
) -> Dict[str, Any]:
    """OS, CPU, メモリ, 各ランタイムのバージョンを収集する.

    Args:
        runtimes: バージョンを取得するランタイム名.
        load_tool: 使用する負荷ツール名.
        env_name: 明示的な環境名.

    Returns:
        JSON出力可能な環境情報.
    """
    memory = psutil.virtual_memory()
    return {
        "label": resolve_env_name(env_name),
        "os": platform.system(),
        "os_release": platform.release(),
        "arch": platform.machine(),
        "hostname": platform.node(),
        "cpu_model": _cpu_model(),
        "cpu_count": psutil.cpu_count(logical=True),
        "total_memory_gb": round(memory.total / 1024**3, 2),
        "available_memory_gb": round(memory.available / 1024**3, 2),
        "python_version": platform.python_version(),
        "runtime_versions": {runtime: get_tool_version(runtime) for runtime in runtimes},
        "load_tool": load_tool,
        "load_tool_version": get_tool_version(load_tool),
    }
