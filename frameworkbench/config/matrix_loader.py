"""ベンチマーク対象マトリクス (framework × runtime) の読み込み."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

import yaml  # type: ignore[import-untyped]

from frameworkbench.benchmark.models import Setup

from .bench_config import QUICK_PROFILE, BenchmarkConfig

RUNTIME_DISPLAY_NAMES: Dict[str, str] = {
    "node": "Node.js",
    "bun": "Bun",
}


@dataclass(frozen=True)
class FrameworkSpec:
    """フレームワークサーバーの定義."""

    name: str
    framework: str
    script: str
    port: int
    endpoint: str = "/"


@dataclass(frozen=True)
class MatrixConfig:
    """ベンチマーク対象マトリクスの設定."""

    frameworks: List[FrameworkSpec]
    runtimes: List[str]
    servers_dir: Path = Path(".")
    benchmark: Dict[str, Any] = field(default_factory=dict)
    profiles: Dict[str, Dict[str, Any]] = field(default_factory=dict)


def default_matrix() -> MatrixConfig:
    """組み込みのマトリクス (Express / Fastify / Hono × node / bun) を返す.

    Returns:
        既定のマトリクス設定.
    """
    return MatrixConfig(
        frameworks=[
            FrameworkSpec("Express", "express", "express_server.js", 3000),
            FrameworkSpec("Fastify", "fastify", "fastify_server.js", 3001),
            FrameworkSpec("Hono", "hono", "hono_server.js", 3002),
        ],
        runtimes=["node", "bun"],
    )


def _require_non_empty_str(value: Any, field_name: str) -> str:
    """必須文字列を検証する.

    Args:
        value: 検証対象値.
        field_name: エラー表示用フィールド名.

    Returns:
        検証済み文字列.

    Raises:
        ValueError: 文字列でないか空文字の場合.
    """
    if not isinstance(value, str) or not value.strip():
        raise ValueError(f"{field_name} は空でない文字列である必要があります.")
    return value.strip()


def _parse_port(value: Any, field_name: str) -> int:
    """ポート番号を検証する.

    Raises:
        ValueError: 1-65535 の整数でない場合.
    """
    if isinstance(value, bool) or not isinstance(value, int) or not 0 < value < 65536:
        raise ValueError(f"{field_name} は 1-65535 の整数である必要があります: {value}")
    return value


def _parse_mapping(value: Any, field_name: str) -> Dict[str, Any]:
    """辞書 (未指定なら空辞書) を検証する."""
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise ValueError(f"{field_name} は辞書である必要があります.")
    return dict(value)


def _parse_runtimes(value: Any, field_name: str) -> List[str]:
    """ランタイム名リストを検証する.

    Args:
        value: 検証対象値. 文字列または文字列リストを受け付ける.
        field_name: エラー表示用フィールド名.

    Returns:
        重複を除いたランタイム名リスト.
    """
    if isinstance(value, str):
        raw_items = [value]
    elif isinstance(value, list):
        raw_items = value
    else:
        raise ValueError(f"{field_name} は文字列または文字列リストである必要があります.")

    parsed: List[str] = []
    for index, item in enumerate(raw_items):
        runtime = _require_non_empty_str(item, f"{field_name}[{index}]").lower()
        if runtime not in parsed:
            parsed.append(runtime)
    if len(parsed) == 0:
        raise ValueError(f"{field_name} は1件以上必要です.")
    return parsed


def _parse_framework(raw: Any, index: int) -> FrameworkSpec:
    """frameworks の1要素を検証する."""
    field_prefix = f"frameworks[{index}]"
    if not isinstance(raw, dict):
        raise ValueError(f"{field_prefix} は辞書である必要があります.")

    name = _require_non_empty_str(raw.get("name"), f"{field_prefix}.name")
    framework = raw.get("framework")
    if framework is None:
        framework = name.lower()
    framework = _require_non_empty_str(framework, f"{field_prefix}.framework").lower()
    return FrameworkSpec(
        name=name,
        framework=framework,
        script=_require_non_empty_str(raw.get("script"), f"{field_prefix}.script"),
        port=_parse_port(raw.get("port"), f"{field_prefix}.port"),
        endpoint=_require_non_empty_str(
            raw.get("endpoint", "/"), f"{field_prefix}.endpoint"
        ),
    )


def load_matrix_config(matrix_file: Path) -> MatrixConfig:
    """マトリクス設定を YAML から読み込む.

    Args:
        matrix_file: マトリクス定義 YAML のパス.

    Returns:
        検証済みマトリクス設定. `servers_dir` は YAML からの相対パスを解決済み.

    Raises:
        FileNotFoundError: ファイルが存在しない場合.
        ValueError: 定義が不正な場合.
    """
    if not matrix_file.exists():
        raise FileNotFoundError(f"マトリクス定義が見つかりません: {matrix_file}")

    with open(matrix_file, "r", encoding="utf-8") as f:
        payload = yaml.safe_load(f)

    if not isinstance(payload, dict):
        raise ValueError("マトリクス定義のルートは辞書である必要があります.")

    raw_frameworks = payload.get("frameworks")
    if not isinstance(raw_frameworks, list) or len(raw_frameworks) == 0:
        raise ValueError("frameworks は1件以上のリストである必要があります.")
    frameworks = [
        _parse_framework(raw, index) for index, raw in enumerate(raw_frameworks, 1)
    ]

    used_ports: Dict[int, str] = {}
    for spec in frameworks:
        if spec.port in used_ports:
            raise ValueError(
                f"ポート {spec.port} が {used_ports[spec.port]} と {spec.name} で"
                "重複しています."
            )
        used_ports[spec.port] = spec.name

    runtimes = _parse_runtimes(payload.get("runtimes", ["node", "bun"]), "runtimes")

    raw_servers_dir = payload.get("servers_dir", ".")
    servers_dir = Path(_require_non_empty_str(raw_servers_dir, "servers_dir"))
    if not servers_dir.is_absolute():
        servers_dir = (matrix_file.parent / servers_dir).resolve()

    raw_profiles = _parse_mapping(payload.get("profiles"), "profiles")
    profiles = {
        str(name): _parse_mapping(values, f"profiles.{name}")
        for name, values in raw_profiles.items()
    }

    return MatrixConfig(
        frameworks=frameworks,
        runtimes=runtimes,
        servers_dir=servers_dir,
        benchmark=_parse_mapping(payload.get("benchmark"), "benchmark"),
        profiles=profiles,
    )


def build_setups(
    matrix: MatrixConfig,
    frameworks: Optional[Sequence[str]] = None,
    runtimes: Optional[Sequence[str]] = None,
) -> List[Setup]:
    """マトリクスから Setup 一覧を生成する.

    フレームワークごとに全ランタイムを並べる順序で返す.

    Args:
        matrix: マトリクス設定.
        frameworks: 対象フレームワークの絞り込み. None なら全件.
        runtimes: 対象ランタイムの絞り込み. None なら全件.

    Returns:
        Setup のリスト.

    Raises:
        ValueError: 絞り込みに未定義の名前が含まれる場合や, 結果が空の場合.
    """
    known_frameworks = {spec.framework for spec in matrix.frameworks}
    framework_filter = {name.lower() for name in frameworks} if frameworks else None
    if framework_filter is not None:
        unknown = sorted(framework_filter - known_frameworks)
        if unknown:
            raise ValueError(f"未定義のフレームワークです: {', '.join(unknown)}")

    runtime_filter = {name.lower() for name in runtimes} if runtimes else None
    if runtime_filter is not None:
        unknown = sorted(runtime_filter - set(matrix.runtimes))
        if unknown:
            raise ValueError(f"未定義のランタイムです: {', '.join(unknown)}")

    setups: List[Setup] = []
    for spec in matrix.frameworks:
        if framework_filter is not None and spec.framework not in framework_filter:
            continue
        for runtime in matrix.runtimes:
            if runtime_filter is not None and runtime not in runtime_filter:
                continue
            display = RUNTIME_DISPLAY_NAMES.get(runtime, runtime)
            setups.append(
                Setup(
                    name=f"{spec.name} on {display}",
                    runtime=runtime,
                    framework=spec.framework,
                    script=spec.script,
                    port=spec.port,
                    endpoint=spec.endpoint,
                )
            )

    if len(setups) == 0:
        raise ValueError("実行対象のセットアップがありません.")
    return setups


def resolve_benchmark_config(
    matrix: MatrixConfig,
    profile: Optional[str] = None,
    overrides: Optional[Dict[str, Any]] = None,
) -> BenchmarkConfig:
    """マトリクスの設定値, プロファイル, 個別上書きを順に適用した設定を返す.

    `profile="quick"` がマトリクスに定義されていない場合は組み込みの短縮設定を使う.

    Args:
        matrix: マトリクス設定.
        profile: 適用するプロファイル名.
        overrides: CLI などからの個別上書き. None の値は無視する.

    Returns:
        検証済みのベンチマーク設定.

    Raises:
        ValueError: 未定義のプロファイルを指定した場合.
        pydantic.ValidationError: 設定値が不正な場合.
    """
    payload: Dict[str, Any] = dict(matrix.benchmark)
    extra = {k: v for k, v in (overrides or {}).items() if v is not None}

    if profile is not None:
        if profile in matrix.profiles:
            payload.update(matrix.profiles[profile])
        elif profile == "quick":
            payload.update(QUICK_PROFILE)
        else:
            raise ValueError(f"未定義のプロファイルです: {profile}")

    payload.update(extra)
    return BenchmarkConfig(**payload)
