"""フレームワークベンチマークの実行・レポート生成 CLI."""

from __future__ import annotations

import argparse
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

import yaml  # type: ignore[import-untyped]

from frameworkbench.benchmark.environment import collect_environment
from frameworkbench.benchmark.errors import SerializationError
from frameworkbench.benchmark.load_driver import create_load_driver
from frameworkbench.benchmark.models import Setup
from frameworkbench.benchmark.orchestrator import build_report, run_all
from frameworkbench.benchmark.preflight import run_preflight
from frameworkbench.benchmark.supervisor import ProcessSupervisor
from frameworkbench.benchmark.utils import LOGGER_NAME, configure_logger
from frameworkbench.cli.arg_types import name_list, positive_int
from frameworkbench.config import (
    BenchmarkConfig,
    build_setups,
    default_matrix,
    load_matrix_config,
    resolve_benchmark_config,
)
from frameworkbench.report import load_report, log_summary, write_artifacts

LOGGER = logging.getLogger(LOGGER_NAME)
DEFAULT_OUTPUT_DIR = Path("results")
EXIT_INTERRUPTED = 130


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    """CLI 引数を解析する.

    Args:
        argv: 解析対象引数. 省略時は `sys.argv`.

    Returns:
        解析済み引数.
    """
    parser = argparse.ArgumentParser(
        description="Web フレームワーク × ランタイムのベンチマーク実行・レポート生成",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=(
            "使用例:\n"
            "  frameworkbench --quick\n"
            "  frameworkbench --matrix-file configs/bench_matrix.yaml --runs 5\n"
            "  frameworkbench --check\n"
            "  frameworkbench --render-only --input results/benchmark_results.json"
        ),
    )
    parser.add_argument(
        "--matrix-file",
        default=None,
        help="フレームワーク × ランタイムの定義 YAML (省略時は組み込み定義)",
    )
    profile_group = parser.add_mutually_exclusive_group()
    profile_group.add_argument("--profile", default=None, help="適用するプロファイル名")
    profile_group.add_argument(
        "--quick",
        action="store_true",
        help="CI 向けの短縮設定で実行する (--profile quick と同じ)",
    )
    parser.add_argument("--runs", type=positive_int, default=None, help="セットアップごとの run 数")
    parser.add_argument(
        "--duration", type=positive_int, default=None, help="1 run の計測時間 (秒)"
    )
    parser.add_argument(
        "--connections", type=positive_int, default=None, help="同時接続数"
    )
    parser.add_argument(
        "--tool", choices=["wrk", "autocannon"], default=None, help="負荷生成ツール"
    )
    parser.add_argument(
        "--framework",
        type=name_list,
        default=None,
        help="対象フレームワーク (カンマ区切り)",
    )
    parser.add_argument(
        "--runtime",
        type=name_list,
        default=None,
        help="対象ランタイム (カンマ区切り)",
    )
    parser.add_argument("--env-name", default=None, help="結果に記録する環境名")
    parser.add_argument(
        "--output-dir",
        default=str(DEFAULT_OUTPUT_DIR),
        help="結果の出力ディレクトリ",
    )
    parser.add_argument(
        "--readme",
        default=None,
        help="Markdown レポートを書き出す追加パス (例: README.md)",
    )
    mode_group = parser.add_mutually_exclusive_group()
    mode_group.add_argument(
        "--render-only",
        action="store_true",
        help="計測はせず保存済み結果からレポートを再生成する",
    )
    mode_group.add_argument(
        "--check",
        action="store_true",
        help="計測はせず実行環境とサーバーの起動だけを検証する",
    )
    parser.add_argument(
        "--input",
        default=None,
        help="render-only 時の入力 JSON (省略時は <output-dir>/benchmark_results.json)",
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="デバッグログを有効化する",
    )
    parser.add_argument(
        "--no-color",
        action="store_true",
        help="ログを色付けしない",
    )
    return parser.parse_args(argv)


def _collect_overrides(args: argparse.Namespace) -> Dict[str, Any]:
    """CLI 引数から設定の上書き値を取り出す."""
    return {
        "runs": args.runs,
        "duration_seconds": args.duration,
        "connections": args.connections,
        "load_tool": args.tool,
        "env_name": args.env_name,
    }


def _render_only(args: argparse.Namespace) -> int:
    """保存済み結果から派生ビューとレポートを再生成する."""
    output_dir = Path(args.output_dir)
    input_path = Path(args.input) if args.input else output_dir / "benchmark_results.json"
    try:
        stored = load_report(input_path)
    except (OSError, ValueError) as exc:
        LOGGER.error("結果ファイルの読み込みに失敗しました: %s", exc)
        return 1

    configuration = stored.configuration
    report = build_report(
        stored.results,
        stored.failures,
        configuration=configuration,
        environment=stored.environment,
        timestamp=stored.metadata.timestamp,
        load_tool=stored.metadata.load_tool,
        baseline_runtime=configuration.get("baseline_runtime", "node"),
        candidate_runtime=configuration.get("comparison_runtime", "bun"),
        tool_version=stored.metadata.tool_version,
    )
    try:
        paths = write_artifacts(
            report,
            output_dir,
            readme_path=Path(args.readme) if args.readme else None,
            archive=False,
        )
    except SerializationError as exc:
        LOGGER.error("%s", exc)
        return 1

    LOGGER.info("レポートを再生成しました: %s", paths["markdown"])
    return 0


def _check(
    setups: Sequence[Setup], config: BenchmarkConfig, supervisor: ProcessSupervisor
) -> int:
    """実行環境と各サーバーの起動を検証する."""
    try:
        results = run_preflight(setups, config, supervisor)
    except KeyboardInterrupt:
        LOGGER.warning("中断されました. 起動中のサーバーを停止します.")
        return EXIT_INTERRUPTED
    finally:
        supervisor.kill_all()

    if all(result.passed for result in results):
        return 0
    LOGGER.error("検証に失敗した項目があります")
    return 1


def main(argv: Optional[Sequence[str]] = None) -> int:
    """エントリポイント.

    Args:
        argv: 解析対象引数. 省略時は `sys.argv`.

    Returns:
        終了コード. 設定や保存の失敗と --check の検証失敗は 1, 中断は 130.
    """
    args = parse_args(argv)
    configure_logger(args.debug, color=False if args.no_color else None)

    if args.render_only:
        return _render_only(args)

    if args.input:
        LOGGER.error("--input は --render-only と組み合わせて指定してください.")
        return 1

    profile = "quick" if args.quick else args.profile
    try:
        matrix = (
            load_matrix_config(Path(args.matrix_file))
            if args.matrix_file
            else default_matrix()
        )
        config = resolve_benchmark_config(matrix, profile, _collect_overrides(args))
        setups = build_setups(matrix, args.framework, args.runtime)
    except (FileNotFoundError, ValueError, yaml.YAMLError) as exc:
        LOGGER.error("設定の読み込みに失敗しました: %s", exc)
        return 1

    output_dir = Path(args.output_dir)
    supervisor = ProcessSupervisor(
        servers_dir=matrix.servers_dir,
        log_dir=output_dir / "logs",
        health_check=config.health_check,
    )
    supervisor.install_cleanup_hooks()

    if args.check:
        return _check(setups, config, supervisor)

    runtimes: List[str] = list(dict.fromkeys(setup.runtime for setup in setups))
    LOGGER.info(
        "setups=%s runs=%s duration=%ss connections=%s tool=%s",
        len(setups),
        config.runs,
        config.duration_seconds,
        config.connections,
        config.load_tool,
    )

    try:
        driver = create_load_driver(config.load_tool)
        environment = collect_environment(runtimes, config.load_tool, config.env_name)
        report = run_all(setups, config, supervisor, driver, environment)
        paths = write_artifacts(
            report,
            output_dir,
            readme_path=Path(args.readme) if args.readme else None,
        )
    except KeyboardInterrupt:
        LOGGER.warning("中断されました. 起動中のサーバーを停止します.")
        return EXIT_INTERRUPTED
    except SerializationError as exc:
        LOGGER.error("%s", exc)
        return 1
    finally:
        supervisor.kill_all()

    if report.failures:
        LOGGER.warning(
            "%s 件のセットアップで計測値を得られませんでした: %s",
            len(report.failures),
            ", ".join(failure.setup.name for failure in report.failures),
        )
    log_summary(report)
    LOGGER.info("results json: %s", paths["json"])
    LOGGER.info("results csv : %s", paths["csv"])
    LOGGER.info("report      : %s", paths["markdown"])
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
