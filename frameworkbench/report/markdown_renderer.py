"""レポートの Markdown 描画.

同じ Report からは常に同じ文書を生成する. 時刻は metadata に保存済みの値だけを使う.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from frameworkbench.benchmark.models import AggregatedResult, Report, RuntimeComparison
from frameworkbench.config.matrix_loader import RUNTIME_DISPLAY_NAMES

TITLE = "# Web Framework Benchmark"
SUBTITLE = (
    "Performance comparison of Express, Fastify, and Hono across "
    "Node.js and Bun runtimes"
)

_METHODOLOGY_FIELDS = [
    ("load_tool", "Load generator"),
    ("connections", "Concurrent connections"),
    ("threads", "Threads (wrk)"),
    ("pipelining", "Pipelining factor"),
    ("duration_seconds", "Duration per run (s)"),
    ("runs", "Runs per setup"),
    ("warmup_time_ms", "Warmup (ms)"),
    ("cooldown_time_ms", "Cooldown between runs (ms)"),
    ("timeout_ms", "Request timeout (ms)"),
]


def _fmt_number(value: Optional[float], decimals: int = 2) -> str:
    if value is None:
        return "-"
    return f"{value:,.{decimals}f}"


def _fmt_ms(value: Optional[float]) -> str:
    return "-" if value is None else f"{value:,.2f}ms"


def _fmt_throughput(value: Optional[float]) -> str:
    if value is None:
        return "-"
    return f"{value / 1024 / 1024:,.1f} MB/s"


def _fmt_pct(value: Optional[float]) -> str:
    if value is None:
        return "-"
    return f"{value:+.1f}%"


def _runtime_label(runtime: str) -> str:
    return RUNTIME_DISPLAY_NAMES.get(runtime, runtime)


def _cell(text: Any, max_chars: int = 160) -> str:
    """表のセル向けに改行とパイプを除去する."""
    value = " ".join(str(text).split()).replace("|", "\\|")
    if len(value) > max_chars:
        value = value[: max_chars - 3] + "..."
    return value


def _biggest_improvement(comparisons: List[RuntimeComparison]) -> str:
    if len(comparisons) == 0:
        return "No runtime comparisons available"
    best: Optional[RuntimeComparison] = None
    for comparison in comparisons:
        if comparison.improvement_pct is None or comparison.improvement_pct <= 0:
            continue
        if best is None or comparison.improvement_pct > (best.improvement_pct or 0.0):
            best = comparison
    if best is None:
        return "No runtime improvement detected"
    return (
        f"{best.framework} ({_fmt_pct(best.improvement_pct)} with "
        f"{_runtime_label(best.candidate_runtime)})"
    )


def _render_header(report: Report) -> str:
    ranking = report.rankings.by_requests_per_second
    if ranking:
        leader = f"{ranking[0].name} - **{_fmt_number(ranking[0].value)} req/sec**"
    else:
        leader = "No successful setups"
    return "\n".join(
        [
            TITLE,
            "",
            SUBTITLE,
            "",
            "## Quick Results",
            "",
            f"**Performance leader:** {leader}",
            "",
            f"**Biggest runtime improvement:** {_biggest_improvement(report.comparisons)}",
            "",
            f"**Last updated:** {report.metadata.timestamp}",
        ]
    )


def _render_rankings(report: Report) -> str:
    lines = [
        "## Performance Rankings",
        "",
        "### Requests per Second (higher is better)",
        "",
        "| Rank | Setup | Requests/sec | Std Dev | Relative |",
        "|------|-------|--------------|---------|----------|",
    ]
    rps_ranking = report.rankings.by_requests_per_second
    top = rps_ranking[0].value if rps_ranking else 0.0
    for entry in rps_ranking:
        relative = f"{entry.value / top * 100:.1f}%" if top > 0 else "-"
        lines.append(
            f"| {entry.rank} | **{entry.name}** | {_fmt_number(entry.value)} | "
            f"±{_fmt_number(entry.std_dev)} | {relative} |"
        )

    by_name: Dict[str, AggregatedResult] = {r.setup.name: r for r in report.results}
    lines += [
        "",
        "### Latency (lower is better)",
        "",
        "| Rank | Setup | Avg Latency | Std Dev | P95 Latency | P99 Latency |",
        "|------|-------|-------------|---------|-------------|-------------|",
    ]
    for entry in report.rankings.by_latency:
        result = by_name.get(entry.name)
        p95 = result.latency.p95 if result else None
        p99 = result.latency.p99 if result else None
        lines.append(
            f"| {entry.rank} | **{entry.name}** | {_fmt_ms(entry.value)} | "
            f"±{_fmt_number(entry.std_dev)} | {_fmt_ms(p95)} | {_fmt_ms(p99)} |"
        )
    return "\n".join(lines)


def _render_details(report: Report) -> str:
    lines = [
        "## Detailed Results",
        "",
        "| Framework | Runtime | Req/sec | Latency (avg) | Latency (p50) | "
        "Latency (p90) | Latency (p99) | Throughput | Success Rate | "
        "Total Requests | Runs |",
        "|-----------|---------|---------|---------------|---------------|"
        "---------------|---------------|------------|--------------|"
        "----------------|------|",
    ]
    for result in report.results:
        success_rate = f"{(1.0 - result.error_rate) * 100:.1f}%"
        lines.append(
            f"| **{result.setup.framework}** | {_runtime_label(result.setup.runtime)} | "
            f"{_fmt_number(result.requests_per_second)} | "
            f"{_fmt_ms(result.latency.average)} | {_fmt_ms(result.latency.p50)} | "
            f"{_fmt_ms(result.latency.p90)} | {_fmt_ms(result.latency.p99)} | "
            f"{_fmt_throughput(result.throughput)} | {success_rate} | "
            f"{result.total_requests:,} | {result.runs}/{result.attempted_runs} |"
        )
    return "\n".join(lines)


def _most_consistent_framework(results: List[AggregatedResult]) -> Optional[str]:
    """RPS 標準偏差の平均が最小のフレームワーク名を返す."""
    std_devs: Dict[str, List[float]] = {}
    for result in results:
        std_devs.setdefault(result.setup.framework, []).append(result.std_rps)
    best_name: Optional[str] = None
    best_value = float("inf")
    for framework, values in std_devs.items():
        average = sum(values) / len(values)
        if average < best_value:
            best_name = framework
            best_value = average
    if best_name is None:
        return None
    return f"{best_name} (average std deviation: ±{_fmt_number(best_value)})"


def _render_insights(report: Report) -> str:
    rps_ranking = report.rankings.by_requests_per_second
    if not rps_ranking:
        return ""
    lines = ["### Key Insights", ""]
    lines.append(
        f"- **Highest throughput:** {rps_ranking[0].name} with "
        f"{_fmt_number(rps_ranking[0].value)} requests/second"
    )
    if report.rankings.by_latency:
        fastest = report.rankings.by_latency[0]
        lines.append(
            f"- **Lowest latency:** {fastest.name} with {_fmt_ms(fastest.value)} "
            "average response time"
        )
    consistent = _most_consistent_framework(report.results)
    if consistent:
        lines.append(f"- **Most consistent framework:** {consistent}")
    return "\n".join(lines)


def _render_comparisons(report: Report) -> str:
    if not report.comparisons:
        return ""
    first = report.comparisons[0]
    baseline = _runtime_label(first.baseline_runtime)
    candidate = _runtime_label(first.candidate_runtime)
    lines = [
        "## Runtime Comparisons",
        "",
        f"### {baseline} vs {candidate}",
        "",
        f"| Framework | {baseline} (req/sec) | {candidate} (req/sec) | "
        "Improvement | Latency Impact |",
        "|-----------|------|------|-------------|----------------|",
    ]
    for comparison in report.comparisons:
        lines.append(
            f"| **{comparison.framework}** | {_fmt_number(comparison.baseline_rps)} | "
            f"{_fmt_number(comparison.candidate_rps)} | "
            f"{_fmt_pct(comparison.improvement_pct)} | "
            f"{_fmt_pct(comparison.latency_improvement_pct)} |"
        )
    lines += [
        "",
        "Improvement is `(candidate - baseline) / baseline`. A positive latency "
        "impact means lower latency on the candidate runtime.",
    ]
    return "\n".join(lines)


def _render_failures(report: Report) -> str:
    if not report.failures:
        return ""
    lines = [
        "## Failed Setups",
        "",
        "These setups produced no successful run and are excluded from the rankings.",
        "",
        "| Setup | Port | Error | Attempted Runs | Message |",
        "|-------|------|-------|----------------|---------|",
    ]
    for failure in report.failures:
        lines.append(
            f"| {_cell(failure.setup.name)} | {failure.setup.port} | "
            f"{failure.error_type} | {failure.attempted_runs} | "
            f"{_cell(failure.message)} |"
        )
    return "\n".join(lines)


def _render_methodology(report: Report) -> str:
    config = report.configuration
    lines = ["## Methodology", ""]
    for key, label in _METHODOLOGY_FIELDS:
        if key in config:
            lines.append(f"- **{label}:** {config[key]}")
    lines += [
        "",
        "Each setup is started fresh for every run, checked with an HTTP health "
        "probe, measured, then stopped. Setups run strictly one after another. "
        "Reported values are the mean over successful runs; standard deviations "
        "are population standard deviations.",
    ]
    return "\n".join(lines)


def _render_environment(report: Report) -> str:
    env = report.environment
    if not env:
        return ""
    lines = ["## Test Environment", ""]
    simple_fields = [
        ("label", "Environment"),
        ("os", "OS"),
        ("os_release", "Release"),
        ("arch", "Architecture"),
        ("cpu_model", "CPU"),
        ("cpu_count", "Logical CPUs"),
        ("total_memory_gb", "Memory (GB)"),
        ("python_version", "Python"),
        ("load_tool_version", "Load generator"),
    ]
    for key, label in simple_fields:
        if key in env:
            lines.append(f"- **{label}:** {env[key]}")
    for runtime, version in sorted(env.get("runtime_versions", {}).items()):
        lines.append(f"- **{_runtime_label(runtime)}:** {version}")
    return "\n".join(lines)


def render_markdown(report: Report) -> str:
    """レポート全体を Markdown 文書に変換する.

    Args:
        report: 描画対象.

    Returns:
        末尾改行付きの Markdown 文字列.
    """
    sections = [
        _render_header(report),
        _render_rankings(report),
        _render_details(report),
        _render_insights(report),
        _render_comparisons(report),
        _render_failures(report),
        _render_methodology(report),
        _render_environment(report),
    ]
    return "\n\n".join(section for section in sections if section) + "\n"
