"""負荷生成ツールの出力を RunResult へ変換するパーサー.

プロセス起動とは切り離した純粋関数として実装し, 固定テキストで検証できるようにする.
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from frameworkbench.benchmark.models import LatencyStats, RunResult
from frameworkbench.benchmark.utils import to_float, to_int

_TIME_UNIT = r"(us|ms|s|m|h)"

_LATENCY_LINE = re.compile(
    rf"^\s*Latency\s+([\d.]+){_TIME_UNIT}\s+([\d.]+){_TIME_UNIT}\s+([\d.]+){_TIME_UNIT}"
)
_PERCENTILE_LINE = re.compile(rf"^\s*(\d+(?:\.\d+)?)%\s+([\d.]+){_TIME_UNIT}\s*$")
_TOTAL_LINE = re.compile(r"(\d+)\s+requests\s+in\b")
_RPS_LINE = re.compile(r"^\s*Requests/sec:\s+([\d.]+)")
_TRANSFER_LINE = re.compile(r"^\s*Transfer/sec:\s+([\d.]+)\s*(B|KB|MB|GB|TB)\b")
_SOCKET_ERRORS_LINE = re.compile(
    r"Socket errors:\s*connect\s+(\d+),\s*read\s+(\d+),\s*write\s+(\d+),"
    r"\s*timeout\s+(\d+)"
)
_NON_2XX_LINE = re.compile(r"Non-2xx or 3xx responses:\s*(\d+)")

_SIZE_MULTIPLIERS: Dict[str, int] = {
    "B": 1,
    "KB": 1024,
    "MB": 1024**2,
    "GB": 1024**3,
    "TB": 1024**4,
}

_PERCENTILE_FIELDS: Dict[float, str] = {
    50.0: "p50",
    75.0: "p75",
    90.0: "p90",
    95.0: "p95",
    99.0: "p99",
}


def latency_to_ms(value: float, unit: str) -> float:
    """時間表記をミリ秒へ変換する.

    Args:
        value: 数値部分.
        unit: `us`, `ms`, `s`, `m`, `h` のいずれか.

    Returns:
        ミリ秒換算値.

    Raises:
        ValueError: 未対応の単位の場合.
    """
    if unit == "us":
        return value / 1000.0
    if unit == "ms":
        return value
    if unit == "s":
        return value * 1000.0
    if unit == "m":
        return value * 60_000.0
    if unit == "h":
        return value * 3_600_000.0
    raise ValueError(f"未対応の時間単位です: {unit}")


def size_to_bytes(value: float, unit: str) -> float:
    """サイズ表記 (1024 倍単位) をバイトへ変換する.

    Raises:
        ValueError: 未対応の単位の場合.
    """
    if unit not in _SIZE_MULTIPLIERS:
        raise ValueError(f"未対応のサイズ単位です: {unit}")
    return value * _SIZE_MULTIPLIERS[unit]


@dataclass(frozen=True)
class ParsedOutput:
    """パース結果と診断情報."""

    result: RunResult
    ignored_lines: List[str] = field(default_factory=list)
    missing_fields: List[str] = field(default_factory=list)


class WrkOutputParser:
    """wrk のテキスト出力パーサー.

    どのパターンにも一致しない行は診断用に記録するだけで, エラーにはしない.
    """

    REQUIRED_FIELDS = ("requests_per_second", "latency", "throughput", "total_requests")

    def parse(self, output: str) -> ParsedOutput:
        """wrk の出力全体をパースする.

        Args:
            output: wrk の標準出力.

        Returns:
            RunResult と診断情報.
        """
        rps = 0.0
        throughput = 0.0
        total_requests = 0
        errors = 0
        timeouts = 0
        non_2xx = 0
        latency: Dict[str, Optional[float]] = {}
        seen: set[str] = set()
        ignored: List[str] = []

        for line in output.splitlines():
            if not line.strip():
                continue

            match = _LATENCY_LINE.match(line)
            if match:
                latency["average"] = latency_to_ms(float(match.group(1)), match.group(2))
                latency["max"] = latency_to_ms(float(match.group(5)), match.group(6))
                seen.add("latency")
                continue

            match = _PERCENTILE_LINE.match(line)
            if match:
                name = _PERCENTILE_FIELDS.get(float(match.group(1)))
                if name is not None:
                    latency[name] = latency_to_ms(float(match.group(2)), match.group(3))
                continue

            match = _RPS_LINE.match(line)
            if match:
                rps = float(match.group(1))
                seen.add("requests_per_second")
                continue

            match = _TRANSFER_LINE.match(line)
            if match:
                throughput = size_to_bytes(float(match.group(1)), match.group(2))
                seen.add("throughput")
                continue

            match = _SOCKET_ERRORS_LINE.search(line)
            if match:
                errors = sum(int(match.group(i)) for i in (1, 2, 3))
                timeouts = int(match.group(4))
                continue

            match = _NON_2XX_LINE.search(line)
            if match:
                non_2xx = int(match.group(1))
                continue

            match = _TOTAL_LINE.search(line)
            if match:
                total_requests = int(match.group(1))
                seen.add("total_requests")
                continue

            ignored.append(line.strip())

        result = RunResult(
            requests_per_second=rps,
            latency=LatencyStats(**latency),
            throughput=throughput,
            total_requests=total_requests,
            errors=errors,
            timeouts=timeouts,
            non_2xx=non_2xx,
        )
        missing = [name for name in self.REQUIRED_FIELDS if name not in seen]
        return ParsedOutput(result=result, ignored_lines=ignored, missing_fields=missing)


def parse_wrk_output(output: str) -> RunResult:
    """wrk の出力から RunResult を生成する.

    Args:
        output: wrk の標準出力.

    Returns:
        パースした計測値.
    """
    return WrkOutputParser().parse(output).result


def parse_autocannon_output(output: str) -> ParsedOutput:
    """`autocannon --json` の出力をパースする.

    JSON として解釈できない場合は空の計測値を返す.

    Args:
        output: autocannon の標準出力.

    Returns:
        RunResult と診断情報.
    """
    payload: Any = None
    text = output.strip()
    if text:
        # 進捗表示が混ざることがあるので最後の JSON 行を優先する
        candidates = [text] + [ln for ln in reversed(text.splitlines()) if ln.startswith("{")]
        for candidate in candidates:
            try:
                payload = json.loads(candidate)
                break
            except json.JSONDecodeError:
                continue

    if not isinstance(payload, dict):
        return ParsedOutput(
            result=RunResult(),
            ignored_lines=[ln.strip() for ln in text.splitlines() if ln.strip()],
            missing_fields=list(WrkOutputParser.REQUIRED_FIELDS),
        )

    requests_block = payload.get("requests") or {}
    latency_block = payload.get("latency") or {}
    throughput_block = payload.get("throughput") or {}

    result = RunResult(
        requests_per_second=to_float(requests_block.get("average")) or 0.0,
        latency=LatencyStats(
            average=to_float(latency_block.get("average")),
            p50=to_float(latency_block.get("p50")),
            p75=to_float(latency_block.get("p75")),
            p90=to_float(latency_block.get("p90")),
            p95=to_float(latency_block.get("p95")),
            p99=to_float(latency_block.get("p99")),
            max=to_float(latency_block.get("max")),
        ),
        throughput=to_float(throughput_block.get("average")) or 0.0,
        total_requests=to_int(requests_block.get("total")),
        errors=to_int(payload.get("errors")),
        timeouts=to_int(payload.get("timeouts")),
        non_2xx=to_int(payload.get("non2xx")),
    )
    missing = []
    if "average" not in requests_block:
        missing.append("requests_per_second")
    if "average" not in latency_block:
        missing.append("latency")
    if "average" not in throughput_block:
        missing.append("throughput")
    if "total" not in requests_block:
        missing.append("total_requests")
    return ParsedOutput(result=result, missing_fields=missing)
