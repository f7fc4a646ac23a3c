"""負荷ツール出力パーサーのテスト."""

import json

import pytest

from frameworkbench.benchmark.output_parsers import (
    WrkOutputParser,
    latency_to_ms,
    parse_autocannon_output,
    parse_wrk_output,
    size_to_bytes,
)


class TestWrkOutputParser:
    """wrk テキスト出力のパーステスト."""

    def test_parses_summary_values(self, wrk_output):
        """RPS, 転送量, パーセンタイル, 総リクエスト数を取り出す."""
        result = parse_wrk_output(wrk_output)

        assert result.requests_per_second == 12345.67
        assert result.throughput == 1572864
        assert result.latency.p50 == 1.20
        assert result.latency.p90 == 3.40
        assert result.latency.p99 == 9.90
        assert result.total_requests == 1000

    def test_parses_latency_line(self, wrk_output):
        """Latency 行の平均と最大をミリ秒で取り出す."""
        result = parse_wrk_output(wrk_output)

        assert result.latency.average == 2.10
        assert result.latency.max == 45.30
        assert result.latency.p75 == 2.00

    def test_unreported_percentile_stays_none(self, wrk_output):
        """wrk が出力しない p95 は None のまま."""
        assert parse_wrk_output(wrk_output).latency.p95 is None

    def test_socket_errors_are_split(self, wrk_output):
        """connect/read/write はエラー, timeout はタイムアウトとして数える."""
        result = parse_wrk_output(wrk_output)

        assert result.errors == 6
        assert result.timeouts == 4
        assert result.non_2xx == 5
        assert result.failed_requests == 15

    def test_unmatched_lines_are_reported_not_raised(self, wrk_output):
        """どのパターンにも一致しない行は診断用に記録される."""
        parsed = WrkOutputParser().parse(wrk_output)

        assert "Running 10s test @ http://localhost:3000/" in parsed.ignored_lines
        assert "Latency Distribution" in parsed.ignored_lines
        assert parsed.missing_fields == []

    def test_connection_refused_output_yields_zero_result(self):
        """接続拒否時の出力は例外にならず0件の結果になる."""
        output = (
            "Running 10s test @ http://localhost:3999/\n"
            "  2 threads and 10 connections\n"
            "unable to connect to localhost:3999 Connection refused\n"
        )
        parsed = WrkOutputParser().parse(output)

        assert parsed.result.requests_per_second == 0.0
        assert parsed.result.total_requests == 0
        assert parsed.result.latency.average is None
        assert "requests_per_second" in parsed.missing_fields

    def test_empty_output(self):
        """空出力でもすべての項目が欠落として報告される."""
        parsed = WrkOutputParser().parse("")

        assert parsed.ignored_lines == []
        assert set(parsed.missing_fields) == set(WrkOutputParser.REQUIRED_FIELDS)

    def test_microsecond_percentiles(self):
        """マイクロ秒表記のパーセンタイルもミリ秒に変換される."""
        output = "     50%  850.00us\n     99%    1.50s\n"
        result = parse_wrk_output(output)

        assert result.latency.p50 == pytest.approx(0.85)
        assert result.latency.p99 == 1500.0


class TestUnitConversion:
    """単位変換のテスト."""

    def test_microseconds_equal_milliseconds(self):
        """850us と 0.85ms は同じ値になる."""
        assert latency_to_ms(850.0, "us") == latency_to_ms(0.85, "ms") == 0.85

    @pytest.mark.parametrize(
        "value, unit, expected",
        [
            (1.5, "s", 1500.0),
            (2.0, "m", 120000.0),
            (1.0, "h", 3600000.0),
        ],
    )
    def test_larger_time_units(self, value, unit, expected):
        """秒, 分, 時間をミリ秒に変換する."""
        assert latency_to_ms(value, unit) == expected

    @pytest.mark.parametrize(
        "value, unit, expected",
        [
            (512.0, "B", 512),
            (1.0, "KB", 1024),
            (1.5, "MB", 1572864),
            (2.0, "GB", 2 * 1024**3),
        ],
    )
    def test_size_units_are_binary(self, value, unit, expected):
        """サイズは1024倍単位でバイトに変換する."""
        assert size_to_bytes(value, unit) == expected

    def test_unknown_units_raise(self):
        """未対応の単位は ValueError."""
        with pytest.raises(ValueError):
            latency_to_ms(1.0, "ns")
        with pytest.raises(ValueError):
            size_to_bytes(1.0, "PB")


class TestAutocannonParser:
    """autocannon --json 出力のパーステスト."""

    @staticmethod
    def _payload():
        return {
            "requests": {"average": 15234.5, "total": 152345},
            "latency": {
                "average": 6.12,
                "p50": 5.0,
                "p75": 7.0,
                "p90": 9.0,
                "p97_5": 12.0,
                "p99": 15.0,
                "max": 80.0,
            },
            "throughput": {"average": 2048000.0},
            "errors": 2,
            "timeouts": 1,
            "non2xx": 3,
        }

    def test_parses_json_document(self):
        """主要な値を RunResult へ写す."""
        parsed = parse_autocannon_output(json.dumps(self._payload()))
        result = parsed.result

        assert result.requests_per_second == 15234.5
        assert result.total_requests == 152345
        assert result.latency.average == 6.12
        assert result.latency.p90 == 9.0
        assert result.latency.p99 == 15.0
        assert result.latency.max == 80.0
        assert result.throughput == 2048000.0
        assert result.errors == 2
        assert result.timeouts == 1
        assert result.non_2xx == 3
        assert parsed.missing_fields == []

    def test_p95_is_not_substituted(self):
        """p95 が無い場合に別のパーセンタイルで代用しない."""
        parsed = parse_autocannon_output(json.dumps(self._payload()))
        assert parsed.result.latency.p95 is None

    def test_json_after_progress_lines(self):
        """進捗表示の後ろにある JSON 行を読む."""
        output = "Running 10s test @ http://localhost:3000\n" + json.dumps(self._payload())
        parsed = parse_autocannon_output(output)

        assert parsed.result.requests_per_second == 15234.5

    def test_non_json_output_yields_empty_result(self):
        """JSON でない出力は空の結果."""
        parsed = parse_autocannon_output("connect ECONNREFUSED 127.0.0.1:3000")

        assert parsed.result.requests_per_second == 0.0
        assert parsed.result.total_requests == 0
        assert parsed.ignored_lines == ["connect ECONNREFUSED 127.0.0.1:3000"]
