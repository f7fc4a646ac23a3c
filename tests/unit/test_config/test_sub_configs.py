"""sub_configs のテスト."""

import pytest

from frameworkbench.config.sub_configs import HealthCheckConfig


class TestHealthCheckConfig:
    """HealthCheckConfig のテスト."""

    def test_default_values(self) -> None:
        """デフォルト値が正しく設定されることを確認する."""
        config = HealthCheckConfig()

        assert config.max_attempts == 20
        assert config.poll_interval_ms == 500
        assert config.request_timeout_ms == 1000
        assert config.poll_interval_seconds == 0.5
        assert config.request_timeout_seconds == 1.0

    def test_from_dict_none_uses_defaults(self) -> None:
        """None 入力でデフォルト値が使われることを確認する."""
        assert HealthCheckConfig.from_dict(None) == HealthCheckConfig()

    def test_from_dict_partial(self) -> None:
        """一部だけ指定した辞書を変換できることを確認する."""
        config = HealthCheckConfig.from_dict({"max_attempts": 5})

        assert config.max_attempts == 5
        assert config.poll_interval_ms == 500

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"max_attempts": 0},
            {"poll_interval_ms": -1},
            {"request_timeout_ms": 0},
        ],
    )
    def test_invalid_values_raise_error(self, kwargs) -> None:
        """範囲外の値でエラーになることを確認する."""
        with pytest.raises(ValueError):
            HealthCheckConfig(**kwargs)
