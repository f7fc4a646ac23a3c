"""ベンチマーク実行時の例外定義."""


class BenchmarkError(RuntimeError):
    """ベンチマーク処理の基底例外."""


class RunError(BenchmarkError):
    """1回の実行 (run) を失敗扱いにする例外.

    集計処理の境界で捕捉され, 失敗した run として記録される.
    """


class SpawnError(RunError):
    """サーバープロセスを起動できなかった."""


class HealthCheckTimeout(RunError):
    """サーバーが試行回数内にヘルスチェックへ応答しなかった."""


class LoadDriverError(RunError):
    """負荷生成ツール自体を実行できなかった."""


class ServerExitedError(RunError):
    """ヘルスチェック後, 計測が終わる前にサーバーが終了した."""


LoadDriverInvocationError = LoadDriverError


class ZeroSuccessfulRuns(BenchmarkError):
    """セットアップの全 run が失敗した."""


class SerializationError(BenchmarkError):
    """結果ファイルの書き出しに失敗した."""
