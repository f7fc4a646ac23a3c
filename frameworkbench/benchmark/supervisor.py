"""フレームワークサーバーのプロセス管理.

起動, ヘルスチェック, SIGTERM から SIGKILL への段階的な停止を扱う.
"""

from __future__ import annotations

import atexit
import logging
import os
import re
import shutil
import signal
import socket
import subprocess
import time
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import IO, Any, Callable, Dict, List, Optional

import requests

from frameworkbench.benchmark.errors import SpawnError
from frameworkbench.benchmark.models import Setup
from frameworkbench.benchmark.utils import LOGGER_NAME, tail_text
from frameworkbench.config.sub_configs import HealthCheckConfig

LOGGER = logging.getLogger(LOGGER_NAME)

_KILL_WAIT_SECONDS = 5.0


class ServerState(Enum):
    """サーバープロセスの状態."""

    RUNNING = "running"
    GRACE_PERIOD = "grace_period"
    FORCE_KILLED = "force_killed"
    EXITED = "exited"


@dataclass
class ServerHandle:
    """起動したサーバープロセスのハンドル.

    `stop` されるまで ProcessSupervisor が排他的に所有する.
    """

    setup: Setup
    process: subprocess.Popen
    log_path: Path
    run_index: int = 1
    state: ServerState = ServerState.RUNNING
    signals_sent: List[str] = field(default_factory=list)
    log_file: Optional[IO[str]] = field(default=None, repr=False)

    @property
    def pid(self) -> int:
        """プロセスID."""
        return self.process.pid

    @property
    def is_alive(self) -> bool:
        """プロセスがまだ終了していないかどうか."""
        return self.process.poll() is None

    def output_tail(self, max_chars: int = 800) -> str:
        """サーバー出力の末尾を返す.

        Args:
            max_chars: 返す最大文字数.

        Returns:
            ログファイル末尾の文字列. 未作成なら空文字.
        """
        if self.log_file is not None and not self.log_file.closed:
            self.log_file.flush()
        if not self.log_path.exists():
            return ""
        text = self.log_path.read_text(encoding="utf-8", errors="replace")
        return tail_text(text, max_chars)

    def close_log(self) -> None:
        """ログファイルを閉じる."""
        if self.log_file is not None and not self.log_file.closed:
            self.log_file.close()


def port_in_use(port: int, host: str = "127.0.0.1") -> bool:
    """ポートで既に何かが待ち受けているかどうか."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.settimeout(0.1)
        return sock.connect_ex((host, port)) == 0


def _log_file_stem(name: str) -> str:
    """セットアップ名をファイル名向けに変換する."""
    return re.sub(r"[^a-z0-9]+", "_", name.lower()).strip("_") or "server"


class ProcessSupervisor:
    """サーバープロセスの起動と停止を管理する.

    Args:
        servers_dir: サーバースクリプトを置いたディレクトリ. プロセスの cwd になる.
        log_dir: サーバー出力を保存するディレクトリ.
        health_check: ヘルスチェック設定.
        sleep: 待機関数. テストで差し替える.
        extra_env: 追加で注入する環境変数.
    """

    def __init__(
        self,
        servers_dir: Path,
        log_dir: Path,
        health_check: Optional[HealthCheckConfig] = None,
        sleep: Callable[[float], None] = time.sleep,
        extra_env: Optional[Dict[str, str]] = None,
    ) -> None:
        """ProcessSupervisorを初期化."""
        self.servers_dir = Path(servers_dir)
        self.log_dir = Path(log_dir)
        self.health_check = health_check or HealthCheckConfig()
        self._sleep = sleep
        self._extra_env = dict(extra_env or {})
        self._handles: List[ServerHandle] = []
        self._hooks_installed = False

    @property
    def active_handles(self) -> List[ServerHandle]:
        """停止していないハンドル一覧."""
        return [h for h in self._handles if h.state is not ServerState.EXITED]

    def start(self, setup: Setup, run_index: int = 1) -> ServerHandle:
        """サーバーを起動する.

        Args:
            setup: 起動対象.
            run_index: ログファイル名に使う run 番号.

        Returns:
            起動したプロセスのハンドル.

        Raises:
            SpawnError: ランタイムが見つからないか, ポートが使用中か,
                プロセスを作成できない場合.
        """
        runtime_path = shutil.which(setup.runtime)
        if runtime_path is None:
            raise SpawnError(f"ランタイムが PATH に見つかりません: {setup.runtime}")
        if port_in_use(setup.port):
            raise SpawnError(
                f"ポート {setup.port} は既に使用されています: {setup.name}"
            )

        env = os.environ.copy()
        env.update(self._extra_env)
        env["NODE_ENV"] = "production"
        env["PORT"] = str(setup.port)

        log_path = self.log_dir / f"{_log_file_stem(setup.name)}_run{run_index:03d}.log"
        log_path.parent.mkdir(parents=True, exist_ok=True)
        log_file = open(log_path, "w", encoding="utf-8", errors="replace")
        command = [runtime_path, setup.script]
        try:
            process = subprocess.Popen(
                command,
                stdout=log_file,
                stderr=subprocess.STDOUT,
                cwd=str(self.servers_dir),
                env=env,
                start_new_session=os.name == "posix",
            )
        except OSError as exc:
            log_file.close()
            raise SpawnError(
                f"サーバーを起動できませんでした: {' '.join(command)}: {exc}"
            ) from exc

        handle = ServerHandle(
            setup=setup,
            process=process,
            log_path=log_path,
            run_index=run_index,
            log_file=log_file,
        )
        self._handles.append(handle)
        LOGGER.debug(
            "サーバーを起動しました: %s pid=%s port=%s log=%s",
            setup.name,
            process.pid,
            setup.port,
            log_path,
        )
        return handle

    def wait_healthy(
        self,
        handle: ServerHandle,
        port: Optional[int] = None,
        endpoint: Optional[str] = None,
        max_attempts: Optional[int] = None,
        poll_interval: Optional[float] = None,
    ) -> bool:
        """ヘルスエンドポイントが 2xx を返すまで一定間隔でポーリングする.

        Args:
            handle: 対象プロセスのハンドル.
            port: ポート番号. None ならセットアップの値.
            endpoint: パス. None ならセットアップの値.
            max_attempts: 最大試行回数. None なら設定値.
            poll_interval: 試行間隔 (秒). None なら設定値.

        Returns:
            応答を確認できた場合 True. 試行を使い切るかプロセスが終了した場合 False.
        """
        port = handle.setup.port if port is None else port
        endpoint = handle.setup.endpoint if endpoint is None else endpoint
        if not endpoint.startswith("/"):
            endpoint = f"/{endpoint}"
        attempts = self.health_check.max_attempts if max_attempts is None else max_attempts
        interval = (
            self.health_check.poll_interval_seconds if poll_interval is None else poll_interval
        )
        url = f"http://localhost:{port}{endpoint}"

        for attempt in range(1, attempts + 1):
            if not handle.is_alive:
                LOGGER.warning(
                    "ヘルスチェック前にサーバーが終了しました: %s port=%s exit=%s",
                    handle.setup.name,
                    port,
                    handle.process.returncode,
                )
                return False
            try:
                response = requests.get(
                    url, timeout=self.health_check.request_timeout_seconds
                )
                if 200 <= response.status_code < 300:
                    if not handle.is_alive:
                        # 応答したのは別プロセス
                        LOGGER.warning(
                            "応答後にサーバーの終了を検出しました: %s port=%s exit=%s",
                            handle.setup.name,
                            port,
                            handle.process.returncode,
                        )
                        return False
                    LOGGER.debug("ヘルスチェック成功: %s attempt=%s", url, attempt)
                    return True
                LOGGER.debug("ヘルスチェック応答 %s: %s", response.status_code, url)
            except requests.RequestException as exc:
                LOGGER.debug("ヘルスチェック失敗 attempt=%s/%s: %s", attempt, attempts, exc)
            if attempt < attempts:
                self._sleep(interval)
        return False

    def stop(self, handle: ServerHandle, grace_period_ms: int = 1000) -> None:
        """サーバーを停止する.

        SIGTERM を送って猶予期間だけ待ち, 終了しなければ SIGKILL を送る.
        停止済みのハンドルに対しては何もしない.
        SIGKILL 後も回収できなければ FORCE_KILLED のまま残し, kill_all に任せる.

        Args:
            handle: 対象プロセスのハンドル.
            grace_period_ms: SIGTERM から SIGKILL までの猶予 (ミリ秒).
        """
        if handle.state is ServerState.EXITED:
            return

        if handle.is_alive:
            handle.state = ServerState.GRACE_PERIOD
            self._send_signal(handle, "SIGTERM")
            try:
                handle.process.wait(timeout=grace_period_ms / 1000.0)
            except subprocess.TimeoutExpired:
                LOGGER.warning(
                    "猶予期間内に終了しないため強制終了します: %s pid=%s",
                    handle.setup.name,
                    handle.pid,
                )
                handle.state = ServerState.FORCE_KILLED
                self._send_signal(handle, "SIGKILL")
                try:
                    handle.process.wait(timeout=_KILL_WAIT_SECONDS)
                except subprocess.TimeoutExpired:
                    LOGGER.error("プロセスを回収できませんでした: pid=%s", handle.pid)
                    return

        self._mark_exited(handle)

    def kill_all(self) -> None:
        """停止していない全プロセスを強制終了する."""
        for handle in self.active_handles:
            if handle.is_alive:
                handle.state = ServerState.FORCE_KILLED
                self._send_signal(handle, "SIGKILL")
                try:
                    handle.process.wait(timeout=_KILL_WAIT_SECONDS)
                except subprocess.TimeoutExpired:
                    LOGGER.error("プロセスを回収できませんでした: pid=%s", handle.pid)
                    continue
            self._mark_exited(handle)

    def install_cleanup_hooks(self) -> None:
        """終了時と SIGTERM / SIGINT 受信時に子プロセスを片付けるフックを登録する.

        メインスレッドから呼び出すこと.
        """
        if self._hooks_installed:
            return
        atexit.register(self.kill_all)
        signal.signal(signal.SIGTERM, self._handle_signal)
        signal.signal(signal.SIGINT, self._handle_signal)
        self._hooks_installed = True

    def _handle_signal(self, signum: int, frame: Any) -> None:
        LOGGER.warning("シグナル %s を受信したため起動中のサーバーを停止します", signum)
        self.kill_all()
        if signum == signal.SIGINT:
            raise KeyboardInterrupt
        raise SystemExit(128 + signum)

    def _mark_exited(self, handle: ServerHandle) -> None:
        handle.state = ServerState.EXITED
        handle.close_log()
        if handle in self._handles:
            self._handles.remove(handle)

    def _send_signal(self, handle: ServerHandle, name: str) -> None:
        """プロセスグループへシグナルを送る. Windows では terminate/kill を使う."""
        handle.signals_sent.append(name)
        try:
            if os.name == "posix":
                os.killpg(handle.pid, getattr(signal, name))
            elif name == "SIGKILL":
                handle.process.kill()
            else:
                handle.process.terminate()
        except ProcessLookupError:
            pass
