"""Mermaid構文チェッカー（Nodeワーカー経由でmermaid.parseを呼び出す）."""

import asyncio
import json
import logging
import os
import time
from typing import Any, Dict, Optional, Tuple

from mermaid_check.core.config import CheckerConfig
from mermaid_check.models.validation_schemas import ValidationResult
from mermaid_check.validators.mermaid_runtime import (
    INSTALL_HINT,
    MermaidRuntime,
    MermaidSetupError,
)


logger = logging.getLogger(__name__)

# ワーカーの標準出力1行あたりの上限（長いエラーメッセージ対策）
_STREAM_LIMIT = 4 * 1024 * 1024


class MermaidWorkerError(Exception):
    """ワーカーとの通信エラー（validate内で結果に変換される）."""
    pass


class MermaidValidator:
    """
    長時間稼働するNodeワーカーを使ったMermaid構文チェッカー.

    ワーカーはプロセス全体で1つだけ起動し、リクエストはロックで直列化する。
    validate()は例外を送出せず、全ての失敗をValidationResultに変換する。
    """

    def __init__(self, runtime: MermaidRuntime, timeout: float = 30.0, startup_timeout: float = 60.0):
        """
        Args:
            runtime: 解決済みのMermaid実行環境
            timeout: 1回のチェックのタイムアウト秒数
            startup_timeout: ワーカー起動のタイムアウト秒数
        """
        self.runtime = runtime
        self.timeout = timeout
        self.startup_timeout = startup_timeout
        self._process: Optional[asyncio.subprocess.Process] = None
        self._stderr_task: Optional[asyncio.Task] = None
        self._lock = asyncio.Lock()
        self._request_id = 0

    @classmethod
    async def create(cls, config: Optional[CheckerConfig] = None) -> "MermaidValidator":
        """
        実行環境を解決し、ワーカーを起動した状態のバリデータを返す.

        Raises:
            MermaidSetupError: Node.js/mermaid/jsdomが見つからない、またはワーカーが起動できない場合
        """
        config = config or CheckerConfig()
        runtime = await asyncio.to_thread(MermaidRuntime.resolve, config)
        validator = cls(runtime, timeout=config.timeout, startup_timeout=config.startup_timeout)
        try:
            await validator._start_worker()
        except BaseException:
            await validator.close()
            raise
        return validator

    @property
    def mermaid_version(self) -> Optional[str]:
        return self.runtime.mermaid_version

    async def validate(self, code: str) -> ValidationResult:
        """
        Mermaidコードの構文をチェックする.

        Args:
            code: Mermaidダイアグラムコード

        Returns:
            ValidationResult（経過時間はミリ秒）
        """
        async with self._lock:
            start = time.perf_counter()
            try:
                if self._process is None or self._process.returncode is not None:
                    # タイムアウト等で停止したワーカーを再起動する
                    await self._start_worker()
                valid, error = await asyncio.wait_for(self._request(code), timeout=self.timeout)
            except asyncio.TimeoutError:
                logger.warning("Mermaid validation timed out after %s seconds", self.timeout)
                await self._stop_worker()
                valid, error = False, f"Validation timed out after {self.timeout:g} seconds"
            except Exception as e:
                logger.warning("Mermaid worker failed: %s", e)
                await self._stop_worker()
                valid, error = False, f"Validation error: {e}"
            elapsed_time = (time.perf_counter() - start) * 1000

        return ValidationResult(
            valid=valid,
            error=None if valid else error,
            elapsed_time=elapsed_time,
        )

    async def close(self) -> None:
        """ワーカーを停止し、作業ディレクトリを削除する."""
        await self._stop_worker()
        self.runtime.cleanup()

    async def _request(self, code: str) -> Tuple[bool, Optional[str]]:
        self._request_id += 1
        request_id = self._request_id
        payload = json.dumps({"id": request_id, "code": code}) + "\n"
        self._process.stdin.write(payload.encode("utf-8"))
        await self._process.stdin.drain()

        while True:
            message = await self._read_message()
            if message.get("id") != request_id:
                continue
            if message.get("valid"):
                return True, None
            return False, str(message.get("error") or "Unknown mermaid parse error")

    async def _start_worker(self) -> None:
        script = await asyncio.to_thread(self.runtime.prepare)
        try:
            self._process = await asyncio.create_subprocess_exec(
                self.runtime.node,
                str(script),
                stdin=asyncio.subprocess.PIPE,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                cwd=str(script.parent),
                env={**os.environ, "NODE_NO_WARNINGS": "1"},
                limit=_STREAM_LIMIT,
            )
        except OSError as e:
            raise MermaidSetupError(f"Failed to start Node.js ({self.runtime.node}): {e}") from e

        self._stderr_task = asyncio.create_task(self._drain_stderr(self._process.stderr))

        try:
            message = await asyncio.wait_for(self._read_message(), timeout=self.startup_timeout)
        except asyncio.TimeoutError:
            await self._stop_worker()
            raise MermaidSetupError(
                f"Mermaid worker did not start within {self.startup_timeout:g} seconds"
            )
        except MermaidWorkerError as e:
            await self._stop_worker()
            raise MermaidSetupError(f"Mermaid worker exited during startup: {e}") from e

        if "fatal" in message:
            await self._stop_worker()
            raise MermaidSetupError(
                f"Failed to load mermaid/jsdom: {message['fatal']}\n{INSTALL_HINT}"
            )
        logger.debug("Mermaid worker started (pid=%s)", self._process.pid)

    async def _read_message(self) -> Dict[str, Any]:
        """ワーカーの標準出力からJSONメッセージを1つ読む（JSON以外の行は読み飛ばす）."""
        while True:
            line = await self._process.stdout.readline()
            if not line:
                raise MermaidWorkerError("Mermaid worker exited unexpectedly")
            try:
                message = json.loads(line.decode("utf-8"))
            except ValueError:
                logger.debug("Ignoring non-JSON worker output: %r", line[:200])
                continue
            if isinstance(message, dict):
                return message

    async def _drain_stderr(self, stream: asyncio.StreamReader) -> None:
        while True:
            line = await stream.readline()
            if not line:
                return
            logger.debug("[mermaid worker] %s", line.decode("utf-8", errors="replace").rstrip())

    async def _stop_worker(self) -> None:
        process, self._process = self._process, None
        if process is not None and process.returncode is None:
            if process.stdin is not None:
                process.stdin.close()
            try:
                process.kill()
            except ProcessLookupError:
                pass
            await process.wait()

        task, self._stderr_task = self._stderr_task, None
        if task is not None:
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass


# プロセス全体で共有するバリデータ
_shared_validator: Optional[MermaidValidator] = None
_shared_lock: Optional[asyncio.Lock] = None


async def setup_validator(config: Optional[CheckerConfig] = None) -> MermaidValidator:
    """
    プロセス全体で共有するバリデータを返す（初回呼び出し時のみ起動する）.

    Raises:
        MermaidSetupError: 実行環境を準備できない場合（再試行しない）
    """
    global _shared_validator, _shared_lock
    if _shared_validator is not None:
        return _shared_validator
    if _shared_lock is None:
        _shared_lock = asyncio.Lock()
    async with _shared_lock:
        if _shared_validator is None:
            _shared_validator = await MermaidValidator.create(config)
    return _shared_validator


async def shutdown_validator() -> None:
    """共有バリデータを停止する."""
    global _shared_validator, _shared_lock
    validator, _shared_validator = _shared_validator, None
    _shared_lock = None
    if validator is not None:
        await validator.close()
