"""Subprocess runner for command-line providers."""
from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Dict, List, Optional
import os
import shutil
import subprocess
import threading
import time
import logging

logger = logging.getLogger(__name__)


@dataclass
class CliResult:
    text: str
    duration_ms: float
    ok: bool
    error: Optional[str] = None
    stderr: Optional[str] = None
    retries: int = 0

    @property
    def diagnostic(self) -> str:
        """Best human-readable failure reason: stderr first, then the error code."""
        return self.stderr or self.error or "unknown error"


def command_available(command: List[str]) -> bool:
    if not command:
        return False
    cmd0 = str(command[0])
    if "/" in cmd0:
        return Path(cmd0).expanduser().exists()
    return shutil.which(cmd0) is not None


class CliClient:
    def __init__(
        self,
        max_retries: int = 0,
        retry_delay: float = 2.0,
        retry_backoff: float = 2.0,
    ):
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self.retry_backoff = retry_backoff

    def run(
        self,
        command: List[str],
        prompt: str,
        prompt_mode: str = "arg",
        stdin_flag: Optional[str] = None,
        timeout_seconds: int = 180,
        cwd: Optional[str] = None,
        env: Optional[Dict[str, str]] = None,
        retries: Optional[int] = None,
    ) -> CliResult:
        if not command:
            return CliResult(text="", duration_ms=0.0, ok=False, error="missing command")

        max_attempts = (retries if retries is not None else self.max_retries) + 1
        last_result: Optional[CliResult] = None
        total_duration = 0.0

        for attempt in range(max_attempts):
            if attempt > 0:
                delay = self.retry_delay * (self.retry_backoff ** (attempt - 1))
                logger.info(f"CLI retry {attempt}/{max_attempts-1} after {delay:.1f}s delay")
                time.sleep(delay)

            result = self._run_once(
                command=command,
                prompt=prompt,
                prompt_mode=prompt_mode,
                stdin_flag=stdin_flag,
                timeout_seconds=timeout_seconds,
                cwd=cwd,
                env=env,
            )
            total_duration += result.duration_ms
            last_result = result

            if result.ok:
                result.retries = attempt
                result.duration_ms = total_duration
                return result

            # Timeouts are not retried
            if result.error == "timeout":
                logger.warning(f"CLI timeout after {timeout_seconds}s, not retrying")
                break

            if not self._is_retryable(result):
                logger.debug(f"CLI error not retryable: {result.error}")
                break

            logger.warning(f"CLI attempt {attempt+1} failed: {result.error}")

        if last_result:
            last_result.retries = max_attempts - 1
            last_result.duration_ms = total_duration
            return last_result

        return CliResult(text="", duration_ms=total_duration, ok=False, error="no attempts made")

    def stream(
        self,
        command: List[str],
        prompt: str,
        sink: Callable[[str], None],
        prompt_mode: str = "arg",
        stdin_flag: Optional[str] = None,
        timeout_seconds: int = 180,
        cwd: Optional[str] = None,
        env: Optional[Dict[str, str]] = None,
    ) -> CliResult:
        """Run a command and hand each completed stdout line to ``sink``.

        Every chunk is ``line + "\\n"``; ``text`` on the result is the
        concatenation of all chunks sent. A non-zero exit still yields
        ``ok=False`` after the partial output has been delivered.
        """
        if not command:
            return CliResult(text="", duration_ms=0.0, ok=False, error="missing command")

        cmd, input_data = self._build_command(command, prompt, prompt_mode, stdin_flag)
        start = time.perf_counter()
        try:
            process = subprocess.Popen(
                cmd,
                stdin=subprocess.PIPE if input_data is not None else subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                text=True,
                errors="replace",
                bufsize=1,
                cwd=cwd,
                env=self._build_env(env),
            )
        except OSError as exc:
            duration = (time.perf_counter() - start) * 1000
            return CliResult(text="", duration_ms=duration, ok=False, error=str(exc))

        stderr_lines: List[str] = []
        drain = threading.Thread(
            target=lambda: stderr_lines.extend(process.stderr),
            daemon=True,
        )
        drain.start()
        if input_data is not None:
            try:
                process.stdin.write(input_data)
                process.stdin.close()
            except BrokenPipeError:
                logger.debug("CLI closed stdin before reading the prompt")

        timed_out = threading.Event()

        def _kill() -> None:
            timed_out.set()
            process.kill()

        watchdog = threading.Timer(timeout_seconds, _kill)
        watchdog.daemon = True
        watchdog.start()

        chunks: List[str] = []
        try:
            for raw in process.stdout:
                chunk = raw.rstrip("\r\n") + "\n"
                chunks.append(chunk)
                sink(chunk)
            process.stdout.close()
            returncode = process.wait()
        finally:
            watchdog.cancel()
            if process.poll() is None:
                process.kill()
                process.wait()
        drain.join(timeout=1.0)

        duration = (time.perf_counter() - start) * 1000
        if timed_out.is_set():
            logger.warning(f"CLI stream timeout after {timeout_seconds}s")
            return CliResult(text="".join(chunks), duration_ms=duration, ok=False, error="timeout")
        ok = returncode == 0
        return CliResult(
            text="".join(chunks),
            duration_ms=duration,
            ok=ok,
            error=None if ok else f"exit {returncode}",
            stderr="".join(stderr_lines).strip() or None,
        )

    def _build_command(
        self,
        command: List[str],
        prompt: str,
        prompt_mode: str,
        stdin_flag: Optional[str],
    ) -> tuple[List[str], Optional[str]]:
        cmd = [str(part) for part in command]
        if prompt_mode == "stdin":
            if stdin_flag:
                cmd.append(stdin_flag)
            return cmd, prompt
        cmd.append(prompt)
        return cmd, None

    def _build_env(self, env: Optional[Dict[str, str]]) -> Dict[str, str]:
        run_env = os.environ.copy()
        if env:
            run_env.update({str(k): str(v) for k, v in env.items()})
        return run_env

    def _run_once(
        self,
        command: List[str],
        prompt: str,
        prompt_mode: str,
        stdin_flag: Optional[str],
        timeout_seconds: int,
        cwd: Optional[str],
        env: Optional[Dict[str, str]],
    ) -> CliResult:
        cmd, input_data = self._build_command(command, prompt, prompt_mode, stdin_flag)
        start = time.perf_counter()
        try:
            result = subprocess.run(
                cmd,
                input=input_data,
                text=True,
                errors="replace",
                capture_output=True,
                timeout=timeout_seconds,
                cwd=cwd,
                env=self._build_env(env),
            )
            duration = (time.perf_counter() - start) * 1000
            ok = result.returncode == 0
            text = (result.stdout or "").strip()
            return CliResult(
                text=text,
                duration_ms=duration,
                ok=ok,
                error=None if ok else f"exit {result.returncode}",
                stderr=(result.stderr or "").strip() or None,
            )
        except subprocess.TimeoutExpired:
            duration = (time.perf_counter() - start) * 1000
            return CliResult(text="", duration_ms=duration, ok=False, error="timeout")
        except OSError as exc:
            duration = (time.perf_counter() - start) * 1000
            return CliResult(text="", duration_ms=duration, ok=False, error=str(exc))

    def _is_retryable(self, result: CliResult) -> bool:
        """Determine if an error is worth retrying."""
        if result.ok:
            return False

        error = result.error or ""
        stderr = result.stderr or ""

        # Exit codes that are typically transient
        retryable_exits = ["exit 1", "exit 137", "exit 143"]
        if any(code in error for code in retryable_exits):
            permanent_errors = [
                "invalid api key",
                "authentication failed",
                "unauthorized",
                "forbidden",
                "not found",
                "invalid model",
            ]
            stderr_lower = stderr.lower()
            if any(pe in stderr_lower for pe in permanent_errors):
                return False
            return True

        retryable_patterns = [
            "connection refused",
            "connection reset",
            "network unreachable",
            "temporary failure",
            "service unavailable",
            "rate limit",
            "too many requests",
        ]
        combined = (error + " " + stderr).lower()
        return any(pattern in combined for pattern in retryable_patterns)
