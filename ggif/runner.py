"""
External command execution for ggif.

Every external tool (ffmpeg, gifski, gsutil, aws) is started through a
:class:`CommandRunner`.  Combined stdout/stderr is captured and logged,
failures are reported as a :class:`CommandResult` rather than raised,
and each run is bounded by an optional timeout.  ``cancel()`` kills the
process in flight so watch mode can shut down without waiting for a
hung tool.
"""

from __future__ import annotations

import logging
import subprocess
import threading
from dataclasses import dataclass
from pathlib import Path

logger = logging.getLogger(__name__)

# Return code used when the process never produced one of its own.
NO_RETURNCODE = -1


@dataclass
class CommandResult:
    """Outcome of a single external command."""
    args: list[str]
    returncode: int = NO_RETURNCODE
    output: str = ""
    timed_out: bool = False
    cancelled: bool = False
    error: str = ""

    @property
    def ok(self) -> bool:
        return self.returncode == 0 and not (self.timed_out or self.cancelled)


class CommandRunner:
    """
    Runs external commands one at a time.

    Parameters
    ----------
    timeout : float
        Seconds a command may run before it is killed (0 = no limit).
    log : logging.Logger, optional
        Logger to report commands and failures to.
    """

    def __init__(self, timeout: float = 0, log: logging.Logger | None = None):
        self._timeout = timeout if timeout and timeout > 0 else None
        self._log = log or logger
        # Re-entrant: cancel() may run in a signal handler on the thread inside run().
        self._lock = threading.RLock()
        self._current: subprocess.Popen | None = None
        self._cancelled = threading.Event()

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    def cancel(self) -> None:
        """Kill the running command and refuse to start new ones."""
        self._cancelled.set()
        with self._lock:
            proc = self._current
        if proc is not None and proc.poll() is None:
            self._log.info("Cancelling %s (pid %d)", proc.args[0], proc.pid)
            proc.kill()

    def run(self, *args: str, cwd: Path | str | None = None) -> CommandResult:
        """Run *args* (in *cwd* if given), wait for it to finish and return the result."""
        result = CommandResult(args=[str(a) for a in args])
        if self._cancelled.is_set():
            result.cancelled = True
            self._log.debug("Not running %s: runner cancelled", result.args[0])
            return result

        self._log.debug("Running: %s", " ".join(result.args))
        try:
            proc = subprocess.Popen(
                result.args,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                stdin=subprocess.DEVNULL,
                cwd=cwd,
            )
        except OSError as exc:
            result.error = str(exc)
            self._log.error("Could not start %s: %s", result.args[0], exc)
            return result

        with self._lock:
            self._current = proc
        try:
            try:
                out, _ = proc.communicate(timeout=self._timeout)
            except subprocess.TimeoutExpired:
                proc.kill()
                out, _ = proc.communicate()
                result.timed_out = True
        finally:
            with self._lock:
                self._current = None

        result.returncode = proc.returncode
        result.output = (out or b"").decode("utf-8", errors="replace")
        result.cancelled = self._cancelled.is_set() and proc.returncode != 0

        if result.output:
            self._log.debug(result.output.rstrip())
        if result.timed_out:
            self._log.error(
                "%s timed out after %ss and was killed", result.args[0], self._timeout
            )
        elif result.cancelled:
            self._log.warning("%s was cancelled", result.args[0])
        elif result.returncode != 0:
            self._log.error(
                "%s exited with status %d", result.args[0], result.returncode
            )
        return result
