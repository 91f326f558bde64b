#!/usr/bin/env python3
"""
Agent Council Process Management

AgentProcess owns one external command execution end to end: spawn,
incremental capture, per-run timeout, and two-phase cancellation.
"""
from __future__ import annotations

import asyncio
import codecs
import contextlib
import logging
import os
import signal
import time
from typing import Callable, Optional

from errors import ErrorKind
from models import (
    AgentDescriptor, AgentRun, AgentStatus, CouncilEvent, EventKind,
    RunSnapshot, Stage,
)
from utils import write_live

logger = logging.getLogger("council")

# Seconds between SIGTERM and SIGKILL
KILL_GRACE_SECONDS = 3.0
READ_CHUNK_SIZE = 4096
# Minimum seconds between progress events for one run
PROGRESS_INTERVAL = 0.1

EventCallback = Callable[[CouncilEvent], None]

CANCEL_MESSAGES = {
    ErrorKind.KILLED: "Killed by user",
    ErrorKind.ABORTED_BY_SESSION: "Aborted by user",
}


class AgentProcess:
    """One invocation of one agent CLI within one stage."""

    def __init__(
        self,
        descriptor: AgentDescriptor,
        stage: Stage,
        on_event: Optional[EventCallback] = None,
        grace_period: float = KILL_GRACE_SECONDS,
    ):
        self.descriptor = descriptor
        self.run = AgentRun(agent=descriptor.name, stage=stage)
        self._on_event = on_event
        self._grace_period = grace_period
        self._cancel_event = asyncio.Event()
        self._cancel_kind = ErrorKind.KILLED
        self._proc: Optional[asyncio.subprocess.Process] = None
        self._started = False
        self._last_progress = 0.0

    @property
    def name(self) -> str:
        return self.descriptor.name

    @property
    def status(self) -> AgentStatus:
        return self.run.status

    @property
    def is_terminal(self) -> bool:
        return self.run.is_terminal

    def snapshot(self) -> RunSnapshot:
        return self.run.snapshot()

    def cancel(self, kind: ErrorKind = ErrorKind.KILLED) -> bool:
        """Request termination. Returns False if there was nothing to cancel."""
        if self.run.is_terminal or self._cancel_event.is_set():
            return False
        self._cancel_kind = kind
        if not self._started:
            # Never spawned: go straight to killed
            self._finish(AgentStatus.KILLED, CANCEL_MESSAGES[kind], kind)
            return True
        logger.debug(f"{self.name}: cancel requested ({kind.value})")
        self._cancel_event.set()
        return True

    async def start(self, prompt: str, timeout: Optional[float]) -> RunSnapshot:
        """Spawn the agent and wait until the run is terminal.

        Args:
            prompt: Prompt text, sent on stdin or as the trailing argument
            timeout: Seconds from spawn before the run is timed out (None = no limit)

        Returns:
            Terminal snapshot of the run
        """
        if self._started:
            raise RuntimeError(f"{self.name}: process already started")
        self._started = True
        if self.run.is_terminal:
            return self.run.snapshot()

        argv = self.descriptor.argv(prompt)
        via_stdin = self.descriptor.prompt_via_stdin
        try:
            proc = await asyncio.create_subprocess_exec(
                *argv,
                stdin=asyncio.subprocess.PIPE if via_stdin else asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.STDOUT,
                start_new_session=True,
            )
        except OSError as e:
            logger.warning(f"{self.name}: failed to start '{self.descriptor.executable}': {e}")
            self._finish(
                AgentStatus.ERRORED,
                f"Failed to start '{self.descriptor.executable}': {e}",
                ErrorKind.SPAWN_FAILURE,
            )
            return self.run.snapshot()

        self._proc = proc
        self.run.transition(AgentStatus.RUNNING)
        write_live(f"started (pid {proc.pid})", prefix=f"{self.name}: ")
        self._emit(EventKind.RUNNING)

        pump = asyncio.ensure_future(self._pump(proc, prompt if via_stdin else None))
        cancelled = asyncio.ensure_future(self._cancel_event.wait())
        try:
            done, _ = await asyncio.wait(
                {pump, cancelled},
                timeout=timeout if timeout and timeout > 0 else None,
                return_when=asyncio.FIRST_COMPLETED,
            )
        except asyncio.CancelledError:
            # The surrounding task was cancelled (e.g. event loop shutdown)
            await self._terminate(proc)
            await self._drain(pump)
            if not self.run.is_terminal:
                self._finish(AgentStatus.KILLED, CANCEL_MESSAGES[ErrorKind.ABORTED_BY_SESSION],
                             ErrorKind.ABORTED_BY_SESSION)
            raise
        finally:
            cancelled.cancel()

        if pump in done and pump.exception() is not None:
            logger.warning(f"{self.name}: output capture failed: {pump.exception()}")
            await self._terminate(proc)
            self._finish(AgentStatus.ERRORED, f"Output capture failed: {pump.exception()}",
                         ErrorKind.NO_USABLE_OUTPUT)
        elif pump in done:
            self._classify(pump.result())
        else:
            timed_out = not self._cancel_event.is_set()
            await self._terminate(proc)
            await self._drain(pump)
            if timed_out:
                logger.info(f"{self.name}: timed out after {timeout}s")
                self._finish(AgentStatus.TIMED_OUT, f"Timed out after {timeout}s", ErrorKind.TIMEOUT)
            else:
                kind = self._cancel_kind
                self._finish(AgentStatus.KILLED, CANCEL_MESSAGES[kind], kind)
        return self.run.snapshot()

    async def _pump(self, proc: asyncio.subprocess.Process, stdin_text: Optional[str]) -> int:
        """Feed stdin and capture output until the process exits."""
        readers = [self._read_output(proc.stdout)]
        if stdin_text is not None and proc.stdin is not None:
            readers.append(self._feed_stdin(proc.stdin, stdin_text))
        await asyncio.gather(*readers)
        return await proc.wait()

    async def _feed_stdin(self, stdin: asyncio.StreamWriter, text: str) -> None:
        try:
            stdin.write(text.encode("utf-8"))
            await stdin.drain()
            stdin.close()
            await stdin.wait_closed()
        except (BrokenPipeError, ConnectionResetError) as e:
            # Agent exited (or closed stdin) before reading the whole prompt
            logger.debug(f"{self.name}: stdin closed early: {e}")

    async def _read_output(self, stream: asyncio.StreamReader) -> None:
        """Append stdout/stderr chunks to the run buffer as they arrive."""
        decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        while True:
            data = await stream.read(READ_CHUNK_SIZE)
            if not data:
                break
            self._append(decoder.decode(data))
        self._append(decoder.decode(b"", final=True))

    def _append(self, text: str) -> None:
        if not text:
            return
        self.run.append(text)
        for line in text.splitlines():
            write_live(line, prefix=f"{self.name}: ")
        now = time.monotonic()
        if now - self._last_progress >= PROGRESS_INTERVAL:
            self._last_progress = now
            self._emit(EventKind.PROGRESS)

    async def _terminate(self, proc: asyncio.subprocess.Process) -> None:
        """Graceful shutdown: SIGTERM the process group, then SIGKILL after the grace period."""
        if proc.returncode is not None:
            return
        self._signal(proc, signal.SIGTERM)
        try:
            await asyncio.wait_for(proc.wait(), timeout=self._grace_period)
        except asyncio.TimeoutError:
            logger.warning(f"{self.name}: did not exit within {self._grace_period}s, killing")
            self._signal(proc, signal.SIGKILL)
            await proc.wait()

    def _signal(self, proc: asyncio.subprocess.Process, sig: int) -> None:
        try:
            os.killpg(proc.pid, sig)
        except ProcessLookupError:
            pass
        except PermissionError:
            proc.send_signal(sig)

    async def _drain(self, pump: asyncio.Future) -> None:
        """Give the reader a moment to collect buffered output after exit."""
        done, _ = await asyncio.wait({pump}, timeout=self._grace_period)
        if not done:
            # A grandchild is still holding the pipe open
            pump.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await pump
        elif pump.exception() is not None:
            logger.debug(f"{self.name}: output reader failed: {pump.exception()}")

    def _classify(self, returncode: int) -> None:
        output = self.run.output
        if returncode != 0:
            last = output.strip().splitlines()[-1:] if output.strip() else []
            detail = f"Exit code {returncode}"
            if last:
                detail += f": {last[0][:200]}"
            self._finish(AgentStatus.ERRORED, detail, ErrorKind.NON_ZERO_EXIT)
        elif not output.strip():
            self._finish(AgentStatus.ERRORED, "No usable output", ErrorKind.NO_USABLE_OUTPUT)
        else:
            self._finish(AgentStatus.COMPLETED)

    def _finish(
        self,
        status: AgentStatus,
        error: Optional[str] = None,
        kind: Optional[ErrorKind] = None,
    ) -> None:
        self.run.transition(status, error=error, error_kind=kind)
        write_live(f"{status.value}{f' ({error})' if error else ''}", prefix=f"{self.name}: ")
        self._emit(EventKind.TERMINAL)

    def _emit(self, kind: EventKind) -> None:
        if self._on_event is None:
            return
        self._on_event(CouncilEvent(kind=kind, stage=self.run.stage, run=self.run.snapshot()))
