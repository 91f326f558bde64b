#!/usr/bin/env python3
"""
Agent Council Terminal Input

Reads single key presses from a TTY without blocking the event loop.
"""
from __future__ import annotations

import asyncio
import logging
import os
import sys
import termios
import tty
from typing import IO, Callable, List, Optional

logger = logging.getLogger("council")


class KeyReader:
    """Context manager: cbreak mode on stdin, keys delivered via loop.add_reader.

    Does nothing when stdin is not a TTY (pipes, CI).
    """

    def __init__(
        self,
        callback: Callable[[str], object],
        loop: Optional[asyncio.AbstractEventLoop] = None,
        stream: Optional[IO[str]] = None,
    ):
        self._callback = callback
        self._loop = loop
        self._stream = stream or sys.stdin
        self._fd: Optional[int] = None
        self._saved: Optional[List] = None

    @property
    def active(self) -> bool:
        return self._fd is not None

    def __enter__(self) -> "KeyReader":
        if not self._stream.isatty():
            logger.debug("stdin is not a TTY; keyboard controls disabled")
            return self
        loop = self._loop or asyncio.get_running_loop()
        self._loop = loop
        fd = self._stream.fileno()
        self._saved = termios.tcgetattr(fd)
        tty.setcbreak(fd)
        loop.add_reader(fd, self._on_readable)
        self._fd = fd
        return self

    def __exit__(self, *exc) -> None:
        if self._fd is None:
            return
        self._loop.remove_reader(self._fd)
        termios.tcsetattr(self._fd, termios.TCSADRAIN, self._saved)
        self._fd = None

    def _on_readable(self) -> None:
        data = os.read(self._fd, 64)
        if data:
            self._callback(data.decode("utf-8", errors="ignore"))
