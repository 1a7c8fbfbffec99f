"""Deadline-bounded regex execution in separate worker processes.

``re`` holds the GIL for the whole match, so a runaway pattern cannot be
interrupted from another thread. Each worker process only ever receives a
pattern, flags and text, and is killed and replaced when a search overruns
its deadline. A small pool of workers serves concurrent callers, so one
slow search never eats into the deadline of another.
"""

from __future__ import annotations

import logging
import multiprocessing
import queue
import re
from multiprocessing.connection import Connection
from typing import Any, Optional

from decision_guardian.constants import REGEX_SANDBOX_WORKERS, REGEX_TIMEOUT_SECONDS
from decision_guardian.errors import RegexExecutionError, RegexTimeoutError

logger = logging.getLogger(__name__)

# Spawned workers import the package before they can serve a search.
_STARTUP_TIMEOUT_SECONDS = 30.0


def default_start_method() -> str:
    # Forking a threaded parent can deadlock the child.
    if "forkserver" in multiprocessing.get_all_start_methods():
        return "forkserver"
    return "spawn"


def _sandbox_worker(connection: Connection) -> None:
    connection.send(True)
    while True:
        try:
            request = connection.recv()
        except (EOFError, OSError):
            return
        if request is None:
            return
        pattern, flags, anchored, text = request
        try:
            compiled = re.compile(pattern, flags)
            found = compiled.match(text) if anchored else compiled.search(text)
        except re.error as exc:
            connection.send((False, str(exc)))
            continue
        connection.send((True, found is not None))


class _WorkerSlot:
    """One lazily started worker process and its pipe."""

    def __init__(self, context: Any, name: str) -> None:
        self._context = context
        self._name = name
        self._process: Optional[Any] = None
        self._connection: Optional[Connection] = None

    @property
    def is_running(self) -> bool:
        return self._process is not None and self._process.is_alive()

    def search(self, pattern: str, text: str, flags: int, anchored: bool, timeout: float) -> bool:
        try:
            connection = self._ensure_started()
            connection.send((pattern, flags, anchored, text))
            if not connection.poll(timeout):
                self.stop(graceful=False)
                raise RegexTimeoutError(pattern, timeout)
            ok, value = connection.recv()
        except (EOFError, OSError) as exc:
            self.stop(graceful=False)
            raise RegexExecutionError(pattern, f"sandbox worker died: {exc}") from exc

        if not ok:
            raise RegexExecutionError(pattern, str(value))
        return bool(value)

    def stop(self, graceful: bool) -> None:
        process, connection = self._process, self._connection
        self._process = None
        self._connection = None
        if connection is not None:
            if graceful and process is not None and process.is_alive():
                try:
                    connection.send(None)
                except OSError:
                    pass
            connection.close()
        if process is None:
            return
        if graceful:
            process.join(timeout=1.0)
        if process.is_alive():
            process.kill()
            process.join(timeout=1.0)
        logger.debug("Stopped regex sandbox worker pid=%s", process.pid)

    def _ensure_started(self) -> Connection:
        if self._connection is not None and self.is_running:
            return self._connection
        self.stop(graceful=False)
        parent, child = self._context.Pipe(duplex=True)
        process = self._context.Process(
            target=_sandbox_worker,
            args=(child,),
            name=self._name,
            daemon=True,
        )
        process.start()
        child.close()
        self._process = process
        self._connection = parent
        if not parent.poll(_STARTUP_TIMEOUT_SECONDS):
            self.stop(graceful=False)
            raise OSError("worker did not start")
        parent.recv()
        logger.debug("Started regex sandbox worker pid=%s", process.pid)
        return parent


class RegexSandbox:
    def __init__(
        self,
        timeout_seconds: float = REGEX_TIMEOUT_SECONDS,
        start_method: Optional[str] = None,
        workers: int = REGEX_SANDBOX_WORKERS,
    ) -> None:
        self.timeout_seconds = timeout_seconds
        self._start_method = start_method or default_start_method()
        context = multiprocessing.get_context(self._start_method)
        self._slots = [
            _WorkerSlot(context, name=f"decision-guardian-regex-{number}")
            for number in range(max(1, workers))
        ]
        # Last in, first out keeps warm workers in use.
        self._idle: queue.LifoQueue[_WorkerSlot] = queue.LifoQueue()
        for slot in self._slots:
            self._idle.put(slot)

    def __enter__(self) -> "RegexSandbox":
        return self

    def __exit__(self, *_exc: object) -> None:
        self.close()

    @property
    def start_method(self) -> str:
        return self._start_method

    @property
    def workers(self) -> int:
        return len(self._slots)

    @property
    def is_running(self) -> bool:
        return any(slot.is_running for slot in self._slots)

    def search(self, pattern: str, text: str, flags: int = 0, anchored: bool = False) -> bool:
        """Return whether ``pattern`` occurs in ``text``.

        Raises ``RegexTimeoutError`` when the deadline passes and
        ``RegexExecutionError`` for invalid patterns or a crashed worker.
        The deadline starts once a worker has been handed the search.
        """
        slot = self._idle.get()
        try:
            return slot.search(pattern, text, flags, anchored, self.timeout_seconds)
        finally:
            self._idle.put(slot)

    def close(self) -> None:
        """Stop every worker. The sandbox restarts workers on the next search."""
        taken = [self._idle.get() for _ in self._slots]
        try:
            for slot in taken:
                slot.stop(graceful=True)
        finally:
            for slot in taken:
                self._idle.put(slot)
