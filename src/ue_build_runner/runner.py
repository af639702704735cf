"""Build runner: worker context, event queue and caller-visible handle.

Threading model:
- BuildRunner owns one anyio blocking portal, i.e. a worker thread running an
  asyncio loop. Spawning and output pumping happen there.
- Each run pushes events into its own queue.SimpleQueue. The worker only
  puts, the caller only drains through RunHandle.poll(), which never blocks.
- start() waits for the spawn so LaunchError is raised synchronously; the
  pump then continues on the worker.

One run at a time is the caller's contract. The runner does not lock; it only
logs a warning when asked to start while a run is still active.
"""

from __future__ import annotations

import itertools
import logging
import queue
import threading
import time
from contextlib import ExitStack
from typing import Callable

import anyio
from anyio import to_thread
from anyio.from_thread import BlockingPortal, start_blocking_portal

from .errors import StreamReadError
from .parsers import (
    Completed,
    Outcome,
    ProgressEvent,
    ProgressParser,
    RecognizerProfile,
    StageChanged,
    is_terminal,
)
from .reveal import reveal_in_file_browser
from .runtime import CommandSpec, LaunchedProcess, ProcessLauncher

__all__ = [
    "BuildRunner",
    "RunHandle",
]

logger = logging.getLogger(__name__)

_run_ids = itertools.count(1)

PUMP_FAILED_SUMMARY = "Reading the run output failed"


class _Run:
    """Worker-side state of one invocation. Lives on the portal's loop."""

    def __init__(
        self,
        run_id: int,
        spec: CommandSpec,
        profile: RecognizerProfile,
        launcher: ProcessLauncher,
        events: queue.SimpleQueue,
        reveal: bool,
    ) -> None:
        self.run_id = run_id
        self.spec = spec
        self.profile = profile
        self._launcher = launcher
        self._events = events
        self._reveal = reveal
        self._proc: LaunchedProcess | None = None
        self._scope: anyio.CancelScope | None = None
        self.cancel_requested = False
        self.done = threading.Event()

    async def spawn(self) -> None:
        self._scope = anyio.CancelScope()
        self._proc = await self._launcher.launch(self.spec)
        logger.info(
            f"Run {self.run_id} started pid={self._proc.pid} "
            f"profile={self.profile.name}: {self.spec.display()}"
        )

    async def pump(self) -> None:
        """Feed output lines to the parser until EOF, error or cancel."""
        proc = self._proc
        assert proc is not None and self._scope is not None
        parser = ProgressParser(self.profile, self._emit)
        ended = False
        error: str | None = None

        try:
            with self._scope:
                try:
                    async for line in proc.lines():
                        parser.feed(line)
                    await proc.wait()
                except StreamReadError as e:
                    # Same exit path as a normal end of stream
                    logger.warning(f"Run {self.run_id}: {e}")
                ended = True
        except Exception as e:
            logger.exception(f"Run {self.run_id} output pump failed: {e}")
            error = f"{PUMP_FAILED_SUMMARY}: {e}"
        finally:
            with anyio.CancelScope(shield=True):
                if proc.running:
                    await proc.terminate()
                if self.cancel_requested:
                    parser.abort()
                elif ended:
                    parser.finish(exit_code=proc.returncode)
                else:
                    parser.fail(error or PUMP_FAILED_SUMMARY, exit_code=proc.returncode)
                logger.info(
                    f"Run {self.run_id} finished returncode={proc.returncode} "
                    f"lines={parser.line_count}"
                )
                try:
                    if self._reveal_pending(parser.terminal):
                        # Popen forks; keep it off the event loop
                        await to_thread.run_sync(reveal_in_file_browser, self.spec.reveal_dir)
                finally:
                    self.done.set()

    async def cancel(self) -> None:
        if self.done.is_set():
            return
        logger.info(f"Run {self.run_id} cancel requested")
        self.cancel_requested = True
        if self._scope is not None:
            self._scope.cancel()

    def _emit(self, event: ProgressEvent) -> None:
        if isinstance(event, StageChanged):
            logger.info(f"Run {self.run_id} stage: {event.label}")
        elif isinstance(event, Completed):
            logger.info(
                f"Run {self.run_id} completed outcome={event.outcome.value}: {event.summary}"
            )
        self._events.put(event)

    def _reveal_pending(self, result: Completed | None) -> bool:
        return (
            result is not None
            and result.outcome is Outcome.SUCCESS
            and self._reveal
            and self.spec.reveal_dir is not None
        )


class RunHandle:
    """Caller-side handle for one in-flight run.

    Example:
        handle = runner.start(spec, PACKAGE_PROFILE)
        # on every redraw tick:
        for event in handle.poll():
            ui.apply(event)
        if handle.finished:
            ui.enable_buttons()
    """

    def __init__(
        self,
        run_id: int,
        spec: CommandSpec,
        profile: RecognizerProfile,
        events: queue.SimpleQueue,
        cancel: Callable[[], None],
    ) -> None:
        self.run_id = run_id
        self.spec = spec
        self.profile = profile
        self._events = events
        self._cancel = cancel
        self._result: Completed | None = None

    @property
    def finished(self) -> bool:
        """True once the terminal event has been handed to the caller."""
        return self._result is not None

    @property
    def result(self) -> Completed | None:
        return self._result

    def poll(self) -> list[ProgressEvent]:
        """Drain every event available right now. Never blocks."""
        drained: list[ProgressEvent] = []
        while self._result is None:
            try:
                event = self._events.get_nowait()
            except queue.Empty:
                break
            drained.append(event)
            if is_terminal(event):
                self._result = event
        return drained

    def wait(self, timeout: float | None = None) -> list[ProgressEvent]:
        """Block until the terminal event arrives or `timeout` elapses.

        Returns the events received while waiting. Meant for scripts and
        tests; UI loops use poll().
        """
        deadline = None if timeout is None else time.monotonic() + timeout
        received: list[ProgressEvent] = []
        while self._result is None:
            remaining = None if deadline is None else deadline - time.monotonic()
            if remaining is not None and remaining <= 0:
                break
            try:
                event = self._events.get(timeout=remaining)
            except queue.Empty:
                break
            received.append(event)
            if is_terminal(event):
                self._result = event
        return received

    def cancel(self) -> None:
        """Request termination. Returns immediately.

        The run still ends with a Completed(FAILURE) event unless it had
        already completed.
        """
        if self._result is not None:
            return
        self._cancel()

    def __repr__(self) -> str:
        state = self._result.outcome.value if self._result else "running"
        return f"RunHandle(run_id={self.run_id}, profile={self.profile.name}, state={state})"


class BuildRunner:
    """Starts build tool runs on a background worker.

    Example:
        with BuildRunner() as runner:
            handle = runner.start(spec, BUILD_PROFILE)
            while not handle.finished:
                for event in handle.poll():
                    print(event)
                time.sleep(0.1)
    """

    def __init__(
        self,
        launcher: ProcessLauncher | None = None,
        *,
        reveal: bool = True,
    ) -> None:
        self.launcher = launcher or ProcessLauncher()
        self.reveal = reveal
        self._stack = ExitStack()
        self._portal: BlockingPortal | None = None
        self._runs: list[_Run] = []
        self._closed = False

    @property
    def busy(self) -> bool:
        """Whether a run is still in flight on the worker."""
        return any(not run.done.is_set() for run in self._runs)

    def _ensure_portal(self) -> BlockingPortal:
        if self._portal is None:
            self._portal = self._stack.enter_context(start_blocking_portal())
            logger.debug("Worker portal started")
        return self._portal

    def start(self, spec: CommandSpec, profile: RecognizerProfile) -> RunHandle:
        """Launch `spec` and return its handle without waiting for output.

        Raises:
            LaunchError: The process could not be started (no events follow)
            RuntimeError: The runner was closed
        """
        if self._closed:
            raise RuntimeError("BuildRunner is closed")
        self._runs = [run for run in self._runs if not run.done.is_set()]
        if self._runs:
            logger.warning(
                f"Starting a new run while run {self._runs[-1].run_id} is still active"
            )

        # Fail fast on the caller's thread before touching the worker
        self.launcher.validate(spec)

        portal = self._ensure_portal()
        events: queue.SimpleQueue = queue.SimpleQueue()
        run = _Run(next(_run_ids), spec, profile, self.launcher, events, self.reveal)

        portal.call(run.spawn)
        portal.start_task_soon(run.pump, name=f"ubr-run-{run.run_id}")
        self._runs.append(run)

        def cancel() -> None:
            if run.done.is_set() or self._portal is None:
                return
            self._portal.start_task_soon(run.cancel)

        return RunHandle(run.run_id, spec, profile, events, cancel)

    def close(self) -> None:
        """Cancel unfinished runs and stop the worker."""
        if self._closed:
            return
        self._closed = True
        if self._portal is not None:
            for run in self._runs:
                if not run.done.is_set():
                    self._portal.call(run.cancel)
        # Waits for every pump to queue its terminal event
        self._stack.close()
        self._portal = None
        self._runs = []
        logger.debug("Worker portal stopped")

    def __enter__(self) -> "BuildRunner":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()
