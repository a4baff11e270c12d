"""Publish trigger.

A small state machine that turns change events into published generations::

    IDLE -> BUILDING -> PUBLISHING -> IDLE
                \\-> FAILED -> IDLE

Change events that arrive while a build is running are coalesced into a
single follow-up build. Failed builds are not retried; the next change event
starts a fresh generation.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from enum import Enum
from pathlib import Path

from quire.core.config import QuireConfig
from quire.core.exceptions import WriteFailureError
from quire.core.ports import MarkdownRenderer
from quire.core.types import BuildFailure, BuildReport, BuildStage, BuildStatus
from quire.features.pipeline import build, make_renderer
from quire.infra.sinks.filesystem import GenerationCounter, GenerationSink

logger = logging.getLogger(__name__)

ReportListener = Callable[[BuildReport], None]


class TriggerState(str, Enum):
    IDLE = "idle"
    BUILDING = "building"
    PUBLISHING = "publishing"
    FAILED = "failed"


class PublishTrigger:
    """Runs builds on change events and promotes successful ones."""

    def __init__(
        self,
        config: QuireConfig,
        *,
        sink: GenerationSink | None = None,
        counter: GenerationCounter | None = None,
        markdown: MarkdownRenderer | None = None,
    ) -> None:
        self.config = config
        paths = config.paths
        self.sink = sink or GenerationSink(paths.abs_state_dir, paths.abs_serve_root, paths.abs_static_dir)
        self.counter = counter or GenerationCounter(paths.abs_state_dir)
        self.markdown = markdown

        self._lock = threading.Lock()
        self._idle = threading.Condition(self._lock)
        self._running = False
        self._pending = False
        self._worker: threading.Thread | None = None
        self._state = TriggerState.IDLE
        self._listeners: list[ReportListener] = []
        self._state_listeners: list[Callable[[TriggerState], None]] = []
        self.last_report: BuildReport | None = None

    # -- Observers -----------------------------------------------------------
    @property
    def state(self) -> TriggerState:
        return self._state

    @property
    def pending(self) -> bool:
        return self._pending

    def add_listener(self, listener: ReportListener) -> None:
        """Register a callable receiving every ``BuildReport``."""
        self._listeners.append(listener)

    def add_state_listener(self, listener: Callable[[TriggerState], None]) -> None:
        self._state_listeners.append(listener)

    # -- Entry points --------------------------------------------------------
    def notify(self, reason: str = "change") -> bool:
        """Handle a change event.

        Starts a build on a worker thread when idle. While a build is running
        the event only sets the pending flag, so any number of events collapse
        into one follow-up build.

        Returns:
            True if a build was started, False if the event was coalesced.

        """
        with self._lock:
            if self._running:
                if not self._pending:
                    logger.info("Build in progress; scheduling one follow-up build (%s)", reason)
                self._pending = True
                return False
            self._running = True
            self._start_worker()
        logger.info("Change event: %s", reason)
        return True

    def run_once(self) -> BuildReport:
        """Build and publish synchronously, waiting for any running build first."""
        with self._idle:
            while self._running:
                self._idle.wait()
            self._running = True
        try:
            return self._run_build()
        except Exception:
            self._set_state(TriggerState.FAILED)
            self._set_state(TriggerState.IDLE)
            raise
        finally:
            self._release()

    def wait_idle(self, timeout: float | None = None) -> bool:
        """Block until no build is running or pending. Returns False on timeout."""
        with self._idle:
            return self._idle.wait_for(lambda: not self._running, timeout=timeout)

    # -- Worker --------------------------------------------------------------
    def _start_worker(self) -> None:
        self._worker = threading.Thread(target=self._drain, name="quire-build", daemon=True)
        self._worker.start()

    def _drain(self) -> None:
        try:
            self._run_build()
        except Exception:
            logger.exception("Build crashed")
            self._set_state(TriggerState.FAILED)
            self._set_state(TriggerState.IDLE)
        finally:
            self._release()

    def _release(self) -> None:
        """Finish a run: start the coalesced follow-up build or go idle."""
        with self._idle:
            if self._pending:
                self._pending = False
                self._start_worker()
                return
            self._running = False
            self._idle.notify_all()

    def _run_build(self) -> BuildReport:
        generation_id = self.counter.next()
        self._set_state(TriggerState.BUILDING)
        logger.info("Building generation %d", generation_id)

        renderer = make_renderer(self.config, assets=self.sink.static_assets(), markdown=self.markdown)
        output = build(self.config, generation_id, renderer=renderer)
        if output.failure is not None:
            return self._fail(generation_id, output.failure)

        try:
            staging = self.sink.write(output)
        except WriteFailureError as exc:
            return self._fail(generation_id, BuildFailure.from_error(BuildStage.WRITE, exc))

        self._set_state(TriggerState.PUBLISHING)
        try:
            published = self.sink.promote(staging)
        except WriteFailureError as exc:
            self.sink.discard(staging)
            return self._fail(generation_id, BuildFailure.from_error(BuildStage.PUBLISH, exc))

        self.sink.prune(self.config.build.keep_generations)
        report = BuildReport(
            generation_id=generation_id,
            status=BuildStatus.SUCCESS,
            page_count=len(output.pages),
            published_path=Path(published),
        )
        self._report(report)
        self._set_state(TriggerState.IDLE)
        return report

    def _fail(self, generation_id: int, failure: BuildFailure) -> BuildReport:
        self._set_state(TriggerState.FAILED)
        report = BuildReport(generation_id=generation_id, status=BuildStatus.FAILED, failure=failure)
        self._report(report)
        self._set_state(TriggerState.IDLE)
        return report

    def _report(self, report: BuildReport) -> None:
        self.last_report = report
        if report.ok:
            logger.info(report.summary())
        else:
            logger.error(report.summary())
        for listener in self._listeners:
            listener(report)

    def _set_state(self, state: TriggerState) -> None:
        self._state = state
        for listener in self._state_listeners:
            listener(state)
