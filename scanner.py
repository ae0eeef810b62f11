#!/usr/bin/env python3
"""
Scan Orchestrator for Kenosis

Drives the loaded rules through the walker one after another and reports
everything that happens through signals:

    running_changed(True)
    phase_changed("Starting scan")
    for each rule:
        phase_changed("Scanning <explain>")
        for each finding:
            finding_discovered(finding)
            progress_updated(files_scanned, current_path)
    phase_changed("Scan complete")
    running_changed(False)
    run_finished()

run() is synchronous: every handler returns before the walk moves on.
start_background() runs the same sequence on a worker thread and hands the
events to the caller through a bounded ScanChannel instead.
"""

import logging
import pathlib
import queue
import threading
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Iterator, Optional, Union

from events import (
    FindingDiscovered,
    PhaseChanged,
    ProgressUpdated,
    RunFinished,
    RunningChanged,
    Signal,
)
from rule_parser import ParseResult, ParseStatus, Rule, load_rules_file, parse_rules
from walker import CancelToken, Finding, RuleReport, RuleWalker

logger = logging.getLogger(__name__)

PHASE_STARTING = "Starting scan"
PHASE_RULE_PREFIX = "Scanning "
PHASE_COMPLETE = "Scan complete"
PHASE_CANCELLED = "Scan cancelled"


class ScanError(Exception):
    """Base class for scan errors"""


class ScanAlreadyRunningError(ScanError):
    """Raised when run() is called while a scan is in progress"""


class LoadStatus(Enum):
    OK = "ok"
    EMPTY = "empty"
    MALFORMED = "malformed"
    UNREADABLE = "unreadable"


_PARSE_TO_LOAD = {
    ParseStatus.OK: LoadStatus.OK,
    ParseStatus.EMPTY: LoadStatus.EMPTY,
    ParseStatus.MALFORMED: LoadStatus.MALFORMED,
}


@dataclass
class ScanSession:
    """State of one scan run, created fresh by every run()"""

    scanning: bool = False
    current_phase: str = ""
    files_scanned: int = 0
    current_path: str = ""
    bytes_found: int = 0
    cancelled: bool = False
    started_at: Optional[float] = None
    finished_at: Optional[float] = None
    rule_reports: list[RuleReport] = field(default_factory=list)
    cancel_token: CancelToken = field(default_factory=CancelToken, repr=False)

    @property
    def duration(self) -> float:
        if self.started_at is None:
            return 0.0
        end = self.finished_at if self.finished_at is not None else time.monotonic()
        return end - self.started_at


class ScanOrchestrator:
    """Owns the rule set and runs scans over it"""

    def __init__(self, walker: Optional[RuleWalker] = None):
        self.walker = walker or RuleWalker()
        self._rules: tuple[Rule, ...] = ()
        self._run_lock = threading.Lock()

        self.last_parse: Optional[ParseResult] = None
        self.load_status: Optional[LoadStatus] = None
        self.session = ScanSession()

        self.finding_discovered = Signal("finding_discovered")
        self.progress_updated = Signal("progress_updated")
        self.phase_changed = Signal("phase_changed")
        self.running_changed = Signal("running_changed")
        self.run_finished = Signal("run_finished")

    # -- state ---------------------------------------------------------------

    @property
    def rules(self) -> tuple[Rule, ...]:
        return self._rules

    @property
    def scanning(self) -> bool:
        return self.session.scanning

    @property
    def current_phase(self) -> str:
        return self.session.current_phase

    @property
    def files_scanned(self) -> int:
        return self.session.files_scanned

    @property
    def current_path(self) -> str:
        return self.session.current_path

    # -- rule loading --------------------------------------------------------

    def load_rules(self, path: Union[str, pathlib.Path]) -> bool:
        """Load rules from *path*; the current rules are replaced only on success"""
        try:
            result = load_rules_file(path)
        except (OSError, UnicodeDecodeError) as e:
            logger.warning("Cannot read rules file %s: %s", path, e)
            self.load_status = LoadStatus.UNREADABLE
            return False
        return self._accept(result, str(path))

    def load_rules_text(self, text: str) -> bool:
        """Load rules from a string; the current rules are replaced only on success"""
        return self._accept(parse_rules(text), "<text>")

    def _accept(self, result: ParseResult, source: str) -> bool:
        self.last_parse = result
        self.load_status = _PARSE_TO_LOAD[result.status]
        if not result.ok:
            logger.warning("No rules found in %s (%s)", source, result.status.value)
            return False
        self._rules = result.rules
        logger.debug("Loaded %d rules from %s", len(result.rules), source)
        return True

    # -- scanning ------------------------------------------------------------

    def run(self, cancel: Optional[CancelToken] = None) -> ScanSession:
        """Scan every loaded rule in order and return the finished session

        Raises:
            ScanAlreadyRunningError: If a scan is already in progress
        """
        if not self._run_lock.acquire(blocking=False):
            raise ScanAlreadyRunningError("A scan is already in progress")

        session = ScanSession(cancel_token=cancel or CancelToken())
        self.session = session
        try:
            rules = self._rules
            session.scanning = True
            session.started_at = time.monotonic()
            self.running_changed.emit(True)
            self._set_phase(session, PHASE_STARTING)

            for rule in rules:
                if session.cancel_token.cancelled:
                    break
                self._scan_rule(session, rule)

            session.cancelled = session.cancel_token.cancelled
            session.scanning = False
            session.finished_at = time.monotonic()
            self._set_phase(session, PHASE_CANCELLED if session.cancelled else PHASE_COMPLETE)
            self.running_changed.emit(False)
            self.run_finished.emit()
            logger.debug(
                "Scan finished: %d rules, %d findings, %d bytes in %.2fs",
                len(session.rule_reports),
                session.files_scanned,
                session.bytes_found,
                session.duration,
            )
            return session
        finally:
            # A raising handler must not leave the orchestrator stuck in Running
            session.scanning = False
            self._run_lock.release()

    def cancel(self):
        """Request cancellation of the scan in progress"""
        self.session.cancel_token.cancel()

    def _set_phase(self, session: ScanSession, phase: str):
        session.current_phase = phase
        self.phase_changed.emit(phase)

    def _scan_rule(self, session: ScanSession, rule: Rule):
        self._set_phase(session, PHASE_RULE_PREFIX + rule.explain)
        report = RuleReport(rule=rule, root="")
        session.rule_reports.append(report)

        for finding in self.walker.walk(rule, report, session.cancel_token):
            self.finding_discovered.emit(finding)
            session.files_scanned += 1
            session.current_path = finding.path
            session.bytes_found += finding.bytes
            self.progress_updated.emit(session.files_scanned, session.current_path)

        logger.debug(
            "Rule %s: %s, %d findings, %d skipped entries, %d unreadable directories",
            rule.id,
            report.outcome.value,
            report.matched,
            report.skipped_entries,
            report.denied_subtrees,
        )

    def start_background(self, maxsize: int = 256) -> "ScanChannel":
        """Run a scan on a worker thread and return the channel carrying its events"""
        channel = ScanChannel(self, maxsize=maxsize)
        channel.start()
        return channel


class ScanChannel:
    """Bounded queue of scan events filled by a background run()

    The worker blocks while the queue is full. Once cancelled it drops
    finding and progress events it cannot deliver right away, and gives the
    closing events closing_grace seconds before dropping them too. A
    cancelled channel that nobody reads still lets its worker finish and
    release the orchestrator.
    """

    poll_interval = 0.05
    closing_grace = 1.0

    def __init__(self, orchestrator: ScanOrchestrator, maxsize: int = 256):
        if maxsize < 1:
            raise ValueError("Channel size must be at least 1")
        self.orchestrator = orchestrator
        self.cancel_token = CancelToken()
        self.session: Optional[ScanSession] = None
        self.error: Optional[BaseException] = None
        self._queue: "queue.Queue[object]" = queue.Queue(maxsize=maxsize)
        self._thread = threading.Thread(target=self._work, name="kenosis-scan", daemon=True)
        self._done = False
        self._give_up_at: Optional[float] = None

    def start(self):
        self._thread.start()

    def cancel(self):
        self.cancel_token.cancel()

    def join(self, timeout: Optional[float] = None) -> bool:
        """Wait for the worker; returns True once it has stopped"""
        self._thread.join(timeout)
        return not self._thread.is_alive()

    def __iter__(self) -> Iterator[object]:
        return self.events()

    def events(self) -> Iterator[object]:
        """Yield events until RunFinished; re-raises a failure of the worker

        Also stops once the worker has exited and the queue is drained, which
        happens when closing events were dropped after cancellation.
        """
        while not self._done:
            try:
                event = self._queue.get(timeout=self.poll_interval)
            except queue.Empty:
                if self._thread.is_alive() or not self._queue.empty():
                    continue
                self._done = True
                if self.error is not None:
                    raise self.error
                return
            if isinstance(event, _WorkerFailed):
                self._done = True
                raise event.error
            if isinstance(event, RunFinished):
                self._done = True
            yield event

    # -- worker side ---------------------------------------------------------

    def _put(self, event: object):
        while True:
            try:
                self._queue.put(event, timeout=self.poll_interval)
                return
            except queue.Full:
                if not self.cancel_token.cancelled:
                    continue
                if not isinstance(event, _CLOSING_EVENTS):
                    return
                if self._give_up_at is None:
                    self._give_up_at = time.monotonic() + self.closing_grace
                if time.monotonic() >= self._give_up_at:
                    logger.debug("Dropping %s, channel is not being read", type(event).__name__)
                    return

    def _on_finding(self, finding: Finding):
        self._put(FindingDiscovered(finding))

    def _on_progress(self, files_scanned: int, current_path: str):
        self._put(ProgressUpdated(files_scanned, current_path))

    def _on_phase(self, phase: str):
        self._put(PhaseChanged(phase))

    def _on_running(self, scanning: bool):
        self._put(RunningChanged(scanning))

    def _on_finished(self):
        self._put(RunFinished())

    def _work(self):
        orch = self.orchestrator
        connections = [
            (orch.finding_discovered, self._on_finding),
            (orch.progress_updated, self._on_progress),
            (orch.phase_changed, self._on_phase),
            (orch.running_changed, self._on_running),
            (orch.run_finished, self._on_finished),
        ]
        for signal, handler in connections:
            signal.connect(handler)
        try:
            self.session = orch.run(cancel=self.cancel_token)
        except Exception as e:
            self.error = e
            self._put(_WorkerFailed(e))
        finally:
            for signal, handler in connections:
                signal.disconnect(handler)


@dataclass(frozen=True)
class _WorkerFailed:
    error: BaseException


_CLOSING_EVENTS = (PhaseChanged, RunningChanged, RunFinished, _WorkerFailed)
