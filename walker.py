#!/usr/bin/env python3
"""
Filesystem Walker for Kenosis

Walks the tree below one rule's resolved root and yields a Finding for every
entry that is old enough. All I/O failures are contained at the smallest
scope: an unreadable entry is skipped, an unreadable directory skips its
subtree, a missing root simply yields nothing. What happened is recorded in a
RuleReport instead of being raised.

Directory sizes are reported as zero unless aggregate_directory_sizes is set;
this keeps a scan to a single pass over the tree.
"""

import logging
import os
import stat
import threading
import time
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Iterator, Optional

from path_resolver import expand_home
from rule_parser import Rule

logger = logging.getLogger(__name__)

NS_PER_DAY = 86_400 * 1_000_000_000


@dataclass(frozen=True)
class Finding:
    """One reported filesystem entry"""

    path: str
    bytes: int
    rule_id: str
    explain: str
    mtime: float = 0.0


class RuleOutcome(Enum):
    MATCHED = "matched"
    NO_MATCHES = "no_matches"
    ROOT_MISSING = "root_missing"
    ROOT_DENIED = "root_denied"
    CANCELLED = "cancelled"


@dataclass
class RuleReport:
    """Diagnostics for one rule's walk"""

    rule: Rule
    root: str
    outcome: RuleOutcome = RuleOutcome.NO_MATCHES
    matched: int = 0
    bytes: int = 0
    skipped_entries: int = 0
    denied_subtrees: int = 0


class CancelToken:
    """Cooperative cancellation flag, safe to set from another thread or a signal handler"""

    def __init__(self):
        self._event = threading.Event()

    def cancel(self):
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()


def cutoff_ns(min_age_days: int, now_ns: int) -> int:
    """Return the newest modification time (ns) that still counts as old enough"""
    return now_ns - max(0, min_age_days) * NS_PER_DAY


def directory_size(path: str) -> int:
    """Sum of regular-file sizes below *path*, without following symlinks"""
    total = 0
    pending = [path]
    while pending:
        try:
            with os.scandir(pending.pop()) as it:
                entries = list(it)
        except OSError:
            continue
        for entry in entries:
            try:
                st = entry.stat(follow_symlinks=False)
            except OSError:
                continue
            if stat.S_ISREG(st.st_mode):
                total += st.st_size
            elif stat.S_ISDIR(st.st_mode):
                pending.append(entry.path)
    return total


class RuleWalker:
    """Walks one rule at a time and yields its findings"""

    def __init__(
        self,
        aggregate_directory_sizes: bool = False,
        clock: Callable[[], int] = time.time_ns,
        environ=None,
    ):
        """Initialize walker

        Args:
            aggregate_directory_sizes: Report directories with the total size of files below them
            clock: Returns the current time in nanoseconds since the epoch
            environ: Environment mapping used for home expansion (defaults to os.environ)
        """
        self.aggregate_directory_sizes = aggregate_directory_sizes
        self.clock = clock
        self.environ = environ

    def walk(
        self,
        rule: Rule,
        report: Optional[RuleReport] = None,
        cancel: Optional[CancelToken] = None,
    ) -> Iterator[Finding]:
        """Yield findings for *rule*

        The optional *report* is filled in while the generator runs and is
        final once it is exhausted.
        """
        root = expand_home(rule.path, self.environ)
        if report is None:
            report = RuleReport(rule=rule, root=root)
        else:
            report.root = root

        if cancel is not None and cancel.cancelled:
            report.outcome = RuleOutcome.CANCELLED
            return

        try:
            os.stat(root)
        except PermissionError:
            logger.debug("Rule %s: root %s not accessible", rule.id, root)
            report.outcome = RuleOutcome.ROOT_DENIED
            return
        except (OSError, ValueError):
            # ValueError covers embedded NUL bytes in a malformed template
            logger.debug("Rule %s: root %s does not exist", rule.id, root)
            report.outcome = RuleOutcome.ROOT_MISSING
            return

        limit = cutoff_ns(rule.min_age_days, self.clock())

        for entry in self._iter_entries(root, report):
            if cancel is not None and cancel.cancelled:
                report.outcome = RuleOutcome.CANCELLED
                logger.debug("Rule %s: cancelled after %d findings", rule.id, report.matched)
                return

            try:
                st = entry.stat(follow_symlinks=False)
            except OSError:
                report.skipped_entries += 1
                continue

            if rule.min_age_days > 0 and st.st_mtime_ns > limit:
                continue  # too new

            size = self._entry_size(entry, st)
            report.matched += 1
            report.bytes += size
            yield Finding(
                path=entry.path,
                bytes=size,
                rule_id=rule.id,
                explain=rule.explain,
                mtime=st.st_mtime,
            )

        report.outcome = RuleOutcome.MATCHED if report.matched else RuleOutcome.NO_MATCHES

    def _entry_size(self, entry: os.DirEntry, st: os.stat_result) -> int:
        if stat.S_ISREG(st.st_mode):
            return st.st_size
        if self.aggregate_directory_sizes and stat.S_ISDIR(st.st_mode):
            return directory_size(entry.path)
        return 0

    def _iter_entries(self, root: str, report: RuleReport) -> Iterator[os.DirEntry]:
        """Depth-first, pre-order enumeration of everything below *root*

        Keeps an explicit stack of open directory listings, so the depth of
        the tree is not bounded by the interpreter's recursion limit.
        """
        stack = [iter(self._list_directory(root, report))]
        while stack:
            entry = next(stack[-1], None)
            if entry is None:
                stack.pop()
                continue

            yield entry
            try:
                is_dir = entry.is_dir(follow_symlinks=False)
            except OSError:
                is_dir = False
            if is_dir:
                stack.append(iter(self._list_directory(entry.path, report)))

    @staticmethod
    def _list_directory(directory: str, report: RuleReport) -> list:
        try:
            with os.scandir(directory) as it:
                return list(it)
        except OSError as e:
            report.denied_subtrees += 1
            logger.debug("Skipping subtree %s: %s", directory, e)
            return []
