#!/usr/bin/env python3
"""
Finding Sink

List-backed collector for findings, used by the console report.
"""

from typing import Iterator

from events import Signal
from walker import Finding


class FindingList:
    """Accumulates findings in discovery order"""

    def __init__(self):
        self._items: list[Finding] = []
        self.count_changed = Signal("count_changed")

    def connect(self, orchestrator):
        """Subscribe to an orchestrator's finding_discovered signal"""
        orchestrator.finding_discovered.connect(self.add)

    def disconnect(self, orchestrator):
        orchestrator.finding_discovered.disconnect(self.add)

    def add(self, finding: Finding):
        self._items.append(finding)
        self.count_changed.emit(len(self._items))

    def clear(self):
        self._items.clear()
        self.count_changed.emit(0)

    @property
    def count(self) -> int:
        return len(self._items)

    @property
    def total_bytes(self) -> int:
        return sum(f.bytes for f in self._items)

    def largest(self, limit: int) -> list[Finding]:
        """Return up to *limit* findings, biggest first (ties keep discovery order)"""
        return sorted(self._items, key=lambda f: f.bytes, reverse=True)[: max(0, limit)]

    def by_rule(self) -> dict[str, dict]:
        """Summarize count and bytes per rule id, in order of first appearance"""
        summary: dict[str, dict] = {}
        for f in self._items:
            entry = summary.setdefault(f.rule_id, {"explain": f.explain, "count": 0, "bytes": 0})
            entry["count"] += 1
            entry["bytes"] += f.bytes
        return summary

    def __iter__(self) -> Iterator[Finding]:
        return iter(self._items)

    def __len__(self) -> int:
        return len(self._items)

    def __getitem__(self, index: int) -> Finding:
        return self._items[index]
