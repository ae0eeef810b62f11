#!/usr/bin/env python3
"""
Scan event surface

Signals are plain synchronous callback lists: emit() calls every connected
handler in connection order before returning. The event dataclasses are the
same notifications in object form, as delivered through a ScanChannel.
"""

from dataclasses import dataclass
from typing import Any, Callable

from walker import Finding


class Signal:
    """A named list of handlers invoked synchronously on emit()"""

    def __init__(self, name: str):
        self.name = name
        self._handlers: list[Callable[..., Any]] = []

    def connect(self, handler: Callable[..., Any]):
        if handler not in self._handlers:
            self._handlers.append(handler)

    def disconnect(self, handler: Callable[..., Any]):
        if handler in self._handlers:
            self._handlers.remove(handler)

    def emit(self, *args: Any):
        # Copy so handlers may disconnect themselves while being called
        for handler in list(self._handlers):
            handler(*args)

    def __len__(self) -> int:
        return len(self._handlers)

    def __repr__(self) -> str:
        return f"Signal({self.name!r}, handlers={len(self._handlers)})"


@dataclass(frozen=True)
class PhaseChanged:
    phase: str


@dataclass(frozen=True)
class FindingDiscovered:
    finding: Finding


@dataclass(frozen=True)
class ProgressUpdated:
    files_scanned: int
    current_path: str


@dataclass(frozen=True)
class RunningChanged:
    scanning: bool


@dataclass(frozen=True)
class RunFinished:
    pass
