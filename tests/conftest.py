"""
Pytest config: local module imports and filesystem helpers.
"""

import os
import pathlib
import sys
import time
from typing import Callable

import pytest

REPO_ROOT = pathlib.Path(__file__).resolve().parent.parent
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

NS_PER_DAY = 86_400 * 1_000_000_000


@pytest.fixture
def now_ns() -> int:
    """A fixed 'now', whole seconds so it survives filesystem timestamp precision"""
    return (time.time_ns() // 1_000_000_000) * 1_000_000_000


@pytest.fixture
def make_entry(now_ns: int) -> Callable[..., pathlib.Path]:
    """Create a file (or directory) aged *age_days* relative to now_ns"""

    def _make(path: pathlib.Path, size: int = 0, age_days: float = 0, directory: bool = False) -> pathlib.Path:
        path.parent.mkdir(parents=True, exist_ok=True)
        if directory:
            path.mkdir(exist_ok=True)
        else:
            path.write_bytes(b"x" * size)
        mtime_ns = now_ns - int(age_days * NS_PER_DAY)
        os.utime(path, ns=(mtime_ns, mtime_ns))
        return path

    return _make


@pytest.fixture
def home(tmp_path: pathlib.Path, monkeypatch: pytest.MonkeyPatch) -> pathlib.Path:
    """Point HOME at an empty directory inside tmp_path"""
    home_dir = tmp_path / "home"
    home_dir.mkdir()
    monkeypatch.setenv("HOME", str(home_dir))
    return home_dir
