"""Shared pytest fixtures for tree_mirror tests.

Provides source/target temp trees, a test logger, a fake watchdog observer
that lets tests inject events by hand, and a polling helper for threads.
"""

import errno
import logging
import os
import threading
import time
from dataclasses import dataclass
from pathlib import Path

import pytest


@dataclass
class Tree:
    root: Path
    source: Path
    target: Path


@pytest.fixture
def tree(tmp_path):
    """Empty source and target directories side by side."""
    source = tmp_path / "source"
    target = tmp_path / "target"
    source.mkdir()
    target.mkdir()
    return Tree(root=tmp_path, source=source, target=target)


@pytest.fixture
def logger():
    log = logging.getLogger("tree_mirror_tests")
    log.setLevel(logging.DEBUG)
    return log


@pytest.fixture(autouse=True)
def reset_app_logger():
    yield
    app_logger = logging.getLogger("tree_mirror")
    for handler in list(app_logger.handlers):
        app_logger.removeHandler(handler)
        handler.close()


def snapshot(root: Path) -> dict:
    """Map every relative path under root to its bytes (files) or None (dirs)."""
    out = {}
    for path in sorted(root.rglob("*")):
        rel = path.relative_to(root).as_posix()
        out[rel] = None if path.is_dir() else path.read_bytes()
    return out


class FakeObserver:
    """Stands in for watchdog's Observer; keeps one handler per scheduled path."""

    def __init__(self, fail_paths=()):
        self.handlers = {}
        self.fail_paths = {str(p) for p in fail_paths}
        self.started = False
        self.stopped = False
        self.scheduled = 0
        self._lock = threading.Lock()

    def start(self):
        self.started = True

    def stop(self):
        self.stopped = True

    def join(self, timeout=None):
        pass

    def schedule(self, handler, path, recursive=False):
        assert recursive is False
        if path in self.fail_paths:
            raise OSError(errno.ENOSPC, "inotify watch limit reached", path)
        if not os.path.isdir(path):
            raise FileNotFoundError(errno.ENOENT, "No such directory", path)
        with self._lock:
            self.handlers[path] = handler
            self.scheduled += 1
        return ("watch", path)

    def unschedule(self, watch):
        with self._lock:
            del self.handlers[watch[1]]

    def watched(self):
        with self._lock:
            return set(self.handlers)

    def emit(self, directory, event):
        with self._lock:
            handler = self.handlers[str(directory)]
        handler.dispatch(event)


class FakeReconciler:
    def __init__(self, busy=False):
        self.busy = busy
        self.calls = 0

    def synchronize(self):
        self.calls += 1


@pytest.fixture
def observer():
    return FakeObserver()


@pytest.fixture
def fake_reconciler():
    return FakeReconciler()


def _wait_for(predicate, timeout=5.0, interval=0.02):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(interval)
    raise AssertionError(f"condition not met within {timeout}s")


@pytest.fixture
def wait_for():
    return _wait_for


@pytest.fixture
def tree_snapshot():
    return snapshot


@pytest.fixture
def make_observer():
    return FakeObserver


@pytest.fixture
def make_reconciler():
    return FakeReconciler
