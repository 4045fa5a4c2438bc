"""Pytest configuration.

Notification tests touch PySide6 widgets. A single offscreen `QApplication`
is created for the session before collection, and shut down at the end.
"""

from __future__ import annotations

import os
from typing import Any

import numpy as np
import pytest

from image_actions.document import DocumentState
from image_actions.errors import ArtifactWriteError

_APP: Any | None = None


def pytest_configure(config) -> None:  # noqa: ARG001
    """Ensure a QApplication exists before collecting/running tests."""

    os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")
    # Import lazily so non-Qt environments can still import this conftest.
    try:
        from PySide6.QtWidgets import QApplication
    except ImportError:
        return

    global _APP

    app = QApplication.instance()
    # Keep a strong ref so it isn't GC'd mid-session.
    _APP = app if app is not None else QApplication([])


def pytest_sessionfinish(session, exitstatus) -> None:  # noqa: ARG001
    try:
        from PySide6.QtWidgets import QApplication
    except ImportError:
        return

    app = QApplication.instance()
    if app is None:
        return
    app.quit()
    app.processEvents()


# ---- shared fakes ----


class FakeProducer:
    """Writes a small marker instead of encoding; records every call."""

    def __init__(self, fail: bool = False, unsupported: tuple[str, ...] = ()) -> None:
        self.fail = fail
        self.unsupported = unsupported
        self.calls: list[tuple[str, str, int]] = []

    def can_save(self, fmt) -> bool:
        return fmt.saveable and fmt.id not in self.unsupported

    def save(self, path, fmt, document) -> None:
        self.calls.append((path, fmt.id, document.bpp))
        if self.fail:
            raise ArtifactWriteError("disk full", path, fmt.id)
        with open(path, "wb") as f:
            f.write(f"{fmt.id}:{document.bpp}".encode())


class FakeNotifier:
    def __init__(self) -> None:
        self.messages: list[tuple[str, str]] = []

    def notify(self, title: str, message: str) -> None:
        self.messages.append((title, message))


def _document(bpp: int = 3, **kw) -> DocumentState:
    if bpp == 1:
        image = np.zeros((4, 6), dtype=np.uint8)
        palette = np.array([[0, 0, 0], [255, 255, 255]], dtype=np.uint8)
        kw.setdefault("palette", palette)
        kw.setdefault("colors", 2)
    else:
        image = np.zeros((4, 6, 3), dtype=np.uint8)
    return DocumentState(image=image, bpp=bpp, **kw)


@pytest.fixture
def make_document():
    return _document


@pytest.fixture
def producer() -> FakeProducer:
    return FakeProducer()


@pytest.fixture
def notifier() -> FakeNotifier:
    return FakeNotifier()


@pytest.fixture
def temp_files(tmp_path):
    from image_actions.tempfiles import TempFileManager

    manager = TempFileManager(environ={"TMPDIR": str(tmp_path)})
    yield manager
    manager.shutdown()


@pytest.fixture
def failing_producer() -> FakeProducer:
    return FakeProducer(fail=True)


@pytest.fixture
def make_producer():
    return FakeProducer
