"""Pytest configuration.

The Qt wrapper tests need a QApplication before any QObject is created, so one
is made for the whole session when PySide6 is importable. Image fixtures are
synthesized with Pillow into the per-test tmp_path.
"""

from __future__ import annotations

import os
from collections.abc import Callable
from pathlib import Path
from typing import Any

import pytest

_APP: Any | None = None

# Headless runs have no display; use Qt's offscreen platform unless one is set.
os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")


def pytest_configure(config) -> None:  # noqa: ARG001
    """Ensure a QApplication exists before collecting/running tests."""

    # Import lazily so non-Qt environments can still import this conftest.
    try:
        from PySide6.QtWidgets import QApplication
    except ImportError:
        return

    global _APP

    app = QApplication.instance()
    if app is None:
        # Keep a strong ref so it isn't GC'd mid-session.
        _APP = QApplication([])
    else:
        _APP = app


def pytest_sessionfinish(session, exitstatus) -> None:  # noqa: ARG001
    """Attempt a clean Qt shutdown to avoid lingering threads at interpreter exit."""

    try:
        from PySide6.QtWidgets import QApplication
    except ImportError:
        return

    app = QApplication.instance()
    if app is None:
        return

    app.quit()
    app.processEvents()


@pytest.fixture
def make_image(tmp_path: Path) -> Callable[..., Path]:
    """Write a synthetic image and return its path.

    Default content is a horizontal gradient so shrunk output is not uniform.
    """
    np = pytest.importorskip("numpy")
    Image = pytest.importorskip("PIL.Image")

    def _make(
        name: str,
        width: int,
        height: int,
        mode: str = "RGB",
        fmt: str | None = None,
        pixels: Any | None = None,
        **save_kwargs: Any,
    ) -> Path:
        if pixels is None:
            channels = {"L": 1, "LA": 2, "RGB": 3, "RGBA": 4}[mode]
            ramp = np.linspace(0, 255, width, dtype=np.uint8)
            arr = np.broadcast_to(ramp[None, :, None], (height, width, channels)).copy()
            if mode in ("LA", "RGBA"):
                arr[..., -1] = 255
            pixels = arr[..., 0] if channels == 1 else arr
        img = Image.fromarray(pixels)
        path = tmp_path / name
        img.save(path, format=fmt, **save_kwargs)
        return path

    return _make
