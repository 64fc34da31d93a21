"""Platform process backends."""

from __future__ import annotations

import os

from .base import CaptureSession, Job, ProcessBackend
from .posix import PollCapture, PosixBackend
from .windows import ThreadedCapture, WindowsBackend


def default_backend() -> ProcessBackend:
    if os.name == "posix":
        return PosixBackend()
    return WindowsBackend()


__all__ = [
    "CaptureSession",
    "Job",
    "PollCapture",
    "PosixBackend",
    "ProcessBackend",
    "ThreadedCapture",
    "WindowsBackend",
    "default_backend",
]
