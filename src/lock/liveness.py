"""Process liveness probing for stale lock recovery.

The probe answers whether a pid names a running process. Platforms with
no reliable probe answer ``UNKNOWN`` so callers never steal a live lock.
"""

from __future__ import annotations

from enum import Enum
import os
import sys

_WINDOWS_STILL_ACTIVE = 259
_WINDOWS_PROCESS_QUERY_LIMITED_INFORMATION = 0x1000
_WINDOWS_ERROR_ACCESS_DENIED = 5
_WINDOWS_ERROR_INVALID_PARAMETER = 87


class ProcessLiveness(Enum):
    """Outcome of probing one pid."""

    ALIVE = "alive"
    DEAD = "dead"
    UNKNOWN = "unknown"


def probe_process(pid: int) -> ProcessLiveness:
    """Report whether ``pid`` is a running process on this host.

    Args:
        pid: Positive process id.

    Returns:
        ``ALIVE``, ``DEAD``, or ``UNKNOWN`` when the platform cannot tell.
    """
    if pid <= 0:
        return ProcessLiveness.UNKNOWN
    if sys.platform == "win32":
        return _probe_windows(pid)
    if os.name == "posix":
        return _probe_posix(pid)
    return ProcessLiveness.UNKNOWN


def _probe_posix(pid: int) -> ProcessLiveness:
    try:
        os.kill(pid, 0)
    except ProcessLookupError:
        return ProcessLiveness.DEAD
    except PermissionError:
        # exists, owned by another user
        return ProcessLiveness.ALIVE
    except OSError:
        return ProcessLiveness.UNKNOWN
    return ProcessLiveness.ALIVE


def _probe_windows(pid: int) -> ProcessLiveness:  # pragma: no cover - platform specific
    import ctypes
    from ctypes import wintypes

    kernel32 = ctypes.WinDLL("kernel32", use_last_error=True)
    kernel32.OpenProcess.restype = wintypes.HANDLE
    handle = kernel32.OpenProcess(_WINDOWS_PROCESS_QUERY_LIMITED_INFORMATION, False, pid)
    if not handle:
        last_error = ctypes.get_last_error()
        if last_error == _WINDOWS_ERROR_INVALID_PARAMETER:
            return ProcessLiveness.DEAD
        if last_error == _WINDOWS_ERROR_ACCESS_DENIED:
            return ProcessLiveness.ALIVE
        return ProcessLiveness.UNKNOWN
    try:
        exit_code = wintypes.DWORD()
        if not kernel32.GetExitCodeProcess(handle, ctypes.byref(exit_code)):
            return ProcessLiveness.UNKNOWN
        if exit_code.value == _WINDOWS_STILL_ACTIVE:
            return ProcessLiveness.ALIVE
        return ProcessLiveness.DEAD
    finally:
        kernel32.CloseHandle(handle)
