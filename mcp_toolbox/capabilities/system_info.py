"""Point-in-time snapshot of the host running the server."""

from __future__ import annotations

import json
import os
import platform
import time
from datetime import UTC, datetime

import psutil

from .registry import ResourceDescriptor

__all__ = ["SYSTEM_INFO_RESOURCE", "get_system_info"]

SYSTEM_INFO_RESOURCE = ResourceDescriptor(
    uri="system://info",
    name="System Information",
    description="Current system information and statistics",
    mimeType="application/json",
)

_GIB = 1024 * 1024 * 1024


def _timestamp() -> str:
    return datetime.now(UTC).isoformat().replace("+00:00", "Z")


def get_system_info() -> str:
    try:
        memory = psutil.virtual_memory()
        process = psutil.Process()
        snapshot = {
            "platform": platform.system().lower(),
            "architecture": platform.machine(),
            "pythonVersion": platform.python_version(),
            "cpuCount": os.cpu_count() or 0,
            "totalMemory": f"{round(memory.total / _GIB)} GB",
            "freeMemory": f"{round(memory.available / _GIB)} GB",
            "uptime": f"{round(time.time() - process.create_time())} seconds",
            "timestamp": _timestamp(),
        }
    except (psutil.Error, OSError) as exc:
        snapshot = {"error": str(exc), "timestamp": _timestamp()}
    return json.dumps(snapshot, indent=2)
