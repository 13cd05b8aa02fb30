# deploy/device.py
"""
Device property lookups.

Anything with a `get_property(name) -> Optional[str]` method (or a plain
callable of that shape) can stand in for a device.
"""

from __future__ import annotations

import logging
import subprocess
from typing import Dict, Iterable, List, Optional

logger = logging.getLogger(__name__)


class StaticDevice:
    """Properties known up front (tests, --prop on the command line)."""

    def __init__(self, props: Optional[Dict[str, str]] = None):
        self.props = dict(props or {})

    def get_property(self, name: str) -> Optional[str]:
        return self.props.get(name)

    def __repr__(self):
        return f"<StaticDevice props={self.props}>"


class AdbDevice:
    """
    Reads properties from a connected device via `adb shell getprop`.
    Lookup failures are logged and reported as "unset" (None).
    """

    def __init__(self, serial: Optional[str] = None, adb: str = "adb", timeout: float = 10.0):
        self.serial = serial
        self.adb = adb
        self.timeout = timeout

    def _command(self, name: str) -> List[str]:
        cmd = [self.adb]
        if self.serial:
            cmd += ["-s", self.serial]
        return cmd + ["shell", "getprop", name]

    def get_property(self, name: str) -> Optional[str]:
        cmd = self._command(name)
        try:
            result = subprocess.run(
                cmd, capture_output=True, text=True, timeout=self.timeout,
                encoding="utf-8", errors="ignore",
            )
        except FileNotFoundError:
            logger.warning("adb executable not found: %s", self.adb)
            return None
        except subprocess.TimeoutExpired:
            logger.warning("getprop %s timed out after %.1fs (serial=%s)", name, self.timeout, self.serial)
            return None

        if result.returncode != 0:
            logger.warning(
                "getprop %s failed (serial=%s, rc=%d): %s",
                name, self.serial, result.returncode, (result.stderr or "").strip(),
            )
            return None
        value = (result.stdout or "").strip()
        return value or None

    def __repr__(self):
        return f"<AdbDevice serial={self.serial}>"


def parse_property_assignments(items: Iterable[str]) -> Dict[str, str]:
    """["ro.debuggable=0", ...] -> {"ro.debuggable": "0"}"""
    props: Dict[str, str] = {}
    for item in items:
        key, sep, value = item.partition("=")
        key = key.strip()
        if not sep or not key:
            raise ValueError(f"expected KEY=VALUE, got {item!r}")
        props[key] = value.strip()
    return props
