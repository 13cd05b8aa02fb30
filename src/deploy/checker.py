# deploy/checker.py
"""
Advisory check run before deploying APKs to a device.

On a non-debug device (ro.debuggable != "1"), APKs whose manifest does not
declare `android:debuggable` are reported through one warning message. The
check never blocks deployment: APKs that cannot be read or parsed are logged
and left out.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Callable, Iterable, List, Optional

from tqdm import tqdm

from axml.manifest import is_apk_debuggable
from axml.types import MalformedChunkError
from .config import CheckerConfig, DEBUGGABLE_PROPERTY

logger = logging.getLogger(__name__)

PropertyLookup = Callable[[str], Optional[str]]
MessageSink = Callable[[str], None]


@dataclass(frozen=True)
class ApkProbeResult:
    path: str
    debuggable: Optional[bool]   # None when the probe failed
    error: str = ""

    @property
    def name(self) -> str:
        return os.path.basename(self.path)

    @property
    def ok(self) -> bool:
        return self.debuggable is not None


def device_is_debuggable(get_property: PropertyLookup, prop: str = DEBUGGABLE_PROPERTY) -> bool:
    # ro.debuggable=1 means a userdebug/eng build, which is always debuggable
    return get_property(prop) == "1"


def probe_apk(apk: str, config: CheckerConfig) -> ApkProbeResult:
    path = os.fspath(apk)
    try:
        debuggable = is_apk_debuggable(
            path, entry=config.manifest_entry, max_bytes=config.max_manifest_bytes
        )
    except IOError as e:
        logger.error("Cannot read manifest of %s: %s", path, e)
        return ApkProbeResult(path=path, debuggable=None, error=f"io: {e}")
    except MalformedChunkError as e:
        logger.error("Malformed manifest in %s: %s", path, e)
        return ApkProbeResult(path=path, debuggable=None, error=f"malformed: {e}")
    logger.debug("%s: debuggable=%s", path, debuggable)
    return ApkProbeResult(path=path, debuggable=debuggable)


def probe_apks(
    apks: Iterable[str],
    config: Optional[CheckerConfig] = None,
    progress: bool = False,
) -> List[ApkProbeResult]:
    cfg = config or CheckerConfig()
    apks = list(apks)
    return [
        probe_apk(apk, cfg)
        for apk in tqdm(apks, desc="Probing APKs", unit="apk", disable=not progress)
    ]


def format_warning(names: List[str]) -> str:
    # at most a couple of APKs per deployment
    return (
        'The "android:debuggable" attribute is not set to "true" in '
        + " and ".join(names)
        + ". Debugger may not attach properly or attach at all."
        + ' Please ensure "android:debuggable" attribute is set to true or'
        + " overridden to true via manifest overrides."
    )


def non_debuggable_names(results: Iterable[ApkProbeResult]) -> List[str]:
    return [r.name for r in results if r.debuggable is False]


def emit_warning(results: Iterable[ApkProbeResult], stderr: MessageSink) -> Optional[str]:
    names = non_debuggable_names(results)
    if not names:
        return None
    message = format_warning(names)
    stderr(message)
    return message


def check_debug_attribute(
    apks: Iterable[str],
    get_property: PropertyLookup,
    stderr: MessageSink,
    config: Optional[CheckerConfig] = None,
    progress: bool = False,
) -> Optional[str]:
    """
    Warn (once, through `stderr`) about non-debuggable APKs headed for a non-debug device.
    Returns the emitted message, or None when nothing was emitted.
    """
    cfg = config or CheckerConfig()
    if device_is_debuggable(get_property, cfg.debuggable_property):
        logger.debug("Device reports %s=1; skipping APK debuggability check", cfg.debuggable_property)
        return None

    return emit_warning(probe_apks(apks, cfg, progress=progress), stderr)
