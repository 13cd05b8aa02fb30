# deploy/config.py
from __future__ import annotations
import argparse
from dataclasses import asdict, dataclass
from typing import Any, Dict

from axml.manifest import DEFAULT_MAX_MANIFEST_BYTES, MANIFEST_ENTRY

DEBUGGABLE_PROPERTY = "ro.debuggable"


@dataclass(frozen=True)
class CheckerConfig:
    manifest_entry: str = MANIFEST_ENTRY
    max_manifest_bytes: int = DEFAULT_MAX_MANIFEST_BYTES  # decompression budget per APK
    debuggable_property: str = DEBUGGABLE_PROPERTY

    def __post_init__(self):
        if self.max_manifest_bytes <= 0:
            raise ValueError(f"max_manifest_bytes must be positive, got {self.max_manifest_bytes}")
        if not self.manifest_entry:
            raise ValueError("manifest_entry must not be empty")

    @classmethod
    def from_args(cls, args: argparse.Namespace) -> "CheckerConfig":
        return cls(
            manifest_entry=str(getattr(args, "manifest_entry", MANIFEST_ENTRY)),
            max_manifest_bytes=int(getattr(args, "max_manifest_bytes", DEFAULT_MAX_MANIFEST_BYTES)),
            debuggable_property=str(getattr(args, "debuggable_property", DEBUGGABLE_PROPERTY)),
        )

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)
