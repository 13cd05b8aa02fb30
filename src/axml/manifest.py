# axml/manifest.py
"""
Debuggable probe for an APK's compiled AndroidManifest.xml.

Only presence matters: an `application` element carrying any attribute named
`debuggable` counts as debuggable, whatever the attribute's value.
"""

from __future__ import annotations

import io
import logging
import os
import zipfile
import zlib
from typing import BinaryIO, Optional, Union

from .chunks import Buffer, parse_xml
from .types import XmlChunk, XmlStartElementChunk

logger = logging.getLogger(__name__)

MANIFEST_ENTRY = "AndroidManifest.xml"
APPLICATION_ELEMENT = "application"
DEBUGGABLE_ATTRIBUTE = "debuggable"
DEFAULT_MAX_MANIFEST_BYTES = 32 * 1024 * 1024
ZIP_FLAG_ENCRYPTED = 0x0001  # general purpose bit 0

ApkSource = Union[str, "os.PathLike[str]", bytes, bytearray, BinaryIO]


def _describe(apk: ApkSource) -> str:
    if isinstance(apk, (bytes, bytearray)):
        return f"<{len(apk)} byte APK>"
    if isinstance(apk, (str, os.PathLike)):
        return os.fspath(apk)
    return getattr(apk, "name", repr(apk))


def find_application(xml: XmlChunk) -> Optional[XmlStartElementChunk]:
    """First `application` start element in document order, or None."""
    for chunk in xml.chunks.values():
        if isinstance(chunk, XmlStartElementChunk) and chunk.name == APPLICATION_ELEMENT:
            return chunk
    return None


def is_manifest_debuggable(data: Buffer) -> bool:
    """
    True when the first `application` element declares a `debuggable` attribute.
    Raises MalformedChunkError for structurally broken manifests.
    """
    app = find_application(parse_xml(data))
    if app is None:
        return False
    return any(attr.name == DEBUGGABLE_ATTRIBUTE for attr in app.attributes)


def read_manifest(
    apk: ApkSource,
    entry: str = MANIFEST_ENTRY,
    max_bytes: int = DEFAULT_MAX_MANIFEST_BYTES,
) -> bytes:
    """
    Read one entry (the compiled manifest by default) out of an APK.
    `apk` may be a path, the raw archive bytes or a binary file object.
    Every failure to get at the bytes is raised as IOError.
    """
    name = _describe(apk)
    source = io.BytesIO(apk) if isinstance(apk, (bytes, bytearray)) else apk
    try:
        with zipfile.ZipFile(source) as zf:
            try:
                info = zf.getinfo(entry)
            except KeyError:
                raise IOError(f"{name}: no {entry} entry") from None
            if info.file_size > max_bytes:
                raise IOError(f"{name}: {entry} is {info.file_size} bytes, budget is {max_bytes}")
            if info.flag_bits & ZIP_FLAG_ENCRYPTED:
                raise IOError(f"{name}: {entry} is encrypted")
            with zf.open(info) as stream:
                data = stream.read(max_bytes + 1)
    except (zipfile.BadZipFile, zlib.error, EOFError, NotImplementedError, RuntimeError) as e:
        raise IOError(f"{name}: cannot read {entry} ({e})") from e

    if len(data) > max_bytes:
        raise IOError(f"{name}: {entry} exceeds budget of {max_bytes} bytes")
    logger.debug("%s: read %d byte(s) from %s", name, len(data), entry)
    return data


def is_apk_debuggable(
    apk: ApkSource,
    entry: str = MANIFEST_ENTRY,
    max_bytes: int = DEFAULT_MAX_MANIFEST_BYTES,
) -> bool:
    """
    Raises IOError if the manifest cannot be read and MalformedChunkError
    if it cannot be parsed; neither is ever reported as "not debuggable".
    """
    return is_manifest_debuggable(read_manifest(apk, entry=entry, max_bytes=max_bytes))
