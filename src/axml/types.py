# axml/types.py
from __future__ import annotations
from dataclasses import dataclass, field
from enum import IntEnum
from typing import Dict, List, Optional, Union


class MalformedChunkError(ValueError):
    """Raised when chunk sizes, offsets or types break the binary XML layout."""


class ChunkType(IntEnum):
    NULL = 0x0000
    STRING_POOL = 0x0001
    TABLE = 0x0002
    XML = 0x0003
    XML_START_NAMESPACE = 0x0100
    XML_END_NAMESPACE = 0x0101
    XML_START_ELEMENT = 0x0102
    XML_END_ELEMENT = 0x0103
    XML_CDATA = 0x0104
    XML_RESOURCE_MAP = 0x0180


# Sentinel for "no string" in string pool references
NO_ENTRY = 0xFFFFFFFF


@dataclass(frozen=True)
class ChunkHeader:
    type: int
    header_size: int
    size: int
    offset: int    # absolute position of the header in the buffer

    @property
    def kind(self) -> Optional[ChunkType]:
        try:
            return ChunkType(self.type)
        except ValueError:
            return None

    @property
    def payload_start(self) -> int:
        return self.offset + self.header_size

    @property
    def end(self) -> int:
        return self.offset + self.size   # exclusive


@dataclass(frozen=True)
class StringPoolChunk:
    header: ChunkHeader
    strings: List[str]
    utf8: bool
    style_count: int = 0

    def get(self, index: int) -> Optional[str]:
        if index == NO_ENTRY:
            return None
        if index >= len(self.strings):
            raise MalformedChunkError(
                f"string index {index} out of range (pool holds {len(self.strings)})"
            )
        return self.strings[index]


@dataclass(frozen=True)
class ResourceMapChunk:
    header: ChunkHeader
    resource_ids: List[int]


@dataclass(frozen=True)
class ResValue:
    data_type: int
    data: int
    size: int = 8


@dataclass(frozen=True)
class XmlAttribute:
    namespace: Optional[str]
    name: Optional[str]
    raw_value: Optional[str]
    typed_value: ResValue


@dataclass(frozen=True)
class XmlStartElementChunk:
    header: ChunkHeader
    line_number: int
    namespace: Optional[str]
    name: Optional[str]
    attributes: List[XmlAttribute] = field(default_factory=list)
    id_index: int = 0
    class_index: int = 0
    style_index: int = 0


@dataclass(frozen=True)
class XmlEndElementChunk:
    header: ChunkHeader
    line_number: int
    namespace: Optional[str]
    name: Optional[str]


@dataclass(frozen=True)
class UnknownChunk:
    header: ChunkHeader
    payload: bytes


@dataclass(frozen=True)
class XmlChunk:
    """
    Root of a compiled XML document.
    `chunks` maps the absolute offset of every child to the decoded child,
    in the order the children appear in the buffer.
    """
    header: ChunkHeader
    chunks: Dict[int, "Chunk"]

    @property
    def children(self) -> List["Chunk"]:
        return list(self.chunks.values())

    @property
    def string_pool(self) -> Optional[StringPoolChunk]:
        """Last string pool in the document, the one trailing elements resolve against."""
        pool = None
        for c in self.chunks.values():
            if isinstance(c, StringPoolChunk):
                pool = c
        return pool

    def start_elements(self) -> List[XmlStartElementChunk]:
        return [c for c in self.chunks.values() if isinstance(c, XmlStartElementChunk)]


Chunk = Union[
    XmlChunk,
    StringPoolChunk,
    ResourceMapChunk,
    XmlStartElementChunk,
    XmlEndElementChunk,
    UnknownChunk,
]


@dataclass(frozen=True)
class ResourceFile:
    """Top level chunks of a compiled resource file, in buffer order."""
    chunks: List[Chunk]
