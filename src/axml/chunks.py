# axml/chunks.py
"""
Reader for Android's compiled resource chunk format (binary XML).

Every chunk starts with the common header:
  0  2  type
  2  2  header size (bytes, including these 8)
  4  4  total size  (bytes, header + payload + children)

Known container/leaf types are decoded into the dataclasses in axml.types;
anything else becomes an UnknownChunk carrying its raw payload, so the reader
can always step over it using the declared size.

Layout reference: frameworks/base/libs/androidfw/include/androidfw/ResourceTypes.h
"""

from __future__ import annotations

import struct
from typing import Callable, Dict, List, Optional, Tuple, Union

from .types import (
    Chunk,
    ChunkHeader,
    ChunkType,
    MalformedChunkError,
    NO_ENTRY,
    ResourceFile,
    ResourceMapChunk,
    ResValue,
    StringPoolChunk,
    UnknownChunk,
    XmlAttribute,
    XmlChunk,
    XmlEndElementChunk,
    XmlStartElementChunk,
)

# ---- Fixed layouts (little-endian) ----
CHUNK_HEADER = struct.Struct("<HHI")          # type, header_size, size
STRING_POOL_HEADER = struct.Struct("<IIIII")  # count, style_count, flags, strings_start, styles_start
XML_NODE_HEADER = struct.Struct("<II")        # line_number, comment
XML_ATTR_EXT = struct.Struct("<IIHHHHHH")     # ns, name, attr_start, attr_size, attr_count, id, class, style
XML_END_EXT = struct.Struct("<II")            # ns, name
XML_ATTRIBUTE = struct.Struct("<IIIHBBI")     # ns, name, raw_value, size, res0, data_type, data

MIN_HEADER_SIZE = CHUNK_HEADER.size
STRING_POOL_HEADER_SIZE = MIN_HEADER_SIZE + STRING_POOL_HEADER.size
XML_NODE_HEADER_SIZE = MIN_HEADER_SIZE + XML_NODE_HEADER.size

UTF8_FLAG = 1 << 8

Buffer = Union[bytes, bytearray, memoryview]
_Decoder = Callable[[bytes, ChunkHeader, Optional[StringPoolChunk]], Chunk]


# ---------- Header / bounds ----------

def read_header(buf: bytes, offset: int, end: int) -> ChunkHeader:
    """
    Read and validate the common header at `offset`; the chunk must fit in [offset, end).
    """
    remaining = end - offset
    if remaining < MIN_HEADER_SIZE:
        raise MalformedChunkError(
            f"truncated chunk header at offset {offset}: {remaining} byte(s) left, need {MIN_HEADER_SIZE}"
        )
    ctype, header_size, size = CHUNK_HEADER.unpack_from(buf, offset)
    if header_size < MIN_HEADER_SIZE:
        raise MalformedChunkError(f"chunk 0x{ctype:04x} at offset {offset}: header size {header_size} < {MIN_HEADER_SIZE}")
    if header_size > size:
        raise MalformedChunkError(f"chunk 0x{ctype:04x} at offset {offset}: header size {header_size} > total size {size}")
    if size > remaining:
        raise MalformedChunkError(f"chunk 0x{ctype:04x} at offset {offset}: total size {size} > remaining {remaining}")
    return ChunkHeader(type=ctype, header_size=header_size, size=size, offset=offset)


def _require(header: ChunkHeader, start: int, length: int, what: str) -> None:
    if start < header.offset or start + length > header.end:
        raise MalformedChunkError(
            f"chunk 0x{header.type:04x} at offset {header.offset}: {what} "
            f"[{start}, {start + length}) outside chunk [{header.offset}, {header.end})"
        )


def _string(pool: Optional[StringPoolChunk], index: int, header: ChunkHeader) -> Optional[str]:
    if index == NO_ENTRY:
        return None
    if pool is None:
        raise MalformedChunkError(
            f"chunk 0x{header.type:04x} at offset {header.offset} references string {index} before any string pool"
        )
    return pool.get(index)


# ---------- String pool ----------

def _utf8_length(buf: bytes, pos: int, end: int) -> Tuple[int, int]:
    if pos >= end:
        raise MalformedChunkError(f"string length at {pos} past string data end {end}")
    n = buf[pos]
    if n & 0x80:
        if pos + 1 >= end:
            raise MalformedChunkError(f"string length at {pos} past string data end {end}")
        return ((n & 0x7F) << 8) | buf[pos + 1], pos + 2
    return n, pos + 1


def _utf16_length(buf: bytes, pos: int, end: int) -> Tuple[int, int]:
    if pos + 2 > end:
        raise MalformedChunkError(f"string length at {pos} past string data end {end}")
    n = struct.unpack_from("<H", buf, pos)[0]
    if n & 0x8000:
        if pos + 4 > end:
            raise MalformedChunkError(f"string length at {pos} past string data end {end}")
        return ((n & 0x7FFF) << 16) | struct.unpack_from("<H", buf, pos + 2)[0], pos + 4
    return n, pos + 2


def _decode_utf8(buf: bytes, pos: int, end: int) -> str:
    # UTF-8 entries carry two lengths: UTF-16 units first, then encoded bytes
    _units, pos = _utf8_length(buf, pos, end)
    nbytes, pos = _utf8_length(buf, pos, end)
    if pos + nbytes > end:
        raise MalformedChunkError(f"string data [{pos}, {pos + nbytes}) past string data end {end}")
    return buf[pos:pos + nbytes].decode("utf-8", "replace")


def _decode_utf16(buf: bytes, pos: int, end: int) -> str:
    units, pos = _utf16_length(buf, pos, end)
    nbytes = units * 2
    if pos + nbytes > end:
        raise MalformedChunkError(f"string data [{pos}, {pos + nbytes}) past string data end {end}")
    return buf[pos:pos + nbytes].decode("utf-16-le", "replace")


def _decode_string_pool(buf: bytes, header: ChunkHeader, pool: Optional[StringPoolChunk]) -> StringPoolChunk:
    if header.header_size < STRING_POOL_HEADER_SIZE:
        raise MalformedChunkError(
            f"string pool at offset {header.offset}: header size {header.header_size} < {STRING_POOL_HEADER_SIZE}"
        )
    count, style_count, flags, strings_start, styles_start = STRING_POOL_HEADER.unpack_from(
        buf, header.offset + MIN_HEADER_SIZE
    )
    index_at = header.payload_start
    _require(header, index_at, 4 * (count + style_count), "string offset table")
    offsets = struct.unpack_from(f"<{count}I", buf, index_at) if count else ()

    utf8 = bool(flags & UTF8_FLAG)
    data_start = header.offset + strings_start
    data_end = header.offset + styles_start if style_count and styles_start else header.end
    if count:
        _require(header, data_start, max(0, data_end - data_start), "string data")

    decode = _decode_utf8 if utf8 else _decode_utf16
    strings: List[str] = []
    for off in offsets:
        strings.append(decode(buf, data_start + off, data_end))
    return StringPoolChunk(header=header, strings=strings, utf8=utf8, style_count=style_count)


# ---------- Resource map ----------

def _decode_resource_map(buf: bytes, header: ChunkHeader, pool: Optional[StringPoolChunk]) -> ResourceMapChunk:
    n = (header.size - header.header_size) // 4
    ids = list(struct.unpack_from(f"<{n}I", buf, header.payload_start)) if n else []
    return ResourceMapChunk(header=header, resource_ids=ids)


# ---------- XML tree nodes ----------

def _node_line(buf: bytes, header: ChunkHeader) -> int:
    if header.header_size < XML_NODE_HEADER_SIZE:
        raise MalformedChunkError(
            f"xml node 0x{header.type:04x} at offset {header.offset}: header size {header.header_size} < {XML_NODE_HEADER_SIZE}"
        )
    line, _comment = XML_NODE_HEADER.unpack_from(buf, header.offset + MIN_HEADER_SIZE)
    return line


def _decode_start_element(buf: bytes, header: ChunkHeader, pool: Optional[StringPoolChunk]) -> XmlStartElementChunk:
    line = _node_line(buf, header)
    ext_at = header.payload_start
    _require(header, ext_at, XML_ATTR_EXT.size, "element extension")
    (ns, name, attr_start, attr_size, attr_count,
     id_index, class_index, style_index) = XML_ATTR_EXT.unpack_from(buf, ext_at)

    if attr_count and attr_size < XML_ATTRIBUTE.size:
        raise MalformedChunkError(
            f"start element at offset {header.offset}: attribute size {attr_size} < {XML_ATTRIBUTE.size}"
        )
    table_at = ext_at + attr_start
    _require(header, table_at, attr_size * attr_count, "attribute table")

    attributes: List[XmlAttribute] = []
    for i in range(attr_count):
        a_ns, a_name, a_raw, v_size, _res0, v_type, v_data = XML_ATTRIBUTE.unpack_from(buf, table_at + i * attr_size)
        attributes.append(XmlAttribute(
            namespace=_string(pool, a_ns, header),
            name=_string(pool, a_name, header),
            raw_value=_string(pool, a_raw, header),
            typed_value=ResValue(data_type=v_type, data=v_data, size=v_size),
        ))

    return XmlStartElementChunk(
        header=header,
        line_number=line,
        namespace=_string(pool, ns, header),
        name=_string(pool, name, header),
        attributes=attributes,
        id_index=id_index,
        class_index=class_index,
        style_index=style_index,
    )


def _decode_end_element(buf: bytes, header: ChunkHeader, pool: Optional[StringPoolChunk]) -> XmlEndElementChunk:
    line = _node_line(buf, header)
    _require(header, header.payload_start, XML_END_EXT.size, "element extension")
    ns, name = XML_END_EXT.unpack_from(buf, header.payload_start)
    return XmlEndElementChunk(
        header=header,
        line_number=line,
        namespace=_string(pool, ns, header),
        name=_string(pool, name, header),
    )


def _decode_xml(buf: bytes, header: ChunkHeader, pool: Optional[StringPoolChunk]) -> XmlChunk:
    # XML documents only appear at the top level; nested ones are kept opaque
    children = read_chunks(buf, header.payload_start, header.end, decoders=_CHILD_DECODERS)
    return XmlChunk(header=header, chunks={c.header.offset: c for c in children})


def _decode_unknown(buf: bytes, header: ChunkHeader, pool: Optional[StringPoolChunk]) -> UnknownChunk:
    return UnknownChunk(header=header, payload=bytes(buf[header.payload_start:header.end]))


_DECODERS: Dict[int, _Decoder] = {
    ChunkType.XML: _decode_xml,
    ChunkType.STRING_POOL: _decode_string_pool,
    ChunkType.XML_RESOURCE_MAP: _decode_resource_map,
    ChunkType.XML_START_ELEMENT: _decode_start_element,
    ChunkType.XML_END_ELEMENT: _decode_end_element,
}

_CHILD_DECODERS: Dict[int, _Decoder] = {t: d for t, d in _DECODERS.items() if t != ChunkType.XML}


# ---------- Public API ----------

def read_chunk(
    buf: bytes,
    offset: int,
    end: int,
    pool: Optional[StringPoolChunk] = None,
    decoders: Optional[Dict[int, _Decoder]] = None,
) -> Chunk:
    header = read_header(buf, offset, end)
    decoder = (_DECODERS if decoders is None else decoders).get(header.type, _decode_unknown)
    return decoder(buf, header, pool)


def read_chunks(
    buf: bytes,
    start: int,
    end: int,
    decoders: Optional[Dict[int, _Decoder]] = None,
) -> List[Chunk]:
    """
    Decode consecutive sibling chunks in [start, end), in buffer order.
    Names in later siblings resolve against the most recent string pool.
    """
    chunks: List[Chunk] = []
    pool: Optional[StringPoolChunk] = None
    offset = start
    while offset < end:
        chunk = read_chunk(buf, offset, end, pool, decoders)
        if isinstance(chunk, StringPoolChunk):
            pool = chunk
        chunks.append(chunk)
        offset = chunk.header.end
    return chunks


def parse(data: Buffer) -> ResourceFile:
    """
    Parse a whole compiled resource buffer.
    Raises MalformedChunkError on any size violation or when there are no chunks at all.
    """
    buf = bytes(data)
    chunks = read_chunks(buf, 0, len(buf))
    if not chunks:
        raise MalformedChunkError("empty manifest: no chunks in resource file")
    return ResourceFile(chunks=chunks)


def parse_xml(data: Buffer) -> XmlChunk:
    """Parse a compiled XML file; its first chunk must be an XML document chunk."""
    root = parse(data)
    first = root.chunks[0]
    if not isinstance(first, XmlChunk):
        raise MalformedChunkError(
            f"unexpected chunk type 0x{first.header.type:04x} at offset {first.header.offset}; expected XML (0x0003)"
        )
    return first
