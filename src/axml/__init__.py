from .types import (
    Chunk,
    ChunkHeader,
    ChunkType,
    MalformedChunkError,
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
from .chunks import parse, parse_xml
from .manifest import (
    MANIFEST_ENTRY,
    find_application,
    is_apk_debuggable,
    is_manifest_debuggable,
    read_manifest,
)
