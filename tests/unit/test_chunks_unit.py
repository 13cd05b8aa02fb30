# tests/unit/test_chunks_unit.py

import struct
import unittest

from axml.chunks import parse, parse_xml, read_header
from axml.types import (
    ChunkType,
    MalformedChunkError,
    ResourceMapChunk,
    StringPoolChunk,
    UnknownChunk,
    XmlChunk,
    XmlEndElementChunk,
    XmlStartElementChunk,
)

import manifest_builder as mb


class TestChunkHeader(unittest.TestCase):
    def test_header_fields(self):
        buf = struct.pack("<HHI", 0x0003, 8, 8)
        h = read_header(buf, 0, len(buf))
        self.assertEqual((h.type, h.header_size, h.size, h.offset), (3, 8, 8, 0))
        self.assertEqual(h.kind, ChunkType.XML)
        self.assertEqual(h.end, 8)

    def test_unknown_type_has_no_kind(self):
        h = read_header(struct.pack("<HHI", 0x7777, 8, 8), 0, 8)
        self.assertIsNone(h.kind)

    def test_truncated_header(self):
        with self.assertRaises(MalformedChunkError):
            read_header(b"\x03\x00\x08", 0, 3)

    def test_header_size_larger_than_total(self):
        with self.assertRaises(MalformedChunkError):
            read_header(struct.pack("<HHI", 0x0003, 16, 8) + b"\x00" * 8, 0, 16)

    def test_header_size_below_minimum(self):
        with self.assertRaises(MalformedChunkError):
            read_header(struct.pack("<HHI", 0x0003, 4, 8), 0, 8)

    def test_total_size_past_buffer(self):
        with self.assertRaises(MalformedChunkError):
            read_header(struct.pack("<HHI", 0x0003, 8, 64), 0, 8)


class TestParse(unittest.TestCase):
    def test_empty_buffer_is_empty_manifest(self):
        with self.assertRaises(MalformedChunkError) as cm:
            parse(b"")
        self.assertIn("empty manifest", str(cm.exception))

    def test_trailing_garbage_rejected(self):
        data = mb.manifest(["debuggable"]) + b"\x01\x02\x03"
        with self.assertRaises(MalformedChunkError):
            parse(data)

    def test_first_chunk_must_be_xml(self):
        data = mb.string_pool(["application"]) + mb.manifest(["debuggable"])
        self.assertIsInstance(parse(data).chunks[0], StringPoolChunk)
        with self.assertRaises(MalformedChunkError) as cm:
            parse_xml(data)
        self.assertIn("unexpected chunk type", str(cm.exception))

    def test_children_in_document_order(self):
        xml = parse_xml(mb.manifest(["label", "debuggable"]))
        kinds = [type(c) for c in xml.children]
        self.assertEqual(kinds, [
            StringPoolChunk,
            ResourceMapChunk,
            XmlStartElementChunk,   # manifest
            XmlStartElementChunk,   # application
            XmlEndElementChunk,
            XmlEndElementChunk,
        ])
        offsets = list(xml.chunks.keys())
        self.assertEqual(offsets, sorted(offsets))
        self.assertEqual(offsets[0], xml.header.payload_start)

    def test_element_and_attribute_names(self):
        xml = parse_xml(mb.manifest(["label", "debuggable"]))
        names = [e.name for e in xml.start_elements()]
        self.assertEqual(names, ["manifest", "application"])
        app = xml.start_elements()[1]
        self.assertEqual(app.line_number, 2)
        self.assertEqual([a.name for a in app.attributes], ["label", "debuggable"])
        self.assertEqual(app.attributes[0].namespace, mb.ANDROID_NS)
        self.assertIsNone(app.attributes[0].raw_value)
        self.assertEqual(app.attributes[1].typed_value.data_type, mb.TYPE_INT_BOOLEAN)
        self.assertEqual(app.attributes[1].typed_value.data, 0xFFFFFFFF)

    def test_utf8_string_pool(self):
        xml = parse_xml(mb.manifest(["debuggable"], utf8=True))
        pool = xml.string_pool
        self.assertTrue(pool.utf8)
        self.assertEqual(pool.strings[2], "application")
        self.assertEqual(xml.start_elements()[1].attributes[0].name, "debuggable")

    def test_utf16_string_pool(self):
        pool = parse_xml(mb.manifest(["debuggable"])).string_pool
        self.assertFalse(pool.utf8)
        self.assertEqual(pool.strings, [mb.ANDROID_NS, "manifest", "application", "debuggable"])

    def test_resource_map_ids(self):
        xml = parse_xml(mb.manifest(["debuggable"]))
        rmap = [c for c in xml.children if isinstance(c, ResourceMapChunk)][0]
        self.assertEqual(rmap.resource_ids, [0x0101000F])

    def test_unknown_chunk_is_kept_and_skipped(self):
        odd = mb.chunk(0x0104, struct.pack("<II", 3, mb.NO_ENTRY), b"\xAA" * 8)  # CDATA
        body = mb.string_pool(["application", "debuggable"]) + odd + mb.start_element(0, [(mb.NO_ENTRY, 1, mb.NO_ENTRY, 0x12, 0)])
        xml = parse_xml(mb.xml_document(body))
        self.assertIsInstance(xml.children[1], UnknownChunk)
        self.assertEqual(xml.children[1].payload, b"\xAA" * 8)
        self.assertEqual(xml.start_elements()[0].name, "application")

    def test_child_larger_than_parent(self):
        pool = mb.string_pool(["application"])
        # Declare the document smaller than its string pool child
        doc = struct.pack("<HHI", mb.TYPE_XML, 8, 8 + len(pool) - 4) + pool
        with self.assertRaises(MalformedChunkError):
            parse(doc)

    def test_attribute_table_outside_chunk(self):
        elem = bytearray(mb.start_element(0, [(mb.NO_ENTRY, 0, mb.NO_ENTRY, 0x12, 0)]))
        struct.pack_into("<H", elem, 16 + 12, 5)  # attribute_count 1 -> 5
        doc = mb.xml_document(mb.string_pool(["application"]), bytes(elem))
        with self.assertRaises(MalformedChunkError):
            parse_xml(doc)

    def test_string_index_out_of_range(self):
        doc = mb.xml_document(mb.string_pool(["application"]), mb.start_element(7))
        with self.assertRaises(MalformedChunkError):
            parse_xml(doc)

    def test_string_reference_without_pool(self):
        with self.assertRaises(MalformedChunkError):
            parse_xml(mb.xml_document(mb.start_element(0)))

    def test_nested_xml_document_is_opaque(self):
        """Only the top level XML chunk is decoded; XML chunks inside it stay unknown."""
        xml = parse_xml(mb.nested_xml(5000))
        self.assertEqual(len(xml.children), 1)
        self.assertIsInstance(xml.children[0], UnknownChunk)
        self.assertEqual(xml.children[0].header.kind, ChunkType.XML)

    def test_string_pool_is_the_last_one(self):
        first = mb.string_pool(["first"])
        second = mb.string_pool(["application", "debuggable"])
        xml = parse_xml(mb.xml_document(first, second, mb.start_element(0)))
        self.assertEqual(xml.string_pool.strings, ["application", "debuggable"])
        self.assertEqual(xml.start_elements()[0].name, "application")

    def test_no_entry_name_is_none(self):
        xml = parse_xml(mb.xml_document(mb.start_element(mb.NO_ENTRY)))
        self.assertIsNone(xml.start_elements()[0].name)

    def test_parse_is_deterministic(self):
        data = mb.manifest(["debuggable"])
        self.assertEqual(parse(data), parse(data))
        self.assertIsInstance(parse(bytearray(data)).chunks[0], XmlChunk)


if __name__ == "__main__":
    unittest.main()
