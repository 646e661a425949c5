import json
import unittest

from translator_sync.errors import UnsupportedFormatError
from translator_sync.format_detector import FileFormat
from translator_sync.json_parser import StructureRegistry
from translator_sync.universal_parser import (
    formats_compatible,
    get_file_format,
    parse_translation_file,
    serialize_translation_file,
)


class TestUniversalParser(unittest.TestCase):
    def setUp(self):
        self.registry = StructureRegistry()

    def test_dispatches_to_json(self):
        content = json.dumps({"nav": {"home": "Home"}})
        self.assertEqual(parse_translation_file("en.json", content, self.registry), {"nav.home": "Home"})

    def test_dispatches_to_ftl(self):
        self.assertEqual(parse_translation_file("en.ftl", "hello = Hello\n", self.registry), {"hello": "Hello"})

    def test_unknown_format_raises(self):
        with self.assertRaises(UnsupportedFormatError):
            parse_translation_file("en.yaml", "hello: Hello", self.registry)

    def test_json_serialization_uses_remembered_structure(self):
        content = json.dumps({"nav": {"home": "Home"}})
        translations = parse_translation_file("en.json", content, self.registry)
        output = serialize_translation_file("en.json", translations, self.registry)
        self.assertEqual(json.loads(output), {"nav": {"home": "Home"}})

    def test_ftl_serialization(self):
        self.assertEqual(serialize_translation_file("de.ftl", {"hello": "Hallo"}), "hello = Hallo\n")

    def test_extensionless_file_uses_given_format(self):
        output = serialize_translation_file("messages", {"hello": "Hallo"}, file_format=FileFormat.FTL)
        self.assertEqual(output, "hello = Hallo\n")

    def test_serializing_unknown_format_raises(self):
        with self.assertRaises(UnsupportedFormatError):
            serialize_translation_file("messages.po", {"a": "b"})

    def test_get_file_format(self):
        self.assertIs(get_file_format("x.json"), FileFormat.JSON)
        self.assertIs(get_file_format("x", "a = b"), FileFormat.FTL)

    def test_formats_compatible(self):
        self.assertTrue(formats_compatible("en.json", "de.json"))
        self.assertTrue(formats_compatible("en.json", "de.ftl"))
        self.assertFalse(formats_compatible("en.json", "de.po"))


if __name__ == '__main__':
    unittest.main()
