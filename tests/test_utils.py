#!/usr/bin/env python3
"""
Unit tests for batching and response parsing helpers.
"""

import sys
import unittest
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from srt_translator.translation.utils import (
    chunk_lines,
    match_json_array,
    parse_translations_response,
    safe_parse_json_array,
    safe_parse_json_object,
)


class TestChunkLines(unittest.TestCase):

    def test_batch_count_is_ceiling(self):
        batches = chunk_lines(list(range(120)), 50)
        self.assertEqual([len(b) for b in batches], [50, 50, 20])

    def test_order_preserved(self):
        batches = chunk_lines(list(range(7)), 3)
        self.assertEqual(sum(batches, []), list(range(7)))

    def test_small_input_single_batch(self):
        self.assertEqual(chunk_lines([1, 2, 3], 15), [[1, 2, 3]])

    def test_empty_input(self):
        self.assertEqual(chunk_lines([], 10), [])

    def test_invalid_batch_size(self):
        with self.assertRaises(ValueError):
            chunk_lines([1], 0)


class TestJsonParsing(unittest.TestCase):

    def test_direct_array(self):
        self.assertEqual(safe_parse_json_array('["a", "b"]'), ["a", "b"])

    def test_fenced_array(self):
        text = '```json\n["uno", "dos"]\n```'
        self.assertEqual(safe_parse_json_array(text), ["uno", "dos"])

    def test_array_embedded_in_prose(self):
        text = 'Sure: ["a [b]", "c"] hope this helps'
        self.assertEqual(match_json_array(text), '["a [b]", "c"]')
        self.assertEqual(safe_parse_json_array(text), ["a [b]", "c"])

    def test_not_an_array(self):
        self.assertIsNone(safe_parse_json_array("no json here"))
        self.assertIsNone(safe_parse_json_array(""))

    def test_object(self):
        self.assertEqual(safe_parse_json_object('x {"k": "}"} y'), {"k": "}"})

    def test_translations_object_with_items(self):
        text = '{"translations": [{"id": 1, "text": "hola"}, {"id": 2, "text": "adios"}]}'
        self.assertEqual(parse_translations_response(text), ["hola", "adios"])

    def test_translations_object_with_strings(self):
        self.assertEqual(parse_translations_response('{"translations": ["x"]}'), ["x"])

    def test_unparseable_response(self):
        self.assertIsNone(parse_translations_response('{"answer": "nope"}'))
        self.assertIsNone(parse_translations_response(None))

    def test_length_is_not_checked(self):
        self.assertEqual(parse_translations_response('["only one"]'), ["only one"])


if __name__ == "__main__":
    unittest.main()
