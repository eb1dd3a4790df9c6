#!/usr/bin/env python3
"""
Tests for BOM detection and control character helpers.
"""

import os
import shutil
import sys
import tempfile
import unittest
from pathlib import Path

# Add parent directory to path to import encoding_utils module
sys.path.insert(0, str(Path(__file__).parent.parent))
import encoding_utils  # pylint: disable=wrong-import-position
from encoding_utils import Bom  # pylint: disable=wrong-import-position


class TestBomDetection(unittest.TestCase):
    def setUp(self) -> None:
        self.test_dir = tempfile.mkdtemp()

    def tearDown(self) -> None:
        shutil.rmtree(self.test_dir)

    def test_detect_bom_from_buffer(self) -> None:
        """Test every known signature is recognized."""
        cases = [
            (b"plain text", Bom.NONE),
            (b"", Bom.NONE),
            (b"\xef\xbb\xbfhello", Bom.UTF8),
            (b"\xff\xfeh\x00", Bom.UTF16_LE),
            (b"\xfe\xff\x00h", Bom.UTF16_BE),
            (b"\xff\xfe\x00\x00h\x00\x00\x00", Bom.UTF32_LE),
            (b"\x00\x00\xfe\xff\x00\x00\x00h", Bom.UTF32_BE),
        ]
        for data, expected in cases:
            self.assertEqual(encoding_utils.detect_bom_from_buffer(data), expected)

    def test_utf32_le_checked_before_utf16_le(self) -> None:
        """Test the UTF-16-LE mark does not shadow the longer UTF-32-LE mark."""
        self.assertEqual(
            encoding_utils.detect_bom_from_buffer(b"\xff\xfe\x00\x00"), Bom.UTF32_LE
        )

    def test_truncated_signature_is_not_a_bom(self) -> None:
        """Test a partial UTF-8 signature is treated as no BOM."""
        self.assertEqual(encoding_utils.detect_bom_from_buffer(b"\xef\xbb"), Bom.NONE)

    def test_detect_bom_reads_file(self) -> None:
        """Test detect_bom reads the leading bytes of a file."""
        file_path = os.path.join(self.test_dir, "utf16.txt")
        with open(file_path, "wb") as f:
            f.write(b"\xff\xfe" + "line\r\n".encode("utf-16-le"))
        self.assertEqual(encoding_utils.detect_bom(file_path), Bom.UTF16_LE)

    def test_detect_bom_missing_file(self) -> None:
        """Test detect_bom raises OSError for a missing file."""
        with self.assertRaises(OSError):
            encoding_utils.detect_bom(os.path.join(self.test_dir, "missing.txt"))


class TestControlChars(unittest.TestCase):
    def test_widths(self) -> None:
        """Test BOM lengths and control unit widths."""
        expected = {
            Bom.NONE: (0, 1),
            Bom.UTF8: (3, 1),
            Bom.UTF16_LE: (2, 2),
            Bom.UTF16_BE: (2, 2),
            Bom.UTF32_LE: (4, 4),
            Bom.UTF32_BE: (4, 4),
        }
        for bom, (bom_bytes, unit_bytes) in expected.items():
            self.assertEqual(encoding_utils.get_bytes_per_bom(bom), bom_bytes)
            self.assertEqual(
                encoding_utils.get_bytes_per_control_char(bom), unit_bytes
            )

    def test_cr_and_lf_per_encoding(self) -> None:
        """Test CR and LF comparisons use the encoding's representation."""
        self.assertTrue(encoding_utils.is_byte_sequence_cr(b"\r", Bom.NONE))
        self.assertTrue(encoding_utils.is_byte_sequence_lf(b"\n", Bom.UTF8))
        self.assertTrue(encoding_utils.is_byte_sequence_cr(b"\r\x00", Bom.UTF16_LE))
        self.assertTrue(encoding_utils.is_byte_sequence_lf(b"\x00\n", Bom.UTF16_BE))
        self.assertTrue(
            encoding_utils.is_byte_sequence_cr(b"\r\x00\x00\x00", Bom.UTF32_LE)
        )
        self.assertTrue(
            encoding_utils.is_byte_sequence_lf(b"\x00\x00\x00\n", Bom.UTF32_BE)
        )
        # Wrong byte order is not a match
        self.assertFalse(encoding_utils.is_byte_sequence_cr(b"\x00\r", Bom.UTF16_LE))
        self.assertFalse(encoding_utils.is_byte_sequence_lf(b"\n", Bom.UTF16_LE))
        self.assertFalse(encoding_utils.is_byte_sequence_cr(b"\n", Bom.NONE))

    def test_default_bom_is_none(self) -> None:
        """Test the helpers default to single byte units."""
        self.assertTrue(encoding_utils.is_byte_sequence_cr(b"\r"))
        self.assertTrue(encoding_utils.is_byte_sequence_lf(b"\n"))
        self.assertTrue(encoding_utils.does_byte_sequence_suggest_binary(b"\x00"))

    def test_binary_rule(self) -> None:
        """Test only an all-zero control unit suggests binary content."""
        self.assertTrue(
            encoding_utils.does_byte_sequence_suggest_binary(b"\x00", Bom.UTF8)
        )
        self.assertTrue(
            encoding_utils.does_byte_sequence_suggest_binary(b"\x00\x00", Bom.UTF16_BE)
        )
        self.assertTrue(
            encoding_utils.does_byte_sequence_suggest_binary(
                b"\x00\x00\x00\x00", Bom.UTF32_LE
            )
        )
        # Zero padding inside a wider code unit is normal text
        self.assertFalse(
            encoding_utils.does_byte_sequence_suggest_binary(b"a\x00", Bom.UTF16_LE)
        )
        self.assertFalse(
            encoding_utils.does_byte_sequence_suggest_binary(
                b"\x00\x00\x00a", Bom.UTF32_BE
            )
        )
        self.assertFalse(encoding_utils.does_byte_sequence_suggest_binary(b"\xff"))


if __name__ == "__main__":
    unittest.main()
