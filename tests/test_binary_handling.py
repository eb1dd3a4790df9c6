#!/usr/bin/env python3
"""
Test binary file handling for dos2unix.py.
"""

import logging
import os
import shutil
import sys
import tempfile
import unittest
from pathlib import Path
from unittest.mock import patch

# Add parent directory to path to import dos2unix module
sys.path.insert(0, str(Path(__file__).parent.parent))
import dos2unix  # pylint: disable=wrong-import-position
from dos2unix import EventType, ProcessingStatus  # pylint: disable=wrong-import-position

# Disable logging for tests
dos2unix.logger.setLevel(logging.CRITICAL)


class TestBinaryHandling(unittest.IsolatedAsyncioTestCase):
    def setUp(self) -> None:
        # Create a temporary directory
        self.test_dir = tempfile.mkdtemp()

        # Create a binary file that also contains a CRLF after the NUL byte
        self.binary_file = os.path.join(self.test_dir, "binary_file.bin")
        with open(self.binary_file, "wb") as f:
            f.write(b"abc\x00def\r\nghi\r\n")

        # Create a PNG-like binary file
        self.png_file = os.path.join(self.test_dir, "image.png")
        with open(self.png_file, "wb") as f:
            f.write(b"\x89PNG\r\n\x1a\n\x00\x00\x00\x0dIHDR\x00\x00")

    def tearDown(self) -> None:
        # Clean up the temporary directory
        shutil.rmtree(self.test_dir)

    async def test_nul_byte_is_binary(self) -> None:
        """Test a single NUL unit marks the file as binary."""
        info = await dos2unix.determine_processing_status(self.binary_file)
        self.assertEqual(info.status, ProcessingStatus.BINARY)
        self.assertIn("byte 3", info.message)

    async def test_png_is_binary(self) -> None:
        """Test binary detection wins over an earlier CRLF."""
        info = await dos2unix.determine_processing_status(self.png_file)
        self.assertEqual(info.status, ProcessingStatus.BINARY)

    async def test_binary_scan_stops_at_first_nul(self) -> None:
        """Test no unit after the first NUL is inspected."""
        with patch(
            "encoding_utils.is_byte_sequence_cr",
            wraps=dos2unix.encoding_utils.is_byte_sequence_cr,
        ) as is_cr:
            info = await dos2unix.determine_processing_status(self.binary_file)
        self.assertEqual(info.status, ProcessingStatus.BINARY)
        self.assertEqual(is_cr.call_count, 3)

    async def test_utf16_nul_unit_is_binary(self) -> None:
        """Test a zero code unit in UTF-16 text is binary."""
        file_path = os.path.join(self.test_dir, "utf16.bin")
        with open(file_path, "wb") as f:
            f.write(b"\xfe\xff" + "ab".encode("utf-16-be") + b"\x00\x00")
        info = await dos2unix.determine_processing_status(file_path)
        self.assertEqual(info.status, ProcessingStatus.BINARY)

    async def test_binary_files_are_not_rewritten(self) -> None:
        """Test binary files are skipped and their bytes left intact."""
        converter = dos2unix.Dos2UnixConverter(os.path.join(self.test_dir, "*"))
        events = [event async for event in converter.process()]

        skips = [event for event in events if event.type is EventType.SKIP]
        self.assertEqual(
            sorted(event.file for event in skips),
            sorted([self.binary_file, self.png_file]),
        )
        for event in skips:
            self.assertEqual(event.status, ProcessingStatus.BINARY)
            self.assertTrue(event.message.startswith("Skipping suspected binary file"))

        with open(self.binary_file, "rb") as f:
            self.assertEqual(f.read(), b"abc\x00def\r\nghi\r\n")
        with open(self.png_file, "rb") as f:
            self.assertEqual(f.read(), b"\x89PNG\r\n\x1a\n\x00\x00\x00\x0dIHDR\x00\x00")


if __name__ == "__main__":
    unittest.main()
