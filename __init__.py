"""
Dos2Unix - A cross-platform Python utility for converting Windows line endings.

This module provides functionality to:
- Find files from glob patterns, sorted and without duplicates
- Detect UTF-8, UTF-16 and UTF-32 byte-order marks
- Classify files as good, bad (CRLF), binary or unreadable
- Rewrite CRLF line endings as LF, keeping every other byte intact
- Stream per-file conversion events from an asyncio engine
"""

__version__ = "1.0.0"
__author__ = "tboy1337"
