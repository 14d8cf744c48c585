"""Tests for tool-output compression."""

from __future__ import annotations

import re

import pytest

from kele.agent.compress import compress_tool_output, truncate


def omitted_count(text: str) -> int:
    m = re.search(r"\[(\d+) characters omitted\]", text)
    assert m, text
    return int(m.group(1))


class TestCompressToolOutput:
    def test_short_output_unchanged(self):
        assert compress_tool_output("hello") == "hello"

    def test_threshold_boundary_unchanged(self):
        out = "a" * 2048
        assert compress_tool_output(out) == out

    @pytest.mark.parametrize("size", [2049, 2050, 2070])
    def test_never_grows_just_above_threshold(self, size):
        original = "".join(chr(ord("a") + i % 26) for i in range(size))
        assert compress_tool_output(original) == original

    @pytest.mark.parametrize("size", [2049, 2060, 2075, 2100, 5000, 40_000])
    def test_never_longer_than_input(self, size):
        assert len(compress_tool_output("a" * size)) <= size

    @pytest.mark.parametrize("size", [2100, 5000, 40_000])
    def test_keeps_head_and_tail(self, size):
        original = "".join(chr(ord("a") + i % 26) for i in range(size))
        out = compress_tool_output(original)

        assert len(out) < size
        assert out.startswith(original[:1536])
        assert out.endswith(original[-512:])
        assert omitted_count(out) == size - 1536 - 512

    def test_hard_truncation_then_compression(self):
        original = "H" * 1000 + "m" * 98_000 + "T" * 1000
        out = compress_tool_output(original, max_size=51200)

        # The truncation notice sits at the end of the truncated text, so it
        # survives in the tail.
        assert "[output truncated, original 100000 characters]" in out
        assert out.startswith("H" * 1000)
        notice = "\n\n... [output truncated, original 100000 characters]"
        assert omitted_count(out) == 51200 + len(notice) - 1536 - 512

    def test_truncation_below_threshold(self):
        out = compress_tool_output("x" * 100, max_size=10)
        assert out == "x" * 10 + "\n\n... [output truncated, original 100 characters]"

    def test_non_positive_max_size_uses_default(self):
        out = "y" * 1000
        assert compress_tool_output(out, max_size=0) == out

    def test_counts_characters(self):
        original = "é" * 3000
        out = compress_tool_output(original)
        assert omitted_count(out) == 3000 - 1536 - 512

    def test_custom_threshold(self):
        out = compress_tool_output("0123456789" * 10, threshold=40)
        assert out.startswith("0123456789" * 3)
        assert out.endswith("0123456789")
        assert omitted_count(out) == 100 - 30 - 10


class TestTruncate:
    def test_short(self):
        assert truncate("abc", 5) == "abc"

    def test_exact(self):
        assert truncate("abcde", 5) == "abcde"

    def test_long(self):
        assert truncate("abcdef", 3) == "abc..."

    def test_characters_not_bytes(self):
        assert truncate("你好世界", 2) == "你好..."
