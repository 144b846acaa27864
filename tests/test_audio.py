"""
Test cases for WAV segment merging and text chunking.
"""

import struct

import pytest

from voice_assistant.pipeline.audio import WAV_HEADER_SIZE, merge_segments, split_text, wav_header
from conftest import make_wav


def riff_size(wav):
    return struct.unpack_from('<I', wav, 4)[0]


def data_size(wav):
    return struct.unpack_from('<I', wav, 40)[0]


class TestWavHeader:

    def test_header_layout(self):
        """The canonical 44-byte header carries the given sizes and rate."""
        header = wav_header(1000, sample_rate=16000)

        assert len(header) == WAV_HEADER_SIZE
        assert header[:4] == b'RIFF'
        assert header[8:16] == b'WAVEfmt '
        assert header[36:40] == b'data'
        assert riff_size(header) == 1036
        assert data_size(header) == 1000
        assert struct.unpack_from('<I', header, 24)[0] == 16000


class TestMergeSegments:
    """Concatenating synthesized segments into one container."""

    def test_three_segments(self):
        """Samples are concatenated in order under one corrected header."""
        segments = [make_wav(100, fill=i) for i in (1, 2, 3)]

        merged = merge_segments(segments)

        assert len(merged) == WAV_HEADER_SIZE + 300
        assert data_size(merged) == 300
        assert riff_size(merged) == len(merged) - 8
        assert merged[WAV_HEADER_SIZE:] == bytes([1]) * 100 + bytes([2]) * 100 + bytes([3]) * 100

    def test_keeps_first_header_format_fields(self):
        """Format fields come from the first segment only."""
        first = wav_header(10, sample_rate=16000) + b'\x00' * 10
        second = wav_header(10, sample_rate=48000) + b'\x01' * 10

        merged = merge_segments([first, second])

        assert merged[8:36] == first[8:36]

    def test_single_segment_normalized(self):
        """A lone segment gets its size fields rewritten."""
        # Header claims the wrong sizes
        broken = bytearray(make_wav(50))
        struct.pack_into('<I', broken, 4, 0)
        struct.pack_into('<I', broken, 40, 0xFFFFFFFF)

        merged = merge_segments([bytes(broken)])

        assert data_size(merged) == 50
        assert riff_size(merged) == WAV_HEADER_SIZE + 50 - 8
        assert merged[WAV_HEADER_SIZE:] == bytes(broken)[WAV_HEADER_SIZE:]

    def test_header_only_segments_contribute_nothing(self):
        """Later segments with no samples add no bytes."""
        merged = merge_segments([make_wav(20), wav_header(0), b'\x00' * 10, make_wav(30, fill=7)])

        assert data_size(merged) == 50
        assert merged[-30:] == bytes([7]) * 30

    def test_header_only_first_segment_supplies_header(self):
        """A bare 44-byte first segment still takes every later segment's samples."""
        merged = merge_segments([wav_header(0), make_wav(100, fill=4), make_wav(100, fill=5)])

        assert data_size(merged) == 200
        assert riff_size(merged) == len(merged) - 8
        assert merged[WAV_HEADER_SIZE:] == bytes([4]) * 100 + bytes([5]) * 100

    def test_truncated_first_segment_returned_unchanged(self):
        """Fewer than 44 bytes cannot be a header, so the input comes back as-is."""
        stub = b'RIFF' + b'\x00' * 10

        assert merge_segments([stub, make_wav(100)]) == stub

    def test_empty_input(self):
        """No segments produce no bytes."""
        assert merge_segments([]) == b""


class TestSplitText:

    @pytest.mark.parametrize("text, max_len, expected", [
        ("", 10, []),
        ("short", 10, ["short"]),
        ("exactly10!", 10, ["exactly10!"]),
        ("abcdefghij", 4, ["abcd", "efgh", "ij"]),
        ("no limit at all", 0, ["no limit at all"]),
    ])
    def test_split(self, text, max_len, expected):
        """Test fixed-length splitting of reply text."""
        assert split_text(text, max_len) == expected

    def test_chunks_rejoin_to_original(self):
        """Chunks stay within the limit and lose no characters."""
        text = "今天天气很好，适合出去散步。" * 20

        chunks = split_text(text, 64)

        assert "".join(chunks) == text
        assert all(len(chunk) <= 64 for chunk in chunks)


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
