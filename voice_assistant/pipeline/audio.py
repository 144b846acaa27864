"""
WAV container helpers: merging synthesized segments and splitting text into
synthesis-sized chunks.

Segments are canonical PCM WAV files with a 44-byte header. Merging keeps the
first header, concatenates the sample data of every segment and rewrites the
RIFF and data chunk sizes. Formats are assumed to match; nothing is
resampled or validated.
"""

import struct
from typing import List, Sequence

WAV_HEADER_SIZE = 44
RIFF_SIZE_OFFSET = 4
DATA_SIZE_OFFSET = 40


def wav_header(data_len: int, sample_rate: int = 24000, channels: int = 1, bits_per_sample: int = 16) -> bytes:
    """Canonical 44-byte PCM WAV header for ``data_len`` bytes of samples."""
    block_align = channels * bits_per_sample // 8
    return struct.pack(
        '<4sI4s4sIHHIIHH4sI',
        b'RIFF', 36 + data_len, b'WAVE',
        b'fmt ', 16, 1, channels, sample_rate, sample_rate * block_align, block_align, bits_per_sample,
        b'data', data_len,
    )


def merge_segments(segments: Sequence[bytes]) -> bytes:
    """Merge WAV segments into one container.

    Segments of 44 bytes or fewer carry no samples and contribute nothing,
    but a header-only first segment still supplies the header. A single
    segment comes back with its size fields normalized.
    """
    if not segments:
        return b""
    first = segments[0]
    if len(first) < WAV_HEADER_SIZE:
        return bytes(first)

    merged = bytearray(first[:WAV_HEADER_SIZE])
    for segment in segments:
        if len(segment) > WAV_HEADER_SIZE:
            merged += segment[WAV_HEADER_SIZE:]

    data_len = len(merged) - WAV_HEADER_SIZE
    struct.pack_into('<I', merged, RIFF_SIZE_OFFSET, len(merged) - 8)
    struct.pack_into('<I', merged, DATA_SIZE_OFFSET, data_len)
    return bytes(merged)


def split_text(text: str, max_len: int) -> List[str]:
    """Split ``text`` into consecutive chunks of at most ``max_len`` characters."""
    if not text:
        return []
    if max_len <= 0 or len(text) <= max_len:
        return [text]
    return [text[i:i + max_len] for i in range(0, len(text), max_len)]
