"""Tests for card geometry helpers."""

import pytest
from cashucard.card.mifare import (
    MIFARE_CLASSIC_1K, MIFARE_MINI, MIFARE_ULTRALIGHT, DEFAULT_KEY,
    TRANSPORT_ACCESS_BITS, get_geometry, parse_sector_trailer,
    build_sector_trailer, parse_key,
)


class TestGeometryConstants:
    def test_classic_1k(self):
        assert MIFARE_CLASSIC_1K.block_size == 16
        assert MIFARE_CLASSIC_1K.blocks_per_sector == 4
        assert MIFARE_CLASSIC_1K.total_blocks == 64
        assert MIFARE_CLASSIC_1K.start_block == 4

    def test_ultralight_is_not_sectored(self):
        assert MIFARE_ULTRALIGHT.sectored is False
        assert MIFARE_ULTRALIGHT.block_size == 4


class TestBlockSectorMapping:
    def test_sector_to_block(self):
        assert MIFARE_CLASSIC_1K.sector_to_block(0) == 0
        assert MIFARE_CLASSIC_1K.sector_to_block(1) == 4
        assert MIFARE_CLASSIC_1K.sector_to_block(15) == 60

    def test_block_to_sector(self):
        assert MIFARE_CLASSIC_1K.block_to_sector(0) == 0
        assert MIFARE_CLASSIC_1K.block_to_sector(3) == 0
        assert MIFARE_CLASSIC_1K.block_to_sector(4) == 1
        assert MIFARE_CLASSIC_1K.block_to_sector(63) == 15

    def test_is_sector_trailer(self):
        # Sector trailers at blocks 3, 7, 11, ..., 63
        assert MIFARE_CLASSIC_1K.is_sector_trailer(3) is True
        assert MIFARE_CLASSIC_1K.is_sector_trailer(7) is True
        assert MIFARE_CLASSIC_1K.is_sector_trailer(63) is True
        # Non-trailers
        assert MIFARE_CLASSIC_1K.is_sector_trailer(0) is False
        assert MIFARE_CLASSIC_1K.is_sector_trailer(1) is False
        assert MIFARE_CLASSIC_1K.is_sector_trailer(4) is False

    def test_unsectored_card_has_no_trailers(self):
        assert not any(MIFARE_ULTRALIGHT.is_sector_trailer(p) for p in range(16))

    def test_sector_trailer_block(self):
        assert MIFARE_CLASSIC_1K.sector_trailer_block(0) == 3
        assert MIFARE_CLASSIC_1K.sector_trailer_block(1) == 7
        assert MIFARE_CLASSIC_1K.sector_trailer_block(15) == 63


class TestDataBlocks:
    def test_data_blocks_skip_trailers(self):
        assert MIFARE_CLASSIC_1K.data_blocks(0)[:6] == [0, 1, 2, 4, 5, 6]

    def test_data_blocks_start_at_sector_one(self):
        blocks = MIFARE_CLASSIC_1K.data_blocks()
        assert blocks[:4] == [4, 5, 6, 8]
        # 15 sectors × 3 data blocks = 45
        assert len(blocks) == 45
        for b in blocks:
            assert not MIFARE_CLASSIC_1K.is_sector_trailer(b)

    def test_capacity(self):
        assert MIFARE_CLASSIC_1K.capacity() == 720
        assert MIFARE_MINI.capacity() == 192
        assert MIFARE_ULTRALIGHT.capacity() == 48

    def test_capacity_from_later_block(self):
        assert MIFARE_CLASSIC_1K.capacity(8) == 672


class TestGetGeometry:
    def test_known_name(self):
        assert get_geometry("mifare_mini") is MIFARE_MINI

    def test_case_insensitive(self):
        assert get_geometry("MIFARE_CLASSIC_1K") is MIFARE_CLASSIC_1K

    def test_unknown_raises(self):
        with pytest.raises(ValueError):
            get_geometry("desfire")


class TestSectorTrailer:
    def test_valid_trailer(self):
        # Key A (6 bytes) + access bits (4 bytes) + Key B (6 bytes)
        data = bytes(range(16))
        result = parse_sector_trailer(data)
        assert result["key_a"] == bytes([0, 1, 2, 3, 4, 5])
        assert result["access_bits"] == bytes([6, 7, 8, 9])
        assert result["key_b"] == bytes([10, 11, 12, 13, 14, 15])

    def test_invalid_length_raises(self):
        with pytest.raises(ValueError):
            parse_sector_trailer(bytes(10))

    def test_build_default_trailer(self):
        trailer = build_sector_trailer()
        assert trailer == DEFAULT_KEY + TRANSPORT_ACCESS_BITS + DEFAULT_KEY
        assert parse_sector_trailer(trailer)["key_b"] == DEFAULT_KEY

    def test_build_rejects_short_key(self):
        with pytest.raises(ValueError):
            build_sector_trailer(key_a=b"\x00" * 5)


class TestParseKey:
    def test_hex_key(self):
        assert parse_key("FFFFFFFFFFFF") == DEFAULT_KEY

    def test_spaced_lowercase_key(self):
        assert parse_key("a0 a1 a2 a3 a4 a5") == bytes([0xA0, 0xA1, 0xA2, 0xA3, 0xA4, 0xA5])

    def test_wrong_length_raises(self):
        with pytest.raises(ValueError):
            parse_key("FFFF")
