"""Tests for the NDEF card format."""

import pytest
from cashucard.card import ndef_format
from cashucard.card.device import DEFAULT_NDEF_KEY
from cashucard.card.errors import AuthError, NotATokenError, PreconditionError
from cashucard.card.mifare import MIFARE_CLASSIC_1K, MIFARE_ULTRALIGHT, KeyType
from cashucard.reader.virtual import VirtualCard

TOKEN = "cashuAeyJ0b2tlbiI6W3sicHJvb2ZzIjpbXX1dfQ"
OTHER_KEY = bytes.fromhex("A0A1A2A3A4A5")


class TestEncoding:
    def test_text_record_bytes(self):
        message = ndef_format.encode_message("cashuAabc")
        # MB|ME|SR, TNF well-known; type "T"; status byte 0x02 + "en"
        assert message == bytes([0xD1, 0x01, 0x0C]) + b"T" + b"\x02en" + b"cashuAabc"

    def test_short_tlv(self):
        assert ndef_format.wrap_tlv(b"abc") == b"\x03\x03abc\xfe"

    def test_long_tlv(self):
        tlv = ndef_format.wrap_tlv(b"a" * 300)
        assert tlv[:4] == b"\x03\xff\x01\x2c"
        assert tlv[-1] == 0xFE

    def test_oversized_message_raises(self):
        with pytest.raises(PreconditionError):
            ndef_format.wrap_tlv(bytes(0xFFFF))

    def test_frame_is_block_aligned(self):
        framed = ndef_format.frame("cashuAabc", 16)
        # 2 TLV header + 16 message + 1 terminator, padded to 32
        assert len(framed) == 32
        assert framed[:2] == b"\x03\x10"
        assert framed[18] == 0xFE
        assert framed[19:] == bytes(13)

    def test_frame_requires_token_prefix(self):
        with pytest.raises(PreconditionError):
            ndef_format.frame("hello", 16)


class TestExtract:
    def test_recovers_token(self):
        assert ndef_format.extract(ndef_format.frame(TOKEN, 16)) == TOKEN

    def test_trims_exactly_one_byte(self):
        assert ndef_format.extract(b"xxcashuAabc\xfe\x00\x00") == "cashuAabc"

    def test_third_party_null_tlvs(self):
        raw = b"\x00\x00" + ndef_format.frame(TOKEN, 16) + bytes(64)
        assert ndef_format.extract(raw) == TOKEN

    def test_missing_magic(self):
        raw = b"\x03\x10" + b"not a token here" + b"\xfe" + bytes(13)
        with pytest.raises(NotATokenError):
            ndef_format.extract(raw)

    def test_blank_card(self):
        with pytest.raises(NotATokenError):
            ndef_format.extract(bytes(720))


class TestWriteRead:
    def test_write_uses_key_b(self, card):
        blocks = ndef_format.write(card, MIFARE_CLASSIC_1K, "cashuAabc")
        assert blocks == [4, 5]
        assert card.blocks_called("authenticate")[0] == 4
        assert DEFAULT_NDEF_KEY.key_type == KeyType.B

    def test_round_trip(self, card):
        ndef_format.write(card, MIFARE_CLASSIC_1K, TOKEN)
        assert ndef_format.read(card, MIFARE_CLASSIC_1K) == TOKEN

    def test_long_token_round_trip(self, card):
        token = "cashuA" + "x" * 400
        ndef_format.write(card, MIFARE_CLASSIC_1K, token)
        assert ndef_format.read(card, MIFARE_CLASSIC_1K) == token

    def test_read_scans_to_end_of_card(self, card):
        ndef_format.write(card, MIFARE_CLASSIC_1K, TOKEN)
        card.calls.clear()
        ndef_format.read(card, MIFARE_CLASSIC_1K)
        assert card.blocks_called("read") == MIFARE_CLASSIC_1K.data_blocks()
        assert len(card.blocks_called("authenticate")) == 15

    def test_failing_sector_ends_read(self, card):
        ndef_format.write(card, MIFARE_CLASSIC_1K, TOKEN)
        card.fail_auth = {12}
        assert ndef_format.read(card, MIFARE_CLASSIC_1K) == TOKEN
        assert card.blocks_called("read")[-1] == 10

    def test_unreadable_first_sector_raises(self, card):
        card.set_sector_keys(1, OTHER_KEY, OTHER_KEY)
        with pytest.raises(AuthError):
            ndef_format.read(card, MIFARE_CLASSIC_1K)

    def test_ultralight_round_trip(self):
        card = VirtualCard(MIFARE_ULTRALIGHT)
        ndef_format.write(card, MIFARE_ULTRALIGHT, "cashuAabc")
        assert ndef_format.read(card, MIFARE_ULTRALIGHT) == "cashuAabc"

    def test_blank_card(self, card):
        with pytest.raises(NotATokenError):
            ndef_format.read(card, MIFARE_CLASSIC_1K)

    def test_write_clears_blocks_after_message(self, card):
        blocks = ndef_format.write(card, MIFARE_CLASSIC_1K, "cashuAabc")
        assert card.blocks_called("write") == MIFARE_CLASSIC_1K.data_blocks()
        for block in MIFARE_CLASSIC_1K.data_blocks()[len(blocks):]:
            assert card.block(block) == bytes(16)

    def test_shorter_token_over_longer_one(self, card):
        ndef_format.write(card, MIFARE_CLASSIC_1K, "cashuB" + "y" * 200)
        ndef_format.write(card, MIFARE_CLASSIC_1K, "cashuAabc")
        assert ndef_format.read(card, MIFARE_CLASSIC_1K) == "cashuAabc"

    def test_clearing_stops_at_capacity(self, card):
        ndef_format.write(card, MIFARE_CLASSIC_1K, "cashuB" + "y" * 200)
        ndef_format.write(card, MIFARE_CLASSIC_1K, "cashuAabc", capacity=64)
        # Message in 4-5, cleared 6 and 8; block 9 keeps the old bytes
        assert card.blocks_called("write")[-2:] == [6, 8]
        assert card.block(9) != bytes(16)

    def test_clearing_ends_at_unwritable_block(self, card):
        card.fail_write = {8}
        blocks = ndef_format.write(card, MIFARE_CLASSIC_1K, "cashuAabc")
        assert blocks == [4, 5]
        assert card.blocks_called("write")[-1] == 8
