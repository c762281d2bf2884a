"""
Unit tests for the MDB bridge wire layer.

Tests the payload codec, setup parsing, poll event classification
and the serial line transport.
"""

import asyncio
import pytest
from unittest.mock import AsyncMock, MagicMock, patch

import serial
import serial_asyncio

from mdb_changer.core.exceptions import DeviceConnectionError, SetupParseError
from mdb_changer.core.value_objects import CoinEventType
from mdb_changer.devices.mdb.classifier import EventClassifier
from mdb_changer.devices.mdb.codec import (
    decode_hex_payload,
    dispense_byte,
    encode_dispense,
    extract_payload,
    is_payload_frame,
    unpack_dispense_byte,
)
from mdb_changer.devices.mdb.coin_map import build_coin_map, parse_setup_info
from mdb_changer.devices.mdb.constants import CMD_POLL, coin_type_of, raw_type_of
from mdb_changer.devices.mdb.transport import SerialLineTransport
from mdb_changer.infrastructure.settings import SerialPortSettings, default_event_nibbles


# Feature level 3, country 0x0001, scaling 5, 2 decimals, routing 0x0007,
# credits 1, 2, 5 -> {1: 5, 2: 10, 3: 25}
SETUP_PAYLOAD = bytes([0x03, 0x00, 0x01, 0x05, 0x02, 0x00, 0x07, 0x01, 0x02, 0x05])


class TestDispenseEncoding:
    """Tests for dispense command encoding."""

    def test_encode_two_coins_of_raw_type_one(self):
        """Test quantity goes to the high nibble."""
        assert encode_dispense(1, 2) == "R,0D,21"

    def test_encode_limits(self):
        """Test the extreme raw types and quantities."""
        assert encode_dispense(0, 15) == "R,0D,F0"
        assert encode_dispense(15, 1) == "R,0D,1F"

    @pytest.mark.parametrize("raw_type,quantity", [(16, 1), (-1, 1), (0, 0), (0, 16)])
    def test_encode_out_of_range(self, raw_type, quantity):
        """Test out of range arguments are rejected."""
        with pytest.raises(ValueError):
            encode_dispense(raw_type, quantity)

    def test_dispense_byte_round_trip(self):
        """Test every raw type and quantity survives encode and decode."""
        for raw_type in range(16):
            for quantity in range(1, 16):
                command = encode_dispense(raw_type, quantity)
                payload = decode_hex_payload(command.rsplit(",", 1)[1])
                assert len(payload) == 1
                assert unpack_dispense_byte(payload[0]) == (raw_type, quantity)

    def test_dispense_byte_value(self):
        """Test the packed byte value."""
        assert dispense_byte(3, 4) == 0x43


class TestHexPayload:
    """Tests for ASCII-hex payload decoding."""

    def test_single_byte(self):
        """Test a single byte payload."""
        assert decode_hex_payload("51") == b"\x51"

    def test_separators_ignored(self):
        """Test commas and spaces are stripped."""
        assert decode_hex_payload("00,03 19") == bytes([0x00, 0x03, 0x19])

    def test_odd_length_left_padded(self):
        """Test an odd digit count gets a leading zero."""
        assert decode_hex_payload("ABC") == bytes([0x0A, 0xBC])

    def test_lowercase(self):
        """Test lowercase hex digits."""
        assert decode_hex_payload("ff") == b"\xff"

    def test_stops_at_invalid_group(self):
        """Test parsing stops at the first unparsable group."""
        assert decode_hex_payload("12ZZ34") == b"\x12"

    def test_empty(self):
        """Test empty input never raises."""
        assert decode_hex_payload("") == b""

    def test_garbage_never_raises(self):
        """Test non-hex input yields an empty result."""
        assert decode_hex_payload("hello") == b""


class TestFrames:
    """Tests for response frame detection."""

    def test_data_frame(self):
        """Test a data line is a payload frame."""
        assert is_payload_frame("p,51") is True

    @pytest.mark.parametrize("line", ["p,ACK", "p,NACK", "p,ack", "p,Nack"])
    def test_control_words(self, line):
        """Test ACK and NACK are not payload frames."""
        assert is_payload_frame(line) is False

    @pytest.mark.parametrize("line", ["", "x,51", "51"])
    def test_not_a_frame(self, line):
        """Test lines without the frame marker."""
        assert is_payload_frame(line) is False

    def test_extract_payload(self):
        """Test payload extraction from a data frame."""
        assert extract_payload("p,00,03") == bytes([0x00, 0x03])

    def test_extract_payload_control_word(self):
        """Test control words carry no payload."""
        assert extract_payload("p,ACK") == b""


class TestCoinMap:
    """Tests for setup parsing."""

    def test_coin_values_scaled(self):
        """Test credit units are multiplied by the scaling factor."""
        assert build_coin_map(SETUP_PAYLOAD) == {1: 5, 2: 10, 3: 25}

    def test_setup_fields(self):
        """Test the header fields of the setup response."""
        info = parse_setup_info(SETUP_PAYLOAD)

        assert info.feature_level == 3
        assert info.country_code == 0x0001
        assert info.scaling == 5
        assert info.decimals == 2
        assert info.routing == 0x0007

    def test_unused_slots_skipped(self):
        """Test 0x00 and 0xFF credit slots are skipped."""
        payload = SETUP_PAYLOAD[:7] + bytes([0x01, 0xFF, 0x00, 0x04])
        assert build_coin_map(payload) == {1: 5, 4: 20}

    def test_minimum_length(self):
        """Test an 8 byte setup response maps one coin type."""
        assert build_coin_map(SETUP_PAYLOAD[:8]) == {1: 5}

    def test_at_most_sixteen_types(self):
        """Test credit bytes beyond sixteen are ignored."""
        payload = SETUP_PAYLOAD[:7] + bytes([0x01] * 20)
        coin_map = build_coin_map(payload)

        assert len(coin_map) == 16
        assert max(coin_map) == 16

    def test_too_short(self):
        """Test a short setup response fails."""
        with pytest.raises(SetupParseError) as exc_info:
            build_coin_map(SETUP_PAYLOAD[:7])
        assert exc_info.value.details["raw"] == "03 00 01 05 02 00 07"

    def test_empty_map(self):
        """Test a setup response without coins fails."""
        with pytest.raises(SetupParseError):
            build_coin_map(SETUP_PAYLOAD[:7] + bytes([0x00, 0xFF]))

    def test_coin_type_numbering(self):
        """Test coin types are raw types plus one."""
        assert coin_type_of(0) == 1
        assert raw_type_of(16) == 15


class TestEventClassifier:
    """Tests for poll event classification."""

    @pytest.fixture
    def classifier(self):
        return EventClassifier({1: 5, 2: 10, 3: 25}, default_event_nibbles())

    def test_accepted(self, classifier):
        """Test 0x51 is an accepted coin of type 2."""
        event = classifier.classify(b"\x51")

        assert event.type is CoinEventType.ACCEPTED
        assert event.coin_type == 2
        assert event.value == 10

    @pytest.mark.parametrize("first,expected", [
        (0x90, CoinEventType.DISPENSED),
        (0x40, CoinEventType.CASHBOX),
        (0x70, CoinEventType.RETURNED),
    ])
    def test_other_kinds(self, classifier, first, expected):
        """Test the remaining event kinds."""
        event = classifier.classify(bytes([first]))

        assert event.type is expected
        assert event.coin_type == 1

    def test_unmapped_coin_type(self, classifier):
        """Test events for unmapped coin types are ignored."""
        assert classifier.classify(b"\x5F").is_none

    def test_unknown_nibble(self, classifier):
        """Test unknown status nibbles are ignored."""
        assert classifier.classify(b"\x21").is_none

    def test_empty_payload(self, classifier):
        """Test an empty payload is no event."""
        assert classifier.classify(b"").is_none

    def test_only_first_byte_used(self, classifier):
        """Test trailing bytes do not change the result."""
        assert classifier.classify(b"\x52\x00\x09").coin_type == 3

    def test_custom_nibbles(self):
        """Test the nibble mapping is configurable."""
        classifier = EventClassifier({1: 5}, {0x1: CoinEventType.ACCEPTED})

        assert classifier.classify(b"\x10").type is CoinEventType.ACCEPTED
        assert classifier.classify(b"\x50").is_none

    def test_classify_line(self, classifier):
        """Test classification of raw lines."""
        assert classifier.classify_line("p,52").coin_type == 3
        assert classifier.classify_line("p,ACK").is_none

    def test_update_coin_map(self, classifier):
        """Test the coin map can be replaced."""
        classifier.update_coin_map({4: 50})

        assert classifier.classify(b"\x53").value == 50
        assert classifier.classify(b"\x51").is_none

    def test_describe(self, classifier):
        """Test human-readable descriptions."""
        assert classifier.classify(b"\x51").describe() == "Accepted coin 2 (10)"
        assert classifier.classify(b"\x91").describe() == "Dispensed coin 2"
        assert classifier.classify(b"\x41").describe() == "Cashbox coin 2 (10)"
        assert classifier.classify(b"\x71").describe() == "Returned coin 2"
        assert classifier.classify(b"").describe() == "No event"


class TestSerialLineTransport:
    """Tests for the serial line transport."""

    @pytest.fixture
    def streams(self):
        reader = MagicMock()
        reader.readline = AsyncMock(return_value=b"p,51\r\n")
        writer = MagicMock()
        writer.drain = AsyncMock()
        writer.wait_closed = AsyncMock()
        return reader, writer

    @pytest.mark.asyncio
    async def test_request(self, streams):
        """Test a request writes one line and reads one line."""
        reader, writer = streams
        transport = SerialLineTransport(SerialPortSettings(port="/dev/null"))

        with patch.object(
            serial_asyncio,
            "open_serial_connection",
            AsyncMock(return_value=(reader, writer)),
        ):
            await transport.open()

        response = await transport.request(CMD_POLL, timeout=0.1)

        writer.write.assert_called_once_with(b"R,0B\n")
        assert response == "p,51"

    @pytest.mark.asyncio
    async def test_read_timeout_returns_empty(self, streams):
        """Test a read timeout is an empty response."""
        reader, writer = streams
        reader.readline = AsyncMock(side_effect=asyncio.TimeoutError)
        transport = SerialLineTransport(SerialPortSettings(port="/dev/null"))

        with patch.object(
            serial_asyncio,
            "open_serial_connection",
            AsyncMock(return_value=(reader, writer)),
        ):
            await transport.open()

        assert await transport.read_line(timeout=0.01) == ""

    @pytest.mark.asyncio
    async def test_read_when_closed(self):
        """Test reading from a closed port is an empty response."""
        transport = SerialLineTransport(SerialPortSettings(port="/dev/null"))
        assert await transport.read_line(timeout=0.01) == ""

    @pytest.mark.asyncio
    async def test_write_when_closed(self):
        """Test writing to a closed port fails."""
        transport = SerialLineTransport(SerialPortSettings(port="/dev/null"))

        with pytest.raises(DeviceConnectionError):
            await transport.write_line(CMD_POLL)

    @pytest.mark.asyncio
    async def test_open_failure(self):
        """Test a port that cannot be opened."""
        transport = SerialLineTransport(SerialPortSettings(port="/dev/missing"))

        with patch.object(
            serial_asyncio,
            "open_serial_connection",
            AsyncMock(side_effect=serial.SerialException("no such port")),
        ):
            with pytest.raises(DeviceConnectionError):
                await transport.open()

        assert transport.is_open is False

    @pytest.mark.asyncio
    async def test_close(self, streams):
        """Test closing the port."""
        reader, writer = streams
        transport = SerialLineTransport(SerialPortSettings(port="/dev/null"))

        with patch.object(
            serial_asyncio,
            "open_serial_connection",
            AsyncMock(return_value=(reader, writer)),
        ):
            await transport.open()
        await transport.close()

        writer.close.assert_called_once()
        assert transport.is_open is False
