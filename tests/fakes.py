"""
Test doubles for the coin changer.

A scripted line transport standing in for the MDB bridge, and helpers
for fast engine settings and event collection.
"""

import asyncio
from collections import deque
from typing import Optional

from mdb_changer.devices.mdb import constants as mdb
from mdb_changer.infrastructure.settings import MDBSettings


# Coin map {1: 5, 2: 10, 3: 25}: scaling 5, credits 1, 2, 5
SETUP_RESPONSE = "p,03,00,01,05,02,00,07,01,02,05"
# Ten coins in each of the three tubes
TUBE_STATUS_RESPONSE = "p,00,00,0A,0A,0A"


class FakeTransport:
    """
    Scripted MDB bridge.

    Responses are keyed by command; dispense commands share one
    response, and a list response is consumed one item per request.
    Exceptions among responses are raised. Poll responses are consumed from a queue (exceptions in it
    are raised) and an empty queue answers like a timeout.
    """

    def __init__(self, responses: Optional[dict] = None) -> None:
        self.responses = {
            mdb.CMD_ENABLE_MASTER: "p,ACK",
            mdb.CMD_RESET_COIN_ACCEPTOR: "p,ACK",
            mdb.CMD_REQUEST_SETUP_INFO: SETUP_RESPONSE,
            mdb.CMD_EXPANSION_REQUEST: "p,4D,44,42",
            mdb.CMD_EXPANSION_FEATURE_ENABLE: "p,ACK",
            mdb.CMD_TUBE_STATUS_REQUEST: TUBE_STATUS_RESPONSE,
            mdb.CMD_COIN_TYPE_ENABLE: "p,ACK",
            mdb.CMD_INHIBIT_COIN_ACCEPTOR: "p,ACK",
            mdb.CMD_DISPENSE: "p,ACK",
        }
        self.responses.update(responses or {})
        self.poll_responses: deque = deque()
        self.poll_error: Optional[Exception] = None
        self.sent: list[str] = []
        self.is_open = False
        self.polled = asyncio.Event()

    async def open(self) -> None:
        self.is_open = True

    async def close(self) -> None:
        self.is_open = False

    async def write_line(self, line: str) -> None:
        self.sent.append(line)

    async def read_line(self, timeout: float) -> str:
        return ""

    async def request(self, line: str, timeout: float) -> str:
        self.sent.append(line)
        if line == mdb.CMD_POLL:
            self.polled.set()
            if self.poll_error is not None:
                raise self.poll_error
            if not self.poll_responses:
                return ""
            response = self.poll_responses.popleft()
            if isinstance(response, Exception):
                raise response
            return response

        key = mdb.CMD_DISPENSE if line.startswith(mdb.CMD_DISPENSE + ",") else line
        response = self.responses.get(key, "")
        if isinstance(response, list):
            response = response.pop(0) if response else ""
        if isinstance(response, Exception):
            raise response
        return response

    def dispense_commands(self) -> list[str]:
        return [line for line in self.sent if line.startswith(mdb.CMD_DISPENSE + ",")]


class PayoutTrackingTransport(FakeTransport):
    """
    Bridge whose tube status follows the payouts.

    Each dispense lowers the hardware count of its tube and queues one
    Dispensed poll response per coin.
    """

    def __init__(self, counts=(10, 10, 10), responses: Optional[dict] = None) -> None:
        super().__init__(responses)
        self.hardware_counts = list(counts)

    async def request(self, line: str, timeout: float) -> str:
        if line == mdb.CMD_TUBE_STATUS_REQUEST:
            self.sent.append(line)
            return "p,00,00," + ",".join(f"{c:02X}" for c in self.hardware_counts)

        response = await super().request(line, timeout)
        if line.startswith(mdb.CMD_DISPENSE + ","):
            value = int(line.rsplit(",", 1)[1], 16)
            quantity, raw_type = value >> 4, value & 0x0F
            self.hardware_counts[raw_type] -= quantity
            self.poll_responses.extend([f"p,9{raw_type:X}"] * quantity)
        return response


def fast_mdb_settings(**overrides) -> MDBSettings:
    """MDB settings with near-zero delays."""
    values = dict(
        default_timeout=0.01,
        handshake_timeout=0.01,
        setup_timeout=0.01,
        poll_timeout=0.01,
        dispense_timeout=0.01,
        reset_delay=0,
        empty_poll_delay=0.001,
        poll_interval=0.001,
        error_backoff=0.001,
        inter_dispense_delay=0,
    )
    values.update(overrides)
    return MDBSettings(**values)


def drain(queue: asyncio.Queue) -> list[dict]:
    """Take every event currently in the queue."""
    events = []
    while not queue.empty():
        events.append(queue.get_nowait())
    return events
