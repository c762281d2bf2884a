"""
MDB Bridge Transport Layer.

Line-oriented async serial I/O to the MDB bridge. The bridge is
half-duplex: one command line out, one response line back, so every
exchange is serialized by a lock.
"""

import asyncio
import logging
from typing import Optional

import serial
import serial_asyncio

from mdb_changer.core.exceptions import DeviceConnectionError
from mdb_changer.infrastructure.settings import SerialPortSettings


logger = logging.getLogger(__name__)

LINE_TERMINATOR = b"\n"


class SerialLineTransport:
    """
    Transport for the ASCII line protocol of the MDB bridge.

    read_line() never raises: timeouts and I/O errors produce an empty
    string, which callers treat as "no response".

    Attributes:
        settings: Serial port settings.
    """

    def __init__(self, settings: SerialPortSettings) -> None:
        """
        Initialize the transport.

        Args:
            settings: Serial port settings.
        """
        self._settings = settings
        self._reader: Optional[asyncio.StreamReader] = None
        self._writer: Optional[asyncio.StreamWriter] = None
        self._lock = asyncio.Lock()

    @property
    def is_open(self) -> bool:
        """Check if the port is open."""
        return self._writer is not None

    async def open(self) -> None:
        """
        Open the serial port.

        Raises:
            DeviceConnectionError: If the port cannot be opened.
        """
        if self.is_open:
            return
        try:
            self._reader, self._writer = await serial_asyncio.open_serial_connection(
                url=self._settings.port,
                baudrate=self._settings.baudrate,
                bytesize=self._settings.bytesize,
                parity=self._settings.parity,
                stopbits=self._settings.stopbits,
            )
        except (serial.SerialException, OSError) as e:
            raise DeviceConnectionError(
                f"Failed to open {self._settings.port}: {e}",
                device_name="mdb_bridge",
            ) from e
        logger.info(f"Port {self._settings.port} opened at {self._settings.baudrate} baud")
        await asyncio.sleep(0.1)

    async def close(self) -> None:
        """Close the serial port."""
        if self._writer is None:
            return
        self._writer.close()
        try:
            await self._writer.wait_closed()
        except (serial.SerialException, OSError) as e:
            logger.debug(f"Close error (ignored): {e}")
        self._reader = None
        self._writer = None
        logger.info(f"Port {self._settings.port} closed")

    async def write_line(self, line: str) -> None:
        """
        Write one command line.

        Raises:
            DeviceConnectionError: If the port is not open or the write fails.
        """
        if self._writer is None:
            raise DeviceConnectionError("Serial port not open", device_name="mdb_bridge")
        logger.debug(f"TX: {line}")
        try:
            self._writer.write(line.encode("ascii") + LINE_TERMINATOR)
            await self._writer.drain()
        except (serial.SerialException, OSError) as e:
            raise DeviceConnectionError(f"Write failed: {e}", device_name="mdb_bridge") from e

    async def read_line(self, timeout: float) -> str:
        """
        Read one response line.

        Args:
            timeout: Read timeout in seconds.

        Returns:
            Stripped line, or "" on timeout or I/O error.
        """
        if self._reader is None:
            return ""
        try:
            raw = await asyncio.wait_for(self._reader.readline(), timeout=timeout)
        except asyncio.TimeoutError:
            return ""
        except (serial.SerialException, OSError, asyncio.IncompleteReadError) as e:
            logger.error(f"Receive error: {e}")
            return ""
        line = raw.decode("ascii", errors="ignore").strip()
        logger.debug(f"RX: {line}")
        return line

    async def request(self, line: str, timeout: float) -> str:
        """
        Send a command and read its response as one exchange.

        Args:
            line: Command line.
            timeout: Response timeout in seconds.

        Returns:
            Response line, or "" on timeout.
        """
        async with self._lock:
            await self.write_line(line)
            return await self.read_line(timeout)
