"""An I2C device at a fixed address on a two-wire bus."""

from __future__ import annotations

import logging
from typing import Protocol

from buskit.errors import BusError

_log = logging.getLogger(__name__)

DEFAULT_MAX_BUFFER_SIZE = 32


class _WireBus(Protocol):
    """The bus interface an I2C device drives."""

    def begin(self) -> None: ...

    def begin_transmission(self, address: int) -> None: ...

    def write(self, data: bytes) -> int: ...

    def end_transmission(self, stop: bool = True) -> int: ...

    def request_from(self, address: int, length: int, stop: bool = True) -> int: ...

    def read(self) -> int: ...


class I2CDevice:
    """A device with a 7-bit address on an I2C bus.

    The bus object must provide ``begin()``, ``begin_transmission(address)``,
    ``write(data)`` returning the byte count accepted,
    ``end_transmission(stop)`` returning 0 on success,
    ``request_from(address, length, stop)`` returning the byte count received
    and ``read()`` returning one received byte. ``end()`` and
    ``set_clock(frequency)`` are used when present.
    """

    def __init__(
        self,
        address: int,
        wire: _WireBus,
        max_buffer_size: int = DEFAULT_MAX_BUFFER_SIZE,
    ) -> None:
        self._address = address
        self._wire = wire
        self._max_buffer_size = max_buffer_size
        self._begun = False

    def address(self) -> int:
        """The 7-bit address of this device."""
        return self._address

    def max_buffer_size(self) -> int:
        """How many bytes fit in one bus transaction."""
        return self._max_buffer_size

    def begin(self, addr_detect: bool = True) -> bool:
        """Start the bus; if ``addr_detect``, report whether the device answers."""
        self._wire.begin()
        self._begun = True
        if addr_detect:
            return self.detected()
        return True

    def end(self) -> None:
        """Shut down the bus, where the bus supports it."""
        end = getattr(self._wire, "end", None)
        if end is not None:
            end()
            self._begun = False

    def detected(self) -> bool:
        """Probe the address and report whether the device acknowledged."""
        if not self._begun:
            self.begin(addr_detect=False)
        self._wire.begin_transmission(self._address)
        found = self._wire.end_transmission() == 0
        _log.debug("address 0x%X %s", self._address, "detected" if found else "not detected")
        return found

    def write(self, data: bytes, stop: bool = True, prefix: bytes = b"") -> None:
        """Write ``prefix`` then ``data`` in one transaction."""
        data = bytes(data)
        prefix = bytes(prefix)
        if len(data) + len(prefix) > self._max_buffer_size:
            raise BusError(
                f"cannot write {len(data) + len(prefix)} bytes; "
                f"limit is {self._max_buffer_size}"
            )
        self._wire.begin_transmission(self._address)
        if prefix and self._wire.write(prefix) != len(prefix):
            raise BusError("bus did not accept the prefix bytes")
        if self._wire.write(data) != len(data):
            raise BusError("bus did not accept the data bytes")
        _log.debug(
            "I2C write @ 0x%X :: %s%s",
            self._address,
            (prefix + data).hex(" "),
            " STOP" if stop else "",
        )
        if self._wire.end_transmission(stop) != 0:
            raise BusError("transmission was not acknowledged")

    def read(self, length: int, stop: bool = True) -> bytes:
        """Read ``length`` bytes, split into chunks no larger than the buffer."""
        chunks = []
        pos = 0
        while pos < length:
            chunk_len = min(length - pos, self._max_buffer_size)
            last = pos + chunk_len >= length
            chunks.append(self._read_chunk(chunk_len, stop if last else False))
            pos += chunk_len
        return b"".join(chunks)

    def _read_chunk(self, length: int, stop: bool) -> bytes:
        received = self._wire.request_from(self._address, length, stop)
        if received != length:
            raise BusError(f"received {received} bytes, expected {length}")
        data = bytes(self._wire.read() for _ in range(length))
        _log.debug("I2C read @ 0x%X :: %s", self._address, data.hex(" "))
        return data

    def write_then_read(self, data: bytes, read_length: int, stop: bool = False) -> bytes:
        """Write ``data``, then read ``read_length`` bytes back."""
        self.write(data, stop)
        return self.read(read_length)

    def set_speed(self, frequency: int) -> bool:
        """Ask the bus for a new clock; report whether the bus supports it."""
        set_clock = getattr(self._wire, "set_clock", None)
        if set_clock is None:
            return False
        set_clock(frequency)
        return True