"""An SPI device driven by a hardware bus or by bit-banged pins."""

from __future__ import annotations

import time
from contextlib import contextmanager
from enum import IntEnum
from typing import Callable, Iterator, Optional, Protocol

from buskit.errors import UnsupportedOperationError

DEFAULT_FREQUENCY = 1_000_000
HIGH = True
LOW = False


class BitOrder(IntEnum):
    """Order in which the bits of each byte go out on the wire."""

    LSB_FIRST = 0
    MSB_FIRST = 1


class SPIMode(IntEnum):
    """Clock polarity and phase."""

    MODE0 = 0
    MODE1 = 1
    MODE2 = 2
    MODE3 = 3


class _Pins(Protocol):
    """GPIO access used for chip select and bit-banged transfers."""

    def pin_mode(self, pin: int, mode: str) -> None: ...

    def digital_write(self, pin: int, level: bool) -> None: ...

    def digital_read(self, pin: int) -> bool: ...


class _SPIBus(Protocol):
    """A hardware SPI bus."""

    def begin(self) -> None: ...

    def transfer(self, data: bytes) -> bytes: ...

    def begin_transaction(self, frequency: int, bit_order: BitOrder, mode: SPIMode) -> None: ...

    def end_transaction(self) -> None: ...


def _optional_pin(pin: Optional[int]) -> Optional[int]:
    if pin is None or pin < 0:
        return None
    return pin


def _sleep_us(microseconds: int) -> None:
    time.sleep(microseconds / 1_000_000)


class SPIDevice:
    """A device on an SPI bus, selected by a chip-select pin.

    A hardware bus must provide ``begin()``, ``transfer(data)`` returning the
    bytes clocked in, ``begin_transaction(frequency, bit_order, mode)`` and
    ``end_transaction()``. When a chip-select pin is given, the bus also drives
    it through ``pin_mode(pin, mode)`` and ``digital_write(pin, level)``.

    Use :meth:`software` for a bit-banged bus on plain GPIO pins.
    """

    def __init__(
        self,
        cs: Optional[int],
        frequency: int = DEFAULT_FREQUENCY,
        bit_order: BitOrder = BitOrder.MSB_FIRST,
        mode: SPIMode = SPIMode.MODE0,
        spi: Optional[_SPIBus] = None,
    ) -> None:
        self._cs = _optional_pin(cs)
        self._frequency = frequency
        self._bit_order = BitOrder(bit_order)
        self._mode = SPIMode(mode)
        self._spi = spi
        self._pins: Optional[_Pins] = spi  # type: ignore[assignment]
        self._sck: Optional[int] = None
        self._miso: Optional[int] = None
        self._mosi: Optional[int] = None
        self._delay: Callable[[int], None] = _sleep_us
        self._begun = False

    @classmethod
    def software(
        cls,
        cs: Optional[int],
        sck: int,
        miso: Optional[int],
        mosi: Optional[int],
        pins: _Pins,
        frequency: int = DEFAULT_FREQUENCY,
        bit_order: BitOrder = BitOrder.MSB_FIRST,
        mode: SPIMode = SPIMode.MODE0,
        delay: Optional[Callable[[int], None]] = None,
    ) -> "SPIDevice":
        """Build a bit-banged device; ``miso``/``mosi`` may be ``None`` or -1 if unused.

        ``delay(microseconds)`` pauses between clock edges; it defaults to sleeping.
        """
        device = cls(cs, frequency, bit_order, mode, spi=None)
        device._pins = pins
        device._sck = sck
        device._miso = _optional_pin(miso)
        device._mosi = _optional_pin(mosi)
        if delay is not None:
            device._delay = delay
        return device

    @property
    def begun(self) -> bool:
        """Whether ``begin()`` has been called."""
        return self._begun

    def _require_pins(self) -> _Pins:
        if self._pins is None:
            raise UnsupportedOperationError("device has no bus and no pins to drive")
        return self._pins

    def begin(self) -> bool:
        """Set up the pins or bus and raise chip select. Always succeeds."""
        if self._cs is not None:
            pins = self._require_pins()
            pins.pin_mode(self._cs, "output")
            pins.digital_write(self._cs, HIGH)

        if self._spi is not None:
            self._spi.begin()
        else:
            pins = self._require_pins()
            pins.pin_mode(self._sck, "output")
            idle_low = self._mode in (SPIMode.MODE0, SPIMode.MODE1)
            pins.digital_write(self._sck, LOW if idle_low else HIGH)
            if self._mosi is not None:
                pins.pin_mode(self._mosi, "output")
                pins.digital_write(self._mosi, HIGH)
            if self._miso is not None:
                pins.pin_mode(self._miso, "input")

        self._begun = True
        return True

    def transfer(self, data: bytes) -> bytes:
        """Clock ``data`` out while clocking the same number of bytes in.

        No transaction or chip-select handling is done here.
        """
        data = bytes(data)
        if self._spi is not None:
            return bytes(self._spi.transfer(data))
        pins = self._require_pins()
        if self._sck is None:
            raise UnsupportedOperationError("no clock pin for a software transfer")
        if not data:
            return b""
        return self._bitbang(pins, data)

    def _bit_masks(self) -> list[int]:
        masks = [1 << n for n in range(8)]
        if self._bit_order == BitOrder.MSB_FIRST:
            masks.reverse()
        return masks

    def _bitbang(self, pins: _Pins, data: bytes) -> bytes:
        masks = self._bit_masks()
        bit_delay = ((1_000_000 // self._frequency) // 2) & 0xFF
        last_mosi = not (data[0] & masks[0])
        sample_before_falling = self._mode in (SPIMode.MODE0, SPIMode.MODE2)
        out = bytearray()

        for send in data:
            reply = 0
            for mask in masks:
                if bit_delay:
                    self._delay(bit_delay)
                bit = bool(send & mask)
                if sample_before_falling:
                    if self._mosi is not None and last_mosi != bit:
                        pins.digital_write(self._mosi, bit)
                        last_mosi = bit
                    pins.digital_write(self._sck, HIGH)
                    if bit_delay:
                        self._delay(bit_delay)
                    if self._miso is not None and pins.digital_read(self._miso):
                        reply |= mask
                    pins.digital_write(self._sck, LOW)
                else:
                    pins.digital_write(self._sck, HIGH)
                    if bit_delay:
                        self._delay(bit_delay)
                    if self._mosi is not None:
                        pins.digital_write(self._mosi, bit)
                    pins.digital_write(self._sck, LOW)
                    if self._miso is not None and pins.digital_read(self._miso):
                        reply |= mask
            out.append(reply if self._miso is not None else send)
        return bytes(out)

    def transfer_byte(self, value: int) -> int:
        """Send one byte and return the byte received meanwhile."""
        return self.transfer(bytes([value & 0xFF]))[0]

    def begin_transaction(self) -> None:
        """Start a bus transaction, on a hardware bus only."""
        if self._spi is not None:
            self._spi.begin_transaction(self._frequency, self._bit_order, self._mode)

    def end_transaction(self) -> None:
        """End a bus transaction, on a hardware bus only."""
        if self._spi is not None:
            self._spi.end_transaction()

    def _set_chip_select(self, level: bool) -> None:
        if self._cs is not None:
            self._require_pins().digital_write(self._cs, level)

    def begin_transaction_with_asserting_cs(self) -> None:
        """Start a transaction and pull chip select low."""
        self.begin_transaction()
        self._set_chip_select(LOW)

    def end_transaction_with_deasserting_cs(self) -> None:
        """Raise chip select and end the transaction."""
        self._set_chip_select(HIGH)
        self.end_transaction()

    @contextmanager
    def transaction(self) -> Iterator["SPIDevice"]:
        """Hold a transaction with chip select asserted for the block."""
        self.begin_transaction_with_asserting_cs()
        try:
            yield self
        finally:
            self.end_transaction_with_deasserting_cs()

    def read(self, length: int, send_value: int = 0xFF) -> bytes:
        """Read ``length`` bytes, sending ``send_value`` for each."""
        with self.transaction():
            return self.transfer(bytes([send_value & 0xFF]) * length)

    def write(self, data: bytes, prefix: bytes = b"") -> None:
        """Write ``prefix`` then ``data`` in one transaction."""
        with self.transaction():
            for value in bytes(prefix) + bytes(data):
                self.transfer_byte(value)

    def write_then_read(self, data: bytes, read_length: int, send_value: int = 0xFF) -> bytes:
        """Write ``data``, then read ``read_length`` bytes, in one transaction."""
        with self.transaction():
            for value in bytes(data):
                self.transfer_byte(value)
            return bytes(self.transfer_byte(send_value) for _ in range(read_length))

    def write_and_read(self, data: bytes) -> bytes:
        """Send ``data`` and return what was received at the same time."""
        with self.transaction():
            return self.transfer(data)