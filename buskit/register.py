"""Registers on a bus device, and bit fields within them."""

from __future__ import annotations

import sys
from enum import IntEnum
from typing import Optional, TextIO, Union

from buskit.generic_device import GenericDevice
from buskit.i2c_device import I2CDevice
from buskit.spi_device import SPIDevice

MAX_VALUE_BYTES = 4
_UINT32_MASK = 0xFFFFFFFF

Device = Union[I2CDevice, SPIDevice, GenericDevice]


class ByteOrder(IntEnum):
    """Order of the bytes of a multi-byte register value."""

    LSB_FIRST = 0
    MSB_FIRST = 1


class SPIRegType(IntEnum):
    """How the register address is marked for reads and writes over SPI."""

    #: Bit 7 of the address is set to read and cleared to write.
    ADDRBIT8_HIGH_TOREAD = 0
    #: Bit 7 is set to read, bit 6 is set to auto-increment.
    AD8_HIGH_TOREAD_AD7_HIGH_TOINC = 1
    #: Bit 7 of the address is set to write and cleared to read.
    ADDRBIT8_HIGH_TOWRITE = 2
    #: The high address byte is an opcode whose bit 0 is low to write, high to read.
    ADDRESSED_OPCODE_BIT0_LOW_TO_WRITE = 3


class Register:
    """A register at an address on an I2C, SPI or generic device.

    Values of up to four bytes are read and written as integers; longer
    transfers go through :meth:`read_bytes` and :meth:`write_bytes`.
    Bus failures raise :class:`buskit.errors.BusError`.
    """

    def __init__(
        self,
        device: Device,
        address: int,
        width: int = 1,
        byte_order: ByteOrder = ByteOrder.LSB_FIRST,
        address_width: int = 1,
        spi_reg_type: SPIRegType = SPIRegType.ADDRBIT8_HIGH_TOREAD,
    ) -> None:
        if not isinstance(device, (I2CDevice, SPIDevice, GenericDevice)):
            raise TypeError(f"unsupported device type: {type(device).__name__}")
        self._device = device
        self.address = address & 0xFFFF
        self._width = width
        self.byte_order = ByteOrder(byte_order)
        self.address_width = address_width
        self.spi_reg_type = SPIRegType(spi_reg_type)
        self._cached = 0

    def width(self) -> int:
        """The width of the register data in bytes."""
        return self._width

    def set_width(self, width: int) -> None:
        """Change the default width of register data."""
        self._width = width

    def _address_bytes(self) -> bytearray:
        return bytearray([self.address & 0xFF, (self.address >> 8) & 0xFF])

    def _opcode_address(self, read: bool) -> bytes:
        opcode = (self.address >> 8) & 0xFF
        opcode = opcode | 0x01 if read else opcode & ~0x01 & 0xFF
        return bytes([opcode, self.address & 0xFF])[: self.address_width + 1]

    def write_bytes(self, data: bytes) -> None:
        """Write raw bytes to the register."""
        data = bytes(data)
        addr = self._address_bytes()
        device = self._device
        if isinstance(device, I2CDevice):
            device.write(data, True, bytes(addr[: self.address_width]))
        elif isinstance(device, SPIDevice):
            if self.spi_reg_type is SPIRegType.ADDRESSED_OPCODE_BIT0_LOW_TO_WRITE:
                device.write(data, self._opcode_address(read=False))
                return
            if self.spi_reg_type is SPIRegType.ADDRBIT8_HIGH_TOREAD:
                addr[0] &= ~0x80 & 0xFF
            elif self.spi_reg_type is SPIRegType.ADDRBIT8_HIGH_TOWRITE:
                addr[0] |= 0x80
            elif self.spi_reg_type is SPIRegType.AD8_HIGH_TOREAD_AD7_HIGH_TOINC:
                addr[0] &= ~0x80 & 0xFF
                addr[0] |= 0x40
            device.write(data, bytes(addr[: self.address_width]))
        else:
            device.write_register(bytes(addr[: self.address_width]), data)

    def read_bytes(self, length: int) -> bytes:
        """Read ``length`` raw bytes from the register."""
        addr = self._address_bytes()
        device = self._device
        if isinstance(device, I2CDevice):
            return device.write_then_read(bytes(addr[: self.address_width]), length)
        if isinstance(device, SPIDevice):
            if self.spi_reg_type is SPIRegType.ADDRESSED_OPCODE_BIT0_LOW_TO_WRITE:
                return device.write_then_read(self._opcode_address(read=True), length)
            if self.spi_reg_type is SPIRegType.ADDRBIT8_HIGH_TOREAD:
                addr[0] |= 0x80
            elif self.spi_reg_type is SPIRegType.ADDRBIT8_HIGH_TOWRITE:
                addr[0] &= ~0x80 & 0xFF
            elif self.spi_reg_type is SPIRegType.AD8_HIGH_TOREAD_AD7_HIGH_TOINC:
                addr[0] |= 0x80 | 0x40
            return device.write_then_read(bytes(addr[: self.address_width]), length)
        return device.read_register(bytes(addr[: self.address_width]), length)

    def _byteorder_name(self) -> str:
        return "little" if self.byte_order is ByteOrder.LSB_FIRST else "big"

    def write(self, value: int, numbytes: int = 0) -> None:
        """Write the low ``numbytes`` bytes of ``value`` (the register width if 0)."""
        if numbytes == 0:
            numbytes = self._width
        if numbytes > MAX_VALUE_BYTES:
            raise ValueError(
                f"cannot write {numbytes} bytes as a value; at most {MAX_VALUE_BYTES}"
            )
        value &= _UINT32_MASK
        self._cached = value
        truncated = value & ((1 << (8 * numbytes)) - 1)
        self.write_bytes(truncated.to_bytes(numbytes, self._byteorder_name()))

    def read(self) -> int:
        """Read the register as an unsigned integer of its width."""
        data = self.read_bytes(self._width)
        return int.from_bytes(data, self._byteorder_name()) & _UINT32_MASK

    def read_uint8(self) -> int:
        """Read one byte from the register."""
        return self.read_bytes(1)[0]

    def read_uint16(self) -> int:
        """Read two bytes from the register in its byte order."""
        return int.from_bytes(self.read_bytes(2), self._byteorder_name())

    def read_cached(self) -> int:
        """The value last written with :meth:`write`, or 0."""
        return self._cached

    def format(self) -> str:
        """Read the register and render it as upper-case hexadecimal."""
        return f"0x{self.read():X}"

    def print(self, stream: Optional[TextIO] = None) -> None:
        """Write the formatted register value to ``stream`` (stdout by default)."""
        (stream if stream is not None else sys.stdout).write(self.format())

    def println(self, stream: Optional[TextIO] = None) -> None:
        """Like :meth:`print`, followed by a line break."""
        out = stream if stream is not None else sys.stdout
        self.print(out)
        out.write("\n")


class RegisterBits:
    """A field of ``bits`` bits, ``shift`` bits up from the LSB of a register."""

    def __init__(self, register: Register, bits: int, shift: int) -> None:
        self._register = register
        self.bits = bits
        self.shift = shift

    @property
    def _mask(self) -> int:
        return ((1 << self.bits) - 1) & _UINT32_MASK

    def read(self) -> int:
        """Read the field's value."""
        return (self._register.read() >> self.shift) & self._mask

    def write(self, value: int) -> None:
        """Write the field, leaving the register's other bits unchanged."""
        current = self._register.read()
        mask = self._mask
        value &= mask
        current &= ~(mask << self.shift)
        current |= value << self.shift
        self._register.write(current & _UINT32_MASK, self._register.width())


I2CRegister = Register
I2CRegisterBits = RegisterBits