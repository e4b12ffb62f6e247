import io

import pytest

from buskit.errors import BusError, DeviceNotStartedError
from buskit.generic_device import GenericDevice
from buskit.i2c_device import I2CDevice
from buskit.register import (
    ByteOrder,
    I2CRegister,
    Register,
    RegisterBits,
    SPIRegType,
)
from buskit.spi_device import SPIDevice


class RegisterStore:
    def __init__(self):
        self.regs = {}

    def readreg(self, address, length):
        data = self.regs.get(address, bytes(length))
        return bytes(data[:length])

    def writereg(self, address, data):
        self.regs[address] = bytes(data)
        return True


def make_generic():
    store = RegisterStore()
    device = GenericDevice(
        lambda n: bytes(n), lambda d: True, store.readreg, store.writereg
    )
    device.begin()
    return device, store


class FakeWire:
    def __init__(self, responses=b"", nack=False):
        self.transmissions = []
        self._current = None
        self._pending = list(responses)
        self._rx = []
        self.nack = nack

    def begin(self):
        pass

    def begin_transmission(self, address):
        self._current = (address, bytearray())

    def write(self, data):
        self._current[1].extend(data)
        return len(data)

    def end_transmission(self, stop=True):
        address, data = self._current
        self.transmissions.append((address, bytes(data), stop))
        return 2 if self.nack else 0

    def request_from(self, address, length, stop=True):
        self._rx = self._pending[:length]
        self._pending = self._pending[length:]
        return len(self._rx)

    def read(self):
        return self._rx.pop(0)


class FakeSPIBus:
    def __init__(self, responses=b""):
        self.sent = bytearray()
        self._responses = list(responses)

    def begin(self):
        pass

    def transfer(self, data):
        self.sent.extend(data)
        out = bytearray()
        for _ in data:
            out.append(self._responses.pop(0) if self._responses else 0)
        return bytes(out)

    def begin_transaction(self, frequency, bit_order, mode):
        pass

    def end_transaction(self):
        pass


@pytest.mark.parametrize("width", [1, 2, 3, 4])
@pytest.mark.parametrize("order", [ByteOrder.LSB_FIRST, ByteOrder.MSB_FIRST])
def test_write_read_round_trip(width, order):
    device, _ = make_generic()
    reg = Register(device, 0x10, width=width, byte_order=order)
    value = (1 << (8 * width)) - 3
    reg.write(value)
    assert reg.read() == value


def test_lsb_first_byte_layout():
    device, store = make_generic()
    reg = Register(device, 0x10, width=2)
    reg.write(0x1234)
    assert store.regs[b"\x10"] == b"\x34\x12"


def test_msb_first_byte_layout():
    device, store = make_generic()
    reg = Register(device, 0x10, width=2, byte_order=ByteOrder.MSB_FIRST)
    reg.write(0x1234)
    assert store.regs[b"\x10"] == b"\x12\x34"


def test_two_byte_address_is_low_byte_first():
    device, store = make_generic()
    reg = Register(device, 0x1234, address_width=2)
    reg.write(7)
    assert list(store.regs) == [b"\x34\x12"]


def test_write_truncates_to_numbytes():
    device, _ = make_generic()
    reg = Register(device, 0x01, width=1)
    reg.write(0x1FF)
    assert reg.read() == 0xFF


def test_write_more_than_four_bytes_rejected():
    device, _ = make_generic()
    reg = Register(device, 0x01)
    with pytest.raises(ValueError):
        reg.write(1, 5)


def test_read_cached():
    device, _ = make_generic()
    reg = Register(device, 0x01)
    assert reg.read_cached() == 0
    reg.write(42)
    assert reg.read_cached() == 42


def test_read_uint8_and_uint16():
    device, store = make_generic()
    store.regs[b"\x05"] = b"\x01\x02"
    lsb = Register(device, 0x05)
    msb = Register(device, 0x05, byte_order=ByteOrder.MSB_FIRST)
    assert lsb.read_uint8() == 1
    assert lsb.read_uint16() == 0x0201
    assert msb.read_uint16() == 0x0102


def test_set_width_changes_read_length():
    device, store = make_generic()
    store.regs[b"\x05"] = b"\x01\x02"
    reg = Register(device, 0x05)
    assert reg.width() == 1
    reg.set_width(2)
    assert reg.width() == 2
    assert reg.read() == 0x0201


def test_format_and_print():
    device, store = make_generic()
    store.regs[b"\x07"] = b"\xab"
    reg = Register(device, 0x07)
    assert reg.format() == "0xAB"
    out = io.StringIO()
    reg.println(out)
    assert out.getvalue() == "0xAB\n"


def test_not_started_generic_device_raises():
    store = RegisterStore()
    device = GenericDevice(lambda n: bytes(n), lambda d: True, store.readreg, store.writereg)
    reg = Register(device, 0x01)
    with pytest.raises(DeviceNotStartedError):
        reg.read()


def test_unknown_device_type_rejected():
    with pytest.raises(TypeError):
        Register(object(), 0x01)


def test_register_bits_round_trip_preserves_other_bits():
    device, store = make_generic()
    store.regs[b"\x02"] = b"\xff"
    reg = Register(device, 0x02)
    field = RegisterBits(reg, 3, 2)
    field.write(0)
    assert field.read() == 0
    assert reg.read() | (0b111 << 2) == 0xFF
    field.write(5)
    assert field.read() == 5


def test_register_bits_masks_value():
    device, _ = make_generic()
    reg = Register(device, 0x02)
    field = RegisterBits(reg, 3, 4)
    field.write(0xFF)
    assert field.read() == 0b111
    assert reg.read() & 0x0F == 0


def test_i2c_register_write_sends_address_prefix():
    wire = FakeWire()
    device = I2CDevice(0x40, wire)
    reg = I2CRegister(device, 0x0A)
    reg.write(0x55)
    assert wire.transmissions == [(0x40, b"\x0a\x55", True)]


def test_i2c_register_read():
    wire = FakeWire(responses=b"\x34\x12")
    device = I2CDevice(0x40, wire)
    reg = Register(device, 0x0A, width=2)
    assert reg.read() == 0x1234
    assert wire.transmissions == [(0x40, b"\x0a", False)]


def test_i2c_register_read_failure_raises():
    wire = FakeWire(nack=True)
    device = I2CDevice(0x40, wire)
    reg = Register(device, 0x0A)
    with pytest.raises(BusError):
        reg.read()


def test_spi_high_to_read_marks_read_address():
    bus = FakeSPIBus(responses=b"\x00\x2a")
    reg = Register(SPIDevice(None, spi=bus), 0x0B, spi_reg_type=SPIRegType.ADDRBIT8_HIGH_TOREAD)
    assert reg.read() == 0x2A
    assert bytes(bus.sent) == b"\x8b\xff"


def test_spi_high_to_read_write_clears_bit():
    bus = FakeSPIBus()
    reg = Register(SPIDevice(None, spi=bus), 0x0B, spi_reg_type=SPIRegType.ADDRBIT8_HIGH_TOREAD)
    reg.write(0x01)
    assert bytes(bus.sent) == b"\x0b\x01"


def test_spi_high_to_write():
    bus = FakeSPIBus()
    reg = Register(SPIDevice(None, spi=bus), 0x19, spi_reg_type=SPIRegType.ADDRBIT8_HIGH_TOWRITE)
    reg.write(0x01)
    reg.read()
    assert bytes(bus.sent) == b"\x99\x01\x19\xff"


def test_spi_auto_increment_bits():
    bus = FakeSPIBus()
    reg = Register(
        SPIDevice(None, spi=bus), 0x0B,
        spi_reg_type=SPIRegType.AD8_HIGH_TOREAD_AD7_HIGH_TOINC,
    )
    reg.write(0x01)
    reg.read()
    assert bytes(bus.sent) == b"\x4b\x01\xcb\xff"


def test_spi_addressed_opcode():
    bus = FakeSPIBus()
    reg = Register(
        SPIDevice(None, spi=bus), 0x4012,
        spi_reg_type=SPIRegType.ADDRESSED_OPCODE_BIT0_LOW_TO_WRITE,
    )
    reg.write(0x07)
    reg.read()
    assert bytes(bus.sent) == b"\x40\x12\x07\x41\x12\xff"