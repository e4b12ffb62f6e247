# buskit

Device and register access for I2C, SPI and custom buses. You provide the
object that actually moves bytes or toggles pins. buskit handles framing,
register addressing, byte ordering and bit fields on top of it.

## Modules

- `buskit.errors` defines `BusError`, the base of all failures, and two
  subclasses. `DeviceNotStartedError` means a `GenericDevice` was used before
  `begin()`. `UnsupportedOperationError` means the backend cannot do what was
  asked.
- `buskit.generic_device.GenericDevice` wraps four callables:
  - `read_func(length)` returns bytes, or `None` on failure.
  - `write_func(data)` returns `True` on success.
  - `readreg_func(address, length)` is optional and returns bytes or `None`.
  - `writereg_func(address, data)` is optional and returns `True` on success.

  The device must be started with `begin()`, or used as a context manager,
  before `read`, `write`, `read_register` or `write_register` will work. Reads
  that come back short or fail raise `BusError`.
- `buskit.i2c_device.I2CDevice(address, wire, max_buffer_size=32)` drives a
  wire object. The wire object must provide:
  - `begin()`
  - `begin_transmission(address)`
  - `write(data)`, returning the number of bytes accepted
  - `end_transmission(stop)`, returning 0 on success
  - `request_from(address, length, stop)`, returning the number of bytes received
  - `read()`, returning one byte

  `end()` and `set_clock(frequency)` are used if the wire object has them.
  Otherwise `end()` does nothing and `set_speed()` returns `False`.

  The device offers `begin(addr_detect=True)`, `detected()`, `write(data,
  stop=True, prefix=b"")` and `read(length, stop=True)`. A write larger than
  the buffer raises `BusError`. A read larger than the buffer is split into
  chunks. The device also has `write_then_read(data, read_length, stop=False)`,
  `address()` and `max_buffer_size()`.
- `buskit.spi_device.SPIDevice` works in one of two ways.
  - With a hardware bus object, `SPIDevice(cs, frequency, bit_order, mode,
    spi=bus)`. The bus provides `begin()`, `transfer(data)`,
    `begin_transaction(frequency, bit_order, mode)` and `end_transaction()`.
    If a chip-select pin is given, the bus also provides `pin_mode` and
    `digital_write`.
  - Bit-banged on GPIO pins, `SPIDevice.software(cs, sck, miso, mosi, pins,
    ...)`. Here `pins` provides `pin_mode(pin, mode)`, where mode is
    `"output"` or `"input"`, plus `digital_write(pin, level)` and
    `digital_read(pin)`. Pass `None` or -1 for an unused MISO or MOSI pin. The
    optional `delay(microseconds)` callable paces the clock and defaults to
    sleeping.

  `SPIMode` covers all four modes and `BitOrder` selects LSB-first or
  MSB-first. Besides `begin()`, the device has `read`, `write`,
  `write_then_read` and `write_and_read`, each of which wraps a chip-select
  transaction. `transfer` and `transfer_byte` work at a lower level, and
  `transaction()` is a context manager.
- `buskit.register`:
  - `Register(device, address, width=1, byte_order=ByteOrder.LSB_FIRST,
    address_width=1, spi_reg_type=SPIRegType.ADDRBIT8_HIGH_TOREAD)` works
    with an `I2CDevice`, `SPIDevice` or `GenericDevice`.
    - `read()` and `write(value, numbytes=0)` handle values of up to 4 bytes.
      Asking for more raises `ValueError`.
    - `read_bytes` and `write_bytes` handle raw data.
    - `read_uint8`, `read_uint16`, `read_cached`, `width`, `set_width`,
      `format` (for example `"0x1A"`) and `print`/`println` are also provided.
      `print` and `println` write to stdout unless given a stream.
    - For SPI devices, `SPIRegType` chooses how the address byte is marked
      for reads and writes.
  - `RegisterBits(register, bits, shift)` reads and writes a bit field and
    leaves the other bits unchanged.
  - `I2CRegister` and `I2CRegisterBits` are aliases of `Register` and
    `RegisterBits`.

## Installing

```
pip install .
```

To run the tests:

```
pip install .[test]
pytest
```

## Example

```python
from buskit.i2c_device import I2CDevice
from buskit.register import ByteOrder, Register, RegisterBits

device = I2CDevice(0x48, wire)          # wire: your bus backend
device.begin()

config = Register(device, 0x01, width=2, byte_order=ByteOrder.MSB_FIRST)
print(config.format())                  # e.g. "0x8583"

mode = RegisterBits(config, bits=3, shift=9)
mode.write(0b010)
```

With a generic backend:

```python
from buskit.generic_device import GenericDevice

dev = GenericDevice(read_func, write_func, readreg_func, writereg_func)
with dev:
    dev.write_register(b"\x10", b"\x2a")
    value = dev.read_register(b"\x10", 1)
```

## What it does not do

buskit includes no bus backends. It does not open I2C adapters, SPI
controllers or GPIO lines itself, so you supply the wire, bus or pins object
for your platform. It has no command-line tool.