"""A device driven through caller-supplied read and write callables."""

from __future__ import annotations

from typing import Callable, Optional

from buskit.errors import BusError, DeviceNotStartedError, UnsupportedOperationError

ReadFunc = Callable[[int], Optional[bytes]]
WriteFunc = Callable[[bytes], bool]
ReadRegFunc = Callable[[bytes, int], Optional[bytes]]
WriteRegFunc = Callable[[bytes, bytes], bool]


class GenericDevice:
    """Talks to a device through plain functions.

    ``read_func(length)`` returns the bytes read, or ``None`` on failure.
    ``write_func(data)`` returns ``True`` on success.
    ``readreg_func(address, length)`` returns the register bytes, or ``None``.
    ``writereg_func(address, data)`` returns ``True`` on success.
    The register functions are optional.
    """

    def __init__(
        self,
        read_func: ReadFunc,
        write_func: WriteFunc,
        readreg_func: Optional[ReadRegFunc] = None,
        writereg_func: Optional[WriteRegFunc] = None,
    ) -> None:
        self._read_func = read_func
        self._write_func = write_func
        self._readreg_func = readreg_func
        self._writereg_func = writereg_func
        self._begun = False

    @property
    def begun(self) -> bool:
        """Whether ``begin()`` has been called and ``end()`` has not."""
        return self._begun

    def begin(self) -> bool:
        """Mark the device as in use. Always succeeds."""
        self._begun = True
        return True

    def end(self) -> None:
        """Mark the device as no longer in use."""
        self._begun = False

    def __enter__(self) -> "GenericDevice":
        self.begin()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.end()

    def _require_started(self) -> None:
        if not self._begun:
            raise DeviceNotStartedError("device has not been started with begin()")

    @staticmethod
    def _checked(result: Optional[bytes], length: int, what: str) -> bytes:
        if result is None:
            raise BusError(f"{what} failed")
        data = bytes(result)
        if len(data) != length:
            raise BusError(f"{what} returned {len(data)} bytes, expected {length}")
        return data

    def read(self, length: int) -> bytes:
        """Read ``length`` raw bytes from the device."""
        self._require_started()
        return self._checked(self._read_func(length), length, "read")

    def write(self, data: bytes) -> None:
        """Write raw bytes to the device."""
        self._require_started()
        if not self._write_func(bytes(data)):
            raise BusError("write failed")

    def read_register(self, address: bytes, length: int) -> bytes:
        """Read ``length`` bytes from the register at ``address``."""
        self._require_started()
        if self._readreg_func is None:
            raise UnsupportedOperationError("no register read function was given")
        result = self._readreg_func(bytes(address), length)
        return self._checked(result, length, "register read")

    def write_register(self, address: bytes, data: bytes) -> None:
        """Write ``data`` to the register at ``address``."""
        self._require_started()
        if self._writereg_func is None:
            raise UnsupportedOperationError("no register write function was given")
        if not self._writereg_func(bytes(address), bytes(data)):
            raise BusError("register write failed")