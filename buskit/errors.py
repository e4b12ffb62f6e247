"""Exceptions raised by bus devices and registers."""


class BusError(Exception):
    """A transfer on the bus failed."""


class DeviceNotStartedError(BusError):
    """The device was used before ``begin()`` was called."""


class UnsupportedOperationError(BusError):
    """The device has no way to carry out the requested operation."""