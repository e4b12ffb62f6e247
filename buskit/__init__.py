"""Register, I2C, SPI and generic device access over pluggable bus backends."""

__version__ = "0.1.0"
__all__ = ["errors", "generic_device", "i2c_device", "spi_device", "register"]