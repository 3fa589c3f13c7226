"""HTTP/SSE gateway to Bluetooth Low Energy GATT peripherals."""

__version__ = "1.0.0"
