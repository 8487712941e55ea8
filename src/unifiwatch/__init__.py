"""UnifiWatch - Ubiquiti stock monitor with OS-native service installation."""

__version__ = "0.1.0"
