"""Zero-configuration LAN party launcher."""

__version__ = "1.0.0"
