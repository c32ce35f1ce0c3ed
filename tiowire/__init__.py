"""Packet codec and TCP, UDP and serial ports for the TIO sensor wire protocol."""

__version__ = "0.1.0"