"""
ASCOM Alpaca Driver for the AstroStep Motorized Focuser.

A Python-based driver that talks to AstroStep focusers over a serial port or a
TCP-tunneled serial link and exposes them to HTTP REST clients (NINA, SGP).
"""

__version__ = "0.1.0"
