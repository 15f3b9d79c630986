"""Serial transport and the frame read loop."""

from .base import Transport
from .serial_connection import SerialConnection
from .reader import FrameReader
