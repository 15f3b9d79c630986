"""Serial coordinator engine for Zigbee network-processor radios."""

__version__ = "0.1.0"
