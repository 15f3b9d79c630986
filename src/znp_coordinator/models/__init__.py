"""Data models for configuration items, device states and peers."""

from .config import ConfigParameter, DEFAULT_STARTUP_CONFIGURATION
from .device import DeviceState, ResetReason, PeerDevice, PeerStage
