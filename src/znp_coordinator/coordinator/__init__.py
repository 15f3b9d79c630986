"""Correlation engine: registry, dispatch table, bring-up and discovery."""

from .registry import PendingRequestRegistry
from .bringup import BringUpEvent, BringUpSequencer, BringUpState
from .discovery import PeerDiscovery, PeerWorkflow
from .dispatch import DispatchTable
from .engine import Coordinator
