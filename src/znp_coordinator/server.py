"""MCP server entry point for the ZNP coordinator.

Exposes the running coordinator as tools and resources via the Model
Context Protocol using the official Python MCP SDK with stdio transport.
"""

from __future__ import annotations

import json
import logging
from typing import Any

from mcp.server.fastmcp import FastMCP

from .config import CoordinatorSettings
from .coordinator.engine import Coordinator
from .transport.serial_connection import SerialConnection

logger = logging.getLogger(__name__)

mcp = FastMCP(
    "znp-coordinator",
    instructions="MCP server for a Zigbee ZNP coordinator radio",
)

# Global connection state
_connection: SerialConnection | None = None
_coordinator: Coordinator | None = None


def _get_coordinator() -> Coordinator:
    """Get the running coordinator, raising if not connected."""
    if _coordinator is None or _connection is None or not _connection.connected:
        raise RuntimeError(
            "Not connected to radio. Use the 'connect' tool first."
        )
    return _coordinator


# ─── CONNECTION TOOLS ─────────────────────────────────────────────────

@mcp.tool()
def connect(
    port: str | None = None,
    baudrate: int | None = None,
    wait_for_config_ack: bool | None = None,
) -> dict[str, Any]:
    """Open the serial port and start the radio bring-up sequence.

    Settings default to the ZNP_* environment variables.

    Args:
        port: Serial device path, e.g. /dev/ttyACM0.
        baudrate: Serial baud rate.
        wait_for_config_ack: Write configuration items one per acknowledgment.
    """
    global _connection, _coordinator
    if _coordinator is not None and _connection is not None and _connection.connected:
        return {
            "connected": True,
            "message": "Already connected",
            "port": _connection.port_info.port,
        }

    settings = CoordinatorSettings.from_env()
    if port is not None:
        settings.port = port
    if baudrate is not None:
        settings.baudrate = baudrate
    if wait_for_config_ack is not None:
        settings.wait_for_config_ack = wait_for_config_ack

    connection = SerialConnection(
        settings.port, settings.baudrate, timeout=settings.read_timeout
    )
    info = connection.open()
    coordinator = Coordinator(connection, settings)
    coordinator.start()

    _connection = connection
    _coordinator = coordinator
    return {
        "connected": True,
        "port": info.port,
        "baudrate": info.baudrate,
        "bring_up_state": coordinator.sequencer.state.value,
    }


@mcp.tool()
def disconnect() -> dict[str, bool]:
    """Stop the coordinator and close the serial port."""
    global _connection, _coordinator
    if _coordinator is not None:
        _coordinator.stop()
    if _connection is not None:
        _connection.close()
    _coordinator = None
    _connection = None
    return {"disconnected": True}


# ─── NETWORK TOOLS ────────────────────────────────────────────────────

@mcp.tool()
def get_status() -> dict[str, Any]:
    """Report bring-up progress, device state and outstanding requests."""
    return _get_coordinator().status()


@mcp.tool()
def permit_joining(seconds: int = 60) -> dict[str, Any]:
    """Open a window during which new devices may join the network.

    Once the radio accepts the request, associated devices are discovered.

    Args:
        seconds: Window length (0 closes it, 255 keeps it open).
    """
    if not 0 <= seconds <= 255:
        return {"error": "Seconds must be 0-255"}
    _get_coordinator().permit_joining(seconds)
    return {"permit_joining": seconds}


@mcp.tool()
def discover_peers() -> dict[str, Any]:
    """Walk the association table and query each device's endpoints."""
    _get_coordinator().discover_peers()
    return {"discovery_started": True}


@mcp.tool()
def list_peers() -> dict[str, Any]:
    """List discovered devices with their addresses and endpoints."""
    peers = _get_coordinator().peers()
    return {"peers": [peer.to_dict() for peer in peers]}


@mcp.tool()
def list_pending_requests() -> dict[str, Any]:
    """List requests still waiting for a correlated response."""
    return {"pending": _get_coordinator().pending_requests()}


@mcp.tool()
def expire_pending_requests(max_age: float = 60.0) -> dict[str, Any]:
    """Drop pending requests older than max_age seconds.

    Args:
        max_age: Age threshold in seconds.
    """
    if max_age < 0:
        return {"error": "max_age must not be negative"}
    expired = _get_coordinator().expire_pending(max_age)
    return {"expired": expired}


# ─── MCP RESOURCES ───────────────────────────────────────────────────

@mcp.resource("znp://network/state")
def resource_network_state() -> str:
    """Current coordinator status."""
    if _coordinator is None:
        return json.dumps({"connected": False})
    return json.dumps({"connected": True, **_coordinator.status()})


@mcp.resource("znp://network/peers")
def resource_peers() -> str:
    """Discovered peers."""
    if _coordinator is None:
        return json.dumps({"peers": []})
    return json.dumps({"peers": [peer.to_dict() for peer in _coordinator.peers()]})


@mcp.resource("znp://coordinator/settings")
def resource_settings() -> str:
    """Effective settings and the configuration written at bring-up."""
    if _coordinator is None:
        return json.dumps({"settings": CoordinatorSettings.from_env().to_dict()})
    return json.dumps({
        "settings": _coordinator.settings.to_dict(),
        "configuration": [p.to_dict() for p in _coordinator.sequencer.configuration],
    })


# ─── ENTRY POINT ─────────────────────────────────────────────────────

def main():
    """Run the MCP server with stdio transport."""
    logging.basicConfig(level=CoordinatorSettings.from_env().log_level)
    mcp.run(transport="stdio")


if __name__ == "__main__":
    main()
