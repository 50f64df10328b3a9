"""Peripheral devices that can be registered with a sandbox before start."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Union

AGENT_CHANNEL_NAME = "agent.channel.0"


@dataclass(frozen=True)
class ConsoleChannel:
    host_socket_path: str
    name: str = AGENT_CHANNEL_NAME


@dataclass(frozen=True)
class SharedFilesystem:
    host_path: str
    guest_mount_tag: str


@dataclass(frozen=True)
class NetworkInterface:
    host_tap_name: str
    mac_address: str


Device = Union[ConsoleChannel, SharedFilesystem, NetworkInterface]
