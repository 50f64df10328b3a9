"""Append peripheral devices to a domain descriptor before it is started."""

from __future__ import annotations

from virtbox.log import get_logger
from virtbox.models.devices import (
    ConsoleChannel,
    Device,
    NetworkInterface,
    SharedFilesystem,
)
from virtbox.models.domain import (
    DomainChannel,
    DomainDescriptor,
    DomainFilesystem,
    DomainInterface,
    UnixChardev,
)

VIRTIOFS_DRIVER = "virtiofs"


class DeviceAttacher:
    def __init__(self, shared_memory: bool) -> None:
        self._shared_memory = shared_memory
        self._log = get_logger(subsystem="libvirt", func="add_device")

    def attach(self, descriptor: DomainDescriptor, device: Device) -> DomainDescriptor:
        devices = descriptor.devices
        match device:
            case ConsoleChannel(host_socket_path=path, name=name):
                devices.channels.append(
                    DomainChannel(source=UnixChardev(path=path), target_name=name)
                )
            case SharedFilesystem(host_path=host_path, guest_mount_tag=tag):
                devices.filesystems.append(
                    DomainFilesystem(
                        source_dir=host_path,
                        target_dir=tag,
                        driver_type=VIRTIOFS_DRIVER if self._shared_memory else None,
                    )
                )
            case NetworkInterface(host_tap_name=tap, mac_address=mac):
                devices.interfaces.append(
                    DomainInterface(target_dev=tap, mac_address=mac)
                )
            case _:
                self._log.debug("ignoring unsupported device", device=repr(device))
                return descriptor
        self._log.debug("device attached", device=repr(device))
        return descriptor
