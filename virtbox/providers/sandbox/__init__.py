"""Sandbox driver implementations and interfaces."""

from virtbox.providers.sandbox.base import HypervisorDriver
from virtbox.providers.sandbox.descriptor import DomainDescriptorBuilder
from virtbox.providers.sandbox.devices import DeviceAttacher
from virtbox.providers.sandbox.identity import IdentityResolver
from virtbox.providers.sandbox.libvirt_driver import LibvirtProvider
from virtbox.providers.sandbox.lifecycle import LifecycleController
from virtbox.providers.sandbox.scaler import ResourceScaler

__all__ = [
    "DeviceAttacher",
    "DomainDescriptorBuilder",
    "HypervisorDriver",
    "IdentityResolver",
    "LibvirtProvider",
    "LifecycleController",
    "ResourceScaler",
]
