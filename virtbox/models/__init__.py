"""Shared data models for the virtbox sandbox driver."""

from virtbox.models.devices import (
    ConsoleChannel,
    Device,
    NetworkInterface,
    SharedFilesystem,
)
from virtbox.models.domain import DomainDescriptor
from virtbox.models.sandbox import (
    Capabilities,
    HypervisorState,
    KernelParam,
    LifecycleState,
    ResourceConfig,
    SandboxIdentity,
    SharedFS,
    VcpuAdjustment,
)

__all__ = [
    "Capabilities",
    "ConsoleChannel",
    "Device",
    "DomainDescriptor",
    "HypervisorState",
    "KernelParam",
    "LifecycleState",
    "NetworkInterface",
    "ResourceConfig",
    "SandboxIdentity",
    "SharedFS",
    "SharedFilesystem",
    "VcpuAdjustment",
]
