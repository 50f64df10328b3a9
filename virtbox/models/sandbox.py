"""Data models for sandbox identity, resources and lifecycle."""

from __future__ import annotations

import os
from dataclasses import dataclass, replace
from enum import Enum
from pathlib import Path

from virtbox.errors import ConfigurationError

DEFAULT_MEMORY_MIB = 2048
DEFAULT_VCPUS = 1
MAX_VCPUS = 240


def host_cpu_count() -> int:
    """Online host CPUs, never more than KVM accepts for one guest."""
    return min(os.cpu_count() or 1, MAX_VCPUS)


class SharedFS(str, Enum):
    VIRTIO_FS = "virtio-fs"
    VIRTIO_9P = "virtio-9p"
    NONE = "none"


class LifecycleState(Enum):
    DISCONNECTED = "disconnected"
    CONNECTED = "connected"
    DEFINED = "defined"
    RUNNING = "running"
    STOPPED = "stopped"


@dataclass(frozen=True)
class SandboxIdentity:
    sandbox_id: str
    domain_uuid: str
    root_path: Path

    @property
    def uri(self) -> str:
        return f"qemu:///embed?root={self.root_path}"


@dataclass(frozen=True)
class KernelParam:
    key: str
    value: str = ""

    def serialize(self) -> str:
        if not self.value:
            return self.key
        return f"{self.key}={self.value}"


@dataclass(frozen=True)
class ResourceConfig:
    kernel_path: str
    initrd_path: str
    hypervisor_path: str
    num_vcpus: int = DEFAULT_VCPUS
    default_max_vcpus: int = 0
    memory_size: int = DEFAULT_MEMORY_MIB
    machine_type: str = "q35"
    kernel_params: tuple[KernelParam, ...] = ()
    shared_fs: SharedFS = SharedFS.VIRTIO_FS

    def validated(self) -> ResourceConfig:
        """Return a copy with defaults filled in, or raise ConfigurationError.

        A zero vCPU or memory value selects the default; the maximum vCPU
        count is bounded by the host CPUs and the boot count by the max.
        """
        if not self.kernel_path:
            raise ConfigurationError("Missing kernel path")
        if not self.initrd_path:
            raise ConfigurationError("Missing initrd path")
        if self.num_vcpus < 0 or self.default_max_vcpus < 0:
            raise ConfigurationError("vCPU counts must not be negative")
        if self.memory_size < 0:
            raise ConfigurationError("Memory size must not be negative")

        num_vcpus = self.num_vcpus or DEFAULT_VCPUS
        host_cpus = host_cpu_count()
        max_vcpus = self.default_max_vcpus
        if max_vcpus == 0 or max_vcpus > host_cpus:
            max_vcpus = host_cpus
        num_vcpus = min(num_vcpus, max_vcpus)

        return replace(
            self,
            num_vcpus=num_vcpus,
            default_max_vcpus=max_vcpus,
            memory_size=self.memory_size or DEFAULT_MEMORY_MIB,
            kernel_params=tuple(self.kernel_params),
            shared_fs=SharedFS(self.shared_fs),
        )

    @property
    def shared_memory(self) -> bool:
        return self.shared_fs == SharedFS.VIRTIO_FS


@dataclass(frozen=True)
class VcpuAdjustment:
    requested: int
    clamped_to: int
    previous: int

    @property
    def applied(self) -> int:
        return self.clamped_to

    @property
    def capped(self) -> bool:
        return self.clamped_to != self.requested


@dataclass(frozen=True)
class Capabilities:
    fs_sharing: bool = False
    block_device: bool = False
    multi_queue: bool = False


@dataclass(frozen=True)
class HypervisorState:
    pid: int = 0
    uuid: str = ""
