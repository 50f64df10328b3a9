"""Build libvirt domain descriptors from sandbox resource configuration."""

from __future__ import annotations

from pathlib import Path
from typing import Iterable

from virtbox.errors import ConfigurationError
from virtbox.models.domain import (
    DomainConsole,
    DomainController,
    DomainCPU,
    DomainDescriptor,
    DomainDevices,
    DomainMemory,
    DomainOS,
    DomainRNG,
    DomainTimer,
    DomainVCPU,
    NumaCell,
    UnixChardev,
)
from virtbox.models.sandbox import KernelParam, ResourceConfig, SandboxIdentity

DOMAIN_NAME = "sandbox"
CONSOLE_SOCKET = "console.sock"
# sizeof(sockaddr_un.sun_path) minus the terminating NUL
MAX_SOCKET_PATH_LEN = 107

DEFAULT_KERNEL_PARAMS: tuple[KernelParam, ...] = (
    KernelParam("quiet"),
    KernelParam("tsc", "reliable"),
    KernelParam("no_timer_check"),
    KernelParam("rcupdate.rcu_expedited", "1"),
    KernelParam("i8042.direct", "1"),
    KernelParam("i8042.dumbkbd", "1"),
    KernelParam("i8042.nopnp", "1"),
    KernelParam("i8042.noaux", "1"),
    KernelParam("noreplace-smp"),
    KernelParam("reboot", "k"),
    KernelParam("console", "hvc0"),
    KernelParam("console", "hvc1"),
    KernelParam("iommu", "off"),
    KernelParam("cryptomgr.notests"),
    KernelParam("net.ifnames", "0"),
    KernelParam("pci", "lastbus=0"),
    KernelParam("panic", "1"),
)


def build_socket_path(*elements: str | Path) -> str:
    if not any(str(element) for element in elements):
        raise ConfigurationError("Socket path is empty")
    path = str(Path(*elements))
    if len(path) > MAX_SOCKET_PATH_LEN:
        raise ConfigurationError(
            f"Socket path too long: {path!r} ({len(path)} > {MAX_SOCKET_PATH_LEN})"
        )
    return path


def kernel_cmdline(config: ResourceConfig) -> str:
    """Join baseline, derived and caller kernel parameters, in that order.

    Duplicate keys are kept; the guest kernel's last-wins parsing decides.
    """
    params: list[KernelParam] = list(DEFAULT_KERNEL_PARAMS)
    params.append(KernelParam("nr_cpus", str(config.default_max_vcpus)))
    params.append(KernelParam("agent.use_vsock", "false"))
    params.extend(config.kernel_params)
    return _serialize(params)


def _serialize(params: Iterable[KernelParam]) -> str:
    return " ".join(param.serialize() for param in params)


class DomainDescriptorBuilder:
    def build(
        self,
        identity: SandboxIdentity,
        config: ResourceConfig,
        console_path: str,
    ) -> DomainDescriptor:
        descriptor = DomainDescriptor(
            uuid=identity.domain_uuid,
            name=DOMAIN_NAME,
            vcpu=DomainVCPU(
                current=config.num_vcpus, value=config.default_max_vcpus
            ),
            memory=DomainMemory(value=config.memory_size),
            os=DomainOS(
                machine=config.machine_type,
                kernel=config.kernel_path,
                initrd=config.initrd_path,
                cmdline=kernel_cmdline(config),
            ),
            cpu=DomainCPU(mode="host-passthrough"),
            timers=[DomainTimer(name="pit", tick_policy="discard")],
            devices=DomainDevices(
                emulator=config.hypervisor_path,
                consoles=[DomainConsole(source=UnixChardev(path=console_path))],
                controllers=[DomainController(type="usb", model="none")],
                rngs=[DomainRNG(backend_device="/dev/urandom")],
            ),
        )

        if config.shared_memory:
            descriptor.memory_access_mode = "shared"
            descriptor.cpu.numa_cells = [
                NumaCell(
                    id=0,
                    cpus=f"0-{config.default_max_vcpus - 1}",
                    memory=config.memory_size,
                    mem_access="shared",
                )
            ]
        return descriptor
