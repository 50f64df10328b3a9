"""Libvirt-backed sandbox driver."""

from __future__ import annotations

from dataclasses import dataclass
from types import ModuleType
from typing import NoReturn, Sequence

from virtbox.errors import UnsupportedOperation, VirtboxError
from virtbox.log import get_logger
from virtbox.models.devices import ConsoleChannel, Device
from virtbox.models.domain import DomainDescriptor
from virtbox.models.sandbox import (
    Capabilities,
    HypervisorState,
    LifecycleState,
    ResourceConfig,
    SandboxIdentity,
    VcpuAdjustment,
)
from virtbox.providers.sandbox.base import HypervisorDriver
from virtbox.providers.sandbox.descriptor import (
    CONSOLE_SOCKET,
    DomainDescriptorBuilder,
    build_socket_path,
)
from virtbox.providers.sandbox.devices import DeviceAttacher
from virtbox.providers.sandbox.identity import IdentityResolver
from virtbox.providers.sandbox.lifecycle import LifecycleController
from virtbox.providers.sandbox.scaler import ResourceScaler
from virtbox.providers.store import PathStore

AGENT_SOCKET = "kata.sock"


@dataclass
class _SandboxRecord:
    identity: SandboxIdentity
    config: ResourceConfig
    descriptor: DomainDescriptor
    attacher: DeviceAttacher
    lifecycle: LifecycleController
    scaler: ResourceScaler


class LibvirtProvider(HypervisorDriver):
    def __init__(self, store: PathStore, libvirt: ModuleType | None = None) -> None:
        self._store = store
        self._libvirt = libvirt
        self._resolver = IdentityResolver(store)
        self._builder = DomainDescriptorBuilder()
        self._record: _SandboxRecord | None = None
        self._log = get_logger(subsystem="libvirt")

    @property
    def identity(self) -> SandboxIdentity:
        return self._get_record().identity

    @property
    def descriptor(self) -> DomainDescriptor:
        return self._get_record().descriptor

    @property
    def state(self) -> LifecycleState:
        if self._record is None:
            return LifecycleState.DISCONNECTED
        return self._record.lifecycle.state

    def create_sandbox(self, sandbox_id: str, config: ResourceConfig) -> None:
        log = self._log.bind(func="create_sandbox", sandbox_id=sandbox_id)
        log.debug("creating sandbox", config=repr(config))

        config = config.validated()
        identity = self._resolver.resolve(sandbox_id)
        console_path = self.get_sandbox_console(sandbox_id)
        descriptor = self._builder.build(identity, config, console_path)
        lifecycle = LifecycleController(identity, self._libvirt)

        self._record = _SandboxRecord(
            identity=identity,
            config=config,
            descriptor=descriptor,
            attacher=DeviceAttacher(config.shared_memory),
            lifecycle=lifecycle,
            scaler=ResourceScaler(lifecycle, descriptor),
        )
        log.debug("sandbox created", domain_uuid=identity.domain_uuid, uri=identity.uri)

    def start_sandbox(self) -> None:
        record = self._get_record()
        self._log.debug("starting sandbox", func="start_sandbox")
        self._resolver.prepare_host_filesystem(record.identity)
        record.lifecycle.define_and_start(record.descriptor)

    def stop_sandbox(self) -> None:
        self._get_record().lifecycle.stop()

    def pause_sandbox(self) -> None:
        self._unsupported("pauseSandbox")

    def resume_sandbox(self) -> None:
        self._unsupported("resumeSandbox")

    def save_sandbox(self) -> None:
        self._unsupported("saveSandbox")

    def add_device(self, device: Device) -> None:
        record = self._get_record()
        record.attacher.attach(record.descriptor, device)

    def hotplug_add_device(self, device: Device) -> Device:
        self._unsupported("hotplugAddDevice")

    def hotplug_remove_device(self, device: Device) -> Device:
        self._unsupported("hotplugRemoveDevice")

    def resize_memory(
        self, requested_mib: int, block_size_mib: int, probe: bool = False
    ) -> int:
        self._log.debug(
            "resize memory",
            func="resize_memory",
            requested_mib=requested_mib,
            block_size_mib=block_size_mib,
            probe=probe,
        )
        self._unsupported("resizeMemory")

    def resize_vcpus(self, requested: int) -> VcpuAdjustment:
        return self._get_record().scaler.resize_vcpus(requested)

    def get_sandbox_console(self, sandbox_id: str) -> str:
        return build_socket_path(self._store.run_vm_storage_path, sandbox_id, CONSOLE_SOCKET)

    def generate_socket(self, sandbox_id: str, use_vsock: bool = False) -> ConsoleChannel:
        # The kernel command line pins the agent to the non-vsock transport.
        if use_vsock:
            self._unsupported("generateSocket")
        path = build_socket_path(self._store.run_vm_storage_path, sandbox_id, AGENT_SOCKET)
        return ConsoleChannel(host_socket_path=path)

    def capabilities(self) -> Capabilities:
        self._log.info("capabilities() called")
        return Capabilities(fs_sharing=True)

    def hypervisor_config(self) -> ResourceConfig:
        self._log.info("hypervisorConfig() called")
        return self._get_record().config

    def disconnect(self) -> None:
        """Close the libvirt connection; the domain keeps running."""
        self._log.info("disconnect() called")
        if self._record is not None:
            self._record.lifecycle.close()

    def get_thread_ids(self) -> dict[int, int]:
        self._unsupported("getThreadIDs")

    def get_pids(self) -> Sequence[int]:
        self._log.info("getPids() called")
        return []

    def cleanup(self) -> None:
        self._unsupported("cleanup")

    def check(self) -> None:
        self._unsupported("check")

    def to_grpc(self) -> bytes:
        self._unsupported("toGrpc")

    def from_grpc(self, config: ResourceConfig, payload: bytes) -> None:
        self._unsupported("fromGrpc")

    def save(self) -> HypervisorState:
        self._log.info("save() called")
        return HypervisorState()

    def load(self, state: HypervisorState) -> None:
        self._log.info("load() called")

    def _get_record(self) -> _SandboxRecord:
        if self._record is None:
            raise VirtboxError("Sandbox has not been created")
        return self._record

    def _unsupported(self, name: str) -> NoReturn:
        self._log.info(f"{name}() called")
        raise UnsupportedOperation(name)
