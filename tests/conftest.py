"""
Shared fixtures: an in-memory stand-in for the libvirt bindings and a
path store rooted in the test's temporary directory.
"""

from __future__ import annotations

import threading
import types

import pytest

from virtbox.models import sandbox as sandbox_models
from virtbox.models.sandbox import ResourceConfig, SharedFS
from virtbox.providers.store import LocalPathStore


class FakeLibvirtError(Exception):
    pass


class FakeDomain:
    def __init__(self, connect: "FakeConnect", xml: str) -> None:
        self.connect = connect
        self.xml = xml
        self.active = False
        self.vcpus = 0
        self.calls: list[tuple] = []
        self.fail: set[str] = set()

    def _record(self, name: str, *args) -> None:
        self.calls.append((name, *args))
        if name in self.fail:
            raise FakeLibvirtError(f"{name} rejected")

    def create(self) -> int:
        self._record("create")
        self.active = True
        return 0

    def destroy(self) -> int:
        self._record("destroy")
        self.active = False
        return 0

    def undefine(self) -> int:
        self._record("undefine")
        self.connect.domains.pop("sandbox", None)
        return 0

    def isActive(self) -> int:
        return 1 if self.active else 0

    def vcpusFlags(self, flags: int) -> int:
        self._record("vcpusFlags", flags)
        return self.vcpus

    def setVcpusFlags(self, count: int, flags: int) -> int:
        self._record("setVcpusFlags", count, flags)
        # Hot-add completes later in the guest; the live count is unchanged here.
        return 0


class FakeConnect:
    def __init__(self, uri: str, domains: dict[str, FakeDomain]) -> None:
        self.uri = uri
        self.domains = domains
        self.closed = False
        self.fail: set[str] = set()

    def defineXML(self, xml: str) -> FakeDomain:
        if "defineXML" in self.fail:
            raise FakeLibvirtError("defineXML rejected")
        domain = FakeDomain(self, xml)
        domain.fail = set(self.fail)
        self.domains["sandbox"] = domain
        return domain

    def lookupByName(self, name: str) -> FakeDomain:
        if name not in self.domains:
            raise FakeLibvirtError(f"Domain not found: {name}")
        return self.domains[name]

    def close(self) -> int:
        self.closed = True
        return 0


def make_fake_libvirt() -> types.ModuleType:
    module = types.ModuleType("libvirt")
    module.libvirtError = FakeLibvirtError
    module.VIR_DOMAIN_VCPU_LIVE = 1
    module.connections = []
    module.roots = {}
    module.registered = 0
    module.refuse_connect = False
    module.fail = set()
    blocker = threading.Event()

    def virEventRegisterDefaultImpl() -> int:
        module.registered += 1
        return 0

    def virEventRunDefaultImpl() -> int:
        blocker.wait()
        return 0

    def open_connection(uri: str) -> FakeConnect:
        if module.refuse_connect:
            raise FakeLibvirtError(f"cannot connect to {uri}")
        connect = FakeConnect(uri, module.roots.setdefault(uri, {}))
        connect.fail = set(module.fail)
        module.connections.append(connect)
        return connect

    module.virEventRegisterDefaultImpl = virEventRegisterDefaultImpl
    module.virEventRunDefaultImpl = virEventRunDefaultImpl
    module.open = open_connection
    return module


@pytest.fixture(autouse=True)
def host_cpus(monkeypatch) -> int:
    monkeypatch.setattr(sandbox_models, "host_cpu_count", lambda: 16)
    return 16


@pytest.fixture
def fake_libvirt() -> types.ModuleType:
    return make_fake_libvirt()


@pytest.fixture
def store(tmp_path) -> LocalPathStore:
    return LocalPathStore(tmp_path / "run" / "sbs", tmp_path / "run" / "vm")


@pytest.fixture
def resource_config() -> ResourceConfig:
    return ResourceConfig(
        kernel_path="/opt/kata/vmlinuz",
        initrd_path="/opt/kata/initrd.img",
        hypervisor_path="/usr/bin/qemu-system-x86_64",
        num_vcpus=2,
        default_max_vcpus=4,
        memory_size=2048,
        shared_fs=SharedFS.VIRTIO_FS,
    )
