"""Domain lifecycle against an embedded libvirt daemon."""

from __future__ import annotations

import importlib
import importlib.util
import os
import threading
from types import ModuleType
from typing import Any

from virtbox.errors import ControlPlaneRejected, ControlPlaneUnreachable
from virtbox.log import get_logger
from virtbox.models.domain import DomainDescriptor
from virtbox.models.sandbox import LifecycleState, SandboxIdentity
from virtbox.providers.sandbox.descriptor import DOMAIN_NAME

_event_pump_lock = threading.Lock()
_event_pumps: dict[int, threading.Thread] = {}


def load_libvirt() -> ModuleType:
    libvirt_spec = importlib.util.find_spec("libvirt")
    if libvirt_spec is None:
        raise RuntimeError("libvirt-python must be installed to manage sandbox domains.")
    return importlib.import_module("libvirt")


def _pump_events(libvirt: ModuleType) -> None:
    log = get_logger(subsystem="libvirt", func="event_loop")
    while True:
        try:
            libvirt.virEventRunDefaultImpl()
        except Exception:
            # A dead pump stalls every connection and cannot be restarted.
            log.critical("libvirt event loop failed", exc_info=True)
            os._exit(1)


def ensure_event_pump(libvirt: ModuleType) -> threading.Thread:
    """Register libvirt's default event loop and drain it on a daemon thread.

    Registration happens once per process; later calls return the running
    pump.
    """
    with _event_pump_lock:
        pump = _event_pumps.get(id(libvirt))
        if pump is not None:
            return pump
        libvirt.virEventRegisterDefaultImpl()
        pump = threading.Thread(
            target=_pump_events,
            args=(libvirt,),
            name="libvirt-events",
            daemon=True,
        )
        pump.start()
        _event_pumps[id(libvirt)] = pump
        return pump


class LifecycleController:
    def __init__(
        self, identity: SandboxIdentity, libvirt: ModuleType | None = None
    ) -> None:
        self._identity = identity
        self._libvirt = libvirt
        self._connect: Any = None
        self._domain: Any = None
        self._state = LifecycleState.DISCONNECTED
        self._log = get_logger(subsystem="libvirt", sandbox_id=identity.sandbox_id)

    @property
    def state(self) -> LifecycleState:
        return self._state

    @property
    def domain(self) -> Any:
        return self._domain

    @property
    def libvirt(self) -> ModuleType:
        if self._libvirt is None:
            self._libvirt = load_libvirt()
        return self._libvirt

    def connect(self) -> Any:
        log = self._log.bind(func="connect")
        if self._connect is not None:
            log.debug("connect already exists")
            return self._connect

        libvirt = self.libvirt
        ensure_event_pump(libvirt)
        log.debug("event loop running")

        uri = self._identity.uri
        try:
            connect = libvirt.open(uri)
        except libvirt.libvirtError as exc:
            raise ControlPlaneUnreachable(f"Failed to connect to libvirt at {uri}: {exc}") from exc
        if connect is None:
            raise ControlPlaneUnreachable(f"Failed to connect to libvirt at {uri}")

        self._connect = connect
        self._state = LifecycleState.CONNECTED
        log.debug("connected", uri=uri)
        return connect

    def lookup(self) -> Any:
        log = self._log.bind(func="lookup")
        if self._domain is not None:
            log.debug("domain already exists")
            return self._domain

        connect = self.connect()
        try:
            domain = connect.lookupByName(DOMAIN_NAME)
            active = domain.isActive()
        except self.libvirt.libvirtError as exc:
            raise ControlPlaneRejected("lookup", str(exc)) from exc

        self._domain = domain
        self._state = LifecycleState.RUNNING if active else LifecycleState.DEFINED
        log.debug("domain found", state=self._state.value)
        return domain

    def ensure_domain(self) -> Any:
        self.connect()
        return self.lookup()

    def define_and_start(self, descriptor: DomainDescriptor) -> None:
        log = self._log.bind(func="define_and_start")
        domain_xml = descriptor.to_xml()
        log.debug("domain xml", domain_xml=domain_xml)

        connect = self.connect()
        libvirt = self.libvirt
        try:
            domain = connect.defineXML(domain_xml)
        except libvirt.libvirtError as exc:
            raise ControlPlaneRejected("define", str(exc)) from exc
        if domain is None:
            raise ControlPlaneRejected("define", f"no domain returned for {DOMAIN_NAME}")
        self._domain = domain
        self._state = LifecycleState.DEFINED
        log.debug("domain defined")

        try:
            domain.create()
        except libvirt.libvirtError as exc:
            raise ControlPlaneRejected("create", str(exc)) from exc
        self._state = LifecycleState.RUNNING
        log.debug("domain created")

    def stop(self) -> None:
        """Force the domain off and remove its definition.

        A failed destroy is expected when the domain is already off; a failed
        undefine would leak the definition and is raised.
        """
        log = self._log.bind(func="stop")
        domain = self.ensure_domain()
        libvirt = self.libvirt

        try:
            domain.destroy()
        except libvirt.libvirtError as exc:
            log.debug("failed to destroy domain", error=str(exc))
        else:
            self._state = LifecycleState.STOPPED
            log.debug("domain destroyed")

        try:
            domain.undefine()
        except libvirt.libvirtError as exc:
            raise ControlPlaneRejected("undefine", str(exc)) from exc
        log.debug("domain undefined")
        self.close()

    def close(self) -> None:
        connect, self._connect = self._connect, None
        self._domain = None
        self._state = LifecycleState.DISCONNECTED
        if connect is None:
            return
        try:
            connect.close()
        except self.libvirt.libvirtError as exc:
            raise ControlPlaneRejected("close", str(exc)) from exc
