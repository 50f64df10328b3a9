"""Online vCPU resizing for a running sandbox domain."""

from __future__ import annotations

from virtbox.errors import ConfigurationError, ControlPlaneRejected
from virtbox.log import get_logger
from virtbox.models.domain import DomainDescriptor
from virtbox.models.sandbox import VcpuAdjustment
from virtbox.providers.sandbox.lifecycle import LifecycleController


class ResourceScaler:
    def __init__(self, lifecycle: LifecycleController, descriptor: DomainDescriptor) -> None:
        self._lifecycle = lifecycle
        self._descriptor = descriptor
        self._log = get_logger(subsystem="libvirt", func="resize_vcpus")

    def resize_vcpus(self, requested: int) -> VcpuAdjustment:
        """Ask libvirt to bring the live vCPU count to ``requested``.

        The request is capped at the domain's maximum. The call returns once
        libvirt accepts the change; the guest may take longer to see it.
        """
        if requested < 0:
            raise ConfigurationError(f"vCPU count must not be negative: {requested}")
        log = self._log.bind(requested=requested)
        max_vcpus = self._descriptor.vcpu.value
        target = requested
        if requested > max_vcpus:
            log.warning("Capped vCPUs", max_vcpus=max_vcpus)
            target = max_vcpus

        domain = self._lifecycle.ensure_domain()
        libvirt = self._lifecycle.libvirt

        try:
            previous = domain.vcpusFlags(libvirt.VIR_DOMAIN_VCPU_LIVE)
        except libvirt.libvirtError as exc:
            raise ControlPlaneRejected("get vcpus", str(exc)) from exc

        if previous == target:
            return VcpuAdjustment(requested=requested, clamped_to=previous, previous=previous)

        try:
            domain.setVcpusFlags(target, libvirt.VIR_DOMAIN_VCPU_LIVE)
        except libvirt.libvirtError as exc:
            raise ControlPlaneRejected("set vcpus", str(exc)) from exc
        log.debug("vcpus requested", previous=previous, target=target)

        return VcpuAdjustment(requested=requested, clamped_to=target, previous=previous)
