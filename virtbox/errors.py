"""Error types raised by the sandbox driver."""

from __future__ import annotations


class VirtboxError(RuntimeError):
    """Base class for driver failures."""


class ConfigurationError(VirtboxError, ValueError):
    """The resource configuration failed validation."""


class ControlPlaneUnreachable(VirtboxError):
    """A connection to libvirt could not be established."""


class ControlPlaneRejected(VirtboxError):
    """libvirt refused a request made against the sandbox domain."""

    def __init__(self, operation: str, detail: str) -> None:
        super().__init__(f"{operation} failed: {detail}")
        self.operation = operation


class UnsupportedOperation(NotImplementedError):
    """The driver does not implement this operation."""

    def __init__(self, operation: str) -> None:
        super().__init__(f"{operation}() failed")
        self.operation = operation
