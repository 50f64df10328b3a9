"""Provider package for sandbox drivers and host storage."""

from virtbox.providers.sandbox import HypervisorDriver, LibvirtProvider
from virtbox.providers.store import LocalPathStore, PathStore

__all__ = [
    "HypervisorDriver",
    "LibvirtProvider",
    "LocalPathStore",
    "PathStore",
]
