from __future__ import annotations

import threading
from contextlib import contextmanager
from functools import lru_cache
from typing import Callable, Iterator, Optional

from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from virtbox.config import DriverSettings, load_settings
from virtbox.errors import (
    ConfigurationError,
    ControlPlaneRejected,
    ControlPlaneUnreachable,
    UnsupportedOperation,
)
from virtbox.log import configure_logging
from virtbox.models.sandbox import LifecycleState, SharedFS
from virtbox.providers import LibvirtProvider, LocalPathStore

ProviderFactory = Callable[[DriverSettings], LibvirtProvider]

# A provider in one of these states may own a domain definition.
_DOMAIN_STATES = (LifecycleState.DEFINED, LifecycleState.RUNNING, LifecycleState.STOPPED)

app = FastAPI(title="virtbox")


class SandboxRequest(BaseModel):
    num_vcpus: Optional[int] = Field(default=None, ge=0)
    default_max_vcpus: Optional[int] = Field(default=None, ge=0)
    memory_size: Optional[int] = Field(default=None, ge=0)
    shared_fs: Optional[SharedFS] = None


class VcpuRequest(BaseModel):
    requested: int = Field(ge=0)


class SandboxRegistry:
    """Providers keyed by sandbox id.

    An id is claimed before its provider exists, and every call on a
    provider runs under that sandbox's lock.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._locks: dict[str, threading.Lock] = {}
        self._providers: dict[str, LibvirtProvider] = {}

    def __contains__(self, sandbox_id: str) -> bool:
        with self._lock:
            return sandbox_id in self._providers

    def claim(self, sandbox_id: str) -> threading.Lock:
        with self._lock:
            if sandbox_id in self._locks:
                raise HTTPException(status_code=409, detail=f"Sandbox already exists: {sandbox_id}")
            lock = self._locks[sandbox_id] = threading.Lock()
            return lock

    def add(self, sandbox_id: str, provider: LibvirtProvider) -> None:
        with self._lock:
            self._providers[sandbox_id] = provider

    def release(self, sandbox_id: str) -> None:
        with self._lock:
            self._providers.pop(sandbox_id, None)
            self._locks.pop(sandbox_id, None)

    @contextmanager
    def hold(self, sandbox_id: str) -> Iterator[LibvirtProvider]:
        with self._lock:
            lock = self._locks.get(sandbox_id)
        if lock is None:
            raise HTTPException(status_code=404, detail=f"Unknown sandbox id: {sandbox_id}")
        with lock:
            provider = self._providers.get(sandbox_id)
            if provider is None:
                # Creation failed before a domain was defined.
                raise HTTPException(status_code=404, detail=f"Unknown sandbox id: {sandbox_id}")
            yield provider


_REGISTRY = SandboxRegistry()


@lru_cache
def get_settings() -> DriverSettings:
    settings = load_settings()
    configure_logging(settings.logging_format, settings.logging_level)
    return settings


def _libvirt_provider(settings: DriverSettings) -> LibvirtProvider:
    store = LocalPathStore(settings.run_storage_path, settings.run_vm_storage_path)
    return LibvirtProvider(store)


def get_provider_factory() -> ProviderFactory:
    return _libvirt_provider


def get_registry() -> SandboxRegistry:
    return _REGISTRY


@app.exception_handler(UnsupportedOperation)
def _unsupported(request: Request, exc: UnsupportedOperation) -> JSONResponse:
    return JSONResponse(status_code=501, content={"detail": str(exc)})


@app.exception_handler(ConfigurationError)
def _invalid_config(request: Request, exc: ConfigurationError) -> JSONResponse:
    return JSONResponse(status_code=422, content={"detail": str(exc)})


@app.exception_handler(ControlPlaneUnreachable)
@app.exception_handler(ControlPlaneRejected)
def _control_plane(request: Request, exc: Exception) -> JSONResponse:
    return JSONResponse(status_code=502, content={"detail": str(exc)})


@app.get("/health")
def health_check() -> dict:
    return {"status": "ok"}


@app.post("/sandboxes/{sandbox_id}", status_code=201)
def create_sandbox(
    sandbox_id: str,
    body: SandboxRequest,
    settings: DriverSettings = Depends(get_settings),
    factory: ProviderFactory = Depends(get_provider_factory),
    registry: SandboxRegistry = Depends(get_registry),
) -> dict:
    with registry.claim(sandbox_id):
        try:
            provider = factory(settings)
            provider.create_sandbox(sandbox_id, settings.resource_config(**body.model_dump()))
        except Exception:
            registry.release(sandbox_id)
            raise

        # Registered before start so a half-created domain can still be deleted.
        registry.add(sandbox_id, provider)
        try:
            provider.start_sandbox()
        except Exception:
            if provider.state not in _DOMAIN_STATES:
                registry.release(sandbox_id)
                provider.disconnect()
            raise

        identity = provider.identity
        return {
            "sandbox_id": sandbox_id,
            "domain_uuid": identity.domain_uuid,
            "root_path": str(identity.root_path),
            "state": provider.state.value,
        }


@app.post("/sandboxes/{sandbox_id}/vcpus")
def resize_vcpus(
    sandbox_id: str,
    body: VcpuRequest,
    registry: SandboxRegistry = Depends(get_registry),
) -> dict:
    with registry.hold(sandbox_id) as provider:
        adjustment = provider.resize_vcpus(body.requested)
    return {"previous": adjustment.previous, "applied": adjustment.applied}


@app.post("/sandboxes/{sandbox_id}/pause")
def pause_sandbox(
    sandbox_id: str,
    registry: SandboxRegistry = Depends(get_registry),
) -> dict:
    with registry.hold(sandbox_id) as provider:
        provider.pause_sandbox()
    return {"status": "paused"}


@app.delete("/sandboxes/{sandbox_id}")
def stop_sandbox(
    sandbox_id: str,
    registry: SandboxRegistry = Depends(get_registry),
) -> dict:
    with registry.hold(sandbox_id) as provider:
        provider.stop_sandbox()
        registry.release(sandbox_id)
    return {"status": "stopped"}
