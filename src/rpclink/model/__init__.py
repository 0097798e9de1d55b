"""Application model."""

from .app import (
    Application,
    ApplicationManifestError,
    BuildCommand,
    Component,
    ComponentProfile,
    DependencyType,
    WasmRpcDependency,
)

__all__ = [
    "Application",
    "ApplicationManifestError",
    "BuildCommand",
    "Component",
    "ComponentProfile",
    "DependencyType",
    "WasmRpcDependency",
]
