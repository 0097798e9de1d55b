"""Application model.

An application is a set of named components plus the WASM RPC dependencies
declared between them. This module holds the type-safe model and the pure
path functions the build steps use to locate artifacts:

- component_wasm(name, profile): unlinked component binary
- client_wasm(name): client stub of a component, embedded by its dependents
- component_linked_wasm(name): linked output binary
- task_result_marker_dir(): where build steps keep their result markers

Applications are loaded from a JSON manifest (rpclink.json):

    {
      "tempDir": "build-temp",
      "components": {
        "api": {
          "sourceDir": "components/api",
          "profiles": {
            "debug": {
              "componentWasm": "target/debug/{component_name_snake}.wasm",
              "build": [
                {"command": "cargo build", "sources": ["src"],
                 "targets": ["target/debug/api.wasm"]}
              ]
            },
            "release": {"componentWasm": "target/release/{component_name_snake}.wasm"}
          },
          "defaultProfile": "debug"
        },
        "billing": {"componentWasm": "billing.wasm"}
      },
      "dependencies": {
        "api": [
          {"name": "billing", "type": "static-wasm-rpc"},
          {"name": "notifications", "type": "dynamic-wasm-rpc"}
        ]
      }
    }

Path templates may use {component_name}, {component_name_snake} and
{profile}.
"""

import json
import logging
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Tuple

from .. import paths
from ..build.build_profiles import DEFAULT_PROFILE, BuildProfile
from ..errors import RpcLinkError

logger = logging.getLogger(__name__)

MANIFEST_FILE_NAME = "rpclink.json"


class ApplicationManifestError(RpcLinkError):
    """Raised when an application manifest is missing or invalid."""

    pass


class DependencyType(Enum):
    """How a dependency's client stub reaches the dependent component."""

    STATIC_WASM_RPC = "static-wasm-rpc"
    DYNAMIC_WASM_RPC = "dynamic-wasm-rpc"

    def __str__(self) -> str:
        return self.value

    @classmethod
    def parse(cls, value: str) -> "DependencyType":
        try:
            return cls(value)
        except ValueError:
            valid = ", ".join(t.value for t in cls)
            raise ApplicationManifestError(f"Unknown dependency type '{value}' (expected one of: {valid})") from None


@dataclass(frozen=True)
class WasmRpcDependency:
    """A declared dependency on another component.

    Attributes:
        name: Target component name
        dep_type: Static (embedded at link time) or dynamic (resolved at runtime)
    """

    name: str
    dep_type: DependencyType

    @property
    def is_static(self) -> bool:
        return self.dep_type is DependencyType.STATIC_WASM_RPC


@dataclass(frozen=True)
class BuildCommand:
    """An external build command with the files it reads and writes.

    Attributes:
        command: Shell command line
        dir: Working directory relative to the component source dir
        sources: Input files/directories (relative to the working directory)
        targets: Output files/directories (relative to the working directory)
    """

    command: str
    dir: Optional[str] = None
    sources: Tuple[str, ...] = ()
    targets: Tuple[str, ...] = ()


@dataclass(frozen=True)
class ComponentProfile:
    """Per-profile component settings."""

    component_wasm: str
    build: Tuple[BuildCommand, ...] = ()


@dataclass(frozen=True)
class Component:
    """A deployable component.

    Attributes:
        name: Unique component name
        source_dir: Directory that relative component paths resolve against
        profiles: Settings per build profile
        default_profile: Profile used when the requested one is not declared
        dependencies: Declared dependencies, in declaration order
        client_wasm: Optional client stub path override
        linked_wasm: Optional linked output path override
    """

    name: str
    source_dir: Path
    profiles: Dict[BuildProfile, ComponentProfile]
    default_profile: BuildProfile
    dependencies: Tuple[WasmRpcDependency, ...] = ()
    client_wasm: Optional[str] = None
    linked_wasm: Optional[str] = None

    def profile(self, profile: BuildProfile) -> ComponentProfile:
        """Settings for a profile, falling back to the default profile."""
        selected = self.profiles.get(profile)
        if selected is None:
            selected = self.profiles[self.default_profile]
        return selected


def render_template(template: str, component_name: str, profile: Optional[BuildProfile] = None) -> str:
    """Substitute component/profile placeholders in a path template."""
    rendered = template.replace("{component_name_snake}", paths.to_snake_case(component_name))
    rendered = rendered.replace("{component_name}", component_name)
    if profile is not None:
        rendered = rendered.replace("{profile}", profile.value)
    return rendered


class Application:
    """A loaded application: components, dependencies and artifact paths.

    The path functions are pure; they never touch the filesystem.
    """

    def __init__(self, root_dir: Path, temp_dir: Path, components: Iterable[Component]):
        """
        Initialize the application.

        Args:
            root_dir: Application root (directory of the manifest)
            temp_dir: Directory for generated artifacts and markers
            components: Components in declaration order
        """
        self.root_dir = root_dir
        self.temp_dir = temp_dir
        self._components: Dict[str, Component] = {}
        for component in components:
            self._components[component.name] = component

    def component_names(self) -> List[str]:
        """All component names in declaration order."""
        return list(self._components)

    def has_component(self, name: str) -> bool:
        return name in self._components

    def component(self, name: str) -> Component:
        """Get a component by name.

        Raises:
            KeyError: If no such component is declared
        """
        return self._components[name]

    def component_dependencies(self, name: str) -> Tuple[WasmRpcDependency, ...]:
        return self.component(name).dependencies

    def component_wasm(self, name: str, profile: BuildProfile) -> Path:
        """Unlinked component binary for a profile."""
        component = self.component(name)
        template = component.profile(profile).component_wasm
        return component.source_dir / render_template(template, name, profile)

    def client_wasm(self, name: str) -> Path:
        """Client stub binary of a component, as embedded by dependents."""
        component = self.component(name)
        if component.client_wasm:
            return self.root_dir / render_template(component.client_wasm, name)
        return paths.default_client_wasm(self.temp_dir, name)

    def component_linked_wasm(self, name: str) -> Path:
        """Linked output binary of a component."""
        component = self.component(name)
        if component.linked_wasm:
            return self.root_dir / render_template(component.linked_wasm, name)
        return paths.default_linked_wasm(self.temp_dir, name)

    def component_build_commands(self, name: str, profile: BuildProfile) -> Tuple[BuildCommand, ...]:
        return self.component(name).profile(profile).build

    def task_result_marker_dir(self) -> Path:
        return paths.task_result_marker_dir(self.temp_dir)

    @classmethod
    def load(cls, manifest_path: Path) -> "Application":
        """Load an application from a manifest file or a directory containing one.

        Args:
            manifest_path: Path to rpclink.json, or to its directory

        Returns:
            Loaded Application

        Raises:
            ApplicationManifestError: If the manifest is missing or invalid
        """
        if manifest_path.is_dir():
            manifest_path = manifest_path / MANIFEST_FILE_NAME

        if not manifest_path.exists():
            raise ApplicationManifestError(f"Application manifest not found: {manifest_path}")

        try:
            with open(manifest_path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except json.JSONDecodeError as e:
            raise ApplicationManifestError(f"Invalid JSON in {manifest_path}: {e}") from e
        except OSError as e:
            raise ApplicationManifestError(f"Failed to read {manifest_path}: {e}") from e

        logger.debug(f"Loaded application manifest {manifest_path}")
        return cls.from_dict(data, manifest_path.parent.resolve())

    @classmethod
    def from_dict(cls, data: Dict[str, Any], root_dir: Path) -> "Application":
        """Build an application from parsed manifest data.

        Raises:
            ApplicationManifestError: On structural errors, unknown dependency
                targets or self-dependencies
        """
        if not isinstance(data, dict):
            raise ApplicationManifestError("Application manifest must be a JSON object")

        components_data = data.get("components")
        if not isinstance(components_data, dict) or not components_data:
            raise ApplicationManifestError("Application manifest declares no components")

        dependencies_data = data.get("dependencies", {})
        if not isinstance(dependencies_data, dict):
            raise ApplicationManifestError("'dependencies' must map component names to lists")

        temp_dir = paths.get_temp_dir(root_dir, data.get("tempDir"))

        components = []
        for name, component_data in components_data.items():
            dependencies = _parse_dependencies(name, dependencies_data.get(name, []))
            components.append(_parse_component(name, component_data, dependencies, root_dir))

        unknown = [name for name in dependencies_data if name not in components_data]
        if unknown:
            raise ApplicationManifestError(f"Dependencies declared for unknown components: {', '.join(sorted(unknown))}")

        for component in components:
            for dep in component.dependencies:
                if dep.name == component.name:
                    raise ApplicationManifestError(f"Component '{component.name}' depends on itself")
                if dep.name not in components_data:
                    raise ApplicationManifestError(f"Component '{component.name}' depends on unknown component '{dep.name}'")

        return cls(root_dir=root_dir, temp_dir=temp_dir, components=components)


def _parse_dependencies(component_name: str, data: Any) -> Tuple[WasmRpcDependency, ...]:
    if not isinstance(data, list):
        raise ApplicationManifestError(f"Dependencies of '{component_name}' must be a list")

    dependencies = []
    for entry in data:
        if not isinstance(entry, dict) or "name" not in entry or "type" not in entry:
            raise ApplicationManifestError(f"Invalid dependency entry for '{component_name}': {entry!r}")
        dependencies.append(WasmRpcDependency(name=str(entry["name"]), dep_type=DependencyType.parse(entry["type"])))
    return tuple(dependencies)


def _parse_build_commands(component_name: str, data: Any) -> Tuple[BuildCommand, ...]:
    if not isinstance(data, list):
        raise ApplicationManifestError(f"Build commands of '{component_name}' must be a list")

    commands = []
    for entry in data:
        if not isinstance(entry, dict) or not entry.get("command"):
            raise ApplicationManifestError(f"Invalid build command for '{component_name}': {entry!r}")
        commands.append(
            BuildCommand(
                command=entry["command"],
                dir=entry.get("dir"),
                sources=tuple(entry.get("sources", [])),
                targets=tuple(entry.get("targets", [])),
            )
        )
    return tuple(commands)


def _parse_component(
    name: str,
    data: Any,
    dependencies: Tuple[WasmRpcDependency, ...],
    root_dir: Path,
) -> Component:
    if not isinstance(data, dict):
        raise ApplicationManifestError(f"Component '{name}' must be a JSON object")

    source_dir = root_dir / data.get("sourceDir", ".")

    profiles: Dict[BuildProfile, ComponentProfile] = {}
    if "profiles" in data:
        profiles_data = data["profiles"]
        if not isinstance(profiles_data, dict) or not profiles_data:
            raise ApplicationManifestError(f"Component '{name}' has an empty 'profiles' section")
        for profile_name, profile_data in profiles_data.items():
            try:
                profile = BuildProfile.parse(profile_name)
            except ValueError as e:
                raise ApplicationManifestError(f"Component '{name}': {e}") from e
            if not isinstance(profile_data, dict) or "componentWasm" not in profile_data:
                raise ApplicationManifestError(f"Component '{name}' profile '{profile_name}' is missing 'componentWasm'")
            profiles[profile] = ComponentProfile(
                component_wasm=profile_data["componentWasm"],
                build=_parse_build_commands(name, profile_data.get("build", [])),
            )
    elif "componentWasm" in data:
        profiles[DEFAULT_PROFILE] = ComponentProfile(
            component_wasm=data["componentWasm"],
            build=_parse_build_commands(name, data.get("build", [])),
        )
    else:
        raise ApplicationManifestError(f"Component '{name}' declares neither 'componentWasm' nor 'profiles'")

    if "defaultProfile" in data:
        try:
            default_profile = BuildProfile.parse(data["defaultProfile"])
        except ValueError as e:
            raise ApplicationManifestError(f"Component '{name}': {e}") from e
        if default_profile not in profiles:
            raise ApplicationManifestError(f"Component '{name}' default profile '{default_profile}' is not declared")
    elif DEFAULT_PROFILE in profiles:
        default_profile = DEFAULT_PROFILE
    else:
        default_profile = next(iter(profiles))

    return Component(
        name=name,
        source_dir=source_dir,
        profiles=profiles,
        default_profile=default_profile,
        dependencies=dependencies,
        client_wasm=data.get("clientWasm"),
        linked_wasm=data.get("linkedWasm"),
    )
