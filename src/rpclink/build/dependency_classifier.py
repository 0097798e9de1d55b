"""Static/dynamic classification of a component's WASM RPC dependencies.

The classifier output feeds both the link marker hash and the log lines, so
its ordering must not depend on declaration order: dependencies are
deduplicated by target name within each type and sorted lexicographically.
"""

from dataclasses import dataclass
from typing import Iterable, Tuple

from ..model.app import Application, DependencyType, WasmRpcDependency


@dataclass(frozen=True)
class ClassifiedDependencies:
    """Dependency names of one component, split by type.

    Attributes:
        static: Sorted, unique names of static dependencies
        dynamic: Sorted, unique names of dynamic dependencies
    """

    static: Tuple[str, ...]
    dynamic: Tuple[str, ...]


def classify(dependencies: Iterable[WasmRpcDependency]) -> ClassifiedDependencies:
    """Partition dependencies into sorted, deduplicated static and dynamic sets.

    Args:
        dependencies: Declared dependencies in any order, possibly empty

    Returns:
        ClassifiedDependencies
    """
    static = set()
    dynamic = set()
    for dep in dependencies:
        if dep.dep_type is DependencyType.STATIC_WASM_RPC:
            static.add(dep.name)
        elif dep.dep_type is DependencyType.DYNAMIC_WASM_RPC:
            dynamic.add(dep.name)
    return ClassifiedDependencies(static=tuple(sorted(static)), dynamic=tuple(sorted(dynamic)))


def classify_component(application: Application, component_name: str) -> ClassifiedDependencies:
    """Classify the declared dependencies of a component."""
    return classify(application.component_dependencies(component_name))
