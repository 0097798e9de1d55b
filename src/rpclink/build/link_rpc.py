"""
RPC link step.

For every selected component, in the order given by the caller:

1. Classify its declared dependencies into static and dynamic sets
2. Resolve the client stubs of the static dependencies, the unlinked
   component binary and the linked output path
3. Compute the link task result marker from the component name and the
   static dependency names
4. Skip the component if the marker is fresh and the linked output is at
   least as new as every input
5. Otherwise copy the binary (no static dependencies) or compose it with
   the stubs, and record the outcome in the marker

The first failing component aborts the run. Components linked before it
stay on disk with fresh markers, so rerunning resumes at the failure.

Component states:
    PENDING -> SKIPPED
    PENDING -> LINKING -> LINKED
    PENDING -> LINKING -> FAILED
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Dict, List, Optional, Tuple

from .. import fs
from ..errors import RpcLinkError
from ..output import highlight, highlight_join
from .build_context import ApplicationContext
from .build_profiles import format_profile_banner
from .dependency_classifier import ClassifiedDependencies, classify_component
from .task_result_marker import LinkRpcMarkerHash, TaskResultMarker, TaskResultMarkerError
from .up_to_date import should_skip

logger = logging.getLogger(__name__)


class LinkState(Enum):
    """State of one component within a link run."""

    PENDING = "pending"
    SKIPPED = "skipped"
    LINKING = "linking"
    LINKED = "linked"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (LinkState.SKIPPED, LinkState.LINKED, LinkState.FAILED)


@dataclass
class LinkReport:
    """Per-component outcome of a link run.

    Components that were never reached because of an earlier failure stay
    PENDING.

    Attributes:
        states: Component name to state, in processing order
        copied: Components whose binary was copied without composition
        composed: Components composed with their static dependency stubs
    """

    states: Dict[str, LinkState] = field(default_factory=dict)
    copied: List[str] = field(default_factory=list)
    composed: List[str] = field(default_factory=list)

    def names_in(self, state: LinkState) -> List[str]:
        return [name for name, s in self.states.items() if s is state]

    @property
    def skipped(self) -> List[str]:
        return self.names_in(LinkState.SKIPPED)

    @property
    def linked(self) -> List[str]:
        return self.names_in(LinkState.LINKED)

    @property
    def failed(self) -> List[str]:
        return self.names_in(LinkState.FAILED)

    @property
    def success(self) -> bool:
        return not self.failed and all(s.is_terminal for s in self.states.values())


class LinkError(RpcLinkError):
    """Raised when linking a component fails.

    Attributes:
        component_name: Component whose link step failed
        report: Link report up to and including the failure
    """

    def __init__(self, message: str, component_name: str, report: Optional[LinkReport] = None):
        super().__init__(message)
        self.component_name = component_name
        self.report = report


@dataclass(frozen=True)
class ComponentLinkPlan:
    """Resolved inputs and outputs for linking one component."""

    component_name: str
    dependencies: ClassifiedDependencies
    client_wasms: Tuple[Path, ...]
    component_wasm: Path
    linked_wasm: Path

    @property
    def inputs(self) -> List[Path]:
        return [*self.client_wasms, self.component_wasm]

    @property
    def outputs(self) -> List[Path]:
        return [self.linked_wasm]


class RpcLinker:
    """Drives the link step over the selected components of an application."""

    def __init__(self, ctx: ApplicationContext):
        """
        Initialize the linker.

        Args:
            ctx: Application context for this invocation
        """
        self.ctx = ctx
        self.output = ctx.output

    def plan(self, component_name: str) -> ComponentLinkPlan:
        """Classify dependencies and resolve artifact paths for a component."""
        app = self.ctx.application
        dependencies = classify_component(app, component_name)
        return ComponentLinkPlan(
            component_name=component_name,
            dependencies=dependencies,
            client_wasms=tuple(app.client_wasm(dep) for dep in dependencies.static),
            component_wasm=app.component_wasm(component_name, self.ctx.profile),
            linked_wasm=app.component_linked_wasm(component_name),
        )

    def link(self) -> LinkReport:
        """Link all selected components.

        Returns:
            LinkReport with the state of every selected component

        Raises:
            LinkError: If copying or composing a component fails
            TaskResultMarkerError: If a task result marker cannot be read or written
        """
        selected = self.ctx.selected_component_names()
        report = LinkReport(states={name: LinkState.PENDING for name in selected})

        self.output.log_action("Linking", "RPC")
        with self.output.indent():
            self.output.log(format_profile_banner(self.ctx.profile, str(self.ctx.config.composer)), verbose_only=True)
            for component_name in selected:
                self._link_component(component_name, report)

        return report

    def _link_component(self, component_name: str, report: LinkReport) -> None:
        plan = self.plan(component_name)
        static_deps = plan.dependencies.static
        dynamic_deps = plan.dependencies.dynamic
        name = highlight(component_name)
        logger.debug(f"Link inputs for {component_name}: {[str(p) for p in plan.inputs]} -> {plan.linked_wasm}")

        marker = TaskResultMarker.new(
            self.ctx.task_result_marker_dir(),
            LinkRpcMarkerHash(component_name=component_name, dependencies=static_deps),
        )

        if dynamic_deps:
            self.output.log_action("Found", f"dynamic WASM RPC dependencies ({highlight_join(dynamic_deps)}) for {name}")
        if static_deps:
            self.output.log_action("Found", f"static WASM RPC dependencies ({highlight_join(static_deps)}) for {name}")

        if should_skip(
            force=self.ctx.config.skip_up_to_date_checks,
            marker_is_stale=lambda: not marker.is_up_to_date(),
            inputs=lambda: plan.inputs,
            outputs=lambda: plan.outputs,
        ):
            self.output.log_skipping_up_to_date(f"linking RPC for {name}")
            report.states[component_name] = LinkState.SKIPPED
            return

        report.states[component_name] = LinkState.LINKING
        try:
            with marker.track():
                self._act(plan, report)
        except TaskResultMarkerError:
            report.states[component_name] = LinkState.FAILED
            raise
        except Exception as e:
            report.states[component_name] = LinkState.FAILED
            self.output.log_error_action("Failed", f"linking RPC for {name}")
            with self.output.indent():
                self.output.log_error(str(e))
            raise LinkError(f"Failed to link RPC for component '{component_name}': {e}", component_name, report) from e

        report.states[component_name] = LinkState.LINKED

    def _act(self, plan: ComponentLinkPlan, report: LinkReport) -> None:
        name = highlight(plan.component_name)
        if not plan.dependencies.static:
            self.output.log_action("Copying", f"{name} without linking, no static WASM RPC dependencies were found")
            fs.copy_file_atomic(plan.component_wasm, plan.linked_wasm)
            report.copied.append(plan.component_name)
            return

        self.output.log_action(
            "Linking",
            f"static WASM RPC dependencies ({highlight_join(plan.dependencies.static)}) into {name}",
        )
        with self.output.indent():
            self.ctx.composer.compose(plan.component_wasm, list(plan.client_wasms), plan.linked_wasm)
        report.composed.append(plan.component_name)


def link_rpc(ctx: ApplicationContext) -> LinkReport:
    """Link the selected components of an application.

    Args:
        ctx: Application context

    Returns:
        LinkReport

    Raises:
        LinkError: If a component fails to link (remaining components are not processed)
        TaskResultMarkerError: On marker persistence failure
    """
    return RpcLinker(ctx).link()
