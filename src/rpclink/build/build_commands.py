"""External build command step.

Components may declare build commands per profile in the application
manifest, each with the sources it reads and the targets it writes. Commands
run in declaration order in the component source directory (or its "dir"
subdirectory). A command with targets is skipped when its task result marker
is fresh and no source is newer than its targets; a command without targets
always runs.
"""

import logging
import subprocess
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Tuple

from ..errors import RpcLinkError
from ..output import TimedAction, highlight
from ..subprocess_utils import run_tool
from .build_context import ApplicationContext
from .task_result_marker import BuildCommandMarkerHash, TaskResultMarker
from .up_to_date import should_skip

logger = logging.getLogger(__name__)


class BuildCommandError(RpcLinkError):
    """Raised when an external build command fails."""

    def __init__(self, message: str, component_name: str, command: str):
        super().__init__(message)
        self.component_name = component_name
        self.command = command


@dataclass
class BuildCommandReport:
    """Commands executed and skipped, as (component, command) pairs."""

    executed: List[Tuple[str, str]] = field(default_factory=list)
    skipped: List[Tuple[str, str]] = field(default_factory=list)


def run_build_commands(ctx: ApplicationContext) -> BuildCommandReport:
    """Run the build commands of the selected components.

    Args:
        ctx: Application context

    Returns:
        BuildCommandReport

    Raises:
        BuildCommandError: If a command fails (remaining commands are not run)
        TaskResultMarkerError: On marker persistence failure
    """
    app = ctx.application
    output = ctx.output
    report = BuildCommandReport()

    for component_name in ctx.selected_component_names():
        commands = app.component_build_commands(component_name, ctx.profile)
        if not commands:
            continue

        source_dir = app.component(component_name).source_dir
        output.log_action("Building", highlight(component_name))
        with output.indent():
            for command in commands:
                build_dir = source_dir / (command.dir or ".")
                marker = TaskResultMarker.new(
                    ctx.task_result_marker_dir(),
                    BuildCommandMarkerHash(component_name=component_name, build_dir=command.dir or ".", command=command),
                )

                if command.targets and should_skip(
                    force=ctx.config.skip_up_to_date_checks,
                    marker_is_stale=lambda: not marker.is_up_to_date(),
                    inputs=lambda: [build_dir / s for s in command.sources],
                    outputs=lambda: [build_dir / t for t in command.targets],
                ):
                    output.log_skipping_up_to_date(f"executing external command '{highlight(command.command)}'")
                    report.skipped.append((component_name, command.command))
                    continue

                with TimedAction(output, "Executing", f"external command '{highlight(command.command)}'"), marker.track():
                    _execute(component_name, command.command, build_dir, ctx.config.tool_timeout)
                report.executed.append((component_name, command.command))

    return report


def _execute(component_name: str, command: str, build_dir: Path, timeout: Optional[float]) -> None:
    try:
        result = run_tool(command, cwd=build_dir, timeout=timeout)
    except subprocess.TimeoutExpired as e:
        raise BuildCommandError(f"Command '{command}' of component '{component_name}' timed out after {timeout}s", component_name, command) from e
    except OSError as e:
        raise BuildCommandError(f"Failed to run command '{command}' of component '{component_name}': {e}", component_name, command) from e

    if result.stdout:
        logger.debug(result.stdout.rstrip())
    if result.returncode != 0:
        detail = (result.stderr or result.stdout or "").strip()
        raise BuildCommandError(
            f"Command '{command}' of component '{component_name}' exited with code {result.returncode}" + (f":\n{detail}" if detail else ""),
            component_name,
            command,
        )
