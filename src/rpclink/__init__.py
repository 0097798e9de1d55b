"""rpclink - incremental linker for WASM RPC component applications.

Public API:
    link(app, ...)   Link the selected components (copy or compose), skipping
                     components whose linked output is up to date
    build(app, ...)  Run the components' build commands, then link
    clean(app)       Remove all task result markers

Example:
    >>> import rpclink
    >>> report = rpclink.link(Path("my-app"), selected_components=["api"])
    >>> report.linked, report.skipped
    (['api'], [])
"""

from pathlib import Path
from typing import Optional, Sequence, Union

from .build.build_commands import BuildCommandError, run_build_commands
from .build.build_context import ApplicationContext
from .build.build_profiles import BuildProfile
from .build.composition import Composer, ComposerKind, CompositionError
from .build.link_rpc import LinkError, LinkReport, LinkState, link_rpc
from .build.task_result_marker import TaskResultMarkerError, clean_task_result_markers
from .config import LinkConfig
from .errors import RpcLinkError
from .model.app import Application, ApplicationManifestError
from .output import Output

__version__ = "0.1.0"

__all__ = [
    "Application",
    "ApplicationContext",
    "ApplicationManifestError",
    "BuildCommandError",
    "BuildProfile",
    "Composer",
    "ComposerKind",
    "CompositionError",
    "LinkConfig",
    "LinkError",
    "LinkReport",
    "LinkState",
    "Output",
    "RpcLinkError",
    "TaskResultMarkerError",
    "build",
    "clean",
    "link",
]


def _load(application: Union[Application, Path, str]) -> Application:
    if isinstance(application, Application):
        return application
    return Application.load(Path(application))


def link(
    application: Union[Application, Path, str],
    selected_components: Optional[Sequence[str]] = None,
    config: Optional[LinkConfig] = None,
    composer: Optional[Composer] = None,
    output: Optional[Output] = None,
) -> LinkReport:
    """Link the selected components of an application.

    Args:
        application: Loaded Application, or path to its manifest/directory
        selected_components: Components to link, in order (default: all)
        config: Link configuration (default: from environment)
        composer: Composer override (default: configured flavor)
        output: Progress output (default: stdout)

    Returns:
        LinkReport

    Raises:
        ApplicationManifestError: If the application cannot be loaded
        LinkError: If a component fails to link
        TaskResultMarkerError: On marker persistence failure
    """
    ctx = ApplicationContext.create(
        _load(application),
        config=config,
        selected_components=selected_components,
        composer=composer,
        output=output,
    )
    return link_rpc(ctx)


def build(
    application: Union[Application, Path, str],
    selected_components: Optional[Sequence[str]] = None,
    config: Optional[LinkConfig] = None,
    composer: Optional[Composer] = None,
    output: Optional[Output] = None,
) -> LinkReport:
    """Run build commands for the selected components, then link them.

    Raises:
        BuildCommandError: If a build command fails (nothing is linked)
        LinkError: If a component fails to link
        TaskResultMarkerError: On marker persistence failure
    """
    ctx = ApplicationContext.create(
        _load(application),
        config=config,
        selected_components=selected_components,
        composer=composer,
        output=output,
    )
    run_build_commands(ctx)
    return link_rpc(ctx)


def clean(application: Union[Application, Path, str]) -> int:
    """Remove all task result markers of an application.

    Returns:
        Number of markers removed
    """
    return clean_task_result_markers(_load(application).task_result_marker_dir())
