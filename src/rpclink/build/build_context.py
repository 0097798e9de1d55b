"""Application context - everything a build step needs for one invocation.

ApplicationContext bundles the loaded application, the resolved LinkConfig,
the component selection, the composer and the Output used for progress
lines. Steps receive it explicitly instead of reaching for module globals.
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Sequence, Tuple

from ..config import LinkConfig
from ..model.app import Application, ApplicationManifestError
from ..output import Output
from .build_profiles import BuildProfile
from .composition import Composer, create_composer


@dataclass(frozen=True)
class ApplicationContext:
    """Per-invocation build context.

    Attributes:
        application: Loaded application model
        config: Resolved link configuration
        selected_components: Component names to process, in processing order
        composer: Composer for components with static dependencies
        output: Progress output (carries log indentation)
    """

    application: Application
    config: LinkConfig
    selected_components: Tuple[str, ...]
    composer: Composer
    output: Output

    @classmethod
    def create(
        cls,
        application: Application,
        config: Optional[LinkConfig] = None,
        selected_components: Optional[Sequence[str]] = None,
        composer: Optional[Composer] = None,
        output: Optional[Output] = None,
    ) -> "ApplicationContext":
        """Create a context, filling in defaults.

        Args:
            application: Loaded application model
            config: Link configuration (defaults to LinkConfig.from_env())
            selected_components: Components to process, in order (defaults to
                all components in declaration order)
            composer: Composer (defaults to the configured flavor)
            output: Progress output (defaults to stdout)

        Returns:
            ApplicationContext

        Raises:
            ApplicationManifestError: If a selected component is not declared
        """
        if config is None:
            config = LinkConfig.from_env()

        if selected_components is None:
            selected = tuple(application.component_names())
        else:
            selected = tuple(selected_components)
            unknown = [name for name in selected if not application.has_component(name)]
            if unknown:
                raise ApplicationManifestError(f"Unknown component(s): {', '.join(unknown)}")

        if composer is None:
            composer = create_composer(config.composer, timeout=config.tool_timeout)

        if output is None:
            output = Output(verbose=config.verbose)

        return cls(
            application=application,
            config=config,
            selected_components=selected,
            composer=composer,
            output=output,
        )

    @property
    def profile(self) -> BuildProfile:
        return self.config.profile

    def selected_component_names(self) -> Tuple[str, ...]:
        return self.selected_components

    def task_result_marker_dir(self) -> Path:
        return self.application.task_result_marker_dir()
