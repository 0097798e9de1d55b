"""Link configuration.

LinkConfig carries the per-invocation switches that the CLI (or any other
caller) resolves once and hands to the build steps. It is immutable for the
duration of a run.

Environment overrides, applied by LinkConfig.from_env():
- RPCLINK_FORCE=1          skip up-to-date checks, relink everything
- RPCLINK_PROFILE=<name>   build profile (debug, release)
- RPCLINK_COMPOSER=<name>  composer flavor (wac, wasm-tools)
- RPCLINK_VERBOSE=1        verbose progress output
"""

import os
from dataclasses import dataclass, replace
from typing import Mapping, Optional

from .build.build_profiles import DEFAULT_PROFILE, BuildProfile
from .build.composition import DEFAULT_COMPOSER, ComposerKind

FORCE_ENV = "RPCLINK_FORCE"
PROFILE_ENV = "RPCLINK_PROFILE"
COMPOSER_ENV = "RPCLINK_COMPOSER"
VERBOSE_ENV = "RPCLINK_VERBOSE"

_TRUTHY = ("1", "true", "yes", "on")


def _env_flag(env: Mapping[str, str], name: str) -> bool:
    return env.get(name, "").strip().lower() in _TRUTHY


@dataclass(frozen=True)
class LinkConfig:
    """Per-invocation link settings.

    Attributes:
        skip_up_to_date_checks: Force flag; when True no step is ever skipped
        profile: Build profile selecting the unlinked component binaries
        composer: Composer flavor used for components with static dependencies
        verbose: Whether to print verbose_only progress lines
        tool_timeout: Optional timeout in seconds for external tools
    """

    skip_up_to_date_checks: bool = False
    profile: BuildProfile = DEFAULT_PROFILE
    composer: ComposerKind = DEFAULT_COMPOSER
    verbose: bool = False
    tool_timeout: Optional[float] = None

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None, **overrides) -> "LinkConfig":
        """Create a LinkConfig from environment variables.

        Explicit keyword overrides win over the environment.

        Args:
            env: Environment mapping (defaults to os.environ)
            **overrides: Field values that take precedence

        Returns:
            Resolved LinkConfig

        Raises:
            ValueError: If RPCLINK_PROFILE or RPCLINK_COMPOSER is not recognized
        """
        if env is None:
            env = os.environ

        config = cls(
            skip_up_to_date_checks=_env_flag(env, FORCE_ENV),
            verbose=_env_flag(env, VERBOSE_ENV),
        )
        if env.get(PROFILE_ENV):
            config = replace(config, profile=BuildProfile.parse(env[PROFILE_ENV]))
        if env.get(COMPOSER_ENV):
            config = replace(config, composer=ComposerKind.parse(env[COMPOSER_ENV]))

        return replace(config, **overrides)
