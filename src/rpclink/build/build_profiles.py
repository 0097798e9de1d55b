"""Build profile selection.

A component declares per-profile settings (unlinked binary location, build
commands) in the application manifest. The active profile is chosen once per
invocation and only affects which unlinked binary is picked up; linked
outputs and client stubs are profile independent.
"""

from enum import Enum


class BuildProfile(Enum):
    """Build profile enum for type-safe profile selection."""

    DEBUG = "debug"
    RELEASE = "release"

    def __str__(self) -> str:
        """Return the string value for directory names and display."""
        return self.value

    @classmethod
    def parse(cls, value: str) -> "BuildProfile":
        """Parse a profile name (case-insensitive).

        Args:
            value: Profile name, e.g. "release"

        Returns:
            Matching BuildProfile

        Raises:
            ValueError: If the name is not a known profile
        """
        try:
            return cls(value.strip().lower())
        except ValueError:
            valid = ", ".join(p.value for p in cls)
            raise ValueError(f"Unknown build profile '{value}' (expected one of: {valid})") from None


DEFAULT_PROFILE = BuildProfile.DEBUG


def format_profile_banner(profile: BuildProfile, composer: str | None = None) -> str:
    """Format a build profile banner for display.

    Args:
        profile: BuildProfile enum value
        composer: Composer flavor name (optional)

    Returns:
        Formatted banner string
    """
    parts = [f"PROFILE={profile.value}"]
    if composer:
        parts.append(f"COMPOSER={composer}")

    return " ".join(parts)
