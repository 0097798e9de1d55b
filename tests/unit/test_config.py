"""Tests for LinkConfig environment resolution."""

import pytest

from rpclink.build.build_profiles import BuildProfile, format_profile_banner
from rpclink.build.composition import ComposerKind
from rpclink.config import LinkConfig


class TestLinkConfigFromEnv:
    """Test LinkConfig.from_env()."""

    def test_defaults(self):
        config = LinkConfig.from_env({})

        assert config == LinkConfig()
        assert config.skip_up_to_date_checks is False
        assert config.profile is BuildProfile.DEBUG
        assert config.composer is ComposerKind.WAC

    @pytest.mark.parametrize("value", ["1", "true", "YES", " on "])
    def test_force_truthy(self, value):
        assert LinkConfig.from_env({"RPCLINK_FORCE": value}).skip_up_to_date_checks is True

    @pytest.mark.parametrize("value", ["", "0", "false", "off"])
    def test_force_falsy(self, value):
        assert LinkConfig.from_env({"RPCLINK_FORCE": value}).skip_up_to_date_checks is False

    def test_profile_and_composer(self):
        config = LinkConfig.from_env({"RPCLINK_PROFILE": "Release", "RPCLINK_COMPOSER": "wasm-tools", "RPCLINK_VERBOSE": "1"})

        assert config.profile is BuildProfile.RELEASE
        assert config.composer is ComposerKind.WASM_TOOLS
        assert config.verbose is True

    def test_invalid_profile(self):
        with pytest.raises(ValueError, match="Unknown build profile"):
            LinkConfig.from_env({"RPCLINK_PROFILE": "fast"})

    def test_overrides_win(self):
        config = LinkConfig.from_env({"RPCLINK_FORCE": "1"}, skip_up_to_date_checks=False, tool_timeout=30.0)

        assert config.skip_up_to_date_checks is False
        assert config.tool_timeout == 30.0

    def test_reads_os_environ(self, monkeypatch):
        monkeypatch.setenv("RPCLINK_FORCE", "1")
        assert LinkConfig.from_env().skip_up_to_date_checks is True


def test_format_profile_banner():
    assert format_profile_banner(BuildProfile.RELEASE) == "PROFILE=release"
    assert format_profile_banner(BuildProfile.DEBUG, "wac") == "PROFILE=debug COMPOSER=wac"
