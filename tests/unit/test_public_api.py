"""Tests for the rpclink package entry points."""

import io
from unittest.mock import patch

import pytest

import rpclink
from rpclink import ApplicationManifestError, LinkConfig, Output


def quiet():
    return Output(stream=io.StringIO(), enabled=False)


class TestLink:
    """Test rpclink.link()."""

    def test_link_from_directory(self, app_builder, composer):
        app_builder.component("billing")
        app_builder.component("api", deps=[("billing", "static-wasm-rpc")])
        app_builder.write()

        report = rpclink.link(app_builder.root, config=LinkConfig(), composer=composer, output=quiet())

        assert report.copied == ["billing"]
        assert report.composed == ["api"]
        assert report.success is True

    def test_link_uses_configured_composer(self, app_builder):
        app_builder.component("billing")
        app_builder.component("api", deps=[("billing", "static-wasm-rpc")])

        with patch("rpclink.build.composition.run_tool") as mock_run:
            mock_run.side_effect = FileNotFoundError("wasm-tools")
            with pytest.raises(rpclink.LinkError) as exc_info:
                rpclink.link(app_builder.load(), selected_components=["api"], config=LinkConfig.from_env({"RPCLINK_COMPOSER": "wasm-tools"}), output=quiet())

        assert "wasm-tools" in str(exc_info.value)
        assert mock_run.call_args.args[0][:2] == ["wasm-tools", "compose"]

    def test_unknown_selection(self, app_builder, composer):
        app_builder.component("billing")

        with pytest.raises(ApplicationManifestError, match="Unknown component"):
            rpclink.link(app_builder.load(), selected_components=["ghost"], composer=composer, output=quiet())

    def test_errors_share_base_class(self):
        for error in (rpclink.LinkError, rpclink.CompositionError, rpclink.BuildCommandError, rpclink.TaskResultMarkerError, ApplicationManifestError):
            assert issubclass(error, rpclink.RpcLinkError)


class TestBuildAndClean:
    """Test rpclink.build() and rpclink.clean()."""

    def test_build_without_commands_links(self, app_builder, composer):
        app_builder.component("billing")

        report = rpclink.build(app_builder.load(), config=LinkConfig(), composer=composer, output=quiet())

        assert report.linked == ["billing"]

    def test_clean_forces_relink(self, app_builder, composer):
        app_builder.component("billing")
        app = app_builder.load()
        rpclink.link(app, config=LinkConfig(), composer=composer, output=quiet())

        assert rpclink.clean(app) == 1

        report = rpclink.link(app, config=LinkConfig(), composer=composer, output=quiet())
        assert report.linked == ["billing"]
