"""Tests for the external build command step."""

import json
import os
import subprocess
from unittest.mock import patch

import pytest

from rpclink.build.build_commands import BuildCommandError, run_build_commands
from rpclink.build.build_context import ApplicationContext
from rpclink.build.build_profiles import BuildProfile
from rpclink.build.task_result_marker import TaskResultMarker
from rpclink.config import LinkConfig
from rpclink.model.app import Application
from rpclink.output import Output


def write_app(root, build):
    """Write a manifest with one 'api' component whose debug profile has the given build commands."""
    (root / "api" / "src").mkdir(parents=True, exist_ok=True)
    source = root / "api" / "src" / "lib.rs"
    source.write_text("fn main() {}")
    os.utime(source, (1000, 1000))
    os.utime(source.parent, (1000, 1000))

    components = {
        "api": {
            "sourceDir": "api",
            "profiles": {
                "debug": {"componentWasm": "target/debug/api.wasm", "build": build},
                "release": {"componentWasm": "target/release/api.wasm"},
            },
        }
    }
    manifest = root / "rpclink.json"
    manifest.write_text(json.dumps({"components": components}))
    return Application.load(manifest)


def fake_tool(returncode=0, stdout="", stderr=""):
    """Fake run_tool that creates the api debug target when it succeeds."""
    calls = []

    def _run(cmd, cwd=None, timeout=None):
        calls.append((cmd, cwd, timeout))
        if returncode == 0:
            target = cwd / "target" / "debug" / "api.wasm"
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_bytes(b"api")
        return subprocess.CompletedProcess(cmd, returncode, stdout=stdout, stderr=stderr)

    _run.calls = calls
    return _run


CARGO = {"command": "cargo build", "sources": ["src"], "targets": ["target/debug/api.wasm"]}


@pytest.fixture
def ctx_for(composer, log_stream):
    def _make(app, **config_fields):
        return ApplicationContext.create(
            app,
            config=LinkConfig(**config_fields),
            composer=composer,
            output=Output(stream=log_stream, verbose=True),
        )

    return _make


class TestRunBuildCommands:
    """Test command execution and skipping."""

    def test_runs_command_in_source_dir(self, tmp_path, ctx_for):
        app = write_app(tmp_path, [CARGO])
        tool = fake_tool()

        with patch("rpclink.build.build_commands.run_tool", side_effect=tool):
            report = run_build_commands(ctx_for(app, tool_timeout=60))

        assert report.executed == [("api", "cargo build")]
        assert tool.calls == [("cargo build", tmp_path / "api", 60)]

    def test_second_run_skips(self, tmp_path, ctx_for, log_stream):
        app = write_app(tmp_path, [CARGO])
        tool = fake_tool()

        with patch("rpclink.build.build_commands.run_tool", side_effect=tool):
            run_build_commands(ctx_for(app))
            report = run_build_commands(ctx_for(app))

        assert report.skipped == [("api", "cargo build")]
        assert len(tool.calls) == 1
        assert "Skipping executing external command 'cargo build', UP-TO-DATE" in log_stream.getvalue()

    def test_changed_source_reruns(self, tmp_path, ctx_for):
        app = write_app(tmp_path, [CARGO])
        tool = fake_tool()

        with patch("rpclink.build.build_commands.run_tool", side_effect=tool):
            run_build_commands(ctx_for(app))
            target = tmp_path / "api" / "target" / "debug" / "api.wasm"
            future = target.stat().st_mtime + 100
            os.utime(tmp_path / "api" / "src" / "lib.rs", (future, future))
            report = run_build_commands(ctx_for(app))

        assert report.executed == [("api", "cargo build")]
        assert len(tool.calls) == 2

    def test_force_reruns(self, tmp_path, ctx_for):
        app = write_app(tmp_path, [CARGO])
        tool = fake_tool()

        with patch("rpclink.build.build_commands.run_tool", side_effect=tool):
            run_build_commands(ctx_for(app))
            with patch.object(TaskResultMarker, "is_up_to_date") as mock_check:
                report = run_build_commands(ctx_for(app, skip_up_to_date_checks=True))

        mock_check.assert_not_called()
        assert report.executed == [("api", "cargo build")]

    def test_command_without_targets_always_runs(self, tmp_path, ctx_for):
        app = write_app(tmp_path, [{"command": "npm install"}])
        tool = fake_tool()

        with patch("rpclink.build.build_commands.run_tool", side_effect=tool):
            run_build_commands(ctx_for(app))
            report = run_build_commands(ctx_for(app))

        assert report.executed == [("api", "npm install")]
        assert len(tool.calls) == 2

    def test_dir_subdirectory(self, tmp_path, ctx_for):
        (tmp_path / "api" / "wit").mkdir(parents=True)
        app = write_app(tmp_path, [{"command": "wit-bindgen", "dir": "wit"}])
        tool = fake_tool()

        with patch("rpclink.build.build_commands.run_tool", side_effect=tool):
            run_build_commands(ctx_for(app))

        assert tool.calls[0][1] == tmp_path / "api" / "wit"

    def test_profile_without_commands(self, tmp_path, ctx_for):
        app = write_app(tmp_path, [CARGO])
        tool = fake_tool()

        with patch("rpclink.build.build_commands.run_tool", side_effect=tool):
            report = run_build_commands(ctx_for(app, profile=BuildProfile.RELEASE))

        assert report.executed == []
        assert tool.calls == []


class TestBuildCommandFailures:
    """Failures abort the step and are recorded."""

    def test_nonzero_exit(self, tmp_path, ctx_for):
        app = write_app(tmp_path, [CARGO, {"command": "cargo test"}])
        tool = fake_tool(returncode=101, stderr="error[E0425]: cannot find value")

        with patch("rpclink.build.build_commands.run_tool", side_effect=tool):
            with pytest.raises(BuildCommandError, match="exited with code 101") as exc_info:
                run_build_commands(ctx_for(app))

        assert exc_info.value.component_name == "api"
        assert exc_info.value.command == "cargo build"
        assert "cannot find value" in str(exc_info.value)
        assert len(tool.calls) == 1

    def test_failure_is_recorded_and_retried(self, tmp_path, ctx_for):
        app = write_app(tmp_path, [CARGO])
        target = tmp_path / "api" / "target" / "debug" / "api.wasm"
        target.parent.mkdir(parents=True)
        target.write_bytes(b"stale")

        with patch("rpclink.build.build_commands.run_tool", side_effect=fake_tool(returncode=1)):
            with pytest.raises(BuildCommandError):
                run_build_commands(ctx_for(app))

        markers = list(app.task_result_marker_dir().glob("build-command-*.json"))
        assert len(markers) == 1
        assert json.loads(markers[0].read_text())["success"] is False

        tool = fake_tool()
        with patch("rpclink.build.build_commands.run_tool", side_effect=tool):
            report = run_build_commands(ctx_for(app))

        assert report.executed == [("api", "cargo build")]

    def test_missing_shell(self, tmp_path, ctx_for):
        app = write_app(tmp_path, [CARGO])

        with patch("rpclink.build.build_commands.run_tool", side_effect=FileNotFoundError("sh")):
            with pytest.raises(BuildCommandError, match="Failed to run command"):
                run_build_commands(ctx_for(app))

    def test_timeout(self, tmp_path, ctx_for):
        app = write_app(tmp_path, [CARGO])

        with patch("rpclink.build.build_commands.run_tool", side_effect=subprocess.TimeoutExpired("cargo build", 5)):
            with pytest.raises(BuildCommandError, match="timed out"):
                run_build_commands(ctx_for(app, tool_timeout=5))


def test_marker_kind_is_separate_from_link(tmp_path, ctx_for):
    app = write_app(tmp_path, [CARGO])

    with patch("rpclink.build.build_commands.run_tool", side_effect=fake_tool()):
        run_build_commands(ctx_for(app))

    assert list(app.task_result_marker_dir().glob("link-rpc-*.json")) == []
