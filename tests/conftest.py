"""Pytest configuration and fixtures for rpclink tests.

Provides:
- An autouse fixture that clears RPCLINK_* environment variables
- AppBuilder: writes a manifest, component binaries and client stubs to tmp_path
- RecordingComposer: a Composer that records calls and concatenates inputs
- make_ctx: builds an ApplicationContext with captured output
"""

import io
import json
from pathlib import Path
from typing import Callable, Iterable, List, Optional, Sequence, Tuple

import pytest

from rpclink.build.build_context import ApplicationContext
from rpclink.config import LinkConfig
from rpclink.model.app import Application
from rpclink.output import Output


@pytest.fixture(autouse=True)
def _isolate_env(monkeypatch):
    """Keep the developer's RPCLINK_* settings out of the tests."""
    for name in ("RPCLINK_FORCE", "RPCLINK_PROFILE", "RPCLINK_COMPOSER", "RPCLINK_VERBOSE", "RPCLINK_BUILD_DIR"):
        monkeypatch.delenv(name, raising=False)
    # rich would emit ANSI codes into captured streams
    monkeypatch.delenv("FORCE_COLOR", raising=False)


class AppBuilder:
    """Writes a small application to disk.

    Each component gets components/<name>.wasm (unlinked binary) and
    .rpclink/client/<name>.wasm (client stub) with recognizable content.
    """

    def __init__(self, root: Path):
        self.root = root
        self.components: dict[str, dict] = {}
        self.dependencies: dict[str, List[dict]] = {}

    def component(self, name: str, deps: Iterable[Tuple[str, str]] = (), content: Optional[bytes] = None) -> "AppBuilder":
        """Declare a component with (target, type) dependencies."""
        wasm = self.root / "components" / f"{name}.wasm"
        wasm.parent.mkdir(parents=True, exist_ok=True)
        wasm.write_bytes(content if content is not None else f"component:{name}".encode())

        stub = self.client_stub(name)
        stub.parent.mkdir(parents=True, exist_ok=True)
        stub.write_bytes(f"client:{name}".encode())

        self.components[name] = {"componentWasm": f"components/{name}.wasm"}
        self.set_dependencies(name, deps)
        return self

    def set_dependencies(self, name: str, deps: Iterable[Tuple[str, str]]) -> "AppBuilder":
        self.dependencies[name] = [{"name": target, "type": dep_type} for target, dep_type in deps]
        return self

    def component_wasm(self, name: str) -> Path:
        return self.root / "components" / f"{name}.wasm"

    def client_stub(self, name: str) -> Path:
        return self.root / ".rpclink" / "client" / f"{name}.wasm"

    def linked_wasm(self, name: str) -> Path:
        return self.root / ".rpclink" / "linked" / f"{name}.wasm"

    @property
    def marker_dir(self) -> Path:
        return self.root / ".rpclink" / "task-results"

    def manifest(self) -> dict:
        return {"components": self.components, "dependencies": self.dependencies}

    def write(self) -> Path:
        manifest_path = self.root / "rpclink.json"
        manifest_path.write_text(json.dumps(self.manifest(), indent=2), encoding="utf-8")
        return manifest_path

    def load(self) -> Application:
        return Application.load(self.write())


class RecordingComposer:
    """Composer double: records calls and writes primary + stubs to the destination."""

    def __init__(self, fail_with: Optional[Exception] = None):
        self.calls: List[Tuple[Path, List[Path], Path]] = []
        self.fail_with = fail_with

    def compose(self, primary: Path, dependency_stubs: Sequence[Path], destination: Path) -> None:
        self.calls.append((primary, list(dependency_stubs), destination))
        if self.fail_with is not None:
            raise self.fail_with
        destination.parent.mkdir(parents=True, exist_ok=True)
        destination.write_bytes(primary.read_bytes() + b"".join(stub.read_bytes() for stub in dependency_stubs))


@pytest.fixture
def app_builder(tmp_path: Path) -> AppBuilder:
    return AppBuilder(tmp_path)


@pytest.fixture
def composer() -> RecordingComposer:
    return RecordingComposer()


@pytest.fixture
def log_stream() -> io.StringIO:
    return io.StringIO()


@pytest.fixture
def make_ctx(composer: RecordingComposer, log_stream: io.StringIO) -> Callable[..., ApplicationContext]:
    """Factory for contexts using the recording composer and captured output."""

    def _make(app: Application, selected: Optional[Sequence[str]] = None, **config_fields) -> ApplicationContext:
        return ApplicationContext.create(
            app,
            config=LinkConfig(**config_fields),
            selected_components=selected,
            composer=composer,
            output=Output(stream=log_stream, verbose=True),
        )

    return _make
