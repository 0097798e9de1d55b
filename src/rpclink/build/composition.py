"""
Composition of a component binary with the client stubs it embeds.

The actual composition algorithm belongs to an external tool; this module
only selects the tool and runs it. Two flavors are supported and chosen once
per invocation through ComposerKind:

- WAC:        wac plug --plug <stub> ... <primary> -o <destination>
- WASM_TOOLS: wasm-tools compose <primary> -d <stub> ... -o <destination>

Composers write to a temporary sibling of the destination and rename it into
place only when the tool succeeds, so an interrupted or failed composition
never leaves a partial destination behind.
"""

import logging
import subprocess
from abc import ABC, abstractmethod
from enum import Enum
from pathlib import Path
from typing import Optional, Protocol, Sequence, runtime_checkable

from .. import fs
from ..errors import RpcLinkError
from ..subprocess_utils import format_command, run_tool

logger = logging.getLogger(__name__)


class CompositionError(RpcLinkError):
    """Raised when composing a component with its dependency stubs fails."""

    pass


class ComposerKind(Enum):
    """Composer flavor."""

    WAC = "wac"
    WASM_TOOLS = "wasm-tools"

    def __str__(self) -> str:
        return self.value

    @classmethod
    def parse(cls, value: str) -> "ComposerKind":
        try:
            return cls(value.strip().lower())
        except ValueError:
            valid = ", ".join(k.value for k in cls)
            raise ValueError(f"Unknown composer '{value}' (expected one of: {valid})") from None


DEFAULT_COMPOSER = ComposerKind.WAC


@runtime_checkable
class Composer(Protocol):
    """Combines a primary binary with dependency stubs into one linked binary."""

    def compose(self, primary: Path, dependency_stubs: Sequence[Path], destination: Path) -> None:
        """Compose primary with the stubs and write the result to destination.

        Args:
            primary: Unlinked component binary
            dependency_stubs: Client stubs, in classifier order
            destination: Linked output path

        Raises:
            CompositionError: If composition fails
        """
        ...


class ToolComposer(ABC):
    """Composer that shells out to a command line composition tool.

    Subclasses provide the tool's command line through build_command().
    """

    def __init__(self, executable: str, timeout: Optional[float] = None):
        """
        Initialize the composer.

        Args:
            executable: Tool executable name or path
            timeout: Optional timeout in seconds for one composition
        """
        self.executable = executable
        self.timeout = timeout

    @abstractmethod
    def build_command(self, primary: Path, dependency_stubs: Sequence[Path], output: Path) -> list[str]:
        """Command line that composes primary with the stubs into output."""

    def compose(self, primary: Path, dependency_stubs: Sequence[Path], destination: Path) -> None:
        if not primary.exists():
            raise CompositionError(f"Component binary not found: {primary}")
        missing = [stub for stub in dependency_stubs if not stub.exists()]
        if missing:
            raise CompositionError(f"Client stub(s) not found: {', '.join(str(m) for m in missing)}")

        with fs.atomic_destination(destination, suffix=".wasm") as tmp_output:
            cmd = self.build_command(primary, dependency_stubs, tmp_output)
            try:
                result = run_tool(cmd, timeout=self.timeout)
            except FileNotFoundError as e:
                raise CompositionError(f"Composition tool '{self.executable}' not found; is it installed and on PATH?") from e
            except subprocess.TimeoutExpired as e:
                raise CompositionError(f"Composition timed out after {self.timeout}s: {format_command(cmd)}") from e

            if result.returncode != 0:
                detail = (result.stderr or result.stdout or "").strip()
                raise CompositionError(f"{format_command(cmd)} exited with code {result.returncode}" + (f":\n{detail}" if detail else ""))

            if not tmp_output.exists() or tmp_output.stat().st_size == 0:
                raise CompositionError(f"{self.executable} reported success but produced no output")

        logger.debug(f"Composed {primary} with {len(dependency_stubs)} stub(s) into {destination}")


class WacComposer(ToolComposer):
    """Composition through `wac plug`."""

    def __init__(self, executable: str = "wac", timeout: Optional[float] = None):
        super().__init__(executable, timeout)

    def build_command(self, primary: Path, dependency_stubs: Sequence[Path], output: Path) -> list[str]:
        cmd = [self.executable, "plug"]
        for stub in dependency_stubs:
            cmd.extend(["--plug", str(stub)])
        cmd.extend([str(primary), "-o", str(output)])
        return cmd


class WasmToolsComposer(ToolComposer):
    """Composition through `wasm-tools compose`."""

    def __init__(self, executable: str = "wasm-tools", timeout: Optional[float] = None):
        super().__init__(executable, timeout)

    def build_command(self, primary: Path, dependency_stubs: Sequence[Path], output: Path) -> list[str]:
        cmd = [self.executable, "compose", str(primary)]
        for stub in dependency_stubs:
            cmd.extend(["-d", str(stub)])
        cmd.extend(["-o", str(output)])
        return cmd


def create_composer(kind: ComposerKind, timeout: Optional[float] = None) -> Composer:
    """Create the composer for a flavor.

    Args:
        kind: Composer flavor
        timeout: Optional timeout in seconds for one composition

    Returns:
        Composer instance
    """
    if kind is ComposerKind.WAC:
        return WacComposer(timeout=timeout)
    if kind is ComposerKind.WASM_TOOLS:
        return WasmToolsComposer(timeout=timeout)
    raise ValueError(f"Unsupported composer: {kind}")
