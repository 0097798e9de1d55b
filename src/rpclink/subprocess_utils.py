"""Subprocess helpers for running external tools (composers, build commands).

Every child process gets stdin redirected to DEVNULL so it cannot steal
keystrokes from the terminal, and on Windows is started without a console
window. Output is captured as text so failures can be reported with the
tool's own diagnostics.
"""

import logging
import shlex
import subprocess
import sys
from pathlib import Path
from typing import Optional, Sequence, Union

logger = logging.getLogger(__name__)


def get_subprocess_creation_flags() -> int:
    """CREATE_NO_WINDOW on Windows, 0 elsewhere."""
    if sys.platform == "win32":
        return subprocess.CREATE_NO_WINDOW
    return 0


def format_command(cmd: Union[str, Sequence[str]]) -> str:
    """Render a command for log and error messages."""
    if isinstance(cmd, str):
        return cmd
    return shlex.join(str(part) for part in cmd)


def run_tool(
    cmd: Union[str, Sequence[str]],
    cwd: Optional[Path] = None,
    timeout: Optional[float] = None,
) -> subprocess.CompletedProcess:
    """Run an external tool and capture its output.

    A string command is run through the shell (manifest build commands are
    shell lines); a sequence is executed directly.

    Args:
        cmd: Command line or argument list
        cwd: Working directory
        timeout: Optional timeout in seconds

    Returns:
        CompletedProcess with text stdout/stderr; the caller checks returncode

    Raises:
        FileNotFoundError: If the executable does not exist
        subprocess.TimeoutExpired: If the timeout elapsed
    """
    logger.debug(f"Running: {format_command(cmd)} (cwd={cwd})")
    kwargs = {}
    creationflags = get_subprocess_creation_flags()
    if creationflags:
        kwargs["creationflags"] = creationflags

    return subprocess.run(
        cmd if isinstance(cmd, str) else [str(part) for part in cmd],
        cwd=cwd,
        shell=isinstance(cmd, str),
        stdin=subprocess.DEVNULL,
        capture_output=True,
        text=True,
        timeout=timeout,
        **kwargs,
    )
