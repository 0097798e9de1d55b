"""
Build directory layout.

Centralized path definitions for files rpclink writes next to an
application. Everything lives under one temp directory so that it can be
deleted wholesale.

Layout (relative to the application root):
- <temp>/                      default ".rpclink", or manifest "tempDir"
- <temp>/task-results/         task result markers, one JSON file per step
- <temp>/client/<name>.wasm    client stubs, unless the manifest overrides
- <temp>/linked/<name>.wasm    linked component binaries

The RPCLINK_BUILD_DIR environment variable overrides the temp directory,
which is handy for keeping test runs out of the source tree.
"""

import os
from pathlib import Path
from typing import Optional

DEFAULT_TEMP_DIR_NAME = ".rpclink"
TASK_RESULT_MARKER_DIR_NAME = "task-results"
CLIENT_DIR_NAME = "client"
LINKED_DIR_NAME = "linked"

BUILD_DIR_ENV = "RPCLINK_BUILD_DIR"


def get_temp_dir(app_root: Path, manifest_temp_dir: Optional[str] = None) -> Path:
    """Resolve the temp directory for an application.

    Precedence: RPCLINK_BUILD_DIR, then the manifest's tempDir (relative to
    the application root), then the default.

    Args:
        app_root: Directory containing the application manifest
        manifest_temp_dir: Optional tempDir from the manifest

    Returns:
        Absolute temp directory path
    """
    build_dir_env = os.environ.get(BUILD_DIR_ENV)
    if build_dir_env:
        return Path(build_dir_env).resolve()
    if manifest_temp_dir:
        return (app_root / manifest_temp_dir).resolve()
    return (app_root / DEFAULT_TEMP_DIR_NAME).resolve()


def task_result_marker_dir(temp_dir: Path) -> Path:
    return temp_dir / TASK_RESULT_MARKER_DIR_NAME


def default_client_wasm(temp_dir: Path, component_name: str) -> Path:
    return temp_dir / CLIENT_DIR_NAME / f"{to_snake_case(component_name)}.wasm"


def default_linked_wasm(temp_dir: Path, component_name: str) -> Path:
    return temp_dir / LINKED_DIR_NAME / f"{to_snake_case(component_name)}.wasm"


def to_snake_case(name: str) -> str:
    """Convert a component name like 'shop:Billing-API' to 'shop_billing_api'."""
    out = []
    prev_lower = False
    for ch in name:
        if ch.isupper() and prev_lower:
            out.append("_")
        if ch.isalnum():
            out.append(ch.lower())
            prev_lower = ch.islower() or ch.isdigit()
        else:
            if out and out[-1] != "_":
                out.append("_")
            prev_lower = False
    return "".join(out).strip("_")
