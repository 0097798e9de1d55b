"""Up-to-date checks for incremental build steps.

Two independent staleness signals are combined: the task result marker
(did this exact input set last succeed?) and file modification times (are
all outputs present and at least as new as every input?). Either one
reporting staleness means the step has to run.

A step is skipped only if:
1. Up-to-date checks are not disabled (force flag)
2. The task result marker is fresh
3. Every output exists
4. No input is newer than the oldest output
"""

import logging
from pathlib import Path
from typing import Callable, Iterable, Sequence, Union

from .. import fs

logger = logging.getLogger(__name__)

PathsOrFactory = Union[Sequence[Path], Callable[[], Iterable[Path]]]
FlagOrFactory = Union[bool, Callable[[], bool]]


def _resolve(paths: PathsOrFactory) -> list[Path]:
    if callable(paths):
        return list(paths())
    return list(paths)


def should_skip(
    force: bool,
    marker_is_stale: FlagOrFactory,
    inputs: PathsOrFactory,
    outputs: PathsOrFactory,
) -> bool:
    """Decide whether a build step can be skipped.

    marker_is_stale, inputs and outputs may be passed as callables. They are
    evaluated in rule order and only when an earlier rule did not already
    decide, so a forced run never reads the task result marker.

    Args:
        force: Skip up-to-date checks entirely (never skip)
        marker_is_stale: The step's task result marker is not fresh
        inputs: Files or directories the step reads
        outputs: Files or directories the step writes

    Returns:
        True if the step is up to date and can be skipped
    """
    if force:
        logger.debug("Up-to-date checks disabled")
        return False

    if marker_is_stale() if callable(marker_is_stale) else marker_is_stale:
        logger.debug("Task result marker is stale")
        return False

    output_paths = _resolve(outputs)
    for output in output_paths:
        if not fs.exists(output):
            logger.debug(f"Output missing: {output}")
            return False

    input_paths = _resolve(inputs)
    if not input_paths or not output_paths:
        return True

    try:
        newest_input = max(fs.mtime(p) for p in input_paths)
        oldest_output = min(fs.oldest_mtime(p) for p in output_paths)
    except FileNotFoundError as e:
        # An input vanished; let the step itself report it
        logger.debug(f"Failed to check file times: {e} - assuming step needs to run")
        return False

    if newest_input > oldest_output:
        logger.debug(f"Inputs newer than outputs ({newest_input} > {oldest_output})")
        return False

    return True

