"""
Task result markers - durable record of incremental build step outcomes.

Every incremental build step (linking, external build commands) keys its
result on a step identity plus a hash of its canonical inputs. A marker file
asserts "given these exact inputs, this step already completed with this
outcome". A step may be skipped only if the stored record matches the
current input hash and recorded a success.

Markers are stored as one JSON file per (step kind, step identity) in the
marker directory:

    <marker_dir>/link-rpc-<sha256(step id)>.json
    {
      "kind": "link-rpc",
      "id": "api",
      "input_hash": "3f7a...",
      "success": true,
      "error": null,
      "recorded_at": 1760000000.0
    }

Writes go to a temporary file that atomically replaces the marker, so a
crash mid-write never leaves a half-written record. Any read or write
failure other than "no marker yet" raises TaskResultMarkerError; a record
that cannot be decoded or is malformed is treated as stale.

Example:
    >>> marker = TaskResultMarker.new(marker_dir, LinkRpcMarkerHash("api", ["billing"]))
    >>> if not marker.is_up_to_date():
    >>>     with marker.track():
    >>>         link_component()
"""

import hashlib
import json
import logging
import time
from contextlib import contextmanager
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Iterator, Optional, Protocol, Tuple

from .. import fs
from ..errors import RpcLinkError
from ..model.app import BuildCommand

logger = logging.getLogger(__name__)

MARKER_SUFFIX = ".json"


class TaskResultMarkerError(RpcLinkError):
    """Raised when a task result marker cannot be read or written."""

    pass


class MarkerHash(Protocol):
    """Step-specific identity and canonical input of an incremental step."""

    def kind(self) -> str:
        """Step kind, e.g. 'link-rpc'. Used as the marker file name prefix."""
        ...

    def id(self) -> str:
        """Identity of the step instance within its kind, e.g. a component name."""
        ...

    def hash_input(self) -> Any:
        """JSON-serializable canonical input. Equal inputs must serialize equally."""
        ...


@dataclass(frozen=True)
class LinkRpcMarkerHash:
    """Marker hash for linking static WASM RPC dependencies into a component.

    Only static dependency names take part in the hash: dynamic dependencies
    are not embedded, so changing them must not force a relink. The names are
    deduplicated and sorted, so declaration order does not matter.
    """

    component_name: str
    dependencies: Tuple[str, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "dependencies", tuple(sorted(set(self.dependencies))))

    def kind(self) -> str:
        return "link-rpc"

    def id(self) -> str:
        return self.component_name

    def hash_input(self) -> Any:
        return {
            "component_name": self.component_name,
            "dependencies": list(self.dependencies),
        }


@dataclass(frozen=True)
class BuildCommandMarkerHash:
    """Marker hash for an external build command of a component."""

    component_name: str
    build_dir: str
    command: BuildCommand

    def kind(self) -> str:
        return "build-command"

    def id(self) -> str:
        return f"{self.component_name}:{self.build_dir}:{self.command.command}"

    def hash_input(self) -> Any:
        return {
            "component_name": self.component_name,
            "build_dir": self.build_dir,
            "command": self.command.command,
            "sources": sorted(self.command.sources),
            "targets": sorted(self.command.targets),
        }


def compute_input_hash(hash_input: Any) -> str:
    """SHA256 of the canonical JSON encoding of a step's inputs."""
    encoded = json.dumps(hash_input, sort_keys=True, separators=(",", ":"), ensure_ascii=False)
    return hashlib.sha256(encoded.encode("utf-8")).hexdigest()


@dataclass(frozen=True)
class TaskOutcome:
    """Outcome of an attempted step.

    Attributes:
        success: Whether the step completed successfully
        error: Failure message, None on success
    """

    success: bool
    error: Optional[str] = None

    @classmethod
    def ok(cls) -> "TaskOutcome":
        return cls(success=True)

    @classmethod
    def failed(cls, error: str) -> "TaskOutcome":
        return cls(success=False, error=error)


@dataclass(frozen=True)
class MarkerRecord:
    """A persisted marker record."""

    kind: str
    id: str
    input_hash: str
    success: bool
    error: Optional[str] = None
    recorded_at: float = field(default_factory=time.time)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "kind": self.kind,
            "id": self.id,
            "input_hash": self.input_hash,
            "success": self.success,
            "error": self.error,
            "recorded_at": self.recorded_at,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "MarkerRecord":
        """Create a record from a dictionary.

        Raises:
            KeyError, TypeError, ValueError: If required fields are missing or mistyped
        """
        if not isinstance(data["success"], bool):
            raise TypeError("'success' must be a boolean")
        return cls(
            kind=str(data["kind"]),
            id=str(data["id"]),
            input_hash=str(data["input_hash"]),
            success=data["success"],
            error=data.get("error"),
            recorded_at=float(data.get("recorded_at", 0.0)),
        )


class TaskResultMarker:
    """Result marker of one incremental step instance."""

    def __init__(self, marker_dir: Path, kind: str, step_id: str, input_hash: str):
        """
        Initialize a marker. Prefer TaskResultMarker.new().

        Args:
            marker_dir: Directory holding marker files
            kind: Step kind
            step_id: Step identity within the kind
            input_hash: Hash of the step's canonical inputs
        """
        self.marker_dir = marker_dir
        self.kind = kind
        self.step_id = step_id
        self.input_hash = input_hash

    @classmethod
    def new(cls, marker_dir: Path, marker_hash: MarkerHash) -> "TaskResultMarker":
        """Compute the marker for a step from its identity and canonical inputs.

        Args:
            marker_dir: Directory holding marker files
            marker_hash: Step-specific MarkerHash

        Returns:
            TaskResultMarker for the step
        """
        return cls(
            marker_dir=marker_dir,
            kind=marker_hash.kind(),
            step_id=marker_hash.id(),
            input_hash=compute_input_hash(marker_hash.hash_input()),
        )

    @property
    def path(self) -> Path:
        """Marker file path; one file per (kind, step id)."""
        id_hash = hashlib.sha256(self.step_id.encode("utf-8")).hexdigest()
        return self.marker_dir / f"{self.kind}-{id_hash}{MARKER_SUFFIX}"

    def read(self) -> Optional[MarkerRecord]:
        """Read the stored record.

        Returns:
            The record, or None if there is none or it is malformed

        Raises:
            TaskResultMarkerError: If the marker file exists but cannot be read
        """
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except FileNotFoundError:
            return None
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            logger.warning(f"Ignoring corrupted task result marker {self.path}: {e}")
            return None
        except OSError as e:
            raise TaskResultMarkerError(f"Failed to read task result marker {self.path}: {e}") from e

        try:
            return MarkerRecord.from_dict(data)
        except (KeyError, TypeError, ValueError) as e:
            logger.warning(f"Ignoring malformed task result marker {self.path}: {e}")
            return None

    def is_up_to_date(self) -> bool:
        """Whether a successful record exists for exactly these inputs."""
        record = self.read()
        if record is None:
            logger.debug(f"No task result marker for {self.kind} {self.step_id}")
            return False
        if record.kind != self.kind or record.id != self.step_id:
            logger.debug(f"Task result marker identity mismatch for {self.kind} {self.step_id}")
            return False
        if record.input_hash != self.input_hash:
            logger.debug(f"Inputs changed for {self.kind} {self.step_id}")
            return False
        if not record.success:
            logger.debug(f"Previous {self.kind} {self.step_id} failed, retrying")
            return False
        return True

    def record(self, outcome: TaskOutcome) -> TaskOutcome:
        """Persist an outcome, atomically replacing any previous record.

        Args:
            outcome: Outcome of the step

        Returns:
            The same outcome, for propagation by the caller

        Raises:
            TaskResultMarkerError: If the record cannot be written
        """
        record = MarkerRecord(
            kind=self.kind,
            id=self.step_id,
            input_hash=self.input_hash,
            success=outcome.success,
            error=outcome.error,
        )
        data = json.dumps(record.to_dict(), indent=2).encode("utf-8")
        try:
            fs.write_bytes_atomic(self.path, data)
        except OSError as e:
            raise TaskResultMarkerError(f"Failed to write task result marker {self.path}: {e}") from e

        logger.debug(f"Recorded {'success' if outcome.success else 'failure'} for {self.kind} {self.step_id}")
        return outcome

    @contextmanager
    def track(self) -> Iterator[None]:
        """Run the with-block as the step's action and record its outcome.

        Success is recorded when the block completes. If the block raises an
        Exception, a failure is recorded first and the exception re-raised.
        KeyboardInterrupt and SystemExit propagate without touching the
        marker, leaving the step to be retried on the next run.

        Raises:
            TaskResultMarkerError: If the outcome cannot be recorded
        """
        try:
            yield
        except Exception as e:
            self.record(TaskOutcome.failed(str(e) or type(e).__name__))
            raise
        self.record(TaskOutcome.ok())


def clean_task_result_markers(marker_dir: Path) -> int:
    """Remove all task result markers, forcing every step to run again.

    Args:
        marker_dir: Directory holding marker files

    Returns:
        Number of markers removed

    Raises:
        TaskResultMarkerError: If a marker cannot be removed
    """
    if not marker_dir.exists():
        return 0

    removed = 0
    for marker_file in marker_dir.glob(f"*{MARKER_SUFFIX}"):
        try:
            marker_file.unlink()
        except FileNotFoundError:
            continue
        except OSError as e:
            raise TaskResultMarkerError(f"Failed to remove task result marker {marker_file}: {e}") from e
        removed += 1

    logger.info(f"Removed {removed} task result markers from {marker_dir}")
    return removed
