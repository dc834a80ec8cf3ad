"""
Deployment log.

Every lifecycle transition of every unit in a run is appended to
`<state_dir>/deploy.log` as one JSON object per line. Entries carry fact
keys and secret references only, never secret values.
"""

import json
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

LOG_FILENAME = "deploy.log"


@dataclass
class LogEntry:
    """A single deployment log entry."""
    timestamp: str
    run_id: str
    unit_id: str
    step: str
    state: str
    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "timestamp": self.timestamp,
            "run_id": self.run_id,
            "unit_id": self.unit_id,
            "step": self.step,
            "state": self.state,
            "metadata": self.metadata,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "LogEntry":
        """Create from dictionary."""
        return cls(
            timestamp=data["timestamp"],
            run_id=data["run_id"],
            unit_id=data.get("unit_id", ""),
            step=data["step"],
            state=data.get("state", ""),
            metadata=data.get("metadata", {}),
        )


def get_log_path(state_dir: Path) -> Path:
    """Get the path to the deployment log file."""
    return state_dir / LOG_FILENAME


def log_transition(
    log_path: Path,
    run_id: str,
    unit_id: str,
    step: str,
    state: str,
    metadata: dict[str, Any] | None = None,
) -> LogEntry:
    """
    Append one transition to the deployment log.

    Args:
        log_path: Path to the log file (parent directories are created)
        run_id: Id of the deployment run
        unit_id: Unit the transition belongs to ("" for run-level entries)
        step: What happened (e.g., "resolve_inputs", "provision", "publish")
        state: Unit state after the step
        metadata: Additional context (fact keys, error messages)

    Returns:
        The created log entry
    """
    entry = LogEntry(
        timestamp=datetime.now(timezone.utc).isoformat(),
        run_id=run_id,
        unit_id=unit_id,
        step=step,
        state=state,
        metadata=metadata or {},
    )

    log_path.parent.mkdir(parents=True, exist_ok=True)
    with log_path.open("a", encoding="utf-8") as f:
        f.write(json.dumps(entry.to_dict()) + "\n")

    return entry


def read_log(log_path: Path, run_id: str | None = None, last_n: int | None = None) -> list[LogEntry]:
    """
    Read entries from the deployment log.

    Args:
        log_path: Path to the log file
        run_id: If specified, only entries of this run
        last_n: If specified, return only the last N entries

    Returns:
        List of entries, oldest first
    """
    if not log_path.exists():
        return []

    entries = []
    with log_path.open("r", encoding="utf-8") as f:
        for line in f:
            line = line.strip()
            if line:
                try:
                    entry = LogEntry.from_dict(json.loads(line))
                except (json.JSONDecodeError, KeyError):
                    continue  # Skip malformed lines
                if run_id is None or entry.run_id == run_id:
                    entries.append(entry)

    if last_n is not None:
        return entries[-last_n:]
    return entries


def format_entry(entry: LogEntry) -> str:
    """Format a log entry for human-readable display."""
    subject = entry.unit_id or "run"
    lines = [f"[{entry.timestamp}] {entry.run_id} {subject} {entry.step} -> {entry.state}"]
    for key, value in entry.metadata.items():
        lines.append(f"  {key}: {value}")
    return "\n".join(lines)
