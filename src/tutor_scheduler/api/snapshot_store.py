"""Named schedule states kept on disk between scheduler runs.

Each file holds one validated :class:`SnapshotModel` plus a little metadata.
Recording a run replaces the stored plan with the scheduler's output so the
next run repairs and extends it.
"""
from __future__ import annotations

import json
import time
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

from ..incremental import IncrementalResult
from ..io import assignments_to_dict
from ..schemas import SnapshotModel
from .config import SNAPSHOT_DIR


@dataclass
class StoredSnapshot:
    id: str
    name: str
    description: Optional[str]
    created_at: str
    state: SnapshotModel
    path: Path

    def summary(self) -> Dict[str, Any]:
        state = self.state
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "created_at": self.created_at,
            "size_bytes": self.path.stat().st_size,
            "mode": state.settings.mode.value,
            "start_date": state.settings.start_date.isoformat() if state.settings.start_date else None,
            "end_date": state.settings.end_date.isoformat() if state.settings.end_date else None,
            "instructor_count": len(state.instructors),
            "learner_count": len(state.learners),
            "assigned_slot_count": sum(1 for items in state.assignments.values() if items),
            "session_count": sum(len(items) for items in state.assignments.values()),
            "last_run_at": state.settings.last_run_at,
        }

    def to_dict(self) -> Dict[str, Any]:
        return {**self.summary(), "state": self.state.model_dump(mode="json")}


def _snapshot_path(snapshot_id: str) -> Path:
    return SNAPSHOT_DIR / f"{snapshot_id}.json"


def _now_ms() -> int:
    return int(time.time() * 1000)


def _write(
    snapshot_id: str, name: str, description: Optional[str], created_at: str, state: SnapshotModel
) -> StoredSnapshot:
    SNAPSHOT_DIR.mkdir(parents=True, exist_ok=True)
    path = _snapshot_path(snapshot_id)
    payload = {
        "id": snapshot_id,
        "name": name,
        "description": description,
        "created_at": created_at,
        "state": state.model_dump(mode="json"),
    }
    path.write_text(json.dumps(payload, indent=2, ensure_ascii=False), encoding="utf-8")
    return StoredSnapshot(snapshot_id, name, description, created_at, state, path)


def _read(path: Path) -> StoredSnapshot:
    data = json.loads(path.read_text(encoding="utf-8"))
    return StoredSnapshot(
        id=data["id"],
        name=data["name"],
        description=data.get("description"),
        created_at=data["created_at"],
        state=SnapshotModel.model_validate(data.get("state", {})),
        path=path,
    )


def save_snapshot(name: str, description: Optional[str], state: SnapshotModel) -> StoredSnapshot:
    created_at = datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")
    return _write(uuid.uuid4().hex[:12], name, description, created_at, state)


def list_snapshots() -> List[StoredSnapshot]:
    if not SNAPSHOT_DIR.exists():
        return []
    stored = [_read(path) for path in SNAPSHOT_DIR.glob("*.json")]
    return sorted(stored, key=lambda s: (s.created_at, s.id))


def load_snapshot(snapshot_id: str) -> StoredSnapshot:
    """Raises ``FileNotFoundError`` for unknown ids and ``ValidationError`` for damaged files."""
    path = _snapshot_path(snapshot_id)
    if not path.exists():
        raise FileNotFoundError("Snapshot not found")
    return _read(path)


def record_plan(
    snapshot_id: str, result: IncrementalResult, run_at: Optional[int] = None
) -> StoredSnapshot:
    """Store ``result`` as the snapshot's plan and stamp the run time (epoch ms)."""
    stored = load_snapshot(snapshot_id)
    data = stored.state.model_dump(mode="json")
    data["assignments"] = assignments_to_dict(result.assignments)
    data["settings"]["last_run_at"] = _now_ms() if run_at is None else run_at
    state = SnapshotModel.model_validate(data)
    return _write(stored.id, stored.name, stored.description, stored.created_at, state)


def delete_snapshot(snapshot_id: str) -> bool:
    path = _snapshot_path(snapshot_id)
    if path.exists():
        path.unlink()
        return True
    return False


__all__ = [
    "StoredSnapshot",
    "delete_snapshot",
    "list_snapshots",
    "load_snapshot",
    "record_plan",
    "save_snapshot",
]
