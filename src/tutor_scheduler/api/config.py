"""Service paths, resolved from the environment."""
from __future__ import annotations

import os
from pathlib import Path

BASE_DIR = Path(os.getenv("PROJECT_ROOT", str(Path.cwd())))

DATA_DIR = Path(os.getenv("DATA_DIR", str(BASE_DIR / "data")))
SNAPSHOT_DIR = DATA_DIR / "snapshots"

SERVICE_NAME = "tutor-scheduler"
