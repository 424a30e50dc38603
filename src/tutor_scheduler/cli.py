from __future__ import annotations

import json
import logging
import sys
import time
from typing import Optional, Sequence

from pydantic import ValidationError

from .config import get_settings
from .errors import SnapshotError
from .fcfs import schedule_fcfs
from .incremental import schedule_incremental
from .io import load_snapshot, result_to_dict, save_result
from .models import SessionMode
from .reporting import fulfilment_frame

logger = logging.getLogger("tutor_scheduler")


def main(argv: Optional[Sequence[str]] = None) -> int:
    cfg = get_settings(argv)
    logging.basicConfig(
        level=cfg["log_level"],
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        snapshot = load_snapshot(cfg["snapshot"])
    except (OSError, json.JSONDecodeError) as exc:
        logger.error("Could not read snapshot %s: %s", cfg["snapshot"], exc)
        return 2
    except (ValidationError, SnapshotError) as exc:
        logger.error("Invalid snapshot %s:\n%s", cfg["snapshot"], exc)
        return 2

    mode = cfg["mode"] or snapshot.settings.mode
    start = time.time()
    if mode == SessionMode.INTERVIEW:
        result = schedule_fcfs(snapshot)
        if result.unassigned:
            logger.warning("Unassigned requesters: %s", ", ".join(result.unassigned))
    else:
        result = schedule_incremental(snapshot, yield_every=cfg["yield_every"])
        logger.info("%d change log entries", len(result.change_log))
    logger.info("Scheduling (%s) took %.3fs", mode.value, time.time() - start)

    if cfg["output"]:
        save_result(result, cfg["output"])
    else:
        json.dump(result_to_dict(result), sys.stdout, indent=2, ensure_ascii=False)
        sys.stdout.write("\n")

    if cfg["report"]:
        fulfilment_frame(snapshot, result.assignments).to_csv(cfg["report"], index=False)
        logger.info("Wrote fulfilment report to %s", cfg["report"])
    return 0


if __name__ == "__main__":
    sys.exit(main())
