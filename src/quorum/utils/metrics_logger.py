"""metrics logger for feature instrumentation"""

from __future__ import annotations

import json
import logging
import threading
from datetime import datetime, UTC
from pathlib import Path
from typing import Dict, Any, Optional

from quorum.config import config

logger = logging.getLogger(__name__)

_LOCK = threading.Lock()


def _metrics_path() -> Path:
    path = config.METRICS_PATH
    path.parent.mkdir(parents=True, exist_ok=True)
    return path


def log_metric(component: str, event: str, payload: Dict[str, Any], path: Optional[Path] = None) -> bool:
    """append structured metrics record to disk. returns false when metrics are disabled or the write failed."""
    if path is None and not config.METRICS_ENABLED:
        return False

    record = {
        "timestamp": datetime.now(UTC).isoformat(),
        "component": component,
        "event": event,
    }
    record.update(payload)

    try:
        serialized = json.dumps(record)
    except (TypeError, ValueError) as exc:
        serialized = json.dumps(
            {
                "timestamp": record["timestamp"],
                "component": component,
                "event": event,
                "error": f"failed to serialize payload: {exc}",
            }
        )

    try:
        target = path or _metrics_path()
        with _LOCK:
            with target.open("a", encoding="utf-8") as f:
                f.write(serialized + "\n")
    except OSError as exc:
        logger.warning(f"[metrics] failed to write {component}.{event}: {exc}")
        return False
    return True
