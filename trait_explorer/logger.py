from __future__ import annotations

import csv
import io
import json
import math
import time
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from . import config
from .session import SessionState, effective_slope

_SESSION_LOG_STATE: Dict[str, Dict[str, Any]] = {}


def normalize_param_value(value: Any) -> Optional[float]:
    # no clamping: the constrained shift may sit outside the slider range
    try:
        num = float(value)
    except (TypeError, ValueError):
        return None
    if num == -0.0:
        num = 0.0
    return float(f"{num:.12g}")


def normalized_equal(old_value: Any, new_value: Any) -> bool:
    old_norm = normalize_param_value(old_value)
    new_norm = normalize_param_value(new_value)
    if old_norm is None or new_norm is None:
        return old_norm is new_norm
    if old_norm == new_norm:
        return True
    return abs(old_norm - new_norm) < 1e-9


def next_seq_and_elapsed(session_id: str) -> Dict[str, Any]:
    state = _SESSION_LOG_STATE.setdefault(session_id, {"seq": 0, "last_t_server_ms": None})
    now_ms = int(time.time() * 1000)
    seq = state["seq"] + 1
    state["seq"] = seq
    elapsed = 0
    if state["last_t_server_ms"] is not None:
        elapsed = max(now_ms - state["last_t_server_ms"], 0)
    state["last_t_server_ms"] = now_ms
    ts = datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")
    return {"seq": seq, "elapsed_time_ms": elapsed, "t_server_iso": ts}


def build_record(
    session_id: str,
    state: SessionState,
    *,
    event: str,
    param_name: Optional[str] = None,
    old_value: Optional[Any] = None,
    new_value: Optional[Any] = None,
    source: str = "system",
    uirevision: Optional[str] = None,
    extras: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    record: Dict[str, Any] = {
        "schema_version": config.SCHEMA_VERSION,
        "session_id": session_id or "unknown",
        "event": event,
        "param_name": param_name,
        "old_value": old_value,
        "new_value": new_value,
        "source": source,
        "start": state.start,
        "end": state.end,
        "slope": state.slope,
        "shift": state.shift,
        "slope_factor": state.slope_factor,
        "effective_slope": effective_slope(state),
        "mode": state.mode.value,
        "uirevision": uirevision,
    }
    record.update(next_seq_and_elapsed(record["session_id"]))
    if extras:
        record.update(extras)
    return record


def append_record(history: Any, record: Dict[str, Any], capacity: int = config.LOG_HISTORY_CAPACITY) -> List[Dict[str, Any]]:
    entries = list(history) if isinstance(history, list) else []
    entries.append(record)
    return entries[-capacity:]


def format_value_preview(value: Optional[Any]) -> str:
    if value is None:
        return "-"
    if isinstance(value, float):
        text = f"{value:.3f}".rstrip("0").rstrip(".")
        return text if text else "0"
    return str(value)


def format_preview_message(record: Dict[str, Any]) -> str:
    event = record.get("event", "event")
    if event == "param_change":
        param = record.get("param_name", "?")
        old_v = format_value_preview(record.get("old_value"))
        new_v = format_value_preview(record.get("new_value"))
        source = record.get("source", "source")
        return f"param_change: {param} {old_v} → {new_v} ({source})"
    if event == "mode_change":
        old_v = format_value_preview(record.get("old_value"))
        new_v = format_value_preview(record.get("new_value"))
        slope = format_value_preview(record.get("slope"))
        shift = format_value_preview(record.get("shift"))
        return f"mode_change: {old_v} → {new_v} (slope={slope}, shift={shift})"
    if event == "reset":
        return "reset: parameters restored"
    if event == "export":
        return f"export: {record.get('export_type', 'unknown')}"
    return event


def preview_lines(history: Any, capacity: int = config.LOG_PREVIEW_CAPACITY) -> List[str]:
    if not isinstance(history, list):
        return []
    return [format_preview_message(rec) for rec in history[-capacity:] if isinstance(rec, dict)]


def flatten_record_for_csv(record: Dict[str, Any]) -> Dict[str, Any]:
    flat = dict.fromkeys(config.SCHEMA_COLUMNS, None)
    for key, value in record.items():
        if key in flat:
            flat[key] = value
    return flat


def build_jsonl_content(records: List[Dict[str, Any]]) -> Optional[str]:
    if not records:
        return None
    return "".join(json.dumps(_json_safe(rec), ensure_ascii=False, allow_nan=False) + "\n" for rec in records)


def _json_safe(record: Dict[str, Any]) -> Dict[str, Any]:
    # strict JSON has no NaN/Infinity tokens
    return {
        key: None if isinstance(value, float) and not math.isfinite(value) else value
        for key, value in record.items()
    }


def build_csv_content(records: List[Dict[str, Any]]) -> Optional[str]:
    if not records:
        return None
    columns = list(config.SCHEMA_COLUMNS)
    buffer = io.StringIO()
    writer = csv.DictWriter(buffer, fieldnames=columns, extrasaction="ignore")
    writer.writeheader()
    for rec in records:
        writer.writerow(flatten_record_for_csv(rec))
    return buffer.getvalue()
