from __future__ import annotations
import json
import os
import time
from typing import Any, Dict

from qrsnap.config import config

METRICS_FILE = os.path.join(config.DATA_DIR, 'metrics.jsonl')
MAX_BYTES = 5_000_000  # 5 MB
BACKUPS = 3


def _rotate_if_needed(path: str) -> None:
    if not os.path.exists(path) or os.path.getsize(path) <= MAX_BYTES:
        return
    oldest = f"{path}.{BACKUPS}"
    if os.path.exists(oldest):
        os.remove(oldest)
    for i in range(BACKUPS - 1, 0, -1):
        src = f"{path}.{i}"
        if os.path.exists(src):
            os.replace(src, f"{path}.{i+1}")
    os.replace(path, f"{path}.1")


def now_ts() -> float:
    return time.time()


def append_event(event: Dict[str, Any], path: str = METRICS_FILE) -> None:
    event = dict(event)
    event.setdefault('ts', now_ts())
    os.makedirs(os.path.dirname(path), exist_ok=True)
    _rotate_if_needed(path)
    with open(path, 'a', encoding='utf-8') as fh:
        fh.write(json.dumps(event, ensure_ascii=False) + '\n')


def tail_events(n: int = 100, path: str = METRICS_FILE) -> list[Dict[str, Any]]:
    if not os.path.exists(path):
        return []
    with open(path, 'r', encoding='utf-8') as fh:
        lines = fh.readlines()[-n:]
    return [json.loads(l) for l in lines if l.strip()]


def summarize(n: int = 500, path: str = METRICS_FILE) -> Dict[str, Any]:
    evs = tail_events(n, path)
    total = len(evs)
    ok = sum(1 for e in evs if e.get('result_count', 0) > 0)
    per_state: dict[str, int] = {}
    per_decoder: dict[str, int] = {}
    for e in evs:
        state = e.get('state', 'unknown')
        per_state[state] = per_state.get(state, 0) + 1
        for t in e.get('timeline', []):
            per_decoder[t.get('decoder', 'unknown')] = per_decoder.get(t.get('decoder', 'unknown'), 0) + int(t.get('count', 0) > 0)
    return {
        'total': total,
        'ok': ok,
        'empty': total - ok,
        'per_state': per_state,
        'per_decoder_hits': per_decoder,
    }
