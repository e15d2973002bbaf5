from __future__ import annotations

import json
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Mapping


def _timestamp() -> str:
    return datetime.now(tz=timezone.utc).isoformat(timespec="milliseconds")


@dataclass
class TelemetryService:
    """Match lifecycle journal, one JSON object per line.

    Records are `{"ts", "type", "payload"}`; payload values that JSON cannot
    encode are stored as their string form.
    """

    path: Path

    def log(self, event_type: str, payload: Mapping[str, object]) -> None:
        line = json.dumps(
            {"ts": _timestamp(), "type": event_type, "payload": dict(payload)},
            ensure_ascii=False,
            default=str,
        )
        if not self.path.parent.exists():
            self.path.parent.mkdir(parents=True)
        with self.path.open("a", encoding="utf-8") as journal:
            journal.write(f"{line}\n")

    def records(self, event_type: str | None = None) -> list[dict[str, object]]:
        """Journal entries in write order, optionally only those of one type."""
        if not self.path.exists():
            return []
        lines = self.path.read_text(encoding="utf-8").splitlines()
        entries = [json.loads(line) for line in lines if line.strip()]
        if event_type is None:
            return entries
        return [e for e in entries if e.get("type") == event_type]
