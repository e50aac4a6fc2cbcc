"""Append-only constants version log (JSON lines).

각 줄은 tagged entry:
    {"kind": "healthy", "version": "2025.09.01", "timestamp": "..."}
    {"kind": "degraded", "reason": "...", "pinned": "2025.09.01" | null, "timestamp": "..."}

"last good" = 가장 최근 healthy entry. 파일은 append만 하며 기존 줄은 수정하지 않는다.
"""
import json
import logging
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional, Union

logger = logging.getLogger(__name__)


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass(frozen=True)
class Healthy:
    version: str
    timestamp: str
    kind: str = 'healthy'


@dataclass(frozen=True)
class Degraded:
    reason: str
    pinned: Optional[str]
    timestamp: str
    kind: str = 'degraded'


VersionEntry = Union[Healthy, Degraded]


def _from_dict(d: dict) -> VersionEntry:
    if d.get('kind') == 'healthy':
        return Healthy(version=d['version'], timestamp=d['timestamp'])
    if d.get('kind') == 'degraded':
        return Degraded(reason=d['reason'], pinned=d.get('pinned'), timestamp=d['timestamp'])
    raise ValueError(f"unknown version log entry kind: {d.get('kind')!r}")


class VersionLog:
    def __init__(self, path: Path | str):
        self.path = Path(path)

    def append(self, entry: VersionEntry) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        line = json.dumps(asdict(entry), ensure_ascii=False)
        with open(self.path, 'a', encoding='utf-8') as f:
            f.write(line + '\n')

    def record_healthy(self, version: str) -> Healthy:
        entry = Healthy(version=version, timestamp=utc_now_iso())
        self.append(entry)
        return entry

    def record_degraded(self, reason: str, pinned: Optional[str]) -> Degraded:
        entry = Degraded(reason=reason, pinned=pinned, timestamp=utc_now_iso())
        self.append(entry)
        return entry

    def entries(self) -> list[VersionEntry]:
        """손상된 줄 (partial write 등)은 건너뛴다."""
        if not self.path.exists():
            return []
        entries = []
        with open(self.path, 'rb') as f:
            for lineno, raw in enumerate(f, 1):
                raw = raw.strip()
                if not raw:
                    continue
                try:
                    entries.append(_from_dict(json.loads(raw.decode('utf-8'))))
                except (ValueError, KeyError) as e:
                    logger.warning(f"  Skipping malformed version log line {lineno}: {e}")
        return entries

    def tail(self) -> Optional[VersionEntry]:
        entries = self.entries()
        return entries[-1] if entries else None

    def last_healthy(self) -> Optional[Healthy]:
        for entry in reversed(self.entries()):
            if isinstance(entry, Healthy):
                return entry
        return None
