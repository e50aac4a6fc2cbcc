"""League Constants Store — versioned JSON sets under data/constants/.

파일 하나 = 버전 하나: {"version", "updated", "constants": [...]}
저장된 버전은 덮어쓰지 않는다 (superseded, never mutated).
"""

import json
import logging
import os
import tempfile
from datetime import date, datetime, timezone
from pathlib import Path
from typing import Optional

from src.engine.league_constants import ConstantsSet, LeagueConstants
from src.etl.fetch_result import FetchResult

logger = logging.getLogger(__name__)

DEFAULT_STORE_DIR = Path(__file__).parent.parent.parent / 'data' / 'constants'


class ConstantsVersionExistsError(Exception):
    """Attempt to overwrite an already-published constants version."""


def write_json_atomic(path: Path, payload: dict) -> None:
    """Temp file + os.replace (reader는 완전한 파일만 본다)."""
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_path = tempfile.mkstemp(dir=path.parent, prefix=f'.{path.name}.', suffix='.tmp')
    try:
        with os.fdopen(fd, 'w', encoding='utf-8') as f:
            json.dump(payload, f, indent=2, ensure_ascii=False)
        os.replace(tmp_path, path)
    except BaseException:
        if os.path.exists(tmp_path):
            os.remove(tmp_path)
        raise


class LeagueConstantsStore:
    """Directory-backed versioned constants store."""

    def __init__(self, root: Path | str | None = None):
        self.root = Path(root) if root else DEFAULT_STORE_DIR

    def _path(self, version: str) -> Path:
        return self.root / f'{version}.json'

    def exists(self, version: str) -> bool:
        return self._path(version).exists()

    def save(self, constants_set: ConstantsSet) -> Path:
        path = self._path(constants_set.version)
        if path.exists():
            raise ConstantsVersionExistsError(f"constants version {constants_set.version} already exists")
        write_json_atomic(path, constants_set.to_dict())
        logger.info(f"  Saved constants version {constants_set.version} ({len(constants_set.entries)} records)")
        return path

    def load(self, version: str) -> ConstantsSet:
        """Raises KeyError for unknown versions."""
        path = self._path(version)
        if not path.exists():
            raise KeyError(version)
        with open(path, encoding='utf-8') as f:
            return ConstantsSet.from_dict(json.load(f))

    def fetch(self, version: str) -> FetchResult[ConstantsSet]:
        try:
            return FetchResult.success(self.load(version))
        except KeyError:
            return FetchResult.failure('constants_store', f'unknown version {version}')
        except (OSError, ValueError) as e:
            return FetchResult.failure('constants_store', f'unreadable version {version}: {e}')

    def list_versions(self) -> list[str]:
        if not self.root.exists():
            return []
        return sorted(p.stem for p in self.root.glob('*.json'))

    def get(self, version: str, year: int, league: str) -> Optional[LeagueConstants]:
        return self.load(version).get(year, league)

    def next_version(self, today: Optional[date] = None) -> str:
        """YYYY.MM.DD, 같은 날 중복이면 YYYY.MM.DD-2, -3 ..."""
        today = today or datetime.now(timezone.utc).date()
        base = today.strftime('%Y.%m.%d')
        if not self.exists(base):
            return base
        n = 2
        while self.exists(f'{base}-{n}'):
            n += 1
        return f'{base}-{n}'
