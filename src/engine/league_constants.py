"""League Constants — (year, league)별 wOBA/FIP/run environment/park factor 계수.

Formula engine은 이 값을 파라미터로만 사용하며 버전 해석은 하지 않는다.
"""
import math
from dataclasses import dataclass, field, replace
from typing import Any, Optional

from src.engine.saber_config import ERA_FROM_RUNS, FIP_CONSTANT_OFFSET, LEAGUE_WOBA_OFFSET

# shrink coefficient name → LeagueConstants field
WOBA_WEIGHT_FIELDS: dict[str, str] = {
    'wBB': 'woba_bb',
    'wHBP': 'woba_hbp',
    'w1B': 'woba_1b',
    'w2B': 'woba_2b',
    'w3B': 'woba_3b',
    'wHR': 'woba_hr',
}

PARK_FACTOR_MIN = 0.5
PARK_FACTOR_MAX = 1.5

_POSITIVE_FIELDS = (
    *WOBA_WEIGHT_FIELDS.values(),
    'woba_scale', 'fip_constant', 'lg_r_pa', 'lg_r_g',
)


@dataclass(frozen=True)
class LeagueConstants:
    """One (year, league) coefficient record."""
    year: int
    league: str
    woba_bb: float
    woba_hbp: float
    woba_1b: float
    woba_2b: float
    woba_3b: float
    woba_hr: float
    woba_scale: float
    fip_constant: float
    lg_r_pa: float
    lg_r_g: float
    park_factors: dict[str, float] = field(default_factory=dict)
    lg_woba: Optional[float] = None
    lg_era: Optional[float] = None
    lg_fip: Optional[float] = None

    @property
    def key(self) -> tuple[int, str]:
        return (self.year, self.league)

    @property
    def woba_weights(self) -> dict[str, float]:
        return {name: getattr(self, attr) for name, attr in WOBA_WEIGHT_FIELDS.items()}

    def park_factor(self, venue: Optional[str]) -> float:
        """구장 PF 반환. 없거나 0 이하면 1.0 (neutral)."""
        if not venue:
            return 1.0
        pf = self.park_factors.get(venue)
        if pf is None or not math.isfinite(pf) or pf <= 0:
            return 1.0
        return pf

    def league_woba(self) -> float:
        if self.lg_woba is not None:
            return self.lg_woba
        if self.woba_scale <= 0:
            return 0.0
        return self.lg_r_pa / self.woba_scale + LEAGUE_WOBA_OFFSET

    def league_era(self) -> float:
        if self.lg_era is not None:
            return self.lg_era
        return self.lg_r_g / 2 * ERA_FROM_RUNS

    def league_fip(self) -> float:
        if self.lg_fip is not None:
            return self.lg_fip
        return self.fip_constant + FIP_CONSTANT_OFFSET

    def validate(self) -> list[str]:
        """Invariant violations; empty list means the record is publishable."""
        problems = []
        for name in _POSITIVE_FIELDS:
            value = getattr(self, name)
            if not isinstance(value, (int, float)) or not math.isfinite(value) or value <= 0:
                problems.append(f"{name} must be finite and positive (got {value!r})")
        for venue, pf in self.park_factors.items():
            if not math.isfinite(pf) or not PARK_FACTOR_MIN <= pf <= PARK_FACTOR_MAX:
                problems.append(f"park factor for {venue} out of range (got {pf!r})")
        return problems

    def with_updates(self, **changes: Any) -> "LeagueConstants":
        return replace(self, **changes)

    def to_dict(self) -> dict[str, Any]:
        out = {
            'year': self.year,
            'league': self.league,
            'woba_bb': self.woba_bb,
            'woba_hbp': self.woba_hbp,
            'woba_1b': self.woba_1b,
            'woba_2b': self.woba_2b,
            'woba_3b': self.woba_3b,
            'woba_hr': self.woba_hr,
            'woba_scale': self.woba_scale,
            'fip_constant': self.fip_constant,
            'lg_r_pa': self.lg_r_pa,
            'lg_r_g': self.lg_r_g,
            'park_factors': dict(self.park_factors),
        }
        for optional in ('lg_woba', 'lg_era', 'lg_fip'):
            if getattr(self, optional) is not None:
                out[optional] = getattr(self, optional)
        return out

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "LeagueConstants":
        return cls(
            year=int(data['year']),
            league=str(data['league']),
            woba_bb=float(data['woba_bb']),
            woba_hbp=float(data['woba_hbp']),
            woba_1b=float(data['woba_1b']),
            woba_2b=float(data['woba_2b']),
            woba_3b=float(data['woba_3b']),
            woba_hr=float(data['woba_hr']),
            woba_scale=float(data['woba_scale']),
            fip_constant=float(data['fip_constant']),
            lg_r_pa=float(data['lg_r_pa']),
            lg_r_g=float(data['lg_r_g']),
            park_factors={str(k): float(v) for k, v in (data.get('park_factors') or {}).items()},
            lg_woba=data.get('lg_woba'),
            lg_era=data.get('lg_era'),
            lg_fip=data.get('lg_fip'),
        )


# Fallback when no stored set exists yet.
DEFAULT_CONSTANTS = LeagueConstants(
    year=2024,
    league='first',
    woba_bb=0.69,
    woba_hbp=0.72,
    woba_1b=0.89,
    woba_2b=1.27,
    woba_3b=1.62,
    woba_hr=2.10,
    woba_scale=1.15,
    fip_constant=3.10,
    lg_r_pa=0.10,
    lg_r_g=4.5,
    park_factors={},
)


@dataclass(frozen=True)
class ConstantsSet:
    """Versioned, immutable export of LeagueConstants records."""
    version: str
    updated: str
    entries: dict[tuple[int, str], LeagueConstants] = field(default_factory=dict)

    def get(self, year: int, league: str) -> Optional[LeagueConstants]:
        return self.entries.get((year, league))

    def with_entry(self, constants: LeagueConstants, version: str, updated: str) -> "ConstantsSet":
        """New set (new version) with one record added or superseded."""
        entries = dict(self.entries)
        entries[constants.key] = constants
        return ConstantsSet(version=version, updated=updated, entries=entries)

    def to_dict(self) -> dict[str, Any]:
        return {
            'version': self.version,
            'updated': self.updated,
            'constants': [self.entries[k].to_dict() for k in sorted(self.entries)],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ConstantsSet":
        records = [LeagueConstants.from_dict(c) for c in data.get('constants', [])]
        return cls(
            version=str(data['version']),
            updated=str(data.get('updated', '')),
            entries={c.key: c for c in records},
        )
