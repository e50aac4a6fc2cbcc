"""Aggregated counting-stat bundles.

BattingStats: PA, AB, H, 2B, 3B, HR, BB, IBB, HBP, SF, SH, SO, R, RBI, SB, CS
PitchingStats: IP_outs, BF, H, R, ER, HR, BB, IBB, HBP, SO, WP, BK

Field names use `double`/`triple` in Python; `to_dict()`/`from_mapping()` speak
the box-score keys ('2B', '3B').
"""
import math
from dataclasses import dataclass, fields
from typing import Any, Mapping

BATTING_KEY_ALIASES = {'2B': 'double', '3B': 'triple'}


def _count(value: Any) -> int:
    """None/NaN/garbage → 0."""
    if value is None:
        return 0
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0
    if math.isnan(number) or math.isinf(number):
        return 0
    return int(round(number))


@dataclass(frozen=True)
class BattingStats:
    """Batting totals for one entity (player/team × year × league)."""
    PA: int = 0
    AB: int = 0
    H: int = 0
    double: int = 0
    triple: int = 0
    HR: int = 0
    BB: int = 0
    IBB: int = 0
    HBP: int = 0
    SF: int = 0
    SH: int = 0
    SO: int = 0
    R: int = 0
    RBI: int = 0
    SB: int = 0
    CS: int = 0

    @property
    def singles(self) -> int:
        return self.H - self.double - self.triple - self.HR

    @property
    def unintentional_bb(self) -> int:
        return self.BB - self.IBB

    @property
    def total_bases(self) -> int:
        return self.H + self.double + 2 * self.triple + 3 * self.HR

    def validate(self) -> list[str]:
        problems = [f"{f.name} < 0" for f in fields(self) if getattr(self, f.name) < 0]
        if self.PA < self.AB:
            problems.append(f"PA ({self.PA}) < AB ({self.AB})")
        if self.singles < 0:
            problems.append("H < 2B + 3B + HR")
        return problems

    @classmethod
    def from_mapping(cls, mapping: Mapping[str, Any]) -> "BattingStats":
        values = {}
        for f in fields(cls):
            key = next((k for k, v in BATTING_KEY_ALIASES.items() if v == f.name), f.name)
            values[f.name] = _count(mapping.get(key, mapping.get(f.name)))
        return cls(**values)

    def to_dict(self) -> dict[str, int]:
        out = {}
        for f in fields(self):
            key = next((k for k, v in BATTING_KEY_ALIASES.items() if v == f.name), f.name)
            out[key] = getattr(self, f.name)
        return out


@dataclass(frozen=True)
class PitchingStats:
    """Pitching totals for one entity. IP is carried as outs."""
    IP_outs: int = 0
    BF: int = 0
    H: int = 0
    R: int = 0
    ER: int = 0
    HR: int = 0
    BB: int = 0
    IBB: int = 0
    HBP: int = 0
    SO: int = 0
    WP: int = 0
    BK: int = 0

    @property
    def innings(self) -> float:
        return self.IP_outs / 3.0

    @property
    def unintentional_bb(self) -> int:
        return self.BB - self.IBB

    def validate(self) -> list[str]:
        return [f"{f.name} < 0" for f in fields(self) if getattr(self, f.name) < 0]

    @classmethod
    def from_mapping(cls, mapping: Mapping[str, Any]) -> "PitchingStats":
        return cls(**{f.name: _count(mapping.get(f.name)) for f in fields(cls)})

    def to_dict(self) -> dict[str, int]:
        return {f.name: getattr(self, f.name) for f in fields(self)}
