"""
Sabermetrics Calculator — LeagueConstants 기반 타격/투구 지표 계산

핵심 공식:
  wOBA  = (wBB·uBB + wHBP·HBP + w1B·1B + w2B·2B + w3B·3B + wHR·HR) / (PA - SH)
  wRC+  = ((wOBA - lgwOBA) / wOBA_scale + lgR/PA) / lgR/PA × 100 / PF
  FIP   = (13·HR + 3·(uBB + HBP) - 2·SO) / IP + cFIP
  ERA-  = ERA / lgERA × 100 × PF
  FIP-  = FIP / lgFIP × 100 × PF

Key Features:
  - 분모가 0 이하이면 해당 지표만 0 (NaN/Infinity 없음, 예외 없음)
  - ERA-/FIP-는 PF를 곱한다 (hitter's park에서 투수 지표가 불리하게 표시됨).
    Power-law가 아닌 단순 곱셈 보정이며 exponent는 saber_config.PARK_FACTOR_EXPONENTS
  - 모든 출력은 지표별 고정 자릿수로 반올림 (호출측 재반올림 금지)
"""

import math
from typing import Optional

from src.engine.league_constants import LeagueConstants
from src.engine.park_factor import park_adjust
from src.engine.saber_config import (
    FIP_BB_WEIGHT,
    FIP_HR_WEIGHT,
    FIP_SO_WEIGHT,
    LEAGUE_OPS,
    PRECISION,
)
from src.engine.stats_types import BattingStats, PitchingStats


NEUTRAL_INDEX = 100


def _ratio(numerator: float, denominator: float) -> float:
    """denominator ≤ 0 또는 non-finite → 0.0."""
    if denominator <= 0:
        return 0.0
    value = numerator / denominator
    return value if math.isfinite(value) else 0.0


def _round(metric: str, value: float):
    if not math.isfinite(value):
        value = 0.0
    places = PRECISION[metric]
    if places == 0:
        return int(round(value))
    return round(value, places)


def _index(metric: str, value: float) -> int:
    """정수 지수 (floor 0)."""
    if not math.isfinite(value):
        return NEUTRAL_INDEX
    return max(0, _round(metric, value))


class SabermetricsCalculator:
    """하나의 LeagueConstants snapshot에 묶인 순수 계산기."""

    def __init__(self, constants: LeagueConstants):
        self.constants = constants

    # ─── Batting ───

    def basic_batting(self, stats: BattingStats) -> dict[str, float]:
        """AVG / OBP / SLG / OPS / ISO / BABIP."""
        avg = _ratio(stats.H, stats.AB)
        obp = _ratio(stats.H + stats.BB + stats.HBP, stats.PA - stats.SH)
        slg = _ratio(stats.total_bases, stats.AB)
        babip = _ratio(stats.H - stats.HR, stats.AB - stats.SO - stats.HR + stats.SF)

        return {
            'AVG': _round('AVG', avg),
            'OBP': _round('OBP', obp),
            'SLG': _round('SLG', slg),
            'OPS': _round('OPS', obp + slg),
            'ISO': _round('ISO', slg - avg),
            'BABIP': _round('BABIP', babip),
        }

    def _raw_woba(self, stats: BattingStats) -> float:
        c = self.constants
        numerator = (
            c.woba_bb * stats.unintentional_bb
            + c.woba_hbp * stats.HBP
            + c.woba_1b * stats.singles
            + c.woba_2b * stats.double
            + c.woba_3b * stats.triple
            + c.woba_hr * stats.HR
        )
        return _ratio(numerator, stats.PA - stats.SH)

    def woba(self, stats: BattingStats) -> float:
        return _round('wOBA', self._raw_woba(stats))

    def wrc_plus(self, stats: BattingStats, venue: Optional[str] = None) -> int:
        c = self.constants
        league_woba = c.league_woba()
        if league_woba <= 0 or c.woba_scale <= 0 or c.lg_r_pa <= 0:
            return NEUTRAL_INDEX

        woba = self._raw_woba(stats)
        raw = ((woba - league_woba) / c.woba_scale + c.lg_r_pa) / c.lg_r_pa * 100
        return _index('wRC+', park_adjust(raw, c.park_factor(venue), 'wRC+'))

    def ops_plus(self, stats: BattingStats, venue: Optional[str] = None) -> int:
        """OPS+ (simplified: fixed league OPS baseline)."""
        obp = _ratio(stats.H + stats.BB + stats.HBP, stats.PA - stats.SH)
        slg = _ratio(stats.total_bases, stats.AB)
        raw = (obp + slg) / LEAGUE_OPS * 100
        return _index('OPS+', park_adjust(raw, self.constants.park_factor(venue), 'OPS+'))

    def advanced_batting(self, stats: BattingStats, venue: Optional[str] = None) -> dict:
        return {
            **self.basic_batting(stats),
            'wOBA': self.woba(stats),
            'wRC+': self.wrc_plus(stats, venue),
            'OPS+': self.ops_plus(stats, venue),
        }

    # ─── Pitching ───

    def _raw_era(self, stats: PitchingStats) -> float:
        return _ratio(stats.ER * 9.0, stats.innings)

    def basic_pitching(self, stats: PitchingStats) -> dict[str, float]:
        ip = stats.innings
        return {
            'IP': _round('IP', ip),
            'ERA': _round('ERA', self._raw_era(stats)),
            'WHIP': _round('WHIP', _ratio(stats.H + stats.BB, ip)),
            'K9': _round('K9', _ratio(stats.SO * 9.0, ip)),
            'BB9': _round('BB9', _ratio(stats.BB * 9.0, ip)),
            'HR9': _round('HR9', _ratio(stats.HR * 9.0, ip)),
            'K%': _round('K%', _ratio(stats.SO, stats.BF) * 100),
            'BB%': _round('BB%', _ratio(stats.BB, stats.BF) * 100),
        }

    def _raw_fip(self, stats: PitchingStats) -> float:
        ip = stats.innings
        if ip <= 0:
            return 0.0
        components = (
            FIP_HR_WEIGHT * stats.HR
            + FIP_BB_WEIGHT * (stats.unintentional_bb + stats.HBP)
            - FIP_SO_WEIGHT * stats.SO
        )
        value = components / ip + self.constants.fip_constant
        return max(0.0, value) if math.isfinite(value) else 0.0

    def fip(self, stats: PitchingStats) -> float:
        return _round('FIP', self._raw_fip(stats))

    def era_minus(self, stats: PitchingStats, venue: Optional[str] = None) -> int:
        league_era = self.constants.league_era()
        era = self._raw_era(stats)
        if league_era <= 0 or era <= 0:
            return NEUTRAL_INDEX
        raw = era / league_era * 100
        return _index('ERA-', park_adjust(raw, self.constants.park_factor(venue), 'ERA-'))

    def fip_minus(self, stats: PitchingStats, venue: Optional[str] = None) -> int:
        league_fip = self.constants.league_fip()
        fip = self._raw_fip(stats)
        if league_fip <= 0 or fip <= 0:
            return NEUTRAL_INDEX
        raw = fip / league_fip * 100
        return _index('FIP-', park_adjust(raw, self.constants.park_factor(venue), 'FIP-'))

    def advanced_pitching(self, stats: PitchingStats, venue: Optional[str] = None) -> dict:
        return {
            **self.basic_pitching(stats),
            'FIP': self.fip(stats),
            'ERA-': self.era_minus(stats, venue),
            'FIP-': self.fip_minus(stats, venue),
        }


def calculate_with_constants(
    constants: LeagueConstants,
    batting: Optional[BattingStats] = None,
    pitching: Optional[PitchingStats] = None,
    venue: Optional[str] = None,
) -> dict:
    """batting/pitching 중 주어진 것만 계산해 {'batting': ..., 'pitching': ...} 반환."""
    calc = SabermetricsCalculator(constants)
    result = {}
    if batting is not None:
        result['batting'] = calc.advanced_batting(batting, venue)
    if pitching is not None:
        result['pitching'] = calc.advanced_pitching(pitching, venue)
    return result
