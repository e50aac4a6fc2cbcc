"""League Environment — 집계 데이터에서 경험적(empirical) 리그 상수 추정.

Shrinkage Stabilizer에 들어갈 empirical 값을 만든다:
- wOBA weights / scale (normalized linear weights 테이블)
- FIP constant (lgERA - FIP components)
- run environment (R/PA, R/team-game)
- league wOBA / ERA
- venue park factors (home vs road runs per game)
"""
import logging
from typing import Optional

import numpy as np
import pandas as pd

from src.engine.saber_config import FIP_BB_WEIGHT, FIP_HR_WEIGHT, FIP_SO_WEIGHT

logger = logging.getLogger(__name__)

LINEAR_WEIGHT_EVENTS = {
    'wBB': 'walk',
    'wHBP': 'hit_by_pitch',
    'w1B': 'single',
    'w2B': 'double',
    'w3B': 'triple',
    'wHR': 'home_run',
}
WOBA_SCALE_EVENT = 'wOBA scale'


def _col_sum(df: pd.DataFrame, column: str) -> float:
    if column not in df.columns:
        return 0.0
    return float(pd.to_numeric(df[column], errors='coerce').fillna(0).sum())


def estimate_woba_weights(lw_df: pd.DataFrame) -> dict[str, float]:
    """Linear weights 테이블 (events, normalized_weight) → wOBA weights + scale.

    Raises:
        ValueError: 필요한 event 행이 없을 때
    """
    lookup = dict(zip(lw_df['events'], lw_df['normalized_weight']))
    missing = [e for e in [*LINEAR_WEIGHT_EVENTS.values(), WOBA_SCALE_EVENT] if e not in lookup]
    if missing:
        raise ValueError(f"linear weights table missing events: {missing}")

    weights = {name: float(lookup[event]) for name, event in LINEAR_WEIGHT_EVENTS.items()}
    weights['woba_scale'] = float(lookup[WOBA_SCALE_EVENT])
    return weights


def _fip_components(pitching: pd.DataFrame, ip: float) -> float:
    return (
        FIP_HR_WEIGHT * _col_sum(pitching, 'HR')
        + FIP_BB_WEIGHT * (_col_sum(pitching, 'BB') - _col_sum(pitching, 'IBB') + _col_sum(pitching, 'HBP'))
        - FIP_SO_WEIGHT * _col_sum(pitching, 'SO')
    ) / ip


def estimate_fip_constant(pitching: pd.DataFrame) -> Optional[float]:
    """cFIP = lgERA - (13·HR + 3·(uBB + HBP) - 2·SO) / IP. IP=0이면 None."""
    ip = _col_sum(pitching, 'IP_outs') / 3.0
    if ip <= 0:
        return None
    lg_era = _col_sum(pitching, 'ER') * 9.0 / ip
    return lg_era - _fip_components(pitching, ip)


def estimate_league_era(pitching: pd.DataFrame) -> Optional[float]:
    ip = _col_sum(pitching, 'IP_outs') / 3.0
    if ip <= 0:
        return None
    return _col_sum(pitching, 'ER') * 9.0 / ip


def estimate_run_environment(batting: pd.DataFrame, games: pd.DataFrame) -> dict[str, Optional[float]]:
    """lg_r_pa = ΣR / ΣPA, lg_r_g = runs per team-game."""
    pa = _col_sum(batting, 'PA')
    lg_r_pa = _col_sum(batting, 'R') / pa if pa > 0 else None

    team_games = 2 * len(games)
    if team_games > 0:
        lg_r_g = (_col_sum(games, 'home_runs') + _col_sum(games, 'away_runs')) / team_games
    else:
        lg_r_g = None
    return {'lg_r_pa': lg_r_pa, 'lg_r_g': lg_r_g}


def estimate_league_woba(batting: pd.DataFrame, weights: dict[str, float]) -> Optional[float]:
    """리그 전체 wOBA (denominator PA - SH)."""
    h = _col_sum(batting, 'H')
    doubles = _col_sum(batting, '2B')
    triples = _col_sum(batting, '3B')
    hr = _col_sum(batting, 'HR')
    numerator = (
        weights['wBB'] * (_col_sum(batting, 'BB') - _col_sum(batting, 'IBB'))
        + weights['wHBP'] * _col_sum(batting, 'HBP')
        + weights['w1B'] * (h - doubles - triples - hr)
        + weights['w2B'] * doubles
        + weights['w3B'] * triples
        + weights['wHR'] * hr
    )
    denominator = _col_sum(batting, 'PA') - _col_sum(batting, 'SH')
    return numerator / denominator if denominator > 0 else None


def estimate_park_factors(games: pd.DataFrame) -> pd.DataFrame:
    """구장별 empirical PF.

    H = 홈구장 경기당 총득점, R = 해당 팀 원정 경기당 총득점, T = 팀 수
    raw_PF = H·T / ((T-1)·R + H), PF = (raw_PF + 1) / 2

    games 컬럼: game_id, venue, home_team, away_team, home_runs, away_runs

    Returns:
        DataFrame[venue, park_factor, games] (games = 해당 구장 홈 경기 수)
    """
    columns = ['venue', 'park_factor', 'games']
    if games.empty:
        return pd.DataFrame(columns=columns)

    df = games.copy()
    df['total_runs'] = df['home_runs'].fillna(0) + df['away_runs'].fillna(0)

    home = df.groupby('home_team').agg(
        venue=('venue', 'first'),
        home_games=('game_id', 'size'),
        home_total=('total_runs', 'sum'),
    )
    away = df.groupby('away_team').agg(
        away_games=('game_id', 'size'),
        away_total=('total_runs', 'sum'),
    )
    combined = home.join(away, how='inner')
    combined = combined[(combined['home_games'] > 0) & (combined['away_games'] > 0)]
    if combined.empty:
        return pd.DataFrame(columns=columns)

    teams = len(combined)
    h = combined['home_total'] / combined['home_games']
    r = combined['away_total'] / combined['away_games']
    raw_pf = (h * teams) / ((teams - 1) * r + h)
    combined['park_factor'] = np.where(np.isfinite(raw_pf), (raw_pf + 1) / 2, 1.0)
    combined['games'] = combined['home_games']

    logger.info(f"  Estimated park factors for {teams} venues")
    return combined.reset_index(drop=True)[columns]


def estimate_league_fip(pitching: pd.DataFrame, fip_constant: float) -> Optional[float]:
    """리그 전체 FIP (주어진 constant 기준). IP=0이면 None."""
    ip = _col_sum(pitching, 'IP_outs') / 3.0
    if ip <= 0:
        return None
    return _fip_components(pitching, ip) + fip_constant
