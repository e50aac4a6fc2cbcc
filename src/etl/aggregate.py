"""Raw Stats Aggregator — 경기별 counting stats → 시즌/통산 합계.

Usage:
    totals = aggregate_batting(normalize_batting_rows(raw_df))
    stats = to_batting_stats(totals.iloc[0])
"""

import logging
from dataclasses import dataclass, field
from typing import Optional, Sequence

import numpy as np
import pandas as pd

from src.engine.park_factor import park_adjust
from src.engine.saber_config import RELIABILITY_HIGH_PA, RELIABILITY_MEDIUM_PA
from src.engine.sabermetrics import SabermetricsCalculator
from src.engine.stats_types import BattingStats, PitchingStats
from src.etl.stats_mapper import BATTING_COUNT_COLUMNS, PITCHING_COUNT_COLUMNS

logger = logging.getLogger(__name__)

DEFAULT_GROUP_BY = ('player_id', 'year', 'league')


def _aggregate(rows: pd.DataFrame, by: Sequence[str], count_columns: list[str]) -> pd.DataFrame:
    keys = [c for c in by if c in rows.columns]
    counts = [c for c in count_columns if c in rows.columns]
    if rows.empty:
        return pd.DataFrame(columns=[*keys, *counts, 'games'])

    grouped = rows.groupby(keys, dropna=False)
    totals = grouped[counts].sum()
    if 'game_id' in rows.columns:
        totals['games'] = grouped['game_id'].nunique()
    else:
        totals['games'] = grouped.size()
    return totals.reset_index()


def aggregate_batting(rows: pd.DataFrame, by: Sequence[str] = DEFAULT_GROUP_BY) -> pd.DataFrame:
    """정규화된 batting rows를 by 키별로 합산. 통산은 by=('player_id',)."""
    return _aggregate(rows, by, BATTING_COUNT_COLUMNS)


def aggregate_pitching(rows: pd.DataFrame, by: Sequence[str] = DEFAULT_GROUP_BY) -> pd.DataFrame:
    return _aggregate(rows, by, PITCHING_COUNT_COLUMNS)


def to_batting_stats(row) -> BattingStats:
    """DataFrame row (Series) 또는 dict → BattingStats."""
    return BattingStats.from_mapping(dict(row))


def to_pitching_stats(row) -> PitchingStats:
    return PitchingStats.from_mapping(dict(row))


def reliability_tier(pa: int) -> str:
    if pa >= RELIABILITY_HIGH_PA:
        return 'high'
    if pa >= RELIABILITY_MEDIUM_PA:
        return 'medium'
    return 'low'


@dataclass
class TeamSplit:
    """Home/Away split (raw vs park-neutral)."""
    split_type: str  # 'home' | 'away'
    games: int
    reliability: str
    batting: dict = field(default_factory=dict)
    pitching: dict = field(default_factory=dict)


def _weighted_pf(per_game: pd.DataFrame, weight_column: str, calc: SabermetricsCalculator) -> float:
    if per_game.empty:
        return 1.0
    pf = per_game['venue'].map(calc.constants.park_factor).astype(float)
    weights = per_game[weight_column].astype(float)
    if weights.sum() <= 0:
        return 1.0
    return float(np.average(pf, weights=weights))


def _split_games(games: pd.DataFrame, team: str, split_type: str) -> pd.DataFrame:
    side = 'home_team' if split_type == 'home' else 'away_team'
    return games.loc[games[side] == team, ['game_id', 'venue']]


def team_splits(
    batting: pd.DataFrame,
    games: pd.DataFrame,
    team: str,
    calc: SabermetricsCalculator,
    pitching: Optional[pd.DataFrame] = None,
) -> list[TeamSplit]:
    """팀 홈/원정 split + PF 보정.

    avg_pf는 경기별 구장 PF의 가중 평균 (batting: PA, pitching: IP_outs).
    Neutral 값은 park_adjust 정책(지표별 exponent)을 그대로 사용.
    """
    splits = []
    for split_type in ('home', 'away'):
        split_games = _split_games(games, team, split_type)

        team_batting = batting[(batting['team'] == team) & (batting['PA'] > 0)]
        per_game = (
            team_batting.groupby('game_id')[BATTING_COUNT_COLUMNS].sum().reset_index()
            .merge(split_games, on='game_id', how='inner')
        )
        bat_pf = _weighted_pf(per_game, 'PA', calc)
        bat_stats = to_batting_stats(per_game[BATTING_COUNT_COLUMNS].sum())

        wrc_plus = calc.wrc_plus(bat_stats)
        ops_plus = calc.ops_plus(bat_stats)
        batting_split = {
            'PA': bat_stats.PA,
            'wOBA': calc.woba(bat_stats),
            'wRC+': wrc_plus,
            'wRC+_neutral': int(round(park_adjust(wrc_plus, bat_pf, 'wRC+'))),
            'OPS+': ops_plus,
            'OPS+_neutral': int(round(park_adjust(ops_plus, bat_pf, 'OPS+'))),
            'avg_pf': round(bat_pf, 3),
        }

        pitching_split = {}
        if pitching is not None and not pitching.empty:
            team_pitching = pitching[pitching['team'] == team]
            per_game_p = (
                team_pitching.groupby('game_id')[PITCHING_COUNT_COLUMNS].sum().reset_index()
                .merge(split_games, on='game_id', how='inner')
            )
            pit_pf = _weighted_pf(per_game_p, 'IP_outs', calc)
            pit_stats = to_pitching_stats(per_game_p[PITCHING_COUNT_COLUMNS].sum())
            era_minus = calc.era_minus(pit_stats)
            fip_minus = calc.fip_minus(pit_stats)
            basic = calc.basic_pitching(pit_stats)
            pitching_split = {
                'IP': basic['IP'],
                'ERA-': era_minus,
                'ERA-_neutral': int(round(park_adjust(era_minus, pit_pf, 'ERA-'))),
                'FIP-': fip_minus,
                'FIP-_neutral': int(round(park_adjust(fip_minus, pit_pf, 'FIP-'))),
                'WHIP': basic['WHIP'],
                'HR9': basic['HR9'],
                'avg_pf': round(pit_pf, 3),
            }

        splits.append(TeamSplit(
            split_type=split_type,
            games=len(per_game),
            reliability=reliability_tier(bat_stats.PA),
            batting=batting_split,
            pitching=pitching_split,
        ))

    logger.info(f"  {team}: home {splits[0].games} / away {splits[1].games} games")
    return splits
