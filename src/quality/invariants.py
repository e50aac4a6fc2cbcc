"""Game Invariant Checks — box-score 집계 경로 간 정합성 검사.

Quality gate의 testResults를 만든다:
- team_box_cross: 팀 batting 합계 (R/H/HR/BB) == 상대 pitching 허용 합계
- game_scores: 팀 batting R 합계 == games 테이블 득점
- PA_decomposition: PA == AB + BB + HBP + SF + SH
- IP_outs_consistency: 경기별 팀 투구 아웃 수 ≈ 이닝 × 3
"""
import logging
import zlib
from dataclasses import asdict, dataclass, field
from datetime import date, timedelta
from typing import Optional

import pandas as pd

from src.quality.invariants_config import InvariantsConfig

logger = logging.getLogger(__name__)

REGULATION_INNINGS = 9


@dataclass
class TestResults:
    total: int = 0
    passed: int = 0
    failed: int = 0
    coverage_pct: float = 0.0

    __test__ = False  # not a pytest class

    def record(self, ok: bool) -> None:
        self.total += 1
        if ok:
            self.passed += 1
        else:
            self.failed += 1

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class InvariantFailure:
    check: str
    key: str
    metric: str
    expected: float
    actual: float
    tolerance: float


@dataclass
class InvariantReport:
    results: TestResults = field(default_factory=TestResults)
    failures: list[InvariantFailure] = field(default_factory=list)
    sampled_games: int = 0

    @property
    def passed(self) -> bool:
        return self.results.failed == 0

    def check(self, name: str, key: str, metric: str, expected: float, actual: float, tolerance: float) -> None:
        ok = abs(expected - actual) <= tolerance
        self.results.record(ok)
        if not ok:
            self.failures.append(InvariantFailure(name, key, metric, expected, actual, tolerance))


def _seed(value) -> int:
    return zlib.crc32(str(value).encode('utf-8'))


def stratified_sample(
    games: pd.DataFrame,
    config: InvariantsConfig,
    today: Optional[date] = None,
) -> pd.DataFrame:
    """Recent 전수 + historic random + edge cases (high scoring / extra innings).

    games 컬럼: game_id, date, home_runs, away_runs, innings (optional)
    Returns: 중복 제거된 sample (category 컬럼 포함), max_sample_size 이하.
    """
    games = config.filter_games(games)
    strat = config.stratified_sampling
    max_size = int(config.sampling.get('max_sample_size', len(games)) or len(games))
    if games.empty:
        return games.assign(category=pd.Series(dtype=str))

    if not strat.get('enabled') or 'date' not in games.columns:
        recent = games.sort_values('game_id', ascending=False).head(max_size)
        return recent.assign(category='recent')

    categories = strat['categories']
    today = today or date.today()
    cutoff = pd.Timestamp(today - timedelta(days=categories['recent']['days']))
    dates = pd.to_datetime(games['date'])
    seed = _seed(config.sampling.get('seed', 0))

    recent = games[dates >= cutoff].assign(category='recent')
    historic_pool = games[dates < cutoff]
    historic = historic_pool.sample(
        n=min(categories['historic']['random_count'], len(historic_pool)),
        random_state=seed,
    ).assign(category='historic')

    edge = categories['edge_cases']
    scored = games.assign(_total=games['home_runs'] + games['away_runs'])
    high_scoring = (
        scored[scored['_total'] >= edge['high_scoring']['min_total_runs']]
        .sort_values('_total', ascending=False)
        .head(edge['high_scoring']['count'])
        .drop(columns='_total')
        .assign(category='high_scoring')
    )
    parts = [recent, historic, high_scoring]
    if 'innings' in games.columns:
        extra = (
            games[games['innings'] >= edge['extra_innings']['min_innings']]
            .head(edge['extra_innings']['count'])
            .assign(category='extra_innings')
        )
        parts.append(extra)

    sample = pd.concat(parts).drop_duplicates(subset='game_id', keep='first')
    logger.info(
        f"  Stratified sample: {len(recent)} recent, {len(historic)} historic, "
        f"{len(sample) - len(recent) - len(historic)} edge (max {max_size})"
    )
    return sample.head(max_size)


def _opponents(games: pd.DataFrame) -> pd.DataFrame:
    """(game_id, team) → opponent, runs_for."""
    home = games[['game_id', 'home_team', 'away_team', 'home_runs']].rename(
        columns={'home_team': 'team', 'away_team': 'opponent', 'home_runs': 'runs_for'})
    away = games[['game_id', 'away_team', 'home_team', 'away_runs']].rename(
        columns={'away_team': 'team', 'home_team': 'opponent', 'away_runs': 'runs_for'})
    return pd.concat([home, away], ignore_index=True)


def check_team_totals(
    report: InvariantReport,
    batting: pd.DataFrame,
    pitching: pd.DataFrame,
    games: pd.DataFrame,
    config: InvariantsConfig,
    year: Optional[int] = None,
) -> None:
    """팀별 batting 합계 vs 상대 투수진 허용 합계 (metrics: team_box_cross.metrics)."""
    cross = config.get_invariant_config('team_box_cross')
    metrics = [m for m in cross.get('metrics', ['R', 'H', 'HR', 'BB'])
               if m in batting.columns and m in pitching.columns]
    sample_size = games['game_id'].nunique()
    pairs = _opponents(games)

    bat = batting.groupby(['game_id', 'team'])[metrics].sum().reset_index()
    pit = pitching.groupby(['game_id', 'team'])[metrics].sum().reset_index()
    # pitching allowed by the opponent, credited to the batting team
    allowed = pit.merge(pairs, on=['game_id', 'team'])[['game_id', 'opponent', *metrics]]
    allowed = allowed.rename(columns={'opponent': 'team'})

    merged = bat.merge(allowed, on=['game_id', 'team'], suffixes=('_bat', '_pit'))
    by_team = merged.groupby('team').sum(numeric_only=True)

    for metric in metrics:
        tolerance = config.get_adjusted_tolerance(metric, sample_size, year)
        for team, row in by_team.iterrows():
            report.check('team_box_cross', str(team), metric,
                         float(row[f'{metric}_pit']), float(row[f'{metric}_bat']), tolerance)


def check_game_scores(
    report: InvariantReport,
    batting: pd.DataFrame,
    games: pd.DataFrame,
    config: InvariantsConfig,
    year: Optional[int] = None,
) -> None:
    """팀별 batting R 합계 vs games 테이블 득점 합계."""
    sample_size = games['game_id'].nunique()
    tolerance = config.get_adjusted_tolerance('R', sample_size, year)
    runs_for = _opponents(games).groupby('team')['runs_for'].sum()
    box_runs = (
        batting[batting['game_id'].isin(games['game_id'])]
        .groupby('team')['R'].sum()
    )
    for team, expected in runs_for.items():
        report.check('game_scores', str(team), 'R', float(expected), float(box_runs.get(team, 0)), tolerance)


def check_pa_decomposition(report: InvariantReport, batting: pd.DataFrame, config: InvariantsConfig) -> None:
    tolerance = config.get_invariant_config('PA_decomposition').get('tolerance', 0)
    parts = ['AB', 'BB', 'HBP', 'SF', 'SH']
    by_team = batting.groupby('team')[['PA', *parts]].sum()
    for team, row in by_team.iterrows():
        report.check('PA_decomposition', str(team), 'PA',
                     float(sum(row[p] for p in parts)), float(row['PA']), tolerance)


def check_ip_outs_consistency(
    report: InvariantReport,
    pitching: pd.DataFrame,
    games: pd.DataFrame,
    config: InvariantsConfig,
) -> None:
    """경기별 팀 IP_outs ≈ innings × 3 (walk-off/홈팀 미공격은 tolerance로 흡수)."""
    cfg = config.get_invariant_config('IP_outs_consistency')
    tolerance = cfg.get('tolerance', 3)
    innings = games.set_index('game_id')['innings'] if 'innings' in games.columns else pd.Series(dtype=float)

    outs = pitching.groupby(['game_id', 'team'])['IP_outs'].sum()
    for (game_id, team), actual in outs.items():
        game_innings = innings.get(game_id, REGULATION_INNINGS)
        if pd.isna(game_innings):
            game_innings = REGULATION_INNINGS
        if game_innings > REGULATION_INNINGS and not cfg.get('extra_innings_allowed', True):
            continue
        report.check('IP_outs_consistency', f'{game_id}:{team}', 'IP_outs',
                     float(game_innings * 3), float(actual), tolerance)


def run_invariant_suite(
    batting: pd.DataFrame,
    pitching: pd.DataFrame,
    games: pd.DataFrame,
    config: InvariantsConfig | None = None,
    year: Optional[int] = None,
    today: Optional[date] = None,
) -> InvariantReport:
    """Stratified sample 경기에 대해 활성화된 invariant 전체 실행."""
    config = config or InvariantsConfig()
    report = InvariantReport()

    sample = stratified_sample(games, config, today=today)
    report.sampled_games = len(sample)
    if sample.empty:
        logger.warning("  No games eligible for invariant sampling")
        return report

    ids = set(sample['game_id'])
    bat = batting[batting['game_id'].isin(ids)]
    pit = pitching[pitching['game_id'].isin(ids)]

    if config.is_invariant_enabled('team_box_cross'):
        check_team_totals(report, bat, pit, sample, config, year)
    check_game_scores(report, bat, sample, config, year)
    if config.is_invariant_enabled('PA_decomposition'):
        check_pa_decomposition(report, bat, config)
    if config.is_invariant_enabled('IP_outs_consistency'):
        check_ip_outs_consistency(report, pit, sample, config)

    covered = len(ids & set(bat['game_id']))
    report.results.coverage_pct = round(covered / len(ids) * 100, 1)

    logger.info(
        f"  Invariants: {report.results.passed}/{report.results.total} passed "
        f"on {len(ids)} games (coverage {report.results.coverage_pct}%)"
    )
    for failure in report.failures[:10]:
        logger.warning(
            f"    {failure.check} {failure.key} {failure.metric}: "
            f"expected {failure.expected}, got {failure.actual} (±{failure.tolerance})"
        )
    return report
