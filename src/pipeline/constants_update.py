"""Constants Update Pipeline — 시즌 league constants 재계산 + quality gate 오케스트레이터.

Flow:
    1. Prior constants 로드 (pinned/latest store version → 전년도 → DEFAULT_CONSTANTS)
    2. 시즌 box-score 로드 + 정규화 (Supabase, FetchResult boundary)
    3. Empirical 상수 추정 (wOBA weights, FIP constant, run env, park factors)
    4. Family별 shrink_with_guard → alert check → update log
    5. Invariant suite (stratified sample)
    6. 통과: 새 ConstantsSet version 저장 + record_successful_execution
       실패: handle_quality_failure → pinned version 유지 (없으면 fatal)
"""

import logging
from datetime import date, datetime, timezone
from typing import Optional

import pandas as pd

from src.engine.league_constants import DEFAULT_CONSTANTS, WOBA_WEIGHT_FIELDS, ConstantsSet, LeagueConstants
from src.engine.league_environment import (
    estimate_fip_constant,
    estimate_league_era,
    estimate_league_fip,
    estimate_league_woba,
    estimate_park_factors,
    estimate_run_environment,
    estimate_woba_weights,
)
from src.engine.shrink import (
    ShrinkResult,
    check_alert_conditions,
    generate_update_log,
    shrink_fip_constant,
    shrink_park_factors,
    shrink_with_guard,
    shrink_woba_weights,
)
from src.engine.shrink_config import ShrinkConfig
from src.etl.constants_store import LeagueConstantsStore, write_json_atomic
from src.etl.stats_mapper import normalize_batting_rows, normalize_pitching_rows
from src.etl.stats_source import REQUIRED_TABLES, fetch_season, get_supabase_client
from src.quality.failopen import ConstantsInfo, FailOpenController
from src.quality.invariants import TestResults, run_invariant_suite
from src.quality.invariants_config import InvariantsConfig

logger = logging.getLogger(__name__)

DEFAULT_BASELINE = 'default'


def load_prior_constants(
    store: LeagueConstantsStore,
    controller: FailOpenController,
    year: int,
    league: str,
) -> tuple[Optional[ConstantsSet], LeagueConstants]:
    """Prior ConstantsSet + (year, league) prior record.

    우선순위: pinned version → store 최신 version. 해당 year가 없으면 전년도 값을,
    그것도 없으면 DEFAULT_CONSTANTS를 year/league만 바꿔 사용.
    """
    version = controller.get_pinned_version()
    versions = store.list_versions()
    if version is None and versions:
        version = versions[-1]

    prior_set = None
    if version is not None:
        result = store.fetch(version)
        if result.ok:
            prior_set = result.data
        else:
            logger.warning(f"  Prior constants unavailable ({result.error.message}), using defaults")

    if prior_set is not None:
        for candidate_year in (year, year - 1):
            record = prior_set.get(candidate_year, league)
            if record is not None:
                logger.info(f"  Prior: {prior_set.version} ({candidate_year}, {league})")
                return prior_set, record.with_updates(year=year)

    logger.info(f"  Prior: {DEFAULT_BASELINE} constants")
    return prior_set, DEFAULT_CONSTANTS.with_updates(year=year, league=league)


def load_season(client, year: int, league: str) -> tuple[dict[str, pd.DataFrame], list[str]]:
    """Supabase → 정규화된 season frames. 두 번째 값은 실패한 필수 테이블 메시지."""
    results = fetch_season(client, year, league)
    errors = [
        f"{results[name].error.source}: {results[name].error.message}"
        for name in REQUIRED_TABLES if not results[name].ok
    ]
    if errors:
        return {}, errors

    lw = results['linear_weights']
    return {
        'batting': normalize_batting_rows(results['batting'].data),
        'pitching': normalize_pitching_rows(results['pitching'].data),
        'games': results['games'].data,
        'linear_weights': lw.data if lw.ok else None,
    }, []


def stabilize_constants(
    prior: LeagueConstants,
    season: dict[str, pd.DataFrame],
    config: ShrinkConfig,
) -> tuple[LeagueConstants, dict[str, ShrinkResult]]:
    """Empirical 추정 → family별 shrink → 새 LeagueConstants (guard 적용 값)."""
    batting = season['batting']
    pitching = season['pitching']
    games = season['games']
    year, league = prior.year, prior.league

    results: dict[str, ShrinkResult] = {}
    updates = {}

    # wOBA weights + scale (sample: PA)
    total_pa = float(batting['PA'].sum()) if 'PA' in batting.columns else 0.0
    lw = season.get('linear_weights')
    if lw is not None and not lw.empty:
        try:
            empirical = estimate_woba_weights(lw)
        except ValueError as e:
            logger.warning(f"  Skipping wOBA weights: {e}")
        else:
            woba = shrink_woba_weights(empirical, prior.woba_weights, total_pa, config, league, year)
            family = config.woba_weights
            woba['woba_scale'] = shrink_with_guard(
                empirical['woba_scale'], prior.woba_scale, total_pa,
                k=family.k, threshold=family.threshold, min_samples=family.min_samples,
                league=league, year=year,
            )
            results.update(woba)
            updates.update({WOBA_WEIGHT_FIELDS[name]: r.value for name, r in woba.items() if name in WOBA_WEIGHT_FIELDS})
            updates['woba_scale'] = woba['woba_scale'].value
            logger.info(f"  Shrunk {len(woba)} wOBA coefficients (PA {total_pa:,.0f})")
    else:
        logger.info("  No linear weights table, keeping prior wOBA weights")

    # FIP constant (sample: BF)
    empirical_fip = estimate_fip_constant(pitching)
    if empirical_fip is not None:
        total_bf = float(pitching['BF'].sum())
        fip = shrink_fip_constant(empirical_fip, prior.fip_constant, total_bf, config, league, year)
        results.update(fip)
        updates['fip_constant'] = fip['fip_constant'].value

    # park factors (sample: venue home games)
    pf_df = estimate_park_factors(games)
    if not pf_df.empty:
        empirical_pf = dict(zip(pf_df['venue'], pf_df['park_factor'].astype(float)))
        park_games = dict(zip(pf_df['venue'], pf_df['games'].astype(float)))
        parks = shrink_park_factors(empirical_pf, prior.park_factors, park_games, config, league, year)
        results.update({f'pf:{venue}': r for venue, r in parks.items()})
        updates['park_factors'] = {**prior.park_factors, **{venue: r.value for venue, r in parks.items()}}

    # run environment + league averages (직접 측정값, shrink 없음)
    run_env = estimate_run_environment(batting, games)
    for name, value in run_env.items():
        if value is not None:
            updates[name] = value

    stabilized = prior.with_updates(**updates)
    lg_woba = estimate_league_woba(batting, stabilized.woba_weights)
    lg_era = estimate_league_era(pitching)
    lg_fip = estimate_league_fip(pitching, stabilized.fip_constant)
    stabilized = stabilized.with_updates(lg_woba=lg_woba, lg_era=lg_era, lg_fip=lg_fip)

    guarded = sum(r.is_guarded for r in results.values())
    logger.info(f"  Stabilized {len(results)} coefficients ({guarded} guarded)")
    return stabilized, results


def run_constants_update(
    year: int,
    league: str,
    client=None,
    season: Optional[dict[str, pd.DataFrame]] = None,
    store: Optional[LeagueConstantsStore] = None,
    controller: Optional[FailOpenController] = None,
    shrink_config: Optional[ShrinkConfig] = None,
    invariants_config: Optional[InvariantsConfig] = None,
    dry_run: bool = False,
    today: Optional[date] = None,
) -> dict:
    """메인 파이프라인.

    Args:
        season: 정규화된 {'batting', 'pitching', 'games', 'linear_weights'} (None이면 Supabase 로드)
        dry_run: True면 저장/상태 기록 없이 결과만 반환

    Returns:
        dict with status ('success' | 'degraded' | 'fatal' | 'dry_run') and stats
    """
    today = today or datetime.now(timezone.utc).date()
    store = store or LeagueConstantsStore()
    controller = controller or FailOpenController()
    shrink_config = shrink_config or ShrinkConfig()
    invariants_config = invariants_config or InvariantsConfig()

    logger.info(f"=== Constants Update: {year} {league} ===")

    # 1. Prior
    prior_set, prior = load_prior_constants(store, controller, year, league)
    baseline_version = prior_set.version if prior_set else DEFAULT_BASELINE

    # 2. Season data
    if season is None:
        season, errors = load_season(client or get_supabase_client(), year, league)
        if errors:
            return _fail(controller, f"fetch failed: {'; '.join(errors)}", TestResults(), year, league, dry_run)
    if season['batting'].empty or season['games'].empty:
        return _fail(controller, f"no box-score data for {year} {league}", TestResults(), year, league, dry_run)

    # 3-4. Estimate + stabilize
    stabilized, results = stabilize_constants(prior, season, shrink_config)
    alert_check = check_alert_conditions(results, shrink_config)
    update_log = generate_update_log(
        results,
        {'year': year, 'league': league, 'baseline_version': baseline_version},
        shrink_config,
    )

    # 5. Invariants
    report = run_invariant_suite(
        season['batting'], season['pitching'], season['games'],
        invariants_config, year=year, today=today,
    )

    problems = stabilized.validate()
    if report.results.failed:
        problems.append(f"{report.results.failed} invariant check(s) failed")
    if alert_check.has_error:
        errors = [a.coefficient for a in alert_check.alerts if a.severity == 'error']
        problems.append(f"large coefficient change: {', '.join(errors)}")

    if problems:
        return _fail(controller, '; '.join(problems), report.results, year, league, dry_run,
                     update_log=update_log)

    # 6. Publish
    version = store.next_version(today)
    base = prior_set or ConstantsSet(version=DEFAULT_BASELINE, updated='')
    new_set = base.with_entry(stabilized, version=version, updated=today.isoformat())

    if dry_run:
        logger.info(f"  Dry run: would publish {version}")
        return {
            'status': 'dry_run',
            'version': version,
            'year': year,
            'league': league,
            'constants': stabilized.to_dict(),
            'tests': report.results.to_dict(),
            'summary': update_log['summary'],
            'alerts': len(alert_check.alerts),
        }

    store.save(new_set)
    write_json_atomic(controller.reports_dir / f'shrink_update_{version}.json', update_log)
    controller.record_successful_execution(
        version,
        report.results,
        ConstantsInfo(baseline_version=baseline_version, last_update=today.isoformat()),
    )

    return {
        'status': 'success',
        'version': version,
        'year': year,
        'league': league,
        'tests': report.results.to_dict(),
        'summary': update_log['summary'],
        'alerts': len(alert_check.alerts),
    }


def _fail(
    controller: FailOpenController,
    reason: str,
    test_results: TestResults,
    year: int,
    league: str,
    dry_run: bool,
    update_log: Optional[dict] = None,
) -> dict:
    result = {
        'year': year,
        'league': league,
        'reason': reason,
        'tests': test_results.to_dict(),
    }
    if update_log is not None:
        result['summary'] = update_log['summary']

    if dry_run:
        logger.warning(f"  Dry run: quality gate would fail ({reason})")
        return {'status': 'dry_run', 'version': None, **result}

    pinned = controller.handle_quality_failure(reason, test_results)
    status = 'degraded' if pinned else 'fatal'
    return {'status': status, 'pinned_version': pinned, **result}
