"""Supabase box-score tables → pandas DataFrame (paginated)."""

import logging
import os
from typing import Optional

import pandas as pd
from supabase import create_client

from src.etl.fetch_result import FetchResult

logger = logging.getLogger(__name__)

PAGE_SIZE = 1000

BATTING_COLUMNS = 'game_id, player_id, team, year, league, venue, PA, AB, H, "2B", "3B", HR, BB, IBB, HBP, SF, SH, SO, R, RBI, SB, CS'
PITCHING_COLUMNS = 'game_id, player_id, team, year, league, venue, IP_outs, BF, H, R, ER, HR, BB, IBB, HBP, SO, WP, BK'
GAME_COLUMNS = 'game_id, date, year, league, venue, home_team, away_team, home_runs, away_runs, innings, status'
LINEAR_WEIGHT_COLUMNS = 'events, normalized_weight'

# linear_weights는 optional (없으면 wOBA weights는 prior 유지)
REQUIRED_TABLES = ('batting', 'pitching', 'games')


def get_supabase_client():
    url = os.environ['SUPABASE_URL']
    key = os.environ['SUPABASE_KEY']
    return create_client(url, key)


def fetch_table(
    client,
    table: str,
    columns: str,
    filters: Optional[dict] = None,
    page_size: int = PAGE_SIZE,
) -> FetchResult[pd.DataFrame]:
    """테이블 전체를 page 단위로 로드.

    Args:
        filters: {column: value} equality filters

    Returns:
        FetchResult with DataFrame (빈 결과는 empty DataFrame), 클라이언트 예외는 FetchError로 반환
    """
    all_rows = []
    offset = 0
    try:
        while True:
            query = client.table(table).select(columns)
            for column, value in (filters or {}).items():
                query = query.eq(column, value)
            response = query.range(offset, offset + page_size - 1).execute()
            rows = response.data
            if not rows:
                break
            all_rows.extend(rows)
            offset += page_size
            if len(rows) < page_size:
                break
    except Exception as e:
        logger.warning(f"  Failed to load {table}: {e}")
        return FetchResult.failure(table, str(e))

    logger.info(f"  Loaded {len(all_rows):,} rows from {table}")
    return FetchResult.success(pd.DataFrame(all_rows))


def fetch_season(client, year: int, league: str) -> dict[str, FetchResult[pd.DataFrame]]:
    """한 시즌의 batting / pitching / games / linear_weights 로드."""
    filters = {'year': year, 'league': league}
    return {
        'batting': fetch_table(client, 'box_batting', BATTING_COLUMNS, filters),
        'pitching': fetch_table(client, 'box_pitching', PITCHING_COLUMNS, filters),
        'games': fetch_table(client, 'games', GAME_COLUMNS, filters),
        'linear_weights': fetch_table(client, 'linear_weights', LINEAR_WEIGHT_COLUMNS, filters),
    }
