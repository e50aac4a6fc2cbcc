"""Raw box-score rows (heterogeneous keys) → canonical counting-stat schema.

Formula engine은 정규화된 컬럼만 본다. 출처별 키(일본어 헤더, 구버전 컬럼명)는
여기서 한 번만 매핑한다.
"""

import logging
import math
import re

import pandas as pd

logger = logging.getLogger(__name__)

ID_COLUMNS = ['game_id', 'player_id', 'team', 'year', 'league', 'venue']

BATTING_COUNT_COLUMNS = [
    'PA', 'AB', 'H', '2B', '3B', 'HR', 'BB', 'IBB', 'HBP',
    'SF', 'SH', 'SO', 'R', 'RBI', 'SB', 'CS',
]

PITCHING_COUNT_COLUMNS = [
    'IP_outs', 'BF', 'H', 'R', 'ER', 'HR', 'BB', 'IBB', 'HBP', 'SO', 'WP', 'BK',
]

BATTING_ALIASES = {
    '打席': 'PA',
    '打数': 'AB',
    '安打': 'H',
    '二塁打': '2B',
    '三塁打': '3B',
    '本塁打': 'HR',
    '四球': 'BB',
    '故意四球': 'IBB',
    '死球': 'HBP',
    '犠飛': 'SF',
    '犠打': 'SH',
    '三振': 'SO',
    '得点': 'R',
    '打点': 'RBI',
    '盗塁': 'SB',
    '盗塁死': 'CS',
    'singles_2B': '2B',
    'singles_3B': '3B',
    'doubles': '2B',
    'triples': '3B',
    'K': 'SO',
}

PITCHING_ALIASES = {
    '投球回': 'IP',
    '打者': 'BF',
    '被安打': 'H',
    '失点': 'R',
    '自責点': 'ER',
    '被本塁打': 'HR',
    '与四球': 'BB',
    '故意四球': 'IBB',
    '与死球': 'HBP',
    '奪三振': 'SO',
    '暴投': 'WP',
    'ボーク': 'BK',
    'HR-A': 'HR',
    'HB': 'HBP',
    'K': 'SO',
}

_FRACTION_IP = re.compile(r'^\s*(\d+)?\s*(?:(\d)\s*/\s*3)?\s*$')


def ip_to_outs(value) -> int:
    """Innings → outs.

    50.1 / '50.1' → 151 (baseball notation: .1 = 1/3, .2 = 2/3)
    '50 1/3' → 151, '2/3' → 2. Unparseable → 0.
    """
    if value is None:
        return 0
    if isinstance(value, (int, float)):
        if isinstance(value, float) and (math.isnan(value) or math.isinf(value)):
            return 0
        whole = int(value)
        thirds = int(round((value - whole) * 10))
        return whole * 3 + min(max(thirds, 0), 2)

    text = str(value).strip()
    if '/' not in text:
        try:
            return ip_to_outs(float(text))
        except ValueError:
            logger.warning(f"Unparseable innings value: '{value}' → 0 outs")
            return 0

    match = _FRACTION_IP.match(text)
    if not match:
        logger.warning(f"Unparseable innings value: '{value}' → 0 outs")
        return 0
    whole = int(match.group(1) or 0)
    thirds = int(match.group(2) or 0)
    return whole * 3 + min(thirds, 2)


def _rename(df: pd.DataFrame, aliases: dict[str, str]) -> pd.DataFrame:
    """Alias → canonical. Canonical 컬럼이 이미 있으면 alias는 버린다."""
    rename = {}
    for column in df.columns:
        target = aliases.get(column)
        if target and target not in df.columns and target not in rename.values():
            rename[column] = target
    return df.rename(columns=rename)


def _finalize(df: pd.DataFrame, count_columns: list[str]) -> pd.DataFrame:
    for column in count_columns:
        if column not in df.columns:
            df[column] = 0
        df[column] = pd.to_numeric(df[column], errors='coerce').fillna(0).astype(int)

    unknown = [c for c in df.columns if c not in ID_COLUMNS and c not in count_columns]
    if unknown:
        logger.debug(f"Dropping unmapped columns: {unknown}")

    keep = [c for c in ID_COLUMNS if c in df.columns] + count_columns
    return df[keep]


def normalize_batting_rows(raw: pd.DataFrame) -> pd.DataFrame:
    """Raw batting rows → ID_COLUMNS + BATTING_COUNT_COLUMNS (정수, 결측 0)."""
    df = _rename(raw.copy(), BATTING_ALIASES)
    return _finalize(df, BATTING_COUNT_COLUMNS)


def normalize_pitching_rows(raw: pd.DataFrame) -> pd.DataFrame:
    """Raw pitching rows → ID_COLUMNS + PITCHING_COUNT_COLUMNS. IP 표기는 IP_outs로 변환."""
    df = _rename(raw.copy(), PITCHING_ALIASES)
    if 'IP_outs' not in df.columns and 'IP' in df.columns:
        df['IP_outs'] = df['IP'].apply(ip_to_outs)
    return _finalize(df, PITCHING_COUNT_COLUMNS)
