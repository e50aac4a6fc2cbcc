"""
Park Factor — 구장 보정 정책 + 보정 전후 차이 설명

neutral (batting index)  = raw / PF**e
neutral (pitching index) = raw × PF**e
e = PARK_FACTOR_EXPONENTS[metric] (현재 모든 지표 1.0)

pf_diff_comment: raw vs park-neutral 값을 방향성 있는 문구로 변환 (UI용).
"""

from dataclasses import dataclass

from src.engine.saber_config import PARK_FACTOR_EXPONENTS, PITCHING_INDEX_METRICS

# |pct| below this reads as "about the same"
FLAT_THRESHOLD = 0.015

HITTER_PARK_PF = 1.02
PITCHER_PARK_PF = 0.98


def park_adjust(value: float, pf: float, metric: str) -> float:
    """지표별 exponent 정책으로 PF 보정.

    PF가 0 이하면 보정하지 않는다.
    """
    if pf <= 0:
        return value
    exponent = PARK_FACTOR_EXPONENTS.get(metric, 1.0)
    scale = pf ** exponent
    if metric in PITCHING_INDEX_METRICS:
        return value * scale
    return value / scale


def park_hint(pf: float) -> str:
    if pf > HITTER_PARK_PF:
        return 'hitter-friendly'
    if pf < PITCHER_PARK_PF:
        return 'pitcher-friendly'
    return 'neutral'


@dataclass(frozen=True)
class PfDiff:
    """PF 보정 전후 차이 설명."""
    text: str
    dir: str  # 'up' | 'down' | 'flat'
    pct: float


def pf_diff_comment(
    metric: str,
    raw: float,
    neutral: float,
    pf: float,
    threshold: float = FLAT_THRESHOLD,
) -> PfDiff:
    """보정 전(raw) → 보정 후(neutral) 변화를 문구로 요약.

    Args:
        metric: 'wRC+', 'OPS+', 'ERA-', 'FIP-'
        raw: 보정 전 값
        neutral: PF 보정 후 값
        pf: park factor
        threshold: 'flat'으로 간주할 변화율

    Returns:
        PfDiff(text, dir, pct). pct는 |neutral - raw| / |raw| (raw=0이면 0).
    """
    delta = neutral - raw
    pct = delta / abs(raw) if raw else 0.0

    if abs(pct) < threshold:
        direction = 'flat'
    elif pct > 0:
        direction = 'up'
    else:
        direction = 'down'

    arrow = {'up': '↑', 'down': '↓', 'flat': '→'}[direction]

    # ERA-/FIP-: lower is better, so "up" is a worse reading
    if metric in PITCHING_INDEX_METRICS:
        verb = {'up': 'worse', 'down': 'better', 'flat': 'unchanged'}[direction]
    else:
        verb = {'up': 'adjusted up', 'down': 'adjusted down', 'flat': 'about the same'}[direction]

    text = f"{metric}: {verb} after park adjustment {arrow} (diff {abs(pct) * 100:.1f}%, park: {park_hint(pf)})"
    return PfDiff(text=text, dir=direction, pct=abs(pct))
