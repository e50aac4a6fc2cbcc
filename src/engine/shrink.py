"""
Shrinkage Stabilizer — 계수 추정 안정화

소표본 시기의 급변을 억제하고 이전 버전과의 단절을 방지.

  weight = n / (n + k)
  shrunk = weight × empirical + (1 - weight) × prior
  delta  = |shrunk - prior| / |prior or 1|
  guard  = (n < min_samples) or (delta > threshold)
  value  = prior if guard else shrunk

Guard가 걸리면 value는 항상 prior (저신뢰/급변 관측값이 공개 상수가 되지 않음).
"""

import logging
import math
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Optional

from src.engine.league_constants import WOBA_WEIGHT_FIELDS
from src.engine.shrink_config import ShrinkConfig, ShrinkFamily

logger = logging.getLogger(__name__)

RULE_MIN_SAMPLES = 'min_samples'
RULE_VOLATILITY = 'volatility_guard'
RULE_NORMAL = 'normal'


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass(frozen=True)
class ShrinkMetadata:
    rule: str
    k_value: float
    threshold: float
    timestamp: str
    league: str
    year: int


@dataclass(frozen=True)
class ShrinkResult:
    """한 계수의 안정화 결과 (immutable)."""
    value: float          # 공개값 (guard 적용 후)
    shrunk: float         # shrink 적용값
    empirical: float      # 관측값
    prior: float          # 이전 공개값
    delta: float          # |shrunk - prior| / |prior|
    weight: float         # n / (n + k)
    sample_size: float
    is_guarded: bool
    metadata: ShrinkMetadata

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class Alert:
    coefficient: str
    severity: str  # 'warning' | 'error'
    reason: str
    delta: float
    sample_size: float


@dataclass
class AlertCheck:
    alerts: list[Alert] = field(default_factory=list)
    should_alert: bool = False

    @property
    def has_error(self) -> bool:
        return any(a.severity == 'error' for a in self.alerts)


def shrink(empirical: float, prior: float, sample_size: float, k: float = 7500) -> float:
    """Bayesian shrinkage. sample_size ≤ 0 → prior 그대로."""
    if sample_size <= 0:
        return prior
    weight = sample_size / (sample_size + k)
    return weight * empirical + (1 - weight) * prior


def shrink_with_guard(
    empirical: float,
    prior: float,
    sample_size: float,
    k: float = 7500,
    threshold: float = 0.07,
    min_samples: float = 1000,
    league: str = 'NPB',
    year: Optional[int] = None,
) -> ShrinkResult:
    """Guard 조건부 shrink.

    Args:
        empirical: 관측값
        prior: 이전 공개값
        sample_size: 표본 크기 (family 단위: PA / BF / venue games)
        k: smoothing parameter (클수록 보수적)
        threshold: 변화율 한계
        min_samples: 이 미만이면 무조건 prior 채택

    Returns:
        ShrinkResult. metadata.rule은 'min_samples' > 'volatility_guard' > 'normal' 우선순위.
    """
    empirical, prior, sample_size = float(empirical), float(prior), float(sample_size)
    weight = sample_size / (sample_size + k) if sample_size > 0 else 0.0
    shrunk = shrink(empirical, prior, sample_size, k)
    delta = abs(shrunk - prior) / abs(prior or 1)

    under_sampled = sample_size < min_samples
    volatile = not math.isfinite(delta) or delta > threshold
    is_guarded = bool(under_sampled or volatile)

    if under_sampled:
        rule = RULE_MIN_SAMPLES
    elif volatile:
        rule = RULE_VOLATILITY
    else:
        rule = RULE_NORMAL

    return ShrinkResult(
        value=prior if is_guarded else shrunk,
        shrunk=shrunk,
        empirical=empirical,
        prior=prior,
        delta=delta,
        weight=weight,
        sample_size=sample_size,
        is_guarded=is_guarded,
        metadata=ShrinkMetadata(
            rule=rule,
            k_value=k,
            threshold=threshold,
            timestamp=_now_iso(),
            league=league,
            year=year if year is not None else datetime.now(timezone.utc).year,
        ),
    )


def _shrink_family(
    empirical: float,
    prior: float,
    sample_size: float,
    family: ShrinkFamily,
    league: str,
    year: Optional[int],
) -> ShrinkResult:
    return shrink_with_guard(
        empirical, prior, sample_size,
        k=family.k,
        threshold=family.threshold,
        min_samples=family.min_samples,
        league=league,
        year=year,
    )


def shrink_woba_weights(
    empirical_weights: dict[str, float],
    prior_weights: dict[str, float],
    total_pa: float,
    config: ShrinkConfig | None = None,
    league: str = 'NPB',
    year: Optional[int] = None,
) -> dict[str, ShrinkResult]:
    """wOBA 6개 가중치 (wBB, wHBP, w1B, w2B, w3B, wHR) 안정화."""
    family = (config or ShrinkConfig()).woba_weights
    return {
        name: _shrink_family(
            empirical_weights.get(name, 0.0),
            prior_weights.get(name, 0.0),
            total_pa, family, league, year,
        )
        for name in WOBA_WEIGHT_FIELDS
    }


def shrink_fip_constant(
    empirical: float,
    prior: float,
    total_bf: float,
    config: ShrinkConfig | None = None,
    league: str = 'NPB',
    year: Optional[int] = None,
) -> dict[str, ShrinkResult]:
    family = (config or ShrinkConfig()).fip_constant
    return {'fip_constant': _shrink_family(empirical, prior, total_bf, family, league, year)}


def shrink_park_factors(
    empirical_pf: dict[str, float],
    prior_pf: dict[str, float],
    park_games: dict[str, float],
    config: ShrinkConfig | None = None,
    league: str = 'NPB',
    year: Optional[int] = None,
) -> dict[str, ShrinkResult]:
    """구장별 PF 안정화. 표본 단위는 venue games, 신규 구장 prior는 neutral(1.0)."""
    family = (config or ShrinkConfig()).park_factors
    neutral = family.neutral_prior if family.neutral_prior is not None else 1.0
    results = {}
    for venue, empirical in empirical_pf.items():
        prior = prior_pf.get(venue) or neutral
        games = park_games.get(venue, 0)
        results[venue] = _shrink_family(empirical, prior, games, family, league, year)
    return results


def check_alert_conditions(
    results: dict[str, ShrinkResult],
    config: ShrinkConfig | None = None,
) -> AlertCheck:
    """배치 결과에서 alert 조건 검사.

    - delta > error_delta                → error ('Large change detected')
    - delta > threshold and is_guarded   → warning ('Guarded due to volatility')
    - sample_size < low_sample_size      → warning ('Low sample size')
    should_alert = error 존재 or alert 수 > max_alerts
    """
    config = config or ShrinkConfig()
    alerts = []

    for name, result in results.items():
        if result.delta > config.error_delta:
            alerts.append(Alert(name, 'error', 'Large change detected',
                                result.delta, result.sample_size))
        elif result.delta > result.metadata.threshold and result.is_guarded:
            alerts.append(Alert(name, 'warning', 'Guarded due to volatility',
                                result.delta, result.sample_size))

        if result.sample_size < config.low_sample_size:
            alerts.append(Alert(name, 'warning', 'Low sample size',
                                result.delta, result.sample_size))

    check = AlertCheck(alerts=alerts)
    check.should_alert = check.has_error or len(alerts) > config.max_alerts
    if check.should_alert:
        logger.warning(f"  Shrink alerts: {len(alerts)} ({sum(a.severity == 'error' for a in alerts)} error)")
    return check


def generate_update_log(
    results: dict[str, ShrinkResult],
    metadata: dict,
    config: ShrinkConfig | None = None,
) -> dict:
    """계수 업데이트 로그 (summary + 계수별 결과 + timestamp)."""
    epsilon = (config or ShrinkConfig()).change_epsilon
    values = list(results.values())

    changed = [r for r in values if abs(r.value - r.prior) > epsilon]
    guarded = [r for r in values if r.is_guarded]
    max_delta = max((r.delta for r in values), default=0.0)
    avg_sample = sum(r.sample_size for r in values) / len(values) if values else 0.0

    return {
        'summary': {
            'total_coefficients': len(values),
            'changed_coefficients': len(changed),
            'guarded_coefficients': len(guarded),
            'max_delta': max_delta,
            'avg_sample_size': round(avg_sample),
        },
        'coefficients': {name: r.to_dict() for name, r in results.items()},
        'metadata': {**metadata, 'timestamp': _now_iso()},
    }
