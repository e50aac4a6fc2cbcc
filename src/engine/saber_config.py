"""Sabermetrics 설정 상수 (formula engine fixed values)."""

# ─── Output precision (decimal places) ───

PRECISION: dict[str, int] = {
    'AVG': 3,
    'OBP': 3,
    'SLG': 3,
    'OPS': 3,
    'ISO': 3,
    'BABIP': 3,
    'wOBA': 3,
    'ERA': 2,
    'WHIP': 2,
    'FIP': 2,
    'IP': 1,
    'K9': 1,
    'BB9': 1,
    'HR9': 1,
    'K%': 1,
    'BB%': 1,
    'wRC+': 0,
    'OPS+': 0,
    'ERA-': 0,
    'FIP-': 0,
}

# ─── League-average fallbacks (used when a constants set has no explicit lg_*) ───

# lg_wOBA ≈ lg_r_pa / woba_scale + offset
LEAGUE_WOBA_OFFSET = 0.320

# lg_ERA ≈ lg_r_g / 2 × ERA_FROM_RUNS (earned share of runs per team-game)
ERA_FROM_RUNS = 0.9

# lg_FIP ≈ fip_constant + FIP_CONSTANT_OFFSET
FIP_CONSTANT_OFFSET = 1.0

# OPS+ baseline
LEAGUE_OPS = 0.720

# ─── Park factor exponent policy ───
# neutral = raw / PF**e (batting) or raw × PF**e (pitching "minus" indices).
# Multiplicative full-PF treatment for every metric; splits use the same table.

PARK_FACTOR_EXPONENTS: dict[str, float] = {
    'wRC+': 1.0,
    'OPS+': 1.0,
    'ERA-': 1.0,
    'FIP-': 1.0,
}

PITCHING_INDEX_METRICS: frozenset[str] = frozenset({'ERA-', 'FIP-'})

# ─── FIP coefficients ───

FIP_HR_WEIGHT = 13.0
FIP_BB_WEIGHT = 3.0
FIP_SO_WEIGHT = 2.0

# ─── Split reliability tiers (PA) ───

RELIABILITY_HIGH_PA = 200
RELIABILITY_MEDIUM_PA = 50
