"""Sabermetrics formula engine 테스트."""
import math

import pytest

from src.engine.league_constants import DEFAULT_CONSTANTS
from src.engine.sabermetrics import SabermetricsCalculator, calculate_with_constants
from src.engine.stats_types import BattingStats, PitchingStats


@pytest.fixture
def constants():
    return DEFAULT_CONSTANTS.with_updates(park_factors={'Tokyo Dome': 1.10, 'Nagoya Dome': 0.90})


@pytest.fixture
def calc(constants):
    return SabermetricsCalculator(constants)


@pytest.fixture
def batter():
    return BattingStats(PA=500, AB=425, H=120, double=20, triple=2, HR=15,
                        BB=50, IBB=5, HBP=3, SF=5, SO=90, R=70)


@pytest.fixture
def pitcher():
    return PitchingStats(IP_outs=150, BF=210, H=45, ER=20, HR=10, BB=20, IBB=3, HBP=2, SO=60)


class TestWoba:

    def test_standard_weights_example(self, calc, batter):
        """(0.69·45 + 0.72·3 + 0.89·83 + 1.27·20 + 1.62·2 + 2.10·15) / 500 = 0.33444"""
        assert calc.woba(batter) == 0.334

    def test_sacrifice_hits_leave_denominator(self, calc):
        base = BattingStats(PA=10, AB=8, H=2, BB=2)
        with_sh = BattingStats(PA=12, AB=8, H=2, BB=2, SH=2)
        assert calc.woba(base) == calc.woba(with_sh)

    def test_zero_pa(self, calc):
        assert calc.woba(BattingStats()) == 0


class TestWrcPlus:

    def test_league_average_hitter_is_100(self):
        constants = DEFAULT_CONSTANTS.with_updates(lg_woba=0.334)
        calc = SabermetricsCalculator(constants)
        stats = BattingStats(PA=500, AB=425, H=120, double=20, triple=2, HR=15, BB=50, IBB=5, HBP=3, SF=5)
        assert calc.wrc_plus(stats) == 100

    def test_hitter_park_lowers_wrc_plus(self, calc, batter):
        neutral = calc.wrc_plus(batter)
        assert calc.wrc_plus(batter, 'Tokyo Dome') < neutral
        assert calc.wrc_plus(batter, 'Nagoya Dome') > neutral

    def test_unknown_venue_is_neutral(self, calc, batter):
        assert calc.wrc_plus(batter, 'Unknown Park') == calc.wrc_plus(batter)

    def test_floor_at_zero(self, calc):
        assert calc.wrc_plus(BattingStats(PA=50, AB=50, SO=50)) == 0

    def test_degenerate_league_returns_100(self, batter):
        calc = SabermetricsCalculator(DEFAULT_CONSTANTS.with_updates(lg_r_pa=0.0))
        assert calc.wrc_plus(batter) == 100

    def test_integer_output(self, calc, batter):
        assert isinstance(calc.wrc_plus(batter), int)


class TestFip:

    def test_example(self, calc, pitcher):
        """(13·10 + 3·(17 + 2) - 2·60) / 50 + 3.10 = 4.44"""
        assert calc.basic_pitching(pitcher)['IP'] == 50.0
        assert calc.fip(pitcher) == pytest.approx(4.44)

    def test_zero_ip(self, calc):
        assert calc.fip(PitchingStats(HR=3)) == 0

    def test_never_negative(self, calc):
        assert calc.fip(PitchingStats(IP_outs=3, SO=3)) >= 0


class TestMinusIndices:

    def test_era_minus_multiplies_park_factor(self, calc, pitcher):
        neutral = calc.era_minus(pitcher)
        assert calc.era_minus(pitcher, 'Tokyo Dome') > neutral
        assert calc.era_minus(pitcher, 'Nagoya Dome') < neutral

    def test_era_minus_against_league(self, calc, pitcher):
        # ERA 3.60, lgERA = 4.5 / 2 × 0.9 = 2.025
        assert calc.era_minus(pitcher) == round(3.6 / 2.025 * 100)

    def test_fip_minus_zero_ip_is_neutral(self, calc):
        assert calc.fip_minus(PitchingStats()) == 100
        assert calc.era_minus(PitchingStats()) == 100

    def test_fip_minus_explicit_league_fip(self, pitcher):
        calc = SabermetricsCalculator(DEFAULT_CONSTANTS.with_updates(lg_fip=4.44))
        assert calc.fip_minus(pitcher) == 100


class TestDivisionSafety:

    def test_all_batting_metrics_finite_for_empty(self, calc):
        result = calc.advanced_batting(BattingStats())
        for metric in ('AVG', 'OBP', 'SLG', 'OPS', 'ISO', 'BABIP', 'wOBA'):
            assert result[metric] == 0
        assert all(math.isfinite(v) for v in result.values())

    def test_all_pitching_metrics_finite_for_empty(self, calc):
        result = calc.advanced_pitching(PitchingStats())
        for metric in ('IP', 'ERA', 'WHIP', 'K9', 'BB9', 'HR9', 'K%', 'BB%', 'FIP'):
            assert result[metric] == 0
        assert all(math.isfinite(v) for v in result.values())


class TestBasic:

    def test_basic_batting(self, calc):
        s = BattingStats(PA=5, AB=4, H=2, double=1, HR=1, BB=1, SO=1)
        result = calc.basic_batting(s)
        assert result['AVG'] == 0.5
        assert result['OBP'] == 0.6
        assert result['SLG'] == 1.5
        assert result['OPS'] == 2.1
        assert result['ISO'] == 1.0

    def test_basic_pitching_rates(self, calc, pitcher):
        result = calc.basic_pitching(pitcher)
        assert result['ERA'] == 3.6
        assert result['WHIP'] == 1.3
        assert result['K9'] == 10.8
        assert result['K%'] == pytest.approx(28.6)


class TestIdempotence:

    def test_repeated_calls_identical(self, constants, batter, pitcher):
        first = calculate_with_constants(constants, batter, pitcher, 'Tokyo Dome')
        second = calculate_with_constants(constants, batter, pitcher, 'Tokyo Dome')
        assert first == second

    def test_partial_bundle(self, constants, batter):
        result = calculate_with_constants(constants, batting=batter)
        assert set(result) == {'batting'}
        assert result['batting']['wOBA'] == 0.334
