"""Shrinkage stabilizer 테스트."""
import pytest

from src.engine.shrink import (
    Alert,
    ShrinkMetadata,
    ShrinkResult,
    check_alert_conditions,
    generate_update_log,
    shrink,
    shrink_fip_constant,
    shrink_park_factors,
    shrink_with_guard,
    shrink_woba_weights,
)
from src.engine.shrink_config import ShrinkConfig


@pytest.fixture
def config():
    return ShrinkConfig()


def _result(delta, is_guarded=False, sample_size=50000, threshold=0.07, prior=1.0, value=None):
    return ShrinkResult(
        value=prior if value is None else value,
        shrunk=prior * (1 + delta),
        empirical=prior * (1 + delta),
        prior=prior,
        delta=delta,
        weight=0.9,
        sample_size=sample_size,
        is_guarded=is_guarded,
        metadata=ShrinkMetadata('normal', 7500, threshold, '2025-01-01T00:00:00+00:00', 'central', 2025),
    )


class TestShrink:

    def test_zero_sample_returns_prior(self):
        assert shrink(0.95, 0.89, 0) == 0.89

    def test_weight_formula(self):
        # weight = 7500 / 15000 = 0.5
        assert shrink(1.0, 0.0, 7500, k=7500) == pytest.approx(0.5)

    def test_converges_to_empirical(self):
        assert shrink(0.95, 0.89, 10_000_000) == pytest.approx(0.95, abs=1e-4)

    def test_monotonic_in_empirical(self):
        values = [shrink(e, 0.89, 20000) for e in (0.85, 0.89, 0.93, 0.97)]
        assert values == sorted(values)


class TestShrinkWithGuard:

    def test_large_sample_small_change(self):
        r = shrink_with_guard(0.900, 0.890, 50000, 7500, 0.07, 1000)
        assert r.is_guarded is False
        assert r.metadata.rule == 'normal'
        assert 0.890 < r.value < 0.900
        assert abs(r.value - 0.900) < abs(r.value - 0.890)
        assert r.weight == pytest.approx(50000 / 57500)

    def test_small_sample_keeps_prior(self):
        r = shrink_with_guard(0.950, 0.890, 500, 7500, 0.07, 1000)
        assert r.is_guarded is True
        assert r.metadata.rule == 'min_samples'
        assert r.value == r.prior == 0.890

    def test_volatility_guard(self):
        r = shrink_with_guard(1.20, 0.890, 50000, 7500, 0.07, 1000)
        assert r.delta > 0.07
        assert r.is_guarded is True
        assert r.metadata.rule == 'volatility_guard'
        assert r.value == 0.890

    def test_min_samples_rule_takes_priority(self):
        r = shrink_with_guard(1.50, 0.890, 10, 7500, 0.07, 1000)
        assert r.metadata.rule == 'min_samples'

    def test_zero_prior_delta_uses_unit_denominator(self):
        r = shrink_with_guard(0.02, 0.0, 50000, 7500, 0.07, 1000)
        assert r.delta == pytest.approx(abs(r.shrunk))

    @pytest.mark.parametrize("empirical", [float('nan'), float('inf'), float('-inf')])
    def test_non_finite_observation_keeps_prior(self, empirical):
        r = shrink_with_guard(empirical, 0.89, 50000, 7500, 0.07, 1000)
        assert r.is_guarded is True
        assert r.metadata.rule == 'volatility_guard'
        assert r.value == 0.89

    @pytest.mark.parametrize("empirical,n", [(0.8, 500), (0.95, 2000), (0.91, 40000), (1.3, 90000)])
    def test_guard_iff_condition(self, empirical, n):
        r = shrink_with_guard(empirical, 0.89, n, 7500, 0.07, 1000)
        expected = n < 1000 or abs(shrink(empirical, 0.89, n, 7500) - 0.89) / 0.89 > 0.07
        assert r.is_guarded == expected
        if r.is_guarded:
            assert r.value == 0.89

    def test_metadata(self):
        r = shrink_with_guard(0.9, 0.89, 5000, league='pacific', year=2024)
        assert r.metadata.league == 'pacific'
        assert r.metadata.year == 2024
        assert r.metadata.k_value == 7500


class TestFamilies:

    def test_woba_weights_family(self, config):
        empirical = {'wBB': 0.70, 'wHBP': 0.73, 'w1B': 0.90, 'w2B': 1.28, 'w3B': 1.63, 'wHR': 2.12}
        prior = {'wBB': 0.69, 'wHBP': 0.72, 'w1B': 0.89, 'w2B': 1.27, 'w3B': 1.62, 'wHR': 2.10}
        results = shrink_woba_weights(empirical, prior, 60000, config, 'central', 2025)
        assert set(results) == set(prior)
        assert all(not r.is_guarded for r in results.values())
        assert all(r.metadata.k_value == 7500 for r in results.values())

    def test_fip_constant_family(self, config):
        results = shrink_fip_constant(3.20, 3.10, 40000, config, 'central', 2025)
        assert list(results) == ['fip_constant']
        assert results['fip_constant'].metadata.k_value == 10000
        assert results['fip_constant'].metadata.threshold == 0.05

    def test_park_factors_new_venue_uses_neutral_prior(self, config):
        results = shrink_park_factors({'New Park': 1.04}, {}, {'New Park': 70}, config)
        r = results['New Park']
        assert r.prior == 1.0
        assert r.is_guarded is False
        assert r.value == pytest.approx(1.0 + 70 / 570 * 0.04)

    def test_park_factors_few_games_guarded(self, config):
        results = shrink_park_factors({'Jingu': 1.20}, {'Jingu': 1.05}, {'Jingu': 30}, config)
        assert results['Jingu'].is_guarded is True
        assert results['Jingu'].value == 1.05


class TestAlerts:

    def test_large_delta_is_error(self, config):
        check = check_alert_conditions({'wHR': _result(0.20)}, config)
        assert check.has_error
        assert check.should_alert
        assert check.alerts[0].severity == 'error'

    def test_guarded_volatility_is_single_warning(self, config):
        check = check_alert_conditions({'wHR': _result(0.08, is_guarded=True)}, config)
        assert check.alerts == [Alert('wHR', 'warning', 'Guarded due to volatility', 0.08, 50000)]
        assert not check.has_error
        assert not check.should_alert

    def test_low_sample_warning(self, config):
        check = check_alert_conditions({'wBB': _result(0.0, sample_size=500)}, config)
        assert [a.reason for a in check.alerts] == ['Low sample size']

    def test_too_many_warnings_should_alert(self, config):
        results = {f'c{i}': _result(0.0, sample_size=10) for i in range(4)}
        check = check_alert_conditions(results, config)
        assert len(check.alerts) == 4
        assert check.should_alert

    def test_quiet_batch(self, config):
        check = check_alert_conditions({'wBB': _result(0.01)}, config)
        assert check.alerts == []
        assert not check.should_alert


class TestUpdateLog:

    def test_summary(self, config):
        results = {
            'wBB': _result(0.01, value=1.01),
            'wHR': _result(0.09, is_guarded=True),
        }
        log = generate_update_log(results, {'league': 'central'}, config)
        summary = log['summary']
        assert summary['total_coefficients'] == 2
        assert summary['changed_coefficients'] == 1
        assert summary['guarded_coefficients'] == 1
        assert summary['max_delta'] == 0.09
        assert summary['avg_sample_size'] == 50000
        assert log['metadata']['league'] == 'central'
        assert 'timestamp' in log['metadata']
        assert log['coefficients']['wBB']['value'] == 1.01

    def test_empty_batch_zeros(self, config):
        summary = generate_update_log({}, {}, config)['summary']
        assert summary == {
            'total_coefficients': 0,
            'changed_coefficients': 0,
            'guarded_coefficients': 0,
            'max_delta': 0.0,
            'avg_sample_size': 0,
        }
