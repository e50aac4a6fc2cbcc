"""LeagueConstants / ConstantsSet 테스트."""
import math

import pytest

from src.engine.league_constants import DEFAULT_CONSTANTS, ConstantsSet, LeagueConstants


@pytest.fixture
def central():
    return DEFAULT_CONSTANTS.with_updates(
        year=2025, league='central',
        park_factors={'Jingu': 1.08, 'Nagoya Dome': 0.93},
    )


class TestLeagueConstants:

    def test_woba_weights_mapping(self):
        weights = DEFAULT_CONSTANTS.woba_weights
        assert weights == {'wBB': 0.69, 'wHBP': 0.72, 'w1B': 0.89, 'w2B': 1.27, 'w3B': 1.62, 'wHR': 2.10}

    def test_park_factor_lookup(self, central):
        assert central.park_factor('Jingu') == 1.08
        assert central.park_factor('Koshien') == 1.0
        assert central.park_factor(None) == 1.0

    def test_park_factor_non_positive_is_neutral(self, central):
        broken = central.with_updates(park_factors={'Jingu': 0.0})
        assert broken.park_factor('Jingu') == 1.0

    def test_league_woba_fallback(self):
        assert DEFAULT_CONSTANTS.league_woba() == pytest.approx(0.10 / 1.15 + 0.320)

    def test_explicit_league_averages_win(self, central):
        c = central.with_updates(lg_woba=0.310, lg_era=3.40, lg_fip=3.45)
        assert c.league_woba() == 0.310
        assert c.league_era() == 3.40
        assert c.league_fip() == 3.45

    def test_defaults_publish_no_venues(self):
        assert DEFAULT_CONSTANTS.park_factors == {}
        assert DEFAULT_CONSTANTS.park_factor('Jingu') == 1.0

    def test_validate_defaults_clean(self, central):
        assert central.validate() == []

    def test_validate_flags_bad_values(self, central):
        bad = central.with_updates(woba_hr=-1.0, woba_scale=math.nan, park_factors={'X': 2.5})
        problems = bad.validate()
        assert len(problems) == 3

    def test_dict_round_trip(self, central):
        c = central.with_updates(lg_era=3.5)
        assert LeagueConstants.from_dict(c.to_dict()) == c

    def test_to_dict_omits_unset_league_averages(self, central):
        assert 'lg_woba' not in central.to_dict()


class TestConstantsSet:

    def test_with_entry_supersedes(self, central):
        s1 = ConstantsSet(version='2025.03.01', updated='2025-03-01', entries={central.key: central})
        updated = central.with_updates(fip_constant=3.20)
        s2 = s1.with_entry(updated, version='2025.06.01', updated='2025-06-01')

        assert s1.get(2025, 'central').fip_constant == 3.10
        assert s2.get(2025, 'central').fip_constant == 3.20
        assert s2.version == '2025.06.01'

    def test_get_missing(self):
        assert ConstantsSet(version='v', updated='').get(2025, 'pacific') is None

    def test_json_form(self, central):
        s = ConstantsSet(version='2025.03.01', updated='2025-03-01', entries={central.key: central})
        d = s.to_dict()
        assert set(d) == {'version', 'updated', 'constants'}
        assert d['constants'][0]['league'] == 'central'
        assert ConstantsSet.from_dict(d) == s
