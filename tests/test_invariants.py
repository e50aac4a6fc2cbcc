"""Game invariant checks 테스트."""
import pandas as pd
import pytest

from src.etl.stats_mapper import normalize_batting_rows
from src.quality.invariants import InvariantReport, TestResults, run_invariant_suite, stratified_sample
from src.quality.invariants_config import InvariantsConfig
from tests.box_scores import GAME_DAY, one_game_season


@pytest.fixture
def config():
    return InvariantsConfig()


class TestTestResults:

    def test_record(self):
        results = TestResults()
        results.record(True)
        results.record(False)
        assert results.to_dict() == {'total': 2, 'passed': 1, 'failed': 1, 'coverage_pct': 0.0}

    def test_report_check_tolerance(self):
        report = InvariantReport()
        report.check('x', 'Giants', 'R', 10, 11, 1)
        report.check('x', 'Giants', 'H', 10, 13, 2)
        assert report.results.passed == 1
        assert len(report.failures) == 1
        assert report.failures[0].metric == 'H'
        assert not report.passed


class TestSuite:

    def test_consistent_game_passes(self, config):
        batting, pitching, games = one_game_season()
        report = run_invariant_suite(batting, pitching, games, config, year=2025, today=GAME_DAY)

        assert report.passed
        # team_box_cross 4 metrics × 2 teams + game_scores 2 + PA 2 + IP_outs 2
        assert report.results.total == 14
        assert report.results.coverage_pct == 100.0
        assert report.sampled_games == 1

    def test_box_mismatch_fails(self, config):
        batting, pitching, games = one_game_season(swallows_hits=20)
        report = run_invariant_suite(batting, pitching, games, config, year=2025, today=GAME_DAY)

        assert not report.passed
        failing = {(f.check, f.key, f.metric) for f in report.failures}
        assert ('team_box_cross', 'Swallows', 'H') in failing

    def test_pa_decomposition_failure(self, config):
        batting, pitching, games = one_game_season()
        batting.loc[batting['team'] == 'Dragons', 'PA'] = 40
        report = run_invariant_suite(batting, pitching, games, config, year=2025, today=GAME_DAY)
        assert [f.key for f in report.failures if f.check == 'PA_decomposition'] == ['Dragons']

    def test_excluded_games_ignored(self, config):
        batting, pitching, games = one_game_season()
        allstar = pd.DataFrame([{
            'game_id': '2025-07-20-AS-1', 'date': '2025-05-30', 'league': 'allstar', 'venue': 'Jingu',
            'home_team': 'Central', 'away_team': 'Pacific', 'home_runs': 9, 'away_runs': 0, 'innings': 9,
        }])
        junk = normalize_batting_rows(pd.DataFrame([
            {'game_id': '2025-07-20-AS-1', 'player_id': 'x', 'team': 'Central', 'PA': 99, 'R': 1},
        ]))
        report = run_invariant_suite(
            pd.concat([batting, junk], ignore_index=True), pitching,
            pd.concat([games, allstar], ignore_index=True),
            config, year=2025, today=GAME_DAY,
        )
        assert report.passed
        assert report.sampled_games == 1

    def test_no_games(self, config):
        batting, pitching, games = one_game_season()
        report = run_invariant_suite(batting, pitching, games.iloc[0:0], config, today=GAME_DAY)
        assert report.results.total == 0
        assert report.sampled_games == 0


class TestStratifiedSample:

    @pytest.fixture
    def games(self):
        rows = [
            {'game_id': f'old-{i:02d}', 'date': '2025-04-01', 'home_runs': 3, 'away_runs': 2, 'innings': 9}
            for i in range(30)
        ]
        rows.append({'game_id': 'slugfest', 'date': '2025-04-02', 'home_runs': 15, 'away_runs': 7, 'innings': 9})
        rows.append({'game_id': 'marathon', 'date': '2025-04-03', 'home_runs': 1, 'away_runs': 1, 'innings': 12})
        rows += [
            {'game_id': f'new-{i}', 'date': '2025-05-30', 'home_runs': 4, 'away_runs': 1, 'innings': 9}
            for i in range(2)
        ]
        return pd.DataFrame(rows)

    def test_recent_and_edge_cases_included(self, games, config):
        sample = stratified_sample(games, config, today=GAME_DAY)
        ids = set(sample['game_id'])
        assert {'new-0', 'new-1', 'slugfest', 'marathon'} <= ids
        assert 14 <= len(sample) <= 2 + 12 + 2
        assert sample['game_id'].is_unique

    def test_deterministic(self, games, config):
        first = stratified_sample(games, config, today=GAME_DAY)
        second = stratified_sample(games, config, today=GAME_DAY)
        assert first['game_id'].tolist() == second['game_id'].tolist()

    def test_without_dates_takes_all(self, games, config):
        sample = stratified_sample(games.drop(columns='date'), config)
        assert len(sample) == len(games)
        assert set(sample['category']) == {'recent'}

    def test_single_quiet_game_sampled_once(self, config):
        _, _, games = one_game_season()
        sample = stratified_sample(games, config, today=GAME_DAY)
        assert sample['game_id'].tolist() == ['2025-06-01-S-D']
        assert sample['game_id'].notna().all()
        assert set(sample['category']) == {'recent'}

    def test_no_high_scoring_games(self, games, config):
        quiet = games[games['game_id'] != 'slugfest']
        sample = stratified_sample(quiet, config, today=GAME_DAY)
        assert 'high_scoring' not in set(sample['category'])
        assert sample['game_id'].notna().all()
