"""Invariants Config Loader — tolerance, auto-relaxation, game exclusions."""
import fnmatch
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional

import yaml

logger = logging.getLogger(__name__)

DEFAULT_BASE_TOLERANCE = 2


def _parse_expiry(value: str) -> datetime:
    expires = datetime.fromisoformat(str(value))
    if expires.tzinfo is None:
        expires = expires.replace(tzinfo=timezone.utc)
    return expires


def _glob_to_like(pattern: str) -> str:
    return pattern.replace('*', '%').replace('?', '_')


def _sql_quote(value: str) -> str:
    return "'" + str(value).replace("'", "''") + "'"


class InvariantsConfig:
    """YAML-based invariant test configuration."""

    DEFAULT_CONFIG_PATH = Path(__file__).parent.parent.parent / "config" / "invariants_config.yaml"

    def __init__(self, config_path: Path | str | None = None):
        path = Path(config_path) if config_path else self.DEFAULT_CONFIG_PATH
        with open(path, encoding="utf-8") as f:
            self._config = yaml.safe_load(f)

    @property
    def version(self) -> str:
        return self._config["version"]

    @property
    def updated(self) -> str:
        return str(self._config.get("updated", ""))

    @property
    def sampling(self) -> dict:
        return self._config.get("sampling", {})

    @property
    def stratified_sampling(self) -> dict:
        return self._config.get("stratified_sampling", {"enabled": False})

    @property
    def auto_relaxation(self) -> dict:
        return self._config.get("auto_relaxation", {"enabled": False})

    @property
    def reporting(self) -> dict:
        return self._config.get("reporting", {})

    # ─── Tolerance ───

    def get_base_tolerance(self, metric: str) -> float:
        return self._config.get("tolerance", {}).get(metric) or DEFAULT_BASE_TOLERANCE

    def get_adjusted_tolerance(
        self,
        metric: str,
        sample_size: int,
        year: Optional[int] = None,
        now: Optional[datetime] = None,
    ) -> int:
        """Base tolerance → year relaxation (만료 전) → small-sample relaxation → round.

        순서 고정: year multiplier 먼저, 그 다음 min(relaxation_factor, max_relaxation).
        """
        now = now or datetime.now(timezone.utc)
        tolerance = self.get_base_tolerance(metric)

        if year is not None:
            relaxation = self._config.get("temporary_relaxation", {}).get(str(year))
            if relaxation and now < _parse_expiry(relaxation["expires"]):
                tolerance *= relaxation["multiplier"]
                logger.warning(
                    f"Applied temporary relaxation for {year}: {relaxation['reason']} "
                    f"({relaxation['multiplier']}x)"
                )

        auto = self.auto_relaxation
        if auto.get("enabled") and sample_size < auto["small_sample_threshold"]:
            factor = min(auto["relaxation_factor"], auto["max_relaxation"])
            relaxed = tolerance * factor
            logger.warning(
                f"Auto-relaxed tolerance for {metric}: {tolerance} → {relaxed} (sample size: {sample_size})"
            )
            tolerance = relaxed

        return int(round(tolerance))

    # ─── Exclusions ───

    def get_exclusion_patterns(self) -> dict[str, list[str]]:
        exclude = self._config.get("exclude", {})
        return {
            "leagues": list(exclude.get("leagues") or []),
            "game_patterns": list(exclude.get("game_patterns") or []),
            "teams": list(exclude.get("teams") or []),
            "specific_games": list(exclude.get("specific_games") or []),
        }

    def build_exclusion_clause(self) -> str:
        """SQL WHERE fragment. 제외 조건이 없으면 '1=1'."""
        patterns = self.get_exclusion_patterns()
        clauses = []
        for pattern in patterns["game_patterns"]:
            clauses.append(f"game_id NOT LIKE {_sql_quote(_glob_to_like(pattern))}")
        for team in patterns["teams"]:
            quoted = _sql_quote(team)
            clauses.append(f"home_team != {quoted} AND away_team != {quoted}")
        for game_id in patterns["specific_games"]:
            clauses.append(f"game_id != {_sql_quote(game_id)}")
        if patterns["leagues"]:
            clauses.append(f"league NOT IN ({', '.join(_sql_quote(l) for l in patterns['leagues'])})")
        return " AND ".join(clauses) if clauses else "1=1"

    def is_excluded(
        self,
        game_id: str,
        home_team: Optional[str] = None,
        away_team: Optional[str] = None,
        league: Optional[str] = None,
    ) -> bool:
        patterns = self.get_exclusion_patterns()
        game_id = str(game_id)
        if game_id in patterns["specific_games"]:
            return True
        if any(fnmatch.fnmatchcase(game_id, p) for p in patterns["game_patterns"]):
            return True
        if home_team in patterns["teams"] or away_team in patterns["teams"]:
            return True
        return league is not None and league in patterns["leagues"]

    def filter_games(self, games):
        """games DataFrame에서 제외 대상 경기 제거."""
        if games.empty:
            return games
        mask = games.apply(
            lambda g: self.is_excluded(g['game_id'], g.get('home_team'), g.get('away_team'), g.get('league')),
            axis=1,
        )
        excluded = int(mask.sum())
        if excluded:
            logger.info(f"  Excluded {excluded} game(s) from invariant sampling")
        return games[~mask]

    # ─── Additional invariants ───

    def is_invariant_enabled(self, name: str) -> bool:
        return bool(self._config.get("additional_invariants", {}).get(name, {}).get("enabled", False))

    def get_invariant_config(self, name: str) -> dict[str, Any]:
        return self._config.get("additional_invariants", {}).get(name, {})

    def get_config_summary(self) -> str:
        """PR/CI comment용 markdown 요약."""
        tol = self._config.get("tolerance", {})
        auto = self.auto_relaxation
        sampling = self.sampling
        patterns = self.get_exclusion_patterns()
        active = [
            name for name, cfg in self._config.get("additional_invariants", {}).items()
            if cfg.get("enabled")
        ]
        lines = [
            "## Game Invariant Test Configuration",
            "",
            f"**Version**: {self.version} ({self.updated})",
            "",
            f"**Sampling**: {sampling.get('recent_days')}d recent + {sampling.get('random_historic')} historic "
            f"(max {sampling.get('max_sample_size')})",
            "",
            "**Tolerances**: " + ", ".join(f"{m}±{tol[m]}" for m in ('R', 'H', 'HR', 'AB', 'BB', 'SO') if m in tol),
            "",
            f"**Auto-Relaxation**: {'Enabled' if auto.get('enabled') else 'Disabled'} "
            f"({auto.get('relaxation_factor')}x for samples <{auto.get('small_sample_threshold')})",
            "",
            "**Active Invariants**:",
            *[f"- {name}" for name in active],
            "",
            f"**Exclusions**: {len(patterns['game_patterns'])} patterns, {len(patterns['teams'])} teams, "
            f"{len(patterns['specific_games'])} specific games",
        ]
        return "\n".join(lines)
