"""Shrinkage Config Loader (per-family k / threshold / min_samples)."""
from dataclasses import dataclass
from pathlib import Path

import yaml


@dataclass(frozen=True)
class ShrinkFamily:
    """One coefficient family's stabilization parameters."""
    name: str
    k: float
    threshold: float
    min_samples: int
    unit: str = "plate_appearances"
    neutral_prior: float | None = None


class ShrinkConfig:
    """YAML-based shrinkage configuration."""

    DEFAULT_CONFIG_PATH = Path(__file__).parent.parent.parent / "config" / "shrink_config.yaml"

    def __init__(self, config_path: Path | str | None = None):
        path = Path(config_path) if config_path else self.DEFAULT_CONFIG_PATH
        with open(path, encoding="utf-8") as f:
            self._config = yaml.safe_load(f)
        self._families = {
            name: ShrinkFamily(
                name=name,
                k=float(cfg["k"]),
                threshold=float(cfg["threshold"]),
                min_samples=int(cfg.get("min_samples", 1000)),
                unit=cfg.get("unit", "plate_appearances"),
                neutral_prior=cfg.get("neutral_prior"),
            )
            for name, cfg in self._config["families"].items()
        }

    @property
    def version(self) -> str:
        return self._config["version"]

    def family(self, name: str) -> ShrinkFamily:
        return self._families[name]

    @property
    def woba_weights(self) -> ShrinkFamily:
        return self._families["woba_weights"]

    @property
    def fip_constant(self) -> ShrinkFamily:
        return self._families["fip_constant"]

    @property
    def park_factors(self) -> ShrinkFamily:
        return self._families["park_factors"]

    @property
    def error_delta(self) -> float:
        return float(self._config["alerts"]["error_delta"])

    @property
    def low_sample_size(self) -> int:
        return int(self._config["alerts"]["low_sample_size"])

    @property
    def max_alerts(self) -> int:
        return int(self._config["alerts"]["max_alerts"])

    @property
    def change_epsilon(self) -> float:
        return float(self._config.get("change_epsilon", 0.001))

    @property
    def default_league(self) -> str:
        return self._config.get("default_league", "NPB")
