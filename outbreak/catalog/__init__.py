"""
Static game data: the country graph and the progression catalog.

Packaged YAML files are the defaults; callers may pass their own paths or
build CountryGraph / ProgressionCatalog directly.
"""

from functools import lru_cache
from pathlib import Path

import yaml

from .graph import AntivirusProfile, Country, CountryGraph
from .progression import Company, Employee, ProgressionCatalog, Skill, SkillEffects

DATA_DIR = Path(__file__).parent / "data"


def _read_yaml(path: Path) -> dict:
    with open(path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ValueError(f"{path} must contain a mapping")
    return data


def load_country_graph(path: Path | str | None = None) -> CountryGraph:
    """
    Load the country graph.

    AV profiles may be given inline per country or in a separate
    `antivirus` mapping keyed by country name; the mapping wins.
    """
    if path is None:
        return default_country_graph()

    data = _read_yaml(Path(path))
    countries = dict(data.get("countries", {}))
    for name, profile in (data.get("antivirus") or {}).items():
        if name in countries:
            countries[name] = {**countries[name], "antivirus": profile}
    return CountryGraph(countries)


def load_progression_catalog(path: Path | str | None = None) -> ProgressionCatalog:
    """Load the skill tree and company catalog."""
    if path is None:
        return default_progression_catalog()

    data = _read_yaml(Path(path))
    return ProgressionCatalog(
        skills=data.get("skills", []),
        companies=data.get("companies", []),
    )


@lru_cache(maxsize=1)
def default_country_graph() -> CountryGraph:
    """The packaged graph, loaded once per process."""
    return load_country_graph(DATA_DIR / "countries.yaml")


@lru_cache(maxsize=1)
def default_progression_catalog() -> ProgressionCatalog:
    """The packaged catalog, loaded once per process."""
    return load_progression_catalog(DATA_DIR / "progression.yaml")


__all__ = [
    "AntivirusProfile",
    "Country",
    "CountryGraph",
    "Company",
    "Employee",
    "ProgressionCatalog",
    "Skill",
    "SkillEffects",
    "load_country_graph",
    "load_progression_catalog",
    "default_country_graph",
    "default_progression_catalog",
]
