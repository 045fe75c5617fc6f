"""
Country graph.

A closed set of named countries with adjacency and influence attributes.
Loaded once and treated as immutable for the life of the process.
"""

from typing import Iterator, Mapping

from pydantic import BaseModel, ConfigDict, Field


class AntivirusProfile(BaseModel):
    """AV protection that gates infection behind a bypass challenge."""
    model_config = ConfigDict(frozen=True)

    vendor: str = "Generic Shield"
    tier: int = Field(default=1, ge=1)
    difficulty: float = Field(default=0.5, ge=0.0, le=1.0)
    reward_xp: int | None = None


class Country(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    code: str = ""
    region: str = ""
    neighbors: tuple[str, ...] = ()   # need not be symmetric
    security: float = Field(default=0.5, ge=0.0, le=1.0)
    connectivity: float = Field(default=0.5, ge=0.0, le=1.0)
    population: float = Field(default=0.5, ge=0.0, le=1.0)
    antivirus: AntivirusProfile | None = None

    @property
    def protected(self) -> bool:
        return self.antivirus is not None


class CountryGraph:
    """
    Read-only country lookup with case- and code-insensitive resolution.

    "brazil", "BRAZIL" and "br" all resolve to "Brazil".
    """

    def __init__(self, countries: Mapping[str, Country | dict]):
        self._countries: dict[str, Country] = {}
        for name, data in countries.items():
            if isinstance(data, Country):
                country = data
            else:
                country = Country.model_validate({"name": name, **data})
            self._countries[country.name] = country

        self._aliases: dict[str, str] = {}
        for name, country in self._countries.items():
            self._aliases[name.lower()] = name
            if country.code:
                self._aliases.setdefault(country.code.lower(), name)

    def resolve(self, name) -> str | None:
        """Canonical country name, or None if unresolvable."""
        if name is None:
            return None
        if isinstance(name, str) and name in self._countries:
            return name
        normalized = str(name).strip().lower()
        if not normalized:
            return None
        return self._aliases.get(normalized)

    def get(self, name: str) -> Country | None:
        """Lookup by canonical name only."""
        return self._countries.get(name)

    def neighbors(self, name: str) -> list[str]:
        """Canonical names of a country's neighbors. Unknown entries are skipped."""
        country = self._countries.get(name)
        if country is None:
            return []
        resolved = []
        for raw in country.neighbors:
            canonical = self.resolve(raw)
            if canonical and canonical != name:
                resolved.append(canonical)
        return resolved

    def names(self) -> list[str]:
        return list(self._countries)

    def __contains__(self, name: object) -> bool:
        return name in self._countries

    def __iter__(self) -> Iterator[Country]:
        return iter(self._countries.values())

    def __len__(self) -> int:
        return len(self._countries)
