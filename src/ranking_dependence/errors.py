"""Exceptions raised by the dependence scoring pass."""


class DependenceError(Exception):
    """Base class for dependence scoring failures."""


class ConfigurationError(DependenceError):
    """A proximity setting could not be parsed or is out of range."""


class MissingPositionDataError(DependenceError):
    """A posting list has no token positions (index built without positions)."""

    def __init__(self, term: str | None = None):
        self.term = term
        where = f" for term {term!r}" if term is not None else ""
        super().__init__(f"No position data available{where}")
