"""
Proximity configuration.

Settings are read from environment variables so a long-running process can
pick up changes between queries:

    PROXIMITY_DEPENDENCY_TYPE=SD     # SD (sequential) or FD (full)
    PROXIMITY_NGRAM_LENGTH=2         # window size, in tokens
    PROXIMITY_QTW_FNID=1             # 1 average, 2 product, 3 min, 4 max
    PROXIMITY_W_T=1.0                # weight of the unigram (base) score
    PROXIMITY_W_O=1.0                # weight of ordered (SD) pairs
    PROXIMITY_W_U=1.0                # weight of unordered (FD) pairs
    PROXIMITY_SPLIT_SYNONYMS=true    # open synonym alternatives separately
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass
from enum import Enum

from ranking_dependence.errors import ConfigurationError

DEFAULT_NGRAM_LENGTH = 2
DEFAULT_QTW_FNID = 1
DEFAULT_WEIGHT = 1.0

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off"}


class DependencyMode(Enum):
    SEQUENTIAL = "SD"
    FULL = "FD"
    UNSET = ""

    @classmethod
    def parse(cls, value: str | None) -> DependencyMode:
        """Map a property value to a mode; anything unrecognised is UNSET."""
        if not value:
            return cls.UNSET
        normalised = value.strip().upper()
        for mode in (cls.SEQUENTIAL, cls.FULL):
            if mode.value == normalised:
                return mode
        return cls.UNSET


def _read_float(env: Mapping[str, str], key: str, default: float) -> float:
    raw = env.get(key)
    if raw is None or raw.strip() == "":
        return default
    try:
        # Java-style "1.0d" literals are accepted
        return float(raw.strip().rstrip("dD"))
    except ValueError as e:
        raise ConfigurationError(f"{key} must be a number, got {raw!r}") from e


def _read_int(env: Mapping[str, str], key: str, default: int) -> int:
    raw = env.get(key)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw.strip())
    except ValueError as e:
        raise ConfigurationError(f"{key} must be an integer, got {raw!r}") from e


def _read_bool(env: Mapping[str, str], key: str, default: bool) -> bool:
    raw = env.get(key)
    if raw is None or raw.strip() == "":
        return default
    value = raw.strip().lower()
    if value in _TRUE_VALUES:
        return True
    if value in _FALSE_VALUES:
        return False
    raise ConfigurationError(f"{key} must be a boolean, got {raw!r}")


@dataclass(frozen=True)
class DependenceConfig:
    """Snapshot of the proximity settings used for one scoring pass."""

    dependency: DependencyMode = DependencyMode.UNSET
    ngram_length: int = DEFAULT_NGRAM_LENGTH
    qtw_fnid: int = DEFAULT_QTW_FNID
    w_t: float = DEFAULT_WEIGHT
    w_o: float = DEFAULT_WEIGHT
    w_u: float = DEFAULT_WEIGHT
    split_synonyms: bool = True

    def __post_init__(self) -> None:
        if self.ngram_length < 1:
            raise ConfigurationError(
                f"ngram length must be at least 1, got {self.ngram_length}"
            )

    @property
    def sequential(self) -> bool:
        return self.dependency is DependencyMode.SEQUENTIAL

    @classmethod
    def from_env(cls, env: Mapping[str, str] | None = None) -> DependenceConfig:
        """Read a fresh configuration from the environment (or a given mapping)."""
        env = os.environ if env is None else env
        return cls(
            dependency=DependencyMode.parse(env.get("PROXIMITY_DEPENDENCY_TYPE")),
            ngram_length=_read_int(env, "PROXIMITY_NGRAM_LENGTH", DEFAULT_NGRAM_LENGTH),
            qtw_fnid=_read_int(env, "PROXIMITY_QTW_FNID", DEFAULT_QTW_FNID),
            w_t=_read_float(env, "PROXIMITY_W_T", DEFAULT_WEIGHT),
            w_o=_read_float(env, "PROXIMITY_W_O", DEFAULT_WEIGHT),
            w_u=_read_float(env, "PROXIMITY_W_U", DEFAULT_WEIGHT),
            split_synonyms=_read_bool(env, "PROXIMITY_SPLIT_SYNONYMS", True),
        )


def read_float_setting(key: str, default: float, env: Mapping[str, str] | None = None) -> float:
    """Read one float setting, used by scoring functions for their own parameters."""
    return _read_float(os.environ if env is None else env, key, default)
