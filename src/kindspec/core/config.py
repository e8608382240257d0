"""
Configuration for the Kindly grammar.

Defines GrammarSettings, a frozen dataclass carrying the policy toggles the
validator and canonicalizer consult. Defaults are sourced from
kindspec.core.constants (the single source of truth).

Toggles
- fragment_mode: "strict" rejects plain (unannotated) fragment elements;
  "lenient" accepts them and canonicalizes them with ``default_kind``.
- strict_options: reject keys under ``options`` beyond hideValue/wrapped.
- metadata_precedence: when a record mapping also carries attached metadata,
  "fields" ignores the metadata and "metadata" lets it override the inlined
  properties.
- max_depth: maximum nesting of Kindly values inside one another.

Notes
- Loaders follow precedence env > TOML > defaults; loose config values that do
  not parse are ignored, while invalid constructor arguments raise ConfigError.
"""

from __future__ import annotations

import logging
import os
import tomllib
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any, Literal

from .constants import DEFAULT_KIND, MAX_DEPTH
from .errors import ConfigError

__all__ = [
    "FragmentMode",
    "MetadataPrecedence",
    "GrammarSettings",
    "DEFAULT_SETTINGS",
]

logger = logging.getLogger(__name__)

FragmentMode = Literal["strict", "lenient"]
MetadataPrecedence = Literal["fields", "metadata"]

_FRAGMENT_MODES: frozenset[str] = frozenset({"strict", "lenient"})
_PRECEDENCES: frozenset[str] = frozenset({"fields", "metadata"})


def _bool(v: Any) -> bool:
    if isinstance(v, bool):
        return v
    if isinstance(v, (int, float)):
        return bool(v)
    if isinstance(v, str):
        return v.strip().lower() in {"1", "true", "t", "yes", "y", "on"}
    return False


@dataclass(frozen=True)
class GrammarSettings:
    """
    Runtime settings for Kindly validation and canonicalization.

    Attributes:
        fragment_mode (Literal["strict","lenient"]): Plain fragment elements policy.
        strict_options (bool): Reject unrecognized keys under ``options``.
        default_kind (str): Kind given to plain fragment elements in lenient mode.
        metadata_precedence (Literal["fields","metadata"]): Record fields vs. attached metadata.
        max_depth (int): Maximum nesting of Kindly values (>= 1).

    Raises:
        ConfigError: If any value is outside its allowed domain.

    Examples:
        >>> from kindspec.core.config import GrammarSettings
        >>> GrammarSettings(fragment_mode="lenient").fragment_mode
        'lenient'
    """

    fragment_mode: FragmentMode = "strict"
    strict_options: bool = False
    default_kind: str = DEFAULT_KIND
    metadata_precedence: MetadataPrecedence = "fields"
    max_depth: int = MAX_DEPTH

    def __post_init__(self) -> None:
        if self.fragment_mode not in _FRAGMENT_MODES:
            raise ConfigError(
                f"fragment_mode must be one of {sorted(_FRAGMENT_MODES)}, got {self.fragment_mode!r}"
            )
        if self.metadata_precedence not in _PRECEDENCES:
            raise ConfigError(
                f"metadata_precedence must be one of {sorted(_PRECEDENCES)}, "
                f"got {self.metadata_precedence!r}"
            )
        if not isinstance(self.default_kind, str) or not self.default_kind:
            raise ConfigError(f"default_kind must be a non-empty string, got {self.default_kind!r}")
        if not isinstance(self.max_depth, int) or self.max_depth < 1:
            raise ConfigError(f"max_depth must be a positive integer, got {self.max_depth!r}")

    @property
    def lenient_fragments(self) -> bool:
        return self.fragment_mode == "lenient"

    # Configuration loaders (env/TOML) with precedence: env > TOML > defaults.

    @classmethod
    def _apply_mapping(cls, base: GrammarSettings, cfg: dict[str, Any] | None) -> GrammarSettings:
        """Apply a loose config mapping onto GrammarSettings, returning a new instance."""
        if not isinstance(cfg, dict):
            return base

        s = base

        if "fragment_mode" in cfg and isinstance(cfg["fragment_mode"], str):
            mode = cfg["fragment_mode"].strip().lower()
            if mode in _FRAGMENT_MODES:
                s = replace(s, fragment_mode=mode)  # type: ignore[arg-type]

        if "strict_options" in cfg:
            s = replace(s, strict_options=_bool(cfg["strict_options"]))

        if "default_kind" in cfg and isinstance(cfg["default_kind"], str):
            kind = cfg["default_kind"].strip()
            if kind:
                s = replace(s, default_kind=kind)

        if "metadata_precedence" in cfg and isinstance(cfg["metadata_precedence"], str):
            prec = cfg["metadata_precedence"].strip().lower()
            if prec in _PRECEDENCES:
                s = replace(s, metadata_precedence=prec)  # type: ignore[arg-type]

        if "max_depth" in cfg:
            try:
                depth = int(cfg["max_depth"])
            except (TypeError, ValueError):
                depth = 0
            if depth >= 1:
                s = replace(s, max_depth=depth)

        return s

    @classmethod
    def from_env(
        cls, base: GrammarSettings | None = None, prefix: str = "KINDSPEC_"
    ) -> GrammarSettings:
        """
        Build GrammarSettings from environment variables. Precedence is env > base (if provided) > defaults.

        Recognized variables:
            - KINDSPEC_FRAGMENT_MODE ("strict" | "lenient")
            - KINDSPEC_STRICT_OPTIONS (1/0/true/false/yes/no/on/off)
            - KINDSPEC_DEFAULT_KIND
            - KINDSPEC_METADATA_PRECEDENCE ("fields" | "metadata")
            - KINDSPEC_MAX_DEPTH
        """
        s = base or cls()
        mapping: dict[str, Any] = {}
        for key in ("fragment_mode", "strict_options", "default_kind", "metadata_precedence", "max_depth"):
            v = os.getenv(prefix + key.upper())
            if v:
                mapping[key] = v
        return cls._apply_mapping(s, mapping)

    @classmethod
    def from_toml(cls, path: str | os.PathLike[str] | None = None) -> GrammarSettings:
        """
        Build GrammarSettings from a TOML file.

        Search order when `path` is None:
            1) ./kindspec.toml (with either a [grammar] table or direct keys)
            2) ./pyproject.toml under [tool.kindspec.grammar]

        Returns defaults if no file is present or none carries grammar settings.
        """
        s = cls()

        def _load_toml(p: Path) -> dict[str, Any] | None:
            try:
                with p.open("rb") as fh:
                    return tomllib.load(fh)
            except (OSError, tomllib.TOMLDecodeError) as exc:
                logger.debug("ignoring unreadable config %s: %s", p, exc)
                return None

        cfg: dict[str, Any] | None = None

        cand: list[Path] = []
        if path is not None:
            cand.append(Path(path))
        else:
            cand.append(Path.cwd() / "kindspec.toml")
            cand.append(Path.cwd() / "pyproject.toml")

        for p in cand:
            if not p.exists():
                continue
            data = _load_toml(p)
            if not isinstance(data, dict):
                continue
            if p.name == "pyproject.toml":
                tool = data.get("tool", {})
                section = tool.get("kindspec", {}) if isinstance(tool, dict) else {}
                cfg = section.get("grammar") if isinstance(section, dict) else None
            else:
                grammar = data.get("grammar")
                cfg = grammar if isinstance(grammar, dict) else data
            if cfg:
                logger.debug("loaded grammar settings from %s", p)
                break

        return cls._apply_mapping(s, cfg)

    @classmethod
    def load(cls, path: str | os.PathLike[str] | None = None) -> GrammarSettings:
        """
        Load GrammarSettings applying precedence: environment > TOML > defaults.

        Args:
            path: Optional explicit TOML path. If None, search defaults (kindspec.toml, pyproject.toml).
        """
        s = cls.from_toml(path)
        s = cls.from_env(base=s)
        return s


DEFAULT_SETTINGS: GrammarSettings = GrammarSettings()
