"""Run configuration for a simulated key generation."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Mapping, Optional, Union

import toml

from .errors import ConfigurationError

logger = logging.getLogger(__name__)


class MapMode(Enum):
    """How Q/W maps reach the participants that did not derive them."""

    BROADCAST = "broadcast"   # one node derives, the rest import its snapshot
    RECOMPUTE = "recompute"   # import, then recompute locally and compare


@dataclass
class DKGConfig:
    """Parameters of one protocol run.

    ``participants`` is the number of dealing parties.  ``keys`` is only
    set for weighted runs, where it is the number of key slots the parties
    share; plain FROST runs have one slot per participant.
    """

    participants: int
    threshold: int
    keys: Optional[int] = None
    context: bytes = b""
    map_mode: MapMode = MapMode.BROADCAST
    max_workers: Optional[int] = None

    def __post_init__(self) -> None:
        if isinstance(self.context, str):
            self.context = self.context.encode("utf-8")
        if not isinstance(self.map_mode, MapMode):
            try:
                self.map_mode = MapMode(self.map_mode)
            except ValueError as exc:
                raise ConfigurationError(f"unknown map mode: {self.map_mode!r}") from exc
        self.validate()

    @property
    def share_indices(self) -> int:
        return self.keys if self.keys is not None else self.participants

    @property
    def weighted(self) -> bool:
        return self.keys is not None

    def validate(self) -> None:
        if self.participants < 1:
            raise ConfigurationError("participants must be ≥ 1")
        if self.keys is not None and self.keys < self.participants:
            raise ConfigurationError(
                f"keys ({self.keys}) must be ≥ participants ({self.participants})"
            )
        if not 1 <= self.threshold <= self.share_indices:
            raise ConfigurationError(
                f"threshold {self.threshold} outside 1..{self.share_indices}"
            )
        if self.max_workers is not None and self.max_workers < 1:
            raise ConfigurationError("max_workers must be ≥ 1")

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "DKGConfig":
        try:
            return cls(
                participants=int(data["participants"]),
                threshold=int(data["threshold"]),
                keys=int(data["keys"]) if data.get("keys") is not None else None,
                context=data.get("context", b""),
                map_mode=data.get("map_mode", MapMode.BROADCAST.value),
                max_workers=(
                    int(data["max_workers"])
                    if data.get("max_workers") is not None else None
                ),
            )
        except KeyError as exc:
            raise ConfigurationError(f"Missing required config field: {exc}") from exc
        except ConfigurationError:
            raise
        except (TypeError, ValueError) as exc:
            raise ConfigurationError(f"Invalid config value: {exc}") from exc

    @classmethod
    def from_file(cls, config_path: Union[str, Path]) -> "DKGConfig":
        """Load the ``[dkg]`` table of a TOML file.

        Raises:
            ConfigurationError: If the file is missing or invalid
        """
        config_path = Path(config_path)
        if not config_path.exists():
            raise ConfigurationError(f"Configuration file not found: {config_path}")

        logger.info(f"Loading configuration from {config_path}")
        try:
            data = toml.load(config_path)
        except toml.TomlDecodeError as exc:
            raise ConfigurationError(f"Failed to parse {config_path}: {exc}") from exc

        section = data.get("dkg")
        if not isinstance(section, dict):
            raise ConfigurationError(f"{config_path} has no [dkg] table")
        return cls.from_dict(section)
