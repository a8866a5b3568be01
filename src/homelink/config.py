import logging
import re
import tomllib
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any

from .constants import APP_NAME, CONFIG_FILE, EXCLUDED_ROOTS

logger = logging.getLogger(APP_NAME)

CONFLICT_MODES = ("prompt", "always", "never")


def parse_size(value: int | str) -> int:
    """Converts human-readable size strings (e.g., '100MB') to bytes."""
    if isinstance(value, int):
        return value
    match = re.match(r"^(\d+(?:\.\d+)?)\s*([kmg]b?)$", str(value).strip().lower())
    if not match:
        raise ValueError(f"Invalid size format '{value}'")
    num, unit = float(match.group(1)), match.group(2)
    multiplier = {
        "k": 1024,
        "kb": 1024,
        "m": 1024**2,
        "mb": 1024**2,
        "g": 1024**3,
        "gb": 1024**3,
    }
    return int(num * multiplier[unit])


def parse_conflict_mode(value: str) -> str:
    """Validates the `on_conflict` setting."""
    mode = str(value).strip().lower()
    if mode not in CONFLICT_MODES:
        raise ValueError(
            f"Invalid conflict mode '{value}' (expected one of {', '.join(CONFLICT_MODES)})"
        )
    return mode


@dataclass
class LinkConfig:
    """Symlinking settings.

    Attributes:
        exclude (list[str]): Extra top-level names never linked into $HOME
            (appended to the built-in list).
        on_conflict (str): Initial conflict policy: 'prompt', 'always' or 'never'.
    """

    exclude: list[str] = field(default_factory=list)
    on_conflict: str = "prompt"

    @property
    def excluded_roots(self) -> tuple[str, ...]:
        """The built-in exclusions followed by the configured ones."""
        extra = [name for name in self.exclude if name not in EXCLUDED_ROOTS]
        return (*EXCLUDED_ROOTS, *extra)


@dataclass
class LimitsConfig:
    """Resource limitation settings.

    Attributes:
        max_log_size (int): Max bytes for the log file before rotation.
    """

    max_log_size: int = 5 * 1024 * 1024


@dataclass
class Config:
    """Global configuration aggregator.

    Attributes:
        link (LinkConfig): Symlinking settings.
        limits (LimitsConfig): Resource limits.
    """

    link: LinkConfig = field(default_factory=LinkConfig)
    limits: LimitsConfig = field(default_factory=LimitsConfig)

    # Cache for the parsed configuration file
    _global_cache: "Config | None" = None

    @classmethod
    def load(cls) -> "Config":
        """Loads configuration from defaults and the user's config file.

        Returns:
            Config: The merged configuration object.
        """
        if cls._global_cache is None:
            instance = cls()
            if CONFIG_FILE.exists():
                instance._merge_from_file(CONFIG_FILE)
            cls._global_cache = instance

        return replace(cls._global_cache)

    def _merge_from_file(self, path: Path) -> None:
        """Parses a TOML file and merges it into the current instance.

        Args:
            path (Path): Path to the TOML file.
        """
        try:
            with open(path, "rb") as f:
                data = tomllib.load(f)

            if not data:
                return

            if "limits" in data:
                self.limits = self._update_dataclass(
                    "limits", self.limits, data["limits"]
                )
            if "link" in data:
                # Extract exclude list to prevent it from being overwritten during dataclass update
                new_excludes = data["link"].pop("exclude", [])
                self.link = self._update_dataclass("link", self.link, data["link"])
                if new_excludes:
                    self.link.exclude = list(
                        dict.fromkeys([*self.link.exclude, *new_excludes])
                    )

            unknown = set(data) - {"limits", "link"}
            if unknown:
                logger.warning(
                    f"Unknown config sections in {path}: {', '.join(sorted(unknown))}. Ignoring."
                )

        except tomllib.TOMLDecodeError as e:
            logger.error(f"Config syntax error in {path}: {e}")
        except Exception as e:
            logger.warning(f"Failed to load config from {path}: {e}")

    @staticmethod
    def _update_dataclass(section_name: str, instance: Any, updates: dict) -> Any:
        """Updates a dataclass, warning on invalid keys and parsing human-readable formats."""
        valid_keys = instance.__dataclass_fields__.keys()
        filtered_updates = {}

        invalid_keys = set(updates.keys()) - set(valid_keys)
        if invalid_keys:
            logger.warning(
                f"Unknown config keys in [{section_name}]: {', '.join(invalid_keys)}. Ignoring."
            )

        for k, v in updates.items():
            if k not in valid_keys:
                continue

            try:
                if k == "max_log_size":
                    filtered_updates[k] = parse_size(v)
                elif k == "on_conflict":
                    filtered_updates[k] = parse_conflict_mode(v)
                else:
                    filtered_updates[k] = v
            except ValueError as e:
                logger.warning(
                    f"Config error in [{section_name}].{k}: {e}. Falling back to default."
                )

        return replace(instance, **filtered_updates)
