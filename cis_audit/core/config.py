"""Config Module - Run request and layered settings loading.

Settings are resolved in this order, later sources winning:
built-in defaults, YAML config file, CIS_AUDIT_* environment variables
(a ``.env`` file is honoured), then command-line options.
"""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, FrozenSet, Iterable, List, Mapping, Optional

import yaml
from dotenv import load_dotenv

from .exceptions import ConfigError, InvalidIdentifierError
from .identifiers import parse_id, sort_ids, split_id_list

logger = logging.getLogger(__name__)

DEFAULT_MAX_CONCURRENCY = 10
DEFAULT_PROGRESS_INTERVAL = 0.1
DEFAULT_THRESHOLD = 70.0
SUPPORTED_FORMATS = ("json", "csv", "pdf")

ENV_PREFIX = "CIS_AUDIT_"

# Environment variable -> (settings key, description)
ENVIRONMENT_VARIABLES: Dict[str, tuple] = {
    "CIS_AUDIT_LEVEL": ("level", "Benchmark level to run (0 = all, 1 or 2)"),
    "CIS_AUDIT_INCLUDE": ("include", "Space or comma separated ids to include"),
    "CIS_AUDIT_EXCLUDE": ("exclude", "Space or comma separated ids to exclude"),
    "CIS_AUDIT_MAX_CONCURRENCY": ("max_concurrency", "Maximum checks running at once"),
    "CIS_AUDIT_CHECK_TIMEOUT": ("check_timeout", "Per-check timeout in seconds"),
    "CIS_AUDIT_THRESHOLD": ("threshold", "Compliance score required to exit 0"),
    "CIS_AUDIT_OUTPUT_DIR": ("output", "Directory for report files"),
    "CIS_AUDIT_BLOCK_ON_ERROR": ("block_on_error", "Treat any Error result as non-compliant (true/false)"),
}

_FILE_KEYS = {
    "level", "include", "exclude", "max_concurrency", "check_timeout",
    "threshold", "block_on_error", "formats", "output", "verbose", "trace",
}

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off"}


def _as_id_set(value: Any, name: str) -> FrozenSet[str]:
    """Normalize a string or sequence of ids into a validated frozenset."""
    if value is None:
        return frozenset()
    try:
        if isinstance(value, str):
            return frozenset(split_id_list(value))
        ids = []
        for item in value:
            ids.extend(split_id_list(str(item)))
        return frozenset(ids)
    except InvalidIdentifierError as e:
        raise ConfigError(f"Invalid {name} list: {e}") from e
    except TypeError as e:
        raise ConfigError(f"{name} must be a string or a list of ids") from e


@dataclass(frozen=True)
class RunRequest:
    """Immutable description of what to audit and how."""
    level: int = 0  # 0 = every level
    include: FrozenSet[str] = frozenset()
    exclude: FrozenSet[str] = frozenset()
    max_concurrency: int = DEFAULT_MAX_CONCURRENCY
    verbose: bool = False
    trace: bool = False
    check_timeout: Optional[float] = None
    progress_interval: float = DEFAULT_PROGRESS_INTERVAL

    def __post_init__(self):
        if self.level not in (0, 1, 2):
            raise ConfigError(f"Level must be 0, 1 or 2, got {self.level!r}")
        if isinstance(self.max_concurrency, bool) or not isinstance(self.max_concurrency, int):
            raise ConfigError("max_concurrency must be an integer")
        if self.max_concurrency < 1:
            raise ConfigError(f"max_concurrency must be at least 1, got {self.max_concurrency}")
        if self.check_timeout is not None and self.check_timeout <= 0:
            raise ConfigError("check_timeout must be a positive number of seconds")
        if self.progress_interval <= 0:
            raise ConfigError("progress_interval must be positive")

        object.__setattr__(self, "include", _as_id_set(self.include, "include"))
        object.__setattr__(self, "exclude", _as_id_set(self.exclude, "exclude"))

    @property
    def serial(self) -> bool:
        """Checks run one at a time, in catalog order."""
        return self.verbose or self.trace

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "level": self.level,
            "include": sort_ids(self.include),
            "exclude": sort_ids(self.exclude),
            "max_concurrency": self.max_concurrency,
            "verbose": self.verbose,
            "trace": self.trace,
            "check_timeout": self.check_timeout,
        }


@dataclass
class AuditSettings:
    """Everything a CLI run needs: the request plus reporting options."""
    request: RunRequest
    formats: List[str] = field(default_factory=list)
    output_dir: Optional[str] = None
    threshold: float = DEFAULT_THRESHOLD
    block_on_error: bool = False


def resolve_level(levels: Iterable[int]) -> int:
    """Collapse repeated level selections into a single level.

    Selecting both levels (or none) means every level, i.e. 0.
    """
    selected = {int(level) for level in levels}
    if selected == {1}:
        return 1
    if selected == {2}:
        return 2
    return 0


def load_config_file(path: str) -> Dict[str, Any]:
    """Load settings from a YAML file.

    Args:
        path: Path to the YAML config file

    Returns:
        Dictionary of recognised settings

    Raises:
        ConfigError: If the file is unreadable, not a mapping or has unknown keys
    """
    try:
        content = Path(path).read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigError(f"Cannot read config file {path}: {e}") from e

    try:
        data = yaml.safe_load(content)
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}") from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"Config file {path} must contain a mapping")

    unknown = set(data) - _FILE_KEYS
    if unknown:
        raise ConfigError(f"Unknown config keys in {path}: {', '.join(sorted(unknown))}")

    logger.debug("Loaded config file %s: %s", path, data)
    return dict(data)


def read_environment(environ: Optional[Mapping[str, str]] = None) -> Dict[str, Any]:
    """Read CIS_AUDIT_* variables.

    Args:
        environ: Mapping to read from (default: os.environ)

    Returns:
        Dictionary of settings keyed like the config file
    """
    environ = os.environ if environ is None else environ
    values: Dict[str, Any] = {}

    for var_name, (key, _) in ENVIRONMENT_VARIABLES.items():
        raw = environ.get(var_name)
        if raw is None or raw == "":
            continue
        try:
            if key in ("level", "max_concurrency"):
                values[key] = int(raw)
            elif key in ("check_timeout", "threshold"):
                values[key] = float(raw)
            elif key == "block_on_error":
                values[key] = _parse_flag(raw)
            else:
                values[key] = raw
        except ValueError as e:
            raise ConfigError(f"Invalid value for {var_name}: {raw!r}") from e

    return values


def _parse_flag(raw: str) -> bool:
    lowered = raw.strip().lower()
    if lowered in _TRUE_VALUES:
        return True
    if lowered in _FALSE_VALUES:
        return False
    raise ValueError(raw)


def _coerce_formats(value: Any) -> List[str]:
    if value is None:
        return []
    formats = [value] if isinstance(value, str) else list(value)
    formats = [str(f).lower() for f in formats]
    unsupported = [f for f in formats if f not in SUPPORTED_FORMATS]
    if unsupported:
        raise ConfigError(
            f"Unsupported report format(s): {', '.join(unsupported)}. "
            f"Supported: {', '.join(SUPPORTED_FORMATS)}"
        )
    return formats


def build_settings(values: Mapping[str, Any]) -> AuditSettings:
    """Build validated settings from merged raw values."""
    level = values.get("level", 0)
    if isinstance(level, (list, tuple)):
        level = resolve_level(level)

    try:
        max_concurrency = int(values.get("max_concurrency", DEFAULT_MAX_CONCURRENCY))
        check_timeout = values.get("check_timeout")
        check_timeout = float(check_timeout) if check_timeout is not None else None
        threshold = float(values.get("threshold", DEFAULT_THRESHOLD))
        level = int(level)
    except (TypeError, ValueError) as e:
        raise ConfigError(f"Invalid setting value: {e}") from e

    block_on_error = values.get("block_on_error", False)
    if not isinstance(block_on_error, bool):
        raise ConfigError(f"block_on_error must be true or false, got {block_on_error!r}")

    request = RunRequest(
        level=level,
        include=_as_id_set(values.get("include"), "include"),
        exclude=_as_id_set(values.get("exclude"), "exclude"),
        max_concurrency=max_concurrency,
        verbose=bool(values.get("verbose", False)),
        trace=bool(values.get("trace", False)),
        check_timeout=check_timeout,
    )

    return AuditSettings(
        request=request,
        formats=_coerce_formats(values.get("formats")),
        output_dir=values.get("output"),
        threshold=threshold,
        block_on_error=block_on_error,
    )


def load_settings(
    overrides: Optional[Mapping[str, Any]] = None,
    config_path: Optional[str] = None,
    environ: Optional[Mapping[str, str]] = None,
    use_dotenv: bool = True,
) -> AuditSettings:
    """Resolve settings from every source.

    Args:
        overrides: Command-line values; None entries are ignored
        config_path: Optional YAML config file
        environ: Environment mapping (default: os.environ)
        use_dotenv: Load a .env file into the environment first

    Returns:
        Validated AuditSettings
    """
    if use_dotenv and environ is None:
        load_dotenv()

    merged: Dict[str, Any] = {}
    if config_path:
        merged.update(load_config_file(config_path))
    merged.update(read_environment(environ))
    if overrides:
        merged.update({k: v for k, v in overrides.items() if v is not None})

    return build_settings(merged)
