"""Configuration loading for goprotogen (.goprotogen.yml)."""

from __future__ import annotations

from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Any, Dict, Optional, Sequence, Tuple

import yaml

from .errors import ConfigError

CONFIG_FILENAME = ".goprotogen.yml"
DEFAULT_GOFILE = "proto_generator.go"
DEFAULT_GENERATOR_NAME = "goprotogen"
DEFAULT_FILE_MODE = 0o660


@dataclass(frozen=True)
class GeneratorConfig:
    """Settings shared by every directory of a run; fixed before the walk starts."""

    gofile: str = DEFAULT_GOFILE
    stdout: bool = False
    recurse: bool = True
    exclude_dirs: Tuple[str, ...] = ()
    generator_name: str = DEFAULT_GENERATOR_NAME
    file_mode: int = DEFAULT_FILE_MODE
    fail_fast: bool = False
    jobs: int = 1

    def __post_init__(self) -> None:
        _validate_gofile(self.gofile)
        if self.jobs < 1:
            raise ConfigError(f"jobs must be at least 1, got {self.jobs}")
        if not 0 <= self.file_mode <= 0o777:
            raise ConfigError(f"file_mode out of range: {oct(self.file_mode)}")
        if not self.generator_name.strip():
            raise ConfigError("generator_name must not be empty")

    def merged(self, **overrides: Any) -> "GeneratorConfig":
        """Return a copy with every non-None override applied."""
        known = {item.name for item in fields(self)}
        unknown = set(overrides) - known
        if unknown:
            raise ConfigError(f"Unknown configuration keys: {', '.join(sorted(unknown))}")
        changes = {key: value for key, value in overrides.items() if value is not None}
        if "exclude_dirs" in changes:
            changes["exclude_dirs"] = tuple(changes["exclude_dirs"])
        return replace(self, **changes)


def load_config(config_path: Path) -> GeneratorConfig:
    """Load configuration from disk, falling back to defaults when absent."""
    config_file = _resolve_config_path(config_path)
    if not config_file.exists():
        return GeneratorConfig()

    data = _read_config(config_file)
    if not isinstance(data, dict):
        raise ConfigError(f"{config_file.name} must contain a mapping at the root")

    known = {item.name for item in fields(GeneratorConfig)}
    unknown = sorted(str(key) for key in data if key not in known)
    if unknown:
        raise ConfigError(f"Unknown keys in {config_file.name}: {', '.join(unknown)}")

    values: Dict[str, Any] = {}
    if "gofile" in data:
        values["gofile"] = _require(_as_str(data["gofile"]), "gofile")
    if "stdout" in data:
        values["stdout"] = _require(_as_bool(data["stdout"]), "stdout")
    if "recurse" in data:
        values["recurse"] = _require(_as_bool(data["recurse"]), "recurse")
    if "exclude_dirs" in data:
        values["exclude_dirs"] = tuple(_as_str_list(data["exclude_dirs"]))
    if "generator_name" in data:
        values["generator_name"] = _require(_as_str(data["generator_name"]), "generator_name")
    if "file_mode" in data:
        values["file_mode"] = _require(_as_mode(data["file_mode"]), "file_mode")
    if "fail_fast" in data:
        values["fail_fast"] = _require(_as_bool(data["fail_fast"]), "fail_fast")
    if "jobs" in data:
        values["jobs"] = _require(_as_int(data["jobs"]), "jobs")

    return GeneratorConfig(**values)


def _resolve_config_path(config_path: Path) -> Path:
    config_path = Path(config_path).expanduser()
    if config_path.is_dir():
        return (config_path / CONFIG_FILENAME).resolve()
    return config_path.resolve()


def _read_config(path: Path) -> Dict[str, Any]:
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ConfigError(f"Failed to read {path}: {exc}") from exc
    if not text.strip():
        return {}
    try:
        loaded = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise ConfigError(f"Failed to parse {path.name}: {exc}") from exc
    return loaded or {}


def _validate_gofile(name: str) -> None:
    if not name or Path(name).name != name:
        raise ConfigError(f"gofile must be a bare file name, got {name!r}")
    if not name.endswith(".go") or name.endswith("_test.go"):
        raise ConfigError(f"gofile must be a non-test .go file, got {name!r}")


def _require(value: Optional[Any], key: str) -> Any:
    if value is None:
        raise ConfigError(f"Invalid value for {key!r}")
    return value


def _as_str(value: Any) -> Optional[str]:
    return value if isinstance(value, str) else None


def _as_bool(value: Any) -> Optional[bool]:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in {"true", "yes", "1"}:
            return True
        if lowered in {"false", "no", "0"}:
            return False
    return None


def _as_int(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        try:
            return int(value)
        except ValueError:
            return None
    return None


def _as_mode(value: Any) -> Optional[int]:
    # PyYAML reads a bare 0660 as octal already; strings are always octal.
    if isinstance(value, str):
        try:
            return int(value, 8)
        except ValueError:
            return None
    return _as_int(value)


def _as_str_list(value: Any) -> list[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [value]
    if isinstance(value, Sequence):
        return [str(item) for item in value if isinstance(item, (str, int, float))]
    raise ConfigError("Expected a string or a list of strings")


__all__ = [
    "CONFIG_FILENAME",
    "DEFAULT_GOFILE",
    "GeneratorConfig",
    "load_config",
]
