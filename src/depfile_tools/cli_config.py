"""
Configuration management for depfile-tools.

Settings are layered: dataclass defaults, then the first config file found
in the standard locations (JSON, YAML or TOML), then DEPFILE_TOOLS_*
environment variables.
"""

import codecs
import json
import logging
import os
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Tuple

import toml
import yaml
from rich.console import Console
from rich.markup import escape

from .error_handling import DEFAULT_LOG_FORMAT, ErrorCategory, get_error_handler

console = Console(stderr=True)

SUPPORTED_DIALECTS = ("make", "uri-list")
SUPPORTED_OUTPUT_FORMATS = ("console", "json")
LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


@dataclass
class ParseConfig:
    """How depfiles are read."""

    dialect: str = "make"
    unescape: bool = False
    encoding: str = "utf-8"


@dataclass
class OutputConfig:
    """How parse results are displayed."""

    output_format: str = "console"
    quiet: bool = False


@dataclass
class SecurityConfig:
    """Limits applied to files read from the command line."""

    max_file_size_mb: int = 10
    allowed_file_extensions: List[str] = field(
        default_factory=lambda: [".d", ".deps", ".dep", ".txt"]
    )

    @property
    def max_file_size_bytes(self) -> int:
        """Convert MB to bytes for internal use."""
        return self.max_file_size_mb * 1024 * 1024


@dataclass
class LoggingConfig:
    """Logging and error handling configuration."""

    log_level: str = "WARNING"
    log_format: str = DEFAULT_LOG_FORMAT
    enable_json: bool = True


@dataclass
class DepfileToolsConfig:
    """Main configuration containing all subsections."""

    parse: ParseConfig = field(default_factory=ParseConfig)
    output: OutputConfig = field(default_factory=OutputConfig)
    security: SecurityConfig = field(default_factory=SecurityConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


# Global configuration instance
_global_config: Optional[DepfileToolsConfig] = None


def _is_known_encoding(encoding: Any) -> bool:
    if not isinstance(encoding, str) or not encoding:
        return False
    try:
        codecs.lookup(encoding)
    except LookupError:
        return False
    return True


def _is_positive_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and value > 0


def _is_extension_list(value: Any) -> bool:
    return isinstance(value, list) and all(
        isinstance(extension, str) and extension.startswith(".") for extension in value
    )


def _is_log_format(value: Any) -> bool:
    if not isinstance(value, str):
        return False
    try:
        logging.Formatter(value)
    except ValueError:
        return False
    return True


# (section, key, check, problem) for every setting a config file can supply
_FIELD_CHECKS: List[Tuple[str, str, Callable[[Any], bool], str]] = [
    ("parse", "dialect", lambda v: v in SUPPORTED_DIALECTS,
     f"must be one of {', '.join(SUPPORTED_DIALECTS)}"),
    ("parse", "unescape", lambda v: isinstance(v, bool), "must be true or false"),
    ("parse", "encoding", _is_known_encoding, "is not a known codec"),
    ("output", "output_format", lambda v: v in SUPPORTED_OUTPUT_FORMATS,
     f"must be one of {', '.join(SUPPORTED_OUTPUT_FORMATS)}"),
    ("output", "quiet", lambda v: isinstance(v, bool), "must be true or false"),
    ("security", "max_file_size_mb", _is_positive_int, "must be a positive integer"),
    ("security", "allowed_file_extensions", _is_extension_list,
     "must be a list of extensions starting with '.'"),
    ("logging", "log_level", lambda v: isinstance(v, str) and v.upper() in LOG_LEVELS,
     f"must be one of {', '.join(LOG_LEVELS)}"),
    ("logging", "log_format", _is_log_format, "is not a valid logging format string"),
    ("logging", "enable_json", lambda v: isinstance(v, bool), "must be true or false"),
]


def _invalid_fields(config: DepfileToolsConfig) -> List[Tuple[str, str, str]]:
    invalid = []
    for section_name, key, check, problem in _FIELD_CHECKS:
        value = getattr(getattr(config, section_name), key)
        if not check(value):
            invalid.append((section_name, key, f"{section_name}.{key} {problem}: {value!r}"))
    return invalid


def validate_config_values(config: DepfileToolsConfig) -> List[str]:
    """
    Validate configuration values and return any errors.

    Values read from config files are untyped, so a value of the wrong
    type is reported here like any other invalid value.

    Args:
        config: Configuration to validate

    Returns:
        List[str]: List of validation errors (empty if valid)
    """
    return [error for _, _, error in _invalid_fields(config)]


def load_config_file(config_path: Path) -> Optional[Dict[str, Any]]:
    """Load config from a JSON, YAML or TOML file."""
    if not config_path.exists():
        return None

    suffix = config_path.suffix.lower()
    try:
        with open(config_path, encoding="utf-8") as f:
            if suffix in [".yaml", ".yml"]:
                data = yaml.safe_load(f)
            elif suffix == ".toml":
                data = toml.load(f)
            elif suffix == ".json":
                data = json.load(f)
            else:
                console.print(
                    f"⚠️  Unsupported config file type: {config_path}", style="yellow"
                )
                return None
    except (OSError, ValueError, yaml.YAMLError) as e:
        console.print(
            f"⚠️  Error loading config from {config_path}: {e}", style="yellow"
        )
        return None

    if not isinstance(data, dict):
        console.print(
            f"⚠️  Config file {config_path} must contain a mapping", style="yellow"
        )
        return None
    return data


def find_config_file() -> Optional[Path]:
    """Find config file in standard locations."""
    locations = [
        Path.cwd() / ".depfile-tools.json",
        Path.cwd() / ".depfile-tools.yaml",
        Path.cwd() / ".depfile-tools.yml",
        Path.cwd() / ".depfile-tools.toml",
        Path.home() / ".config" / "depfile-tools" / "config.json",
        Path.home() / ".config" / "depfile-tools" / "config.yaml",
        Path.home() / ".config" / "depfile-tools" / "config.toml",
        Path.home() / ".depfile-tools.json",
    ]

    for location in locations:
        if location.exists():
            return location

    return None


def load_environment_overrides(config: DepfileToolsConfig) -> None:
    """Load environment variable overrides."""

    def get_env_bool(key: str, default: bool = False) -> bool:
        value = os.environ.get(key, "").lower()
        return value in ["true", "1", "yes", "on"] if value else default

    def get_env_int(key: str, default: Optional[int] = None) -> Optional[int]:
        try:
            return int(os.environ[key]) if key in os.environ else default
        except ValueError:
            console.print(f"⚠️  Invalid integer value for {key}, using default", style="yellow")
            return default

    if dialect := os.environ.get("DEPFILE_TOOLS_DIALECT"):
        config.parse.dialect = dialect.lower()
    config.parse.unescape = get_env_bool("DEPFILE_TOOLS_UNESCAPE", config.parse.unescape)
    if encoding := os.environ.get("DEPFILE_TOOLS_ENCODING"):
        config.parse.encoding = encoding

    if output_format := os.environ.get("DEPFILE_TOOLS_OUTPUT_FORMAT"):
        config.output.output_format = output_format.lower()
    config.output.quiet = get_env_bool("DEPFILE_TOOLS_QUIET", config.output.quiet)

    if max_file_size := get_env_int("DEPFILE_TOOLS_MAX_FILE_SIZE_MB"):
        config.security.max_file_size_mb = max_file_size

    if log_level := os.environ.get("DEPFILE_TOOLS_LOG_LEVEL"):
        config.logging.log_level = log_level.upper()


def apply_config_section(
    config: Any, section_data: Dict[str, Any], section_name: str
) -> None:
    """Apply configuration from dictionary to config section."""
    for key, value in section_data.items():
        if hasattr(config, key):
            setattr(config, key, value)
        else:
            console.print(
                f"⚠️  Unknown config key in {section_name}: {key}", style="yellow"
            )


def apply_config_data(config: DepfileToolsConfig, file_config: Dict[str, Any]) -> None:
    """Apply every known section of a loaded config file."""
    for section_name in ("parse", "output", "security", "logging"):
        section_data = file_config.get(section_name)
        if isinstance(section_data, dict):
            apply_config_section(getattr(config, section_name), section_data, section_name)


def load_config(config_path: Optional[Path] = None) -> DepfileToolsConfig:
    """Load configuration from file and environment."""
    global _global_config

    if _global_config is not None and config_path is None:
        return _global_config

    config = DepfileToolsConfig()

    config_file = config_path or find_config_file()
    if config_file:
        file_config = load_config_file(config_file)
        if file_config:
            apply_config_data(config, file_config)

    load_environment_overrides(config)

    validation_errors = validate_config_values(config)
    if validation_errors:
        console.print("⚠️  Configuration validation errors:", style="red")
        for error in validation_errors:
            console.print(f"  • {escape(error)}", style="red")
        console.print("Using default values for invalid settings.", style="yellow")
        get_error_handler().warning(
            ErrorCategory.CONFIGURATION,
            "Invalid configuration values replaced with defaults",
            "cli_config",
            "load_config",
            details={"errors": validation_errors},
        )
        _restore_invalid_defaults(config)

    _global_config = config
    return config


def _restore_invalid_defaults(config: DepfileToolsConfig) -> None:
    defaults = DepfileToolsConfig()
    for section_name, key, _ in _invalid_fields(config):
        setattr(
            getattr(config, section_name),
            key,
            getattr(getattr(defaults, section_name), key),
        )


def get_config() -> DepfileToolsConfig:
    """Get the global configuration instance."""
    global _global_config
    if _global_config is None:
        _global_config = load_config()
    return _global_config


def reset_config() -> None:
    """Reset the global configuration (useful for testing)."""
    global _global_config
    _global_config = None


def create_sample_config() -> str:
    """Generate sample configuration."""
    return json.dumps(DepfileToolsConfig().to_dict(), indent=2)
