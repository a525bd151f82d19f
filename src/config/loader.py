"""Engine configuration loader."""

import hashlib
import time
from dataclasses import dataclass
from pathlib import Path

import structlog
import yaml
from pydantic import ValidationError

from src.config.error_hints import format_validation_error
from src.config.schemas.engine import EngineConfig


logger = structlog.get_logger()


class ConfigValidationError(Exception):
    """Raised when configuration validation fails."""

    def __init__(self, errors: list[dict[str, str]], file_path: str) -> None:
        """Initialize the error.

        Args:
            errors: List of validation error details.
            file_path: Path to the file that failed validation.
        """
        self.errors = errors
        self.file_path = file_path
        super().__init__(f"Validation failed for {file_path}: {len(errors)} errors")

    def format(self) -> str:
        """Render every error with its remediation hint."""
        return "\n".join(
            format_validation_error(e["loc"], e["msg"], e["type"]) for e in self.errors
        )


@dataclass(frozen=True)
class LoadedConfig:
    """A validated configuration and the checksum of its source file."""

    config: EngineConfig
    checksum: str | None
    path: str | None


def load_engine_config(path: Path | str | None = None) -> LoadedConfig:
    """Load and validate the engine configuration.

    Args:
        path: YAML file to read. None yields the built-in defaults.

    Returns:
        The validated configuration with the file's SHA-256 checksum.

    Raises:
        ConfigValidationError: If the file is missing, is not UTF-8, is not
            valid YAML, or fails schema validation.
    """
    log = logger.bind(component="config")

    if path is None:
        log.info("config_defaults_used")
        return LoadedConfig(config=EngineConfig(), checksum=None, path=None)

    file_path = Path(path)
    start = time.perf_counter()
    log = log.bind(file_path=str(file_path))
    log.info("loading_config_file")

    try:
        content = file_path.read_bytes()
    except FileNotFoundError as e:
        log.error("config_file_not_found", error=str(e))
        raise ConfigValidationError(
            [{"loc": "file", "msg": str(e), "type": "file_not_found"}],
            str(file_path),
        ) from e

    checksum = hashlib.sha256(content).hexdigest()

    try:
        text = content.decode("utf-8")
    except UnicodeDecodeError as e:
        log.error("config_encoding_error", error=str(e))
        raise ConfigValidationError(
            [{"loc": "file", "msg": str(e), "type": "encoding_error"}],
            str(file_path),
        ) from e

    try:
        data = yaml.safe_load(text) or {}
    except yaml.YAMLError as e:
        log.error("config_yaml_parse_error", error=str(e))
        raise ConfigValidationError(
            [{"loc": "yaml", "msg": str(e), "type": "yaml_parse_error"}],
            str(file_path),
        ) from e

    try:
        config = EngineConfig.model_validate(data)
    except ValidationError as e:
        errors = [
            {
                "loc": ".".join(str(loc) for loc in err["loc"]) or "root",
                "msg": err["msg"],
                "type": err["type"],
            }
            for err in e.errors()
        ]
        log.error(
            "config_validation_failed",
            validation_error_count=len(errors),
            errors=errors,
        )
        raise ConfigValidationError(errors, str(file_path)) from e

    log.info(
        "config_loaded",
        file_sha256=checksum,
        config_validation_duration_ms=round((time.perf_counter() - start) * 1000, 2),
    )
    return LoadedConfig(config=config, checksum=checksum, path=str(file_path))
