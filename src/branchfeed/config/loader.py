"""YAML loader for the ranking configuration."""

import hashlib
import time
from pathlib import Path
from typing import NoReturn

import structlog
import yaml
from pydantic import ValidationError

from branchfeed.config.schemas import RankingConfig


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


class RankingConfigLoader:
    """Loads and validates a ranking configuration file.

    A missing path yields the built-in defaults. Any other problem (unreadable
    file, YAML syntax, schema violation) raises ConfigValidationError with
    one entry per problem.
    """

    def __init__(self) -> None:
        """Initialize the loader."""
        self._checksum: str | None = None
        self._validation_errors: list[dict[str, str]] = []
        self._validation_duration_ms: float = 0

    @property
    def checksum(self) -> str | None:
        """SHA-256 of the last loaded file, if any."""
        return self._checksum

    @property
    def validation_errors(self) -> list[dict[str, str]]:
        """Get validation errors if any."""
        return self._validation_errors.copy()

    @property
    def validation_duration_ms(self) -> float:
        """Get validation duration in milliseconds."""
        return self._validation_duration_ms

    def load(self, file_path: Path | None) -> RankingConfig:
        """Load the ranking configuration.

        Args:
            file_path: YAML file, or None for defaults.

        Returns:
            Validated RankingConfig.

        Raises:
            ConfigValidationError: If the file cannot be read or validated.
        """
        log = logger.bind(component="config")
        if file_path is None:
            log.debug("ranking_config_defaults")
            return RankingConfig()

        start_time = time.perf_counter()
        self._validation_errors = []
        log = log.bind(file_path=str(file_path))
        log.info("loading_config_file", file_type="ranking")

        try:
            content_bytes = file_path.read_bytes()
            self._checksum = hashlib.sha256(content_bytes).hexdigest()
            data = yaml.safe_load(content_bytes.decode("utf-8")) or {}
            if not isinstance(data, dict):
                self._fail(
                    log,
                    file_path,
                    {"loc": "", "msg": "Top-level value must be a mapping", "type": "type_error"},
                )
            config = RankingConfig.model_validate(data)

        except ValidationError as e:
            for err in e.errors():
                self._validation_errors.append(
                    {
                        "loc": ".".join(str(loc) for loc in err["loc"]),
                        "msg": err["msg"],
                        "type": err["type"],
                    }
                )
            log.error(
                "config_validation_failed",
                validation_error_count=len(self._validation_errors),
                errors=self._validation_errors,
            )
            raise ConfigValidationError(self._validation_errors, str(file_path)) from e

        except FileNotFoundError as e:
            self._fail(
                log,
                file_path,
                {"loc": "", "msg": f"File not found: {e.filename}", "type": "file_not_found"},
                cause=e,
            )

        except yaml.YAMLError as e:
            self._fail(
                log,
                file_path,
                {"loc": "", "msg": f"YAML parse error: {e}", "type": "yaml_error"},
                cause=e,
            )

        self._validation_duration_ms = (time.perf_counter() - start_time) * 1000
        log.info(
            "config_file_loaded",
            file_sha256=self._checksum,
            config_validation_duration_ms=self._validation_duration_ms,
        )
        return config

    def _fail(
        self,
        log: structlog.stdlib.BoundLogger,
        file_path: Path,
        error: dict[str, str],
        cause: Exception | None = None,
    ) -> NoReturn:
        self._validation_errors.append(error)
        log.error("config_load_failed", error_type=error["type"], msg=error["msg"])
        raise ConfigValidationError(self._validation_errors, str(file_path)) from cause


def load_ranking_config(file_path: Path | None) -> RankingConfig:
    """Load a ranking configuration with a fresh loader.

    Args:
        file_path: YAML file, or None for defaults.

    Returns:
        Validated RankingConfig.
    """
    return RankingConfigLoader().load(file_path)
