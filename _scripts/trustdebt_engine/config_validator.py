"""
Trust Debt - Config Validation v1.0

Copyright (c) 2025 Brent Lefebure / EhkoLabs
Licensed under AGPLv3 - See LICENSE in repository root

Validates environment configuration at startup to fail fast with
helpful messages, and turns it into runtime settings for a run.
"""

import logging
import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Dict, Any, Mapping

from .artifacts import ArtifactStore
from .core.config import TrustDebtConfig
from .errors import ConfigurationError
from .logging_utils import setup_logging

logger = logging.getLogger(__name__)


# =============================================================================
# CONFIGURATION SCHEMA
# =============================================================================

@dataclass
class ConfigCheck:
    """A single configuration check."""
    name: str
    env_var: str
    required: bool = False
    pattern: Optional[str] = None  # Regex pattern for validation
    description: str = ""
    default: Optional[str] = None


@dataclass
class ConfigValidationResult:
    """Result of configuration validation."""
    valid: bool
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    config_values: Dict[str, Any] = field(default_factory=dict)


CONFIG_SCHEMA = [
    ConfigCheck(
        name="Log Level",
        env_var="TRUSTDEBT_LOG_LEVEL",
        pattern=r"^(DEBUG|INFO|WARNING|ERROR|CRITICAL)$",
        description="Logging level (default: INFO)",
        default="INFO",
    ),
    ConfigCheck(
        name="JSON Logs",
        env_var="TRUSTDEBT_JSON_LOGS",
        pattern=r"^(true|false)$",
        description="Emit JSON log lines, e.g. for CI (default: false)",
        default="false",
    ),
    ConfigCheck(
        name="Artifact Directory",
        env_var="TRUSTDEBT_ARTIFACT_DIR",
        description="Root directory for stage artifacts (default: ./_data/trustdebt)",
        default="./_data/trustdebt",
    ),
    ConfigCheck(
        name="Namespace",
        env_var="TRUSTDEBT_NAMESPACE",
        pattern=r"^[A-Za-z0-9][A-Za-z0-9_.-]{0,63}$",
        description="Artifact namespace isolating this run (default: default)",
        default="default",
    ),
    ConfigCheck(
        name="Config File",
        env_var="TRUSTDEBT_CONFIG",
        pattern=r"^.+\.(json|ya?ml)$",
        description="Pipeline config file, JSON or YAML (default: built-in settings)",
    ),
    ConfigCheck(
        name="Workers",
        env_var="TRUSTDEBT_WORKERS",
        pattern=r"^[1-9]\d{0,2}$",
        description="Thread pool size for file reads and commit replay (default: from config)",
    ),
]


# =============================================================================
# VALIDATION FUNCTIONS
# =============================================================================

def validate_config(schema: List[ConfigCheck] = None,
                    environ: Optional[Mapping[str, str]] = None) -> ConfigValidationResult:
    """
    Validate environment configuration against schema.

    Args:
        schema: List of ConfigCheck objects (defaults to CONFIG_SCHEMA)
        environ: Mapping to read instead of os.environ

    Returns:
        ConfigValidationResult with errors and warnings
    """
    if schema is None:
        schema = CONFIG_SCHEMA
    if environ is None:
        environ = os.environ

    result = ConfigValidationResult(valid=True)

    for check in schema:
        value = environ.get(check.env_var)
        result.config_values[check.env_var] = value or check.default

        if check.required and not value:
            result.errors.append(
                f"Missing required config: {check.name} ({check.env_var})\n"
                f"  Description: {check.description}"
            )
            result.valid = False
            continue

        if not value:
            continue

        if check.pattern and not re.match(check.pattern, value, re.IGNORECASE):
            result.errors.append(
                f"Invalid {check.name}: value doesn't match expected format\n"
                f"  Environment variable: {check.env_var}\n"
                f"  Expected pattern: {check.pattern}\n"
                f"  Description: {check.description}"
            )
            result.valid = False

    config_file = environ.get("TRUSTDEBT_CONFIG")
    if config_file and not Path(config_file).is_file():
        result.errors.append(
            f"Config file not found: {config_file}\n"
            f"  Set TRUSTDEBT_CONFIG to an existing JSON or YAML file."
        )
        result.valid = False

    artifact_dir = Path(result.config_values["TRUSTDEBT_ARTIFACT_DIR"])
    if artifact_dir.exists() and not artifact_dir.is_dir():
        result.errors.append(
            f"Artifact directory is not a directory: {artifact_dir}\n"
            f"  Set TRUSTDEBT_ARTIFACT_DIR to a writable directory."
        )
        result.valid = False
    elif not artifact_dir.exists():
        result.warnings.append(f"Artifact directory {artifact_dir} will be created on first write")

    return result


def validate_on_startup(
    strict: bool = False,
    exit_on_error: bool = True,
    environ: Optional[Mapping[str, str]] = None,
) -> ConfigValidationResult:
    """
    Validate configuration before a pipeline run.

    Args:
        strict: If True, treat warnings as errors
        exit_on_error: If True, exit process on validation failure

    Returns:
        ConfigValidationResult
    """
    result = validate_config(environ=environ)

    print("\n" + "=" * 60)
    print("Trust Debt Configuration Validation")
    print("=" * 60)

    if result.errors:
        print("\nERRORS:")
        for i, error in enumerate(result.errors, 1):
            print(f"\n  [{i}] {error}")

    if result.warnings:
        print("\nWARNINGS:")
        for i, warning in enumerate(result.warnings, 1):
            print(f"\n  [{i}] {warning}")

    if strict and result.warnings:
        result.valid = False
        print("\n  (Strict mode: warnings treated as errors)")

    if result.valid:
        print("\nConfiguration: OK")
        if result.warnings:
            print(f"  ({len(result.warnings)} warning(s) - non-critical)")
    else:
        print(f"\nConfiguration: FAILED ({len(result.errors)} error(s))")

    print("=" * 60 + "\n")

    if not result.valid and exit_on_error:
        print("Pipeline cannot start with invalid configuration.")
        print("Please fix the errors above and rerun.\n")
        raise SystemExit(1)

    return result


# =============================================================================
# RUNTIME SETTINGS
# =============================================================================

@dataclass
class RuntimeSettings:
    """Environment-derived settings for one pipeline run."""
    config: TrustDebtConfig
    artifact_dir: Path
    namespace: str
    log_level: str = "INFO"
    json_logs: bool = False

    def store(self, clock=None) -> ArtifactStore:
        return ArtifactStore(self.artifact_dir, self.namespace, clock=clock)

    def setup_logging(self, log_file: Optional[str] = None) -> logging.Logger:
        return setup_logging(self.log_level, self.json_logs, log_file)


def load_config_from_env(environ: Optional[Mapping[str, str]] = None) -> RuntimeSettings:
    """
    Build runtime settings from TRUSTDEBT_* variables.

    Raises:
        ConfigurationError: any variable is invalid, or the pipeline
            config it points at fails validation
    """
    result = validate_config(environ=environ)
    if not result.valid:
        raise ConfigurationError(result.errors)

    values = result.config_values
    config_file = values.get("TRUSTDEBT_CONFIG")
    config = TrustDebtConfig.load(Path(config_file)) if config_file else TrustDebtConfig()
    if values.get("TRUSTDEBT_WORKERS"):
        config.workers = int(values["TRUSTDEBT_WORKERS"])

    return RuntimeSettings(
        config=config.validate(),
        artifact_dir=Path(values["TRUSTDEBT_ARTIFACT_DIR"]),
        namespace=values["TRUSTDEBT_NAMESPACE"],
        log_level=values["TRUSTDEBT_LOG_LEVEL"].upper(),
        json_logs=values["TRUSTDEBT_JSON_LOGS"].lower() == "true",
    )


def get_config_summary(environ: Optional[Mapping[str, str]] = None) -> Dict[str, Any]:
    """Current value (or default) of every environment setting."""
    if environ is None:
        environ = os.environ
    return {
        check.env_var: environ.get(check.env_var) or f"(default: {check.default})"
        for check in CONFIG_SCHEMA
    }


def print_config_help():
    """Print help text for all configuration options."""
    print("\n" + "=" * 60)
    print("Trust Debt Configuration Options")
    print("=" * 60)

    for check in CONFIG_SCHEMA:
        required = " [REQUIRED]" if check.required else ""
        default = f" (default: {check.default})" if check.default else ""

        print(f"\n{check.env_var}{required}{default}")
        print(f"  {check.description}")
        if check.pattern:
            print(f"  Format: {check.pattern}")

    print("\n" + "=" * 60 + "\n")


# =============================================================================
# MODULE EXPORTS
# =============================================================================

__all__ = [
    "ConfigCheck",
    "ConfigValidationResult",
    "RuntimeSettings",
    "CONFIG_SCHEMA",
    "validate_config",
    "validate_on_startup",
    "load_config_from_env",
    "get_config_summary",
    "print_config_help",
]
