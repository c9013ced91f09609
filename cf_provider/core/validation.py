#cf_provider\core\validation.py
import os
from typing import Dict, List, Mapping, Optional

from cf_provider.core.errors import (
    EnvironmentValidationError,
    ProcessConfigurationError,
    SourceValidationError,
)


def validate_source_archive(path: Optional[str]) -> int:
    """Check the archive is a readable file before any remote call.

    Returns the archive size in bytes.
    """
    if not path:
        raise SourceValidationError(
            "source_code_path required for lifecycle type buildpack",
            detail="set the source_code_path to a path to a zipped up version of your application source code",
        )

    if not os.path.isfile(path):
        raise SourceValidationError(
            f"failed to read zip file for source_code_path: {path}",
            detail="no such file",
        )

    if not os.access(path, os.R_OK):
        raise SourceValidationError(
            f"failed to read zip file for source_code_path: {path}",
            detail="permission denied",
        )

    try:
        return os.stat(path).st_size
    except OSError as e:
        raise SourceValidationError(
            f"failed to stat zip file for source_code_path: {path}",
            detail=str(e),
        ) from e


def environment_errors(variables: Mapping[str, object]) -> List[str]:
    errors = []

    for key, value in variables.items():
        # -------------------------
        # Reserved names
        # -------------------------
        if key == "PORT":
            errors.append(f'"{key}": The PORT environment variable is reserved')
        if key.startswith("VCAP_"):
            errors.append(f'"{key}": Environment variables starting with VCAP_ are reserved')

        # -------------------------
        # Values
        # -------------------------
        if not isinstance(value, str):
            errors.append(f'"{key}": map values should be strings')
        elif value == "":
            # the platform does not persist empty strings
            errors.append(f'"{key}": Cannot set environment variables to empty strings')

    return errors


def validate_environment(variables: Optional[Dict[str, str]]) -> None:
    errors = environment_errors(variables or {})
    if errors:
        raise EnvironmentValidationError("; ".join(errors))


HEALTH_CHECK_TYPES = ("port", "process", "http")


def process_configuration_errors(values: Mapping[str, Optional[object]]) -> List[str]:
    """Range checks for process settings. Unset (None) values are skipped."""
    errors = []

    instances = values.get("instances")
    if instances is not None and instances < 0:
        errors.append(f'"instances": must not be negative, got {instances}')

    for key in ("memory_in_mb", "disk_in_mb", "health_check_timeout"):
        value = values.get(key)
        if value is not None and value <= 0:
            errors.append(f'"{key}": must be greater than zero, got {value}')

    health_check_type = values.get("health_check_type")
    if health_check_type is not None and health_check_type not in HEALTH_CHECK_TYPES:
        errors.append(
            f'"health_check_type": expected one of {", ".join(HEALTH_CHECK_TYPES)}, got {health_check_type}'
        )

    return errors


def validate_process_configuration(values: Mapping[str, Optional[object]]) -> None:
    errors = process_configuration_errors(values)
    if errors:
        raise ProcessConfigurationError("; ".join(errors))
