import logging
from copy import deepcopy
from os import PathLike
from pathlib import Path

import yaml
from pydantic import ValidationError

from ..models.config import ConfigModel

__all__ = [
    "merge_config_dicts",
    "read_and_merge_config_files",
    "read_config",
    "redact_secrets",
]

log = logging.getLogger(__name__)


def _merge_into(target: dict, source: dict, path: list[str]) -> dict:
    for key, new_value in source.items():
        key_path = ".".join([*path, str(key)])
        if key not in target or target[key] is None:
            target[key] = deepcopy(new_value)
            continue

        old_value = target[key]
        if new_value is None:
            continue
        if isinstance(old_value, dict) and isinstance(new_value, dict):
            _merge_into(old_value, new_value, [*path, str(key)])
        elif type(old_value) is type(new_value):
            log.warning(f"Overriding configuration key {key_path}")
            target[key] = deepcopy(new_value)
        else:
            raise ValueError(f"Conflict at {key_path}: {old_value!r} != {new_value!r}")
    return target


def merge_config_dicts(a: dict, b: dict) -> dict:
    """Merge configuration dictionary ``b`` over ``a`` without modifying either.

    - nested dictionaries are merged recursively,
    - ``None`` never replaces a value, and a ``None`` in ``a`` is replaced by the value from ``b``,
    - values of the same type are replaced by the value from ``b``,
    - values of different types raise a ``ValueError``.

    :param a: The base dictionary.
    :param b: The dictionary whose values take precedence.
    :return: The merged dictionary.
    :raises ValueError: If a key holds values of conflicting types.
    """
    return _merge_into(deepcopy(a), b, path=[])


def read_and_merge_config_files(config_files: list[Path]) -> dict:
    """
    Read and merge multiple configuration files in YAML format, later files take precedence.

    :raises RuntimeError: If there is an error reading any of the configuration files.
    """
    configuration: dict[str, object] = {}
    for config_file in config_files:
        try:
            with open(config_file) as fd:
                content = yaml.safe_load(fd) or {}
            configuration = merge_config_dicts(configuration, content)
        except (OSError, yaml.YAMLError, ValueError) as e:
            raise RuntimeError(f"Error reading configuration file: '{config_file}'") from e

    return configuration


def read_config(config_files: list[str | PathLike]) -> ConfigModel:
    """
    Read, merge and validate configuration files.

    Settings missing from the files are taken from ``UPYUN_*`` environment variables,
    e.g. ``UPYUN_REST__BUCKET``.
    """
    config_dict = read_and_merge_config_files([Path(p) for p in config_files])
    try:
        return ConfigModel(**config_dict)
    except ValidationError as e:
        raise ValueError(f"Invalid configuration: {e}") from e


SECRET_KEYS = frozenset({"password"})


def redact_secrets(config: dict) -> dict:
    """Copy of a configuration dictionary with the values of secret keys masked."""
    redacted: dict = {}
    for key, value in config.items():
        if isinstance(value, dict):
            redacted[key] = redact_secrets(value)
        elif key in SECRET_KEYS and value is not None:
            redacted[key] = "***"
        else:
            redacted[key] = value
    return redacted
