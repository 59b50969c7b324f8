"""
Logging setup of the outage monitor.

The process logs through the standard logging module, configured once at
startup from a dictConfig JSON file: the packaged `logging-config-dev.json`
(everything at DEBUG, on stdout) or `logging-config-prod.json` (INFO and up),
or an operator-supplied file. Several monitors can write to the same log
sink, so every record is tagged with the instance id of the process.
"""

import json
import logging.config
import os
from typing import Any, Dict

from outage_monitor.config import MonitoringContext

BUILT_IN_CONFIGS = {
    "dev": "logging-config-dev.json",
    "prod": "logging-config-prod.json",
}


def configure_logging(context: MonitoringContext) -> None:
    """
    Applies the logging configuration selected by --logging-type.

    `dev` and `prod` (case insensitive) load the packaged files; `custom`
    loads --logging-config-file. The instance id filter is then attached to
    every root handler, where it also sees the records propagated from the
    module loggers.

    Args:
        context: The parsed settings holding the logging type, the custom
            file and the instance id.

    Raises:
        ValueError: If the logging type is empty or unknown, or `custom` is
            used without a file.
        RuntimeError: If the selected file cannot be loaded.
    """
    logging_type: str = context.logging_type.lower()
    if not logging_type:
        raise ValueError("Logging type must be provided.")
    elif logging_type in BUILT_IN_CONFIGS:
        _load_logging_config(_get_local_package_file_path(BUILT_IN_CONFIGS[logging_type]))
    elif logging_type == "custom":
        if not context.logging_config_file:
            raise ValueError("Custom logging configuration file must be provided.")
        _load_logging_config(context.logging_config_file)
    else:
        raise ValueError(
            f"Invalid logging type: {context.logging_type}. Allowed values are: dev, prod, custom"
        )

    instance_filter = _InstanceIdFilter(instance_id=context.instance_id)
    for handler in logging.getLogger().handlers:
        handler.addFilter(instance_filter)

    logging.debug(f"Logging configured ({logging_type}) for instance {context.instance_id}")


def _load_logging_config(config_file: str) -> None:
    """
    Reads a dictConfig JSON file and applies it.

    Raises:
        RuntimeError: If the file is missing, is not JSON, or is rejected by dictConfig.
    """
    try:
        with open(config_file) as f:
            config: Dict[str, Any] = json.load(f)
            logging.config.dictConfig(config)
    except FileNotFoundError as err:
        raise RuntimeError(f"Logging config file not found: {config_file}") from err
    except json.JSONDecodeError as err:
        raise RuntimeError(f"Invalid JSON format in logging config file: {config_file}") from err
    except Exception as err:
        raise RuntimeError(f"Error loading logging config: {str(err)}") from err


def _get_local_package_file_path(config_file: str) -> str:
    """Path of a logging configuration file shipped next to this module."""
    return os.path.join(os.path.dirname(__file__), config_file)


class _InstanceIdFilter(logging.Filter):
    """
    Sets `record.instance_id`, used by the `%(instance_id)s` field of the
    packaged formats. It never drops a record.
    """

    def __init__(self, instance_id: str) -> None:
        super().__init__()
        self._instance_id: str = instance_id

    def filter(self, record: logging.LogRecord) -> bool:
        record.instance_id = self._instance_id
        return True
