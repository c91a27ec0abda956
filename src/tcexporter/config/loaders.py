import logging
from pathlib import Path

import yaml

from tcexporter.errors import ConfigNotFoundError, ConfigParseError

logger = logging.getLogger(__name__)


def load_file(path: Path) -> dict:
    """
    Read a YAML configuration file into a dictionary.

    :param path: Path to the configuration file.
    :return: Parsed mapping; an empty file yields an empty dict.
    :raises ConfigNotFoundError: If the file does not exist.
    :raises ConfigParseError: If the file is unreadable, not YAML, or not a mapping.
    """
    logger.debug("Loading configuration file: %s", path)

    if not path.exists():
        raise ConfigNotFoundError(str(path.absolute()))

    if path.is_dir():
        raise ConfigParseError(f"config path is a directory: {path.absolute()}")

    try:
        with open(path, "r", encoding="utf-8") as fp:
            data = yaml.safe_load(fp)
    except OSError as e:
        raise ConfigParseError(f"failed to read config file {path}: {e}") from e
    except UnicodeDecodeError as e:
        raise ConfigParseError(f"config file {path} is not valid UTF-8: {e}") from e
    except yaml.YAMLError as e:
        raise ConfigParseError(f"failed to parse config file {path}: {e}") from e

    if data is None:
        logger.debug("Config file is empty: %s", path)
        return {}
    if not isinstance(data, dict):
        raise ConfigParseError(
            f"config file {path} must contain a mapping, got {type(data).__name__}"
        )
    return data
