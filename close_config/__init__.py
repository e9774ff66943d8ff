"""
close_config -- single public entrypoint for close configuration.

Responsibility:
    ``get_close_config()`` is the only way runtime code obtains settings.
    Services receive the returned ``CloseConfig`` as a constructor argument
    and never read files or environment variables themselves.

Architecture position:
    Configuration -- sits above ``close_kernel`` and beside
    ``close_services``.  The kernel and the engines never import from here.

Failure modes:
    - ``FileNotFoundError`` -- the requested file does not exist.
    - ``ValueError`` -- structural validation failures.
    - ``yaml.YAMLError`` -- malformed YAML.

Audit relevance:
    Every successful call emits ``CLOSE_CONFIG_TRACE`` with the config id,
    version and checksum so each finalization can be tied to the settings
    that produced it.
"""

from __future__ import annotations

from pathlib import Path

from close_config.loader import compute_checksum, load_yaml_file, parse_close_config
from close_config.schema import CloseConfig
from close_kernel.logging_config import get_logger

_logger = get_logger("config")

DEFAULT_CONFIG_PATH = Path(__file__).parent / "defaults" / "close.yaml"


def get_close_config(path: Path | str | None = None) -> CloseConfig:
    """Load, validate and return the close configuration.

    Args:
        path: YAML file to load.  Defaults to the bundled
            ``close_config/defaults/close.yaml``.

    Raises:
        FileNotFoundError: If the file does not exist.
        ValueError: If validation fails.
    """
    source = Path(path) if path is not None else DEFAULT_CONFIG_PATH
    config = parse_close_config(load_yaml_file(source))

    _logger.info(
        "CLOSE_CONFIG_TRACE",
        extra={
            "trace_type": "CLOSE_CONFIG_TRACE",
            "config_id": config.config_id,
            "config_version": config.version,
            "checksum": config.checksum,
            "source": str(source),
            "default_currency": config.default_currency,
            "as_of_days": list(config.as_of_days),
        },
    )
    return config


__all__ = ["CloseConfig", "compute_checksum", "get_close_config"]
