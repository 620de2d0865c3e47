import os
import sys
from dataclasses import dataclass, fields
from typing import Any, Mapping, Optional, Tuple

from loguru import logger

# Values of PYDBGPLOT_ENABLED that switch recording off
_FALSE_STRINGS = ("0", "false", "no", "off")

# Settings that must stay strictly positive, with their types
_POSITIVE_FIELDS = {"default_capacity": int, "redraw_interval": float}


def _positive(name: str, value: Any, cast: type, fallback: Any) -> Any:
    """``cast(value)`` if it is strictly positive, else ``fallback`` with a warning."""
    try:
        result = cast(value)
        if not result > 0:
            raise ValueError(value)
        return result
    except (TypeError, ValueError, OverflowError):
        logger.warning(f"Ignoring invalid {name}={value!r}, using {fallback}")
        return fallback


def configure_logging(log_level: str = "INFO") -> None:
    """
    Configure loguru logging with specified level.

    Parameters
    ----------
    log_level : str, default="INFO"
        Logging level: DEBUG, INFO, WARNING, ERROR, CRITICAL.
    """
    logger.remove()
    logger.add(
        sys.stderr,
        level=log_level.upper(),
        format="<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | <level>{message}</level>",
        colorize=True,
    )


@dataclass
class Settings:
    """
    Process-wide runtime switches and defaults.

    A single instance lives in this module and is mutated in place by
    :func:`configure`, so modules holding a reference always see current values.
    """

    # Recording is off under `python -O`, mirroring a release build
    enabled: bool = __debug__
    output_dir: str = ".plots"
    default_size: Tuple[int, int] = (640, 480)
    default_capacity: int = 1000
    redraw_interval: float = 0.1
    log_level: Optional[str] = None

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "Settings":
        """
        Build settings from ``PYDBGPLOT_*`` environment variables.

        Malformed numeric values are logged and replaced by the defaults.
        """
        env = os.environ if environ is None else environ
        result = cls()

        enabled = env.get("PYDBGPLOT_ENABLED")
        if enabled is not None:
            result.enabled = enabled.strip().lower() not in _FALSE_STRINGS

        output_dir = env.get("PYDBGPLOT_DIR")
        if output_dir:
            result.output_dir = output_dir

        capacity = env.get("PYDBGPLOT_CAPACITY")
        if capacity is not None:
            result.default_capacity = _positive(
                "PYDBGPLOT_CAPACITY", capacity, int, result.default_capacity
            )

        interval = env.get("PYDBGPLOT_REDRAW_INTERVAL")
        if interval is not None:
            result.redraw_interval = _positive(
                "PYDBGPLOT_REDRAW_INTERVAL", interval, float, result.redraw_interval
            )

        log_level = env.get("PYDBGPLOT_LOG_LEVEL")
        if log_level:
            result.log_level = log_level

        return result


SETTINGS = Settings.from_env()

if SETTINGS.log_level:
    configure_logging(SETTINGS.log_level)


def configure(**overrides: Any) -> Settings:
    """
    Update the process-wide settings.

    Parameters
    ----------
    **overrides
        Any field of :class:`Settings`. A non-positive ``default_capacity``
        or ``redraw_interval`` is logged and the current value is kept.

    Returns
    -------
    Settings
        The (mutated) process-wide settings instance.

    Raises
    ------
    ValueError
        If an unknown setting name is given.
    """
    known = {f.name for f in fields(Settings)}
    unknown = sorted(set(overrides) - known)
    if unknown:
        raise ValueError(f"Unknown setting(s): {', '.join(unknown)}")

    for name, value in overrides.items():
        if name in _POSITIVE_FIELDS:
            value = _positive(name, value, _POSITIVE_FIELDS[name], getattr(SETTINGS, name))
            overrides[name] = value
        setattr(SETTINGS, name, value)
    logger.debug(f"Settings updated: {overrides}")

    if overrides.get("log_level"):
        configure_logging(overrides["log_level"])
    return SETTINGS
