from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from functools import lru_cache
from typing import Any, Dict

_DEFAULT_KERNEL = "linear"
_DEFAULT_LEAF_SIZE = 64
_DEFAULT_QUERY_BLOCK = 256
_DEFAULT_REFERENCE_BLOCK = 4096
_DEFAULT_WORKERS = 1


def _bool_from_env(value: str | None, *, default: bool) -> bool:
    if value is None:
        return default
    value = value.strip().lower()
    if value in {"1", "true", "yes", "on"}:
        return True
    if value in {"0", "false", "no", "off"}:
        return False
    return default


def _parse_optional_int(raw: str | None) -> int | None:
    if raw is None or raw.strip() == "":
        return None
    try:
        return int(raw)
    except ValueError as exc:
        raise ValueError(f"Invalid integer value '{raw}'") from exc


def _parse_positive_int(var: str, default: int) -> int:
    value = _parse_optional_int(os.getenv(var))
    if value is None:
        return default
    if value <= 0:
        raise ValueError(f"{var} must be a positive integer, got {value}.")
    return value


def _parse_kernel_name(value: str | None) -> str:
    if value is None:
        return _DEFAULT_KERNEL
    name = value.strip().lower()
    return name or _DEFAULT_KERNEL


@dataclass(frozen=True)
class RuntimeConfig:
    kernel: str
    leaf_size: int
    query_block: int
    reference_block: int
    workers: int
    enable_diagnostics: bool
    log_level: str

    @classmethod
    def from_env(cls) -> "RuntimeConfig":
        return cls(
            kernel=_parse_kernel_name(os.getenv("FASTMKS_KERNEL")),
            leaf_size=_parse_positive_int("FASTMKS_LEAF_SIZE", _DEFAULT_LEAF_SIZE),
            query_block=_parse_positive_int("FASTMKS_QUERY_BLOCK", _DEFAULT_QUERY_BLOCK),
            reference_block=_parse_positive_int(
                "FASTMKS_REFERENCE_BLOCK", _DEFAULT_REFERENCE_BLOCK
            ),
            workers=_parse_positive_int("FASTMKS_WORKERS", _DEFAULT_WORKERS),
            enable_diagnostics=_bool_from_env(
                os.getenv("FASTMKS_ENABLE_DIAGNOSTICS"), default=True
            ),
            log_level=os.getenv("FASTMKS_LOG_LEVEL", "INFO").strip().upper() or "INFO",
        )


def _configure_logging(level: str) -> None:
    logger = logging.getLogger("fastmks")
    logger.setLevel(level)
    if not logger.handlers:
        handler = logging.StreamHandler()
        formatter = logging.Formatter("%(levelname)s %(name)s: %(message)s")
        handler.setFormatter(formatter)
        logger.addHandler(handler)


@lru_cache(maxsize=None)
def runtime_config() -> RuntimeConfig:
    config = RuntimeConfig.from_env()
    _configure_logging(config.log_level)
    return config


def reset_runtime_config_cache() -> None:
    runtime_config.cache_clear()


def describe_runtime() -> Dict[str, Any]:
    """Return a serialisable view of the active runtime configuration."""

    config = runtime_config()
    return {
        "kernel": config.kernel,
        "leaf_size": config.leaf_size,
        "query_block": config.query_block,
        "reference_block": config.reference_block,
        "workers": config.workers,
        "enable_diagnostics": config.enable_diagnostics,
        "log_level": config.log_level,
    }


__all__ = [
    "RuntimeConfig",
    "runtime_config",
    "reset_runtime_config_cache",
    "describe_runtime",
]
