from __future__ import annotations

import logging
import time
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any, Dict, Iterator

import psutil

try:  # pragma: no cover - resource is POSIX only
    import resource
except ImportError:  # pragma: no cover - Windows
    resource = None  # type: ignore

from fastmks import config as mks_config


@dataclass
class _ResourceSample:
    wall: float
    cpu_user: float | None = None
    cpu_system: float | None = None
    rss: int | None = None


def _sample(enabled: bool) -> _ResourceSample:
    wall = time.perf_counter()
    if not enabled:
        return _ResourceSample(wall=wall)
    cpu_user = cpu_system = None
    if resource is not None:
        usage = resource.getrusage(resource.RUSAGE_SELF)
        cpu_user = float(usage.ru_utime)
        cpu_system = float(usage.ru_stime)
    rss = int(psutil.Process().memory_info().rss)
    return _ResourceSample(wall=wall, cpu_user=cpu_user, cpu_system=cpu_system, rss=rss)


def _format_delta_ms(after: float | None, before: float | None) -> str:
    if after is None or before is None:
        return "NA"
    return f"{(after - before) * 1e3:.3f}"


def _format_value(value: Any) -> str:
    if isinstance(value, float):
        return f"{value:.6g}"
    return str(value)


@dataclass
class OperationLog:
    """Metadata collector handed to the body of :func:`log_operation`."""

    op: str
    metadata: Dict[str, Any] = field(default_factory=dict)

    def add_metadata(self, **values: Any) -> None:
        self.metadata.update(values)


@contextmanager
def log_operation(logger: logging.Logger, op: str) -> Iterator[OperationLog]:
    """Log wall/CPU/RSS usage and metadata for one operation at INFO level."""

    enabled = mks_config.runtime_config().enable_diagnostics
    op_log = OperationLog(op=op)
    before = _sample(enabled)
    yield op_log
    after = _sample(enabled)

    if after.rss is None or before.rss is None:
        rss_delta = "NA"
    else:
        rss_delta = str(after.rss - before.rss)
    parts = [
        f"op={op}",
        f"wall_ms={(after.wall - before.wall) * 1e3:.3f}",
        f"cpu_user_ms={_format_delta_ms(after.cpu_user, before.cpu_user)}",
        f"cpu_system_ms={_format_delta_ms(after.cpu_system, before.cpu_system)}",
        f"rss_delta={rss_delta}",
    ]
    parts.extend(f"{key}={_format_value(value)}" for key, value in op_log.metadata.items())
    logger.info(" ".join(parts))


__all__ = ["OperationLog", "log_operation"]
