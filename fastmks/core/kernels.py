from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Mapping, Protocol, Tuple

import numpy as np

from fastmks import config as mks_config
from fastmks.errors import InvalidArgument, NumericalError

ArrayLike = Any


class PairwiseKernel(Protocol):
    def __call__(self, lhs: np.ndarray, rhs: np.ndarray) -> np.ndarray:
        ...


class DiagonalKernel(Protocol):
    def __call__(self, points: np.ndarray) -> np.ndarray:
        ...


class KernelEvaluator(Protocol):
    """Minimal capability expected from an externally supplied kernel."""

    def evaluate(self, a: np.ndarray, b: np.ndarray) -> float:
        ...


@dataclass(frozen=True)
class Kernel:
    """Container for the vectorised evaluators of one kernel function.

    Every kernel handled here is assumed symmetric, deterministic and positive
    semi-definite, so ``K(x, y)`` is an inner product in some feature space and
    ``sqrt(K(x, x))`` is the norm of ``x`` in that space.
    """

    name: str
    pairwise_kernel: PairwiseKernel
    diagonal_kernel: DiagonalKernel
    params: Mapping[str, float] = field(default_factory=dict)
    source: Any = field(default=None, compare=False, repr=False)

    def pairwise(self, lhs: ArrayLike, rhs: ArrayLike) -> np.ndarray:
        lhs_arr = _ensure_2d(lhs)
        rhs_arr = _ensure_2d(rhs)
        if lhs_arr.shape[0] == 0 or rhs_arr.shape[0] == 0:
            return np.zeros((lhs_arr.shape[0], rhs_arr.shape[0]), dtype=np.float64)
        return np.asarray(self.pairwise_kernel(lhs_arr, rhs_arr), dtype=np.float64)

    def diagonal(self, points: ArrayLike) -> np.ndarray:
        arr = _ensure_2d(points)
        if arr.shape[0] == 0:
            return np.zeros(0, dtype=np.float64)
        return np.asarray(self.diagonal_kernel(arr), dtype=np.float64)

    def evaluate(self, a: ArrayLike, b: ArrayLike) -> float:
        return float(self.pairwise(a, b)[0, 0])

    def self_evaluate(self, a: ArrayLike) -> float:
        return float(self.diagonal(a)[0])

    def same_function(self, other: "Kernel") -> bool:
        """True when both records compute the same kernel.

        Registry kernels match on name and parameters; kernels wrapped around
        an opaque evaluator match only when they wrap the same evaluator object.
        """

        if self is other:
            return True
        return (
            self.name == other.name
            and dict(self.params) == dict(other.params)
            and self.source is other.source
        )

    def describe(self) -> str:
        if not self.params:
            return self.name
        args = ", ".join(f"{key}={value:g}" for key, value in sorted(self.params.items()))
        return f"{self.name}({args})"


KernelFactory = Callable[..., Kernel]


class KernelRegistry:
    """Registry of kernel factories selectable by name."""

    def __init__(self) -> None:
        self._factories: Dict[str, KernelFactory] = {}

    def register(self, name: str, factory: KernelFactory, *, overwrite: bool = False) -> None:
        key = name.lower()
        if not overwrite and key in self._factories:
            raise ValueError(f"Kernel '{name}' already registered.")
        self._factories[key] = factory

    def create(self, name: str, **params: Any) -> Kernel:
        key = name.lower()
        if key not in self._factories:
            raise InvalidArgument(
                f"Kernel '{name}' not registered. Available: {', '.join(self.names())}."
            )
        try:
            return self._factories[key](**params)
        except TypeError as exc:
            raise InvalidArgument(f"Invalid parameters for kernel '{name}': {exc}") from exc

    def names(self) -> Tuple[str, ...]:
        return tuple(sorted(self._factories.keys()))


def _ensure_2d(array: ArrayLike) -> np.ndarray:
    arr = np.asarray(array, dtype=np.float64)
    if arr.ndim == 0:
        arr = arr.reshape(1, 1)
    elif arr.ndim == 1:
        arr = arr[None, :]
    return arr


def _inner_products(lhs: np.ndarray, rhs: np.ndarray) -> np.ndarray:
    """Dot product of every ``lhs`` row with every ``rhs`` row.

    Sums one coordinate at a time with elementwise ufuncs, so the value for a
    pair is bit-identical whatever block it is computed in.
    """

    out = np.zeros((lhs.shape[0], rhs.shape[0]), dtype=np.float64)
    for column in range(lhs.shape[1]):
        out += np.multiply.outer(lhs[:, column], rhs[:, column])
    return out


def _squared_norms(points: np.ndarray) -> np.ndarray:
    out = np.zeros(points.shape[0], dtype=np.float64)
    for column in range(points.shape[1]):
        out += points[:, column] * points[:, column]
    return out


def linear_kernel() -> Kernel:
    def pairwise(lhs: np.ndarray, rhs: np.ndarray) -> np.ndarray:
        return _inner_products(lhs, rhs)

    return Kernel(name="linear", pairwise_kernel=pairwise, diagonal_kernel=_squared_norms)


def polynomial_kernel(degree: float = 2.0, offset: float = 0.0) -> Kernel:
    degree_f = float(degree)
    offset_f = float(offset)
    if degree_f < 1 or not degree_f.is_integer():
        raise InvalidArgument(f"Polynomial degree must be a positive integer, got {degree}.")
    if not math.isfinite(offset_f) or offset_f < 0:
        raise InvalidArgument(f"Polynomial offset must be non-negative, got {offset}.")
    power = int(degree_f)

    def pairwise(lhs: np.ndarray, rhs: np.ndarray) -> np.ndarray:
        return np.power(_inner_products(lhs, rhs) + offset_f, power)

    def diagonal(points: np.ndarray) -> np.ndarray:
        return np.power(_squared_norms(points) + offset_f, power)

    return Kernel(
        name="polynomial",
        pairwise_kernel=pairwise,
        diagonal_kernel=diagonal,
        params={"degree": degree_f, "offset": offset_f},
    )


def cosine_kernel() -> Kernel:
    def _safe_inverse_norms(points: np.ndarray) -> np.ndarray:
        norms = np.sqrt(_squared_norms(points))
        inverse = np.zeros_like(norms)
        nonzero = norms > 0.0
        inverse[nonzero] = 1.0 / norms[nonzero]
        return inverse

    def pairwise(lhs: np.ndarray, rhs: np.ndarray) -> np.ndarray:
        scaled_lhs = lhs * _safe_inverse_norms(lhs)[:, None]
        scaled_rhs = rhs * _safe_inverse_norms(rhs)[:, None]
        return _inner_products(scaled_lhs, scaled_rhs)

    def diagonal(points: np.ndarray) -> np.ndarray:
        return (_squared_norms(points) > 0.0).astype(np.float64)

    return Kernel(name="cosine", pairwise_kernel=pairwise, diagonal_kernel=diagonal)


def gaussian_kernel(bandwidth: float = 1.0) -> Kernel:
    bandwidth_f = float(bandwidth)
    if not math.isfinite(bandwidth_f) or bandwidth_f <= 0:
        raise InvalidArgument(f"Gaussian bandwidth must be positive, got {bandwidth}.")
    gamma = 0.5 / (bandwidth_f * bandwidth_f)

    def pairwise(lhs: np.ndarray, rhs: np.ndarray) -> np.ndarray:
        sq_dist = (
            _squared_norms(lhs)[:, None]
            + _squared_norms(rhs)[None, :]
            - 2.0 * _inner_products(lhs, rhs)
        )
        return np.exp(-gamma * np.maximum(sq_dist, 0.0))

    def diagonal(points: np.ndarray) -> np.ndarray:
        return np.ones(points.shape[0], dtype=np.float64)

    return Kernel(
        name="gaussian",
        pairwise_kernel=pairwise,
        diagonal_kernel=diagonal,
        params={"bandwidth": bandwidth_f},
    )


def _load_registry() -> KernelRegistry:
    registry = KernelRegistry()
    registry.register("linear", linear_kernel)
    registry.register("polynomial", polynomial_kernel)
    registry.register("cosine", cosine_kernel)
    registry.register("gaussian", gaussian_kernel)
    return registry


_REGISTRY = _load_registry()


def get_kernel(name: str | None = None, **params: Any) -> Kernel:
    """Return a registered kernel, defaulting to the runtime-selected kernel."""

    if name is None:
        name = mks_config.runtime_config().kernel
    return _REGISTRY.create(name, **params)


def register_kernel(name: str, factory: KernelFactory, *, overwrite: bool = False) -> None:
    _REGISTRY.register(name, factory, overwrite=overwrite)


def available_kernels() -> Tuple[str, ...]:
    return _REGISTRY.names()


def from_evaluator(evaluator: KernelEvaluator, *, name: str | None = None) -> Kernel:
    """Wrap an object exposing ``evaluate(a, b)`` into a :class:`Kernel`.

    The wrapper evaluates pair by pair, so it is only as fast as the evaluator.
    ``self_evaluate(a)`` is used for the diagonal when present.
    """

    evaluate = getattr(evaluator, "evaluate", None)
    if not callable(evaluate):
        raise InvalidArgument(
            f"Kernel evaluator {evaluator!r} must expose an evaluate(a, b) method."
        )
    self_evaluate = getattr(evaluator, "self_evaluate", None)

    def pairwise(lhs: np.ndarray, rhs: np.ndarray) -> np.ndarray:
        out = np.empty((lhs.shape[0], rhs.shape[0]), dtype=np.float64)
        for i, a in enumerate(lhs):
            for j, b in enumerate(rhs):
                out[i, j] = float(evaluate(a, b))
        return out

    def diagonal(points: np.ndarray) -> np.ndarray:
        if callable(self_evaluate):
            return np.asarray([float(self_evaluate(a)) for a in points], dtype=np.float64)
        return np.asarray([float(evaluate(a, a)) for a in points], dtype=np.float64)

    label = name or type(evaluator).__name__
    return Kernel(
        name=label, pairwise_kernel=pairwise, diagonal_kernel=diagonal, source=evaluator
    )


def as_kernel(kernel: Kernel | str | KernelEvaluator | None) -> Kernel:
    if kernel is None or isinstance(kernel, str):
        return get_kernel(kernel)
    if isinstance(kernel, Kernel):
        return kernel
    return from_evaluator(kernel)


def ensure_finite(values: np.ndarray, *, what: str) -> np.ndarray:
    """Raise :class:`NumericalError` unless every kernel value is finite."""

    if not np.all(np.isfinite(values)):
        raise NumericalError(f"Kernel produced non-finite values while computing {what}.")
    return values


__all__ = [
    "Kernel",
    "KernelEvaluator",
    "KernelRegistry",
    "available_kernels",
    "as_kernel",
    "cosine_kernel",
    "ensure_finite",
    "from_evaluator",
    "gaussian_kernel",
    "get_kernel",
    "linear_kernel",
    "polynomial_kernel",
    "register_kernel",
]
