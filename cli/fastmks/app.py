from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Dict, List, Literal, Optional

from numpy.random import default_rng
import typer
from typing_extensions import Annotated

from fastmks import config as mks_config, get_kernel
from fastmks.core.kernels import Kernel

from .benchmark import (
    MODES,
    ModeBenchmarkResult,
    benchmark_mode,
    format_result,
    generate_points,
    results_match,
)


@dataclass
class FastMKSCLIOptions:
    points: int = 2_000
    queries: int | None = None
    dimension: int = 8
    distribution: str = "normal"
    seed: int = 0
    kernel: str = "linear"
    degree: float = 2.0
    offset: float = 0.0
    bandwidth: float = 1.0
    mode: str = "all"
    k: int = 5
    leaf_size: int | None = None
    workers: int | None = None
    verify: bool = False
    diagnostics: bool | None = None
    log_level: str | None = None


app = typer.Typer(
    add_completion=False,
    pretty_exceptions_enable=False,
    rich_markup_mode="rich",
    context_settings={"help_option_names": ["-h", "--help"]},
    help="Benchmark exact max-kernel search (naive, single-tree and dual-tree).",
)

_SHAPE_PANEL = "Dataset shape"
_KERNEL_PANEL = "Kernel"
_SEARCH_PANEL = "Search controls"
_RUNTIME_PANEL = "Runtime controls"


@app.callback(invoke_without_command=True)
def cli(
    ctx: typer.Context,
    points: Annotated[
        int,
        typer.Option("--points", help="Number of reference points.", rich_help_panel=_SHAPE_PANEL),
    ] = 2_000,
    queries: Annotated[
        Optional[int],
        typer.Option(
            "--queries",
            help="Number of separate query points (default: monochromatic search).",
            rich_help_panel=_SHAPE_PANEL,
        ),
    ] = None,
    dimension: Annotated[
        int,
        typer.Option("--dimension", help="Dimensionality of the points.", rich_help_panel=_SHAPE_PANEL),
    ] = 8,
    distribution: Annotated[
        Literal["normal", "uniform"],
        typer.Option(
            "--distribution",
            case_sensitive=False,
            help="Distribution the points are drawn from.",
            rich_help_panel=_SHAPE_PANEL,
        ),
    ] = "normal",
    seed: Annotated[
        int,
        typer.Option("--seed", help="Random seed for point generation.", rich_help_panel=_SHAPE_PANEL),
    ] = 0,
    kernel: Annotated[
        str,
        typer.Option(
            "--kernel",
            help="Kernel name (linear, polynomial, cosine, gaussian).",
            rich_help_panel=_KERNEL_PANEL,
        ),
    ] = "linear",
    degree: Annotated[
        float,
        typer.Option("--degree", help="Polynomial kernel degree.", rich_help_panel=_KERNEL_PANEL),
    ] = 2.0,
    offset: Annotated[
        float,
        typer.Option("--offset", help="Polynomial kernel offset.", rich_help_panel=_KERNEL_PANEL),
    ] = 0.0,
    bandwidth: Annotated[
        float,
        typer.Option("--bandwidth", help="Gaussian kernel bandwidth.", rich_help_panel=_KERNEL_PANEL),
    ] = 1.0,
    mode: Annotated[
        Literal["naive", "single", "dual", "all"],
        typer.Option(
            "--mode",
            case_sensitive=False,
            help="Search mode to run, or 'all' for every mode.",
            rich_help_panel=_SEARCH_PANEL,
        ),
    ] = "all",
    k: Annotated[
        int,
        typer.Option("--k", help="Number of matches requested per query.", rich_help_panel=_SEARCH_PANEL),
    ] = 5,
    leaf_size: Annotated[
        Optional[int],
        typer.Option(
            "--leaf-size",
            help="Maximum number of points per tree leaf.",
            rich_help_panel=_SEARCH_PANEL,
        ),
    ] = None,
    workers: Annotated[
        Optional[int],
        typer.Option("--workers", help="Worker threads per search.", rich_help_panel=_SEARCH_PANEL),
    ] = None,
    verify: Annotated[
        bool,
        typer.Option(
            "--verify/--no-verify",
            help="Compare every mode with the naive scan; exit 1 on mismatch.",
            rich_help_panel=_SEARCH_PANEL,
        ),
    ] = False,
    diagnostics: Annotated[
        Optional[bool],
        typer.Option(
            "--enable-diagnostics/--disable-diagnostics",
            help="Control resource polling + diagnostic logging.",
            rich_help_panel=_RUNTIME_PANEL,
        ),
    ] = None,
    log_level: Annotated[
        Optional[str],
        typer.Option("--log-level", help="Override runtime log level.", rich_help_panel=_RUNTIME_PANEL),
    ] = None,
) -> None:
    options = FastMKSCLIOptions(
        points=points,
        queries=queries,
        dimension=dimension,
        distribution=distribution.lower(),
        seed=seed,
        kernel=kernel,
        degree=degree,
        offset=offset,
        bandwidth=bandwidth,
        mode=mode.lower(),
        k=k,
        leaf_size=leaf_size,
        workers=workers,
        verify=verify,
        diagnostics=diagnostics,
        log_level=log_level,
    )
    ctx.obj = options
    if ctx.invoked_subcommand is None:
        if not run_search(options):
            raise typer.Exit(code=1)


def _kernel_from_options(options: FastMKSCLIOptions) -> Kernel:
    name = options.kernel.strip().lower()
    if name == "polynomial":
        return get_kernel(name, degree=options.degree, offset=options.offset)
    if name == "gaussian":
        return get_kernel(name, bandwidth=options.bandwidth)
    return get_kernel(name)


def _apply_runtime_overrides(options: FastMKSCLIOptions) -> None:
    if options.diagnostics is not None:
        os.environ["FASTMKS_ENABLE_DIAGNOSTICS"] = "1" if options.diagnostics else "0"
    if options.log_level:
        os.environ["FASTMKS_LOG_LEVEL"] = options.log_level
    mks_config.reset_runtime_config_cache()
    mks_config.runtime_config()


def _selected_modes(options: FastMKSCLIOptions) -> List[str]:
    if options.mode == "all":
        return list(MODES)
    if options.verify and options.mode != "naive":
        return ["naive", options.mode]
    return [options.mode]


def run_search(options: FastMKSCLIOptions) -> bool:
    """Run the selected modes and print one summary line per mode.

    Returns ``False`` when ``--verify`` is set and some mode disagrees with the
    naive scan.
    """

    _apply_runtime_overrides(options)
    kernel = _kernel_from_options(options)
    rng = default_rng(options.seed)
    references = generate_points(
        rng, options.points, options.dimension, distribution=options.distribution
    )
    query_points = None
    if options.queries is not None:
        query_points = generate_points(
            default_rng(options.seed + 1),
            options.queries,
            options.dimension,
            distribution=options.distribution,
        )

    print(
        f"fastmks | kernel={kernel.describe()} points={options.points} "
        f"queries={options.queries if options.queries is not None else options.points} "
        f"dimension={options.dimension} distribution={options.distribution} k={options.k}"
    )

    results: Dict[str, ModeBenchmarkResult] = {}
    for mode in _selected_modes(options):
        results[mode] = benchmark_mode(
            mode,
            references,
            kernel,
            options.k,
            queries=query_points,
            leaf_size=options.leaf_size,
            workers=options.workers,
        )

    baseline = results.get("naive")
    ok = True
    for mode, result in results.items():
        extra = None
        if baseline is not None and mode != "naive":
            pruned = 1.0 - result.stats.base_cases / max(baseline.stats.base_cases, 1)
            extra = f"pruned={pruned:.1%}"
            if options.verify:
                match = results_match(result, baseline)
                ok = ok and match
                extra += f" verify={'ok' if match else 'MISMATCH'}"
        print(format_result(result, extra=extra))
    return ok


def main() -> None:
    app()


__all__ = ["FastMKSCLIOptions", "app", "main", "run_search"]
