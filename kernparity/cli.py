import json as _json
from typing import Optional

import click
import psutil
from rich.console import Console
from rich.table import Table

from . import config as _cfg
from .accelerator.opencl import is_opencl_available
from .backends.base import get_backend_manager
from .benchmark import BenchmarkReport, run_dotprod_benchmark, run_matmul_benchmark, sample
from .errors import KernparityError
from .kernels import get_kernel_catalog
from .utils.logging import set_level

console = Console()


def _split_backends(value: Optional[str]):
    if not value:
        return None
    return [v.strip() for v in value.split(",") if v.strip()]


def _host_summary() -> dict:
    vm = psutil.virtual_memory()
    return {
        "cpu_logical": psutil.cpu_count(logical=True),
        "cpu_physical": psutil.cpu_count(logical=False),
        "memory_total": vm.total,
        "memory_available": vm.available,
    }


def _print_report(report: BenchmarkReport, head_tail: int, as_json: bool) -> None:
    if as_json:
        data = report.to_dict()
        data["samples"] = {}
        for name, out in report.outputs.items():
            head, tail = sample(out, head_tail)
            data["samples"][name] = {"head": head, "tail": tail}
        click.echo(_json.dumps(data, indent=2))
        return

    table = Table(title=f"{report.op} ({report.kernel})")
    table.add_column("backend")
    table.add_column("kernel")
    table.add_column("median ms", justify="right")
    table.add_column("min ms", justify="right")
    table.add_column("device ms", justify="right")
    table.add_column("GFLOP/s", justify="right")
    for r in report.results:
        if not r.ok:
            table.add_row(r.backend, r.kernel or "-", "[red]failed[/red]", "", "", "")
            continue
        table.add_row(
            r.backend,
            r.kernel or "-",
            f"{r.median_ms:.3f}",
            f"{r.min_ms:.3f}",
            f"{r.device_ms:.3f}" if r.device_ms is not None else "-",
            f"{r.gflops:.3f}" if r.gflops is not None else "-",
        )
    console.print(table)

    for r in report.results:
        if r.error:
            console.print(f"[yellow]{r.backend}:[/yellow] {r.error}")

    for name, out in report.outputs.items():
        head, tail = sample(out, head_tail)
        console.print(f"{name}: first {head} last {tail}")

    if report.parity is None:
        console.print("[yellow]Parity not checked (fewer than two backends produced output)[/yellow]")
    elif report.parity.ok:
        console.print(f"[green]Parity OK:[/green] {report.parity.summary()}")
    else:
        console.print(f"[red]Parity FAILED:[/red] {report.parity.summary()}")


def _bench_options(fn):
    fn = click.option("--json", "as_json", is_flag=True, help="Emit machine-readable JSON.")(fn)
    fn = click.option(
        "--tolerance", type=float, default=None, help="Absolute tolerance for floating-point parity."
    )(fn)
    fn = click.option("--seed", type=int, default=1337, show_default=True, help="Input data seed.")(fn)
    fn = click.option("--runs", type=int, default=None, help="Timed iterations per backend.")(fn)
    fn = click.option("--warmup", type=int, default=None, help="Untimed warmup iterations per backend.")(fn)
    fn = click.option(
        "--backends",
        default=None,
        help="Comma-separated backends to run (default: sequential,parallel,accelerator).",
    )(fn)
    return fn


def _finish(report: BenchmarkReport, as_json: bool) -> None:
    _print_report(report, 5, as_json)
    if not report.ok:
        raise SystemExit(1)


@click.group()
@click.option("--log-level", default=None, help="Override KERNPARITY_LOG_LEVEL for this run.")
def main(log_level: Optional[str]):
    """kernparity: sequential, parallel and accelerator kernels checked for parity."""
    if log_level:
        _cfg.set("KERNPARITY_LOG_LEVEL", log_level.upper())
        set_level(log_level)


@main.command()
@click.option("--json", "as_json", is_flag=True, help="Emit machine-readable JSON.")
def info(as_json: bool):
    """Display host resources, accelerator availability and backends."""
    details = get_backend_manager().backend_details()
    data = {
        "host": _host_summary(),
        "opencl_available": is_opencl_available(),
        "backends": details,
    }
    if as_json:
        click.echo(_json.dumps(data, indent=2, default=str))
        return
    console.print("[bold cyan]kernparity report[/bold cyan]")
    host = data["host"]
    console.print(
        f"CPU: {host['cpu_logical']} logical / {host['cpu_physical']} physical, "
        f"memory {host['memory_available'] / 2**30:.1f} of {host['memory_total'] / 2**30:.1f} GiB free"
    )
    console.print(f"OpenCL available: {data['opencl_available']}")
    for name, d in details.items():
        state = "[green]available[/green]" if d.get("available") else "[red]unavailable[/red]"
        line = f"- {name}: {state}"
        if d.get("device_names"):
            line += f" ({', '.join(d['device_names'])})"
        if d.get("error"):
            line += f" [dim]{d['error']}[/dim]"
        console.print(line)
        for key, value in (d.get("metadata") or {}).items():
            console.print(f"    {key}: {value}")


@main.command()
@click.option("--json", "as_json", is_flag=True, help="Emit machine-readable JSON.")
def kernels(as_json: bool):
    """List the kernel catalog."""
    catalog = get_kernel_catalog()
    rows = [
        {
            "name": s.name,
            "op": s.op.value,
            "dtype": s.type_name,
            "tiled": s.tiled,
            "source": s.source_file,
        }
        for s in catalog.specs()
    ]
    if as_json:
        click.echo(_json.dumps({"kernels": rows, "aliases": catalog.aliases()}, indent=2))
        return
    table = Table(title="Kernels")
    for col in ("name", "op", "dtype", "tiled", "source"):
        table.add_column(col)
    for r in rows:
        table.add_row(r["name"], r["op"], r["dtype"], "yes" if r["tiled"] else "", r["source"])
    console.print(table)
    for alias, target in sorted(catalog.aliases().items()):
        console.print(f"alias {alias} -> {target}")


@main.command()
@click.option("--size", type=int, default=1_000_000, show_default=True, help="Vector length.")
@click.option(
    "--kernel",
    "kernel_name",
    default="dotprod_integer16",
    show_default=True,
    help="Accelerator dot product kernel.",
)
@_bench_options
def dotprod(size, kernel_name, backends, warmup, runs, seed, tolerance, as_json):
    """Benchmark the elementwise dot product on every backend."""
    try:
        report = run_dotprod_benchmark(
            size=size,
            kernel_name=kernel_name,
            backends=_split_backends(backends),
            seed=seed,
            warmup=warmup,
            runs=runs,
            tolerance=tolerance,
        )
    except (KernparityError, ValueError) as e:
        raise click.ClickException(str(e))
    _finish(report, as_json)


@main.command()
@click.option("--rows", type=int, default=1024, show_default=True, help="Rows of A.")
@click.option("--inner", type=int, default=1024, show_default=True, help="Columns of A / rows of B.")
@click.option("--cols", type=int, default=1024, show_default=True, help="Columns of B.")
@click.option(
    "--kernel",
    "kernel_name",
    default="matmul_half_float",
    show_default=True,
    help="Accelerator matrix multiply kernel.",
)
@_bench_options
def matmul(rows, inner, cols, kernel_name, backends, warmup, runs, seed, tolerance, as_json):
    """Benchmark matrix multiplication on every backend."""
    try:
        report = run_matmul_benchmark(
            rows=rows,
            inner=inner,
            cols=cols,
            kernel_name=kernel_name,
            backends=_split_backends(backends),
            seed=seed,
            warmup=warmup,
            runs=runs,
            tolerance=tolerance,
        )
    except (KernparityError, ValueError) as e:
        raise click.ClickException(str(e))
    _finish(report, as_json)


@main.group()
def config():
    """Inspect kernparity configuration variables."""
    pass


@config.command("list")
@click.option("--json", "as_json", is_flag=True, help="Emit machine-readable JSON.")
def config_list(as_json: bool):
    entries = _cfg.describe()
    if as_json:
        click.echo(_json.dumps(entries, indent=2, default=str))
        return
    for e in entries:
        console.print(f"- ({e['category']}) {e['name']} = {e['current']!r} (default {e['default']!r}): {e['description']}")


__all__ = ["main"]
