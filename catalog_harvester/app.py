"""Typer CLI entrypoint for catalog-harvester."""

from __future__ import annotations

import asyncio
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import typer
from rich import box
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from .config import ConfigRepository
from .engine import PagePlan
from .engine.exporter import open_key_value_store
from .errors import HarvestError
from .logging_conf import configure_logging, log_paths, tail_log
from .orchestrator import Harvester, HarvestSummary
from .ui import ProgressReporter

app = typer.Typer(
    help="catalog-harvester 命令行工具：分页抓取应用目录并去重保存",
    no_args_is_help=True,
    rich_markup_mode=None,
)
log_app = typer.Typer(
    name="log",
    help="日志查看命令",
    no_args_is_help=True,
    rich_markup_mode=None,
)

console = Console()


@dataclass
class AppState:
    repository: ConfigRepository
    harvester: Harvester
    verbose: bool = False


def build_state(verbose: bool) -> AppState:
    repository = ConfigRepository()
    global_config = repository.load_global_config()
    configure_logging(verbose=verbose, log_dir=repository.locator.logs_dir)
    harvester = Harvester(global_config, repository.storage_dir())
    return AppState(repository=repository, harvester=harvester, verbose=verbose)


def _get_state(ctx: typer.Context) -> AppState:
    state = ctx.obj
    if state is None:
        state = build_state(verbose=False)
        ctx.obj = state
    return state


# 进度条策略：默认在交互式终端显示，非TTY自动降级为静默
def _progress_default_enabled() -> bool:
    return bool(getattr(sys.stdout, "isatty", lambda: False)())


def _render_summary(summary: HarvestSummary) -> Table:
    table = Table(title=f"{summary.store_name}/{summary.key} 运行结果", box=box.SIMPLE_HEAD)
    table.add_column("指标", style="cyan")
    table.add_column("数量", style="green", justify="right")
    table.add_row("总条目", str(summary.total_items))
    table.add_row("页数", str(summary.page_count))
    table.add_row("抓取", str(summary.fetched))
    table.add_row("去重后保存", str(summary.stored))
    table.add_row("存储后端", summary.backend)
    return table


@app.callback()
def main(
    ctx: typer.Context,
    verbose: bool = typer.Option(False, "--verbose", "-v", help="输出调试日志。"),
) -> None:
    if ctx.obj is None:
        ctx.obj = build_state(verbose=verbose)


@app.command("run", help="抓取全部分页、去重并写入键值存储。")
def run(
    ctx: typer.Context,
    input_path: Optional[Path] = typer.Option(
        None, "--input", "-i", help="输入文件（JSON/YAML），默认读取 storage/key_value_stores/default/INPUT.json。"
    ),
    page_size: Optional[int] = typer.Option(None, "--page-size", help="每页条目数（默认 25）。"),
    max_concurrent_requests: Optional[int] = typer.Option(
        None, "--max-concurrent-requests", "-c", help="最大并发请求数（默认 5）。"
    ),
    store: Optional[str] = typer.Option(None, "--store", help="键值存储名称。"),
    key: Optional[str] = typer.Option(None, "--key", help="保存结果所用的键（默认 zapier）。"),
    backend: Optional[str] = typer.Option(
        None, "--backend", help="存储后端：file 或 sqlite（默认读取全局配置）。"
    ),
    quiet: bool = typer.Option(False, "--quiet", help="只输出精简结果。"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="输出调试日志。"),
) -> None:
    state = _get_state(ctx)
    logger = configure_logging(
        state.verbose or verbose, state.repository.locator.logs_dir
    ).bind(component="cli")
    progress = ProgressReporter(enabled=_progress_default_enabled() and not quiet, console=console)

    def on_plan(plan: PagePlan) -> None:
        if not quiet:
            console.print(f"Total items: {plan.total_items}, Total pages: {plan.page_count}", style="cyan")
        progress.start(plan.page_count)

    try:
        harvest_input = state.repository.load_input(
            input_path,
            page_size=page_size,
            max_concurrent_requests=max_concurrent_requests,
            key_value_store=store,
            key=key,
        )
        summary = asyncio.run(
            state.harvester.run(
                harvest_input, on_plan=on_plan, on_settled=progress.page_settled, backend=backend
            )
        )
    except HarvestError as exc:
        logger.error("harvest_failed", error=str(exc), exc_info=True)
        console.print(f"运行失败：{escape(str(exc))}", style="red")
        raise typer.Exit(code=1) from exc
    finally:
        progress.close()

    if quiet:
        console.print(f"Stored {summary.stored} integrations")
        return
    console.print(_render_summary(summary))
    console.print(f"Stored {summary.stored} integrations", style="green")


@app.command("show", help="查看已保存的条目。")
def show(
    ctx: typer.Context,
    store: str = typer.Option("default", "--store", help="键值存储名称。"),
    key: str = typer.Option("zapier", "--key", help="记录键。"),
    limit: int = typer.Option(20, "--limit", min=0, help="最多显示 N 条。"),
) -> None:
    state = _get_state(ctx)
    global_config = state.repository.load_global_config()
    kv_store = open_key_value_store(store, state.repository.storage_dir(), global_config.storage.backend)
    try:
        records = kv_store.get(key)
    finally:
        kv_store.close()
    if records is None:
        console.print(f"未找到 `{store}/{key}` 的记录。", style="yellow")
        raise typer.Exit(code=1)
    table = Table(title=f"{store}/{key} · 共 {len(records)} 条", box=box.SIMPLE_HEAD)
    table.add_column("名称", style="cyan", no_wrap=True)
    table.add_column("链接", style="green", overflow="fold")
    table.add_column("图标", style="dim", overflow="fold")
    for record in records[:limit]:
        table.add_row(*(escape(str(record.get(field, ""))) for field in ("name", "url", "icon")))
    console.print(table)


@log_app.command("show", help="查看日志的最近内容。")
def log_show(
    ctx: typer.Context,
    tail: int = typer.Option(100, "--tail", min=1, help="显示最近 N 行内容。"),
    errors: bool = typer.Option(False, "--errors", help="查看错误日志。"),
) -> None:
    state = _get_state(ctx)
    harvester_log, error_log = log_paths(state.repository.locator.logs_dir)
    path = error_log if errors else harvester_log
    lines = tail_log(path, tail)
    if not lines:
        console.print("暂无日志信息，请稍后再试。", style="dim")
        return
    header = f"{'错误日志' if errors else '运行日志'} · 最近 {len(lines)} 行"
    console.print(header, style="cyan")
    console.print("".join(lines), markup=False, highlight=False)


app.add_typer(log_app, name="log", help="查看日志文件")


def cli() -> None:
    app()


if __name__ == "__main__":  # pragma: no cover
    cli()
