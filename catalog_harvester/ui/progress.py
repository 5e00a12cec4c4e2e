"""Terminal progress helpers with Rich-based rendering."""

from __future__ import annotations

from dataclasses import dataclass

from rich.console import Console
from rich.errors import LiveError
from rich.progress import (
    BarColumn,
    Progress,
    ProgressColumn,
    SpinnerColumn,
    Task,
    TaskID,
    TaskProgressColumn,
    TextColumn,
    TimeElapsedColumn,
)
from rich.text import Text


@dataclass
class ProgressState:
    total: int
    pages: int = 0
    failed: int = 0
    items: int = 0


class PageRateColumn(ProgressColumn):
    """Pages per second, rendered as ``X.X page/s``."""

    def render(self, task: Task) -> Text:
        speed = task.finished_speed or task.speed
        if speed is None:
            return Text("", style="progress.percentage")
        return Text(f"{speed:.1f} page/s", style="progress.percentage")


class ProgressReporter:
    """Render page fan-out progress and keep per-run page counters in ``state``."""

    def __init__(self, enabled: bool = True, console: Console | None = None, label: str = "harvest") -> None:
        self.enabled = enabled
        self._console = console
        self._progress: Progress | None = None
        self._task_id: TaskID | None = None
        self.state: ProgressState | None = None
        self._label = label

    def start(self, total: int) -> None:
        self.state = ProgressState(total=total)
        if not self.enabled:
            return
        if self._console is None:
            self._console = Console()
        if not self._console.is_terminal:
            # 非交互环境回退为静默模式，避免重复打印
            self.enabled = False
            return
        self._progress = Progress(
            SpinnerColumn(style="cyan"),
            TextColumn("[bold blue]{task.fields[label]:<12}", justify="left"),
            BarColumn(bar_width=None, complete_style="green", finished_style="green"),
            TaskProgressColumn(show_speed=False),
            TimeElapsedColumn(),
            PageRateColumn(),
            TextColumn("[green]✓{task.fields[pages]:>4}", justify="right"),
            TextColumn("[red]✗{task.fields[failed]:>3}", justify="right"),
            TextColumn("[dim]{task.fields[items]} items", justify="left"),
            refresh_per_second=12,
            expand=True,
            transient=True,
            console=self._console,
        )
        try:
            self._progress.__enter__()
        except LiveError:
            # 同一控制台已存在活动进度条，退化为静默模式
            self.enabled = False
            self._progress = None
            return
        self._task_id = self._progress.add_task(
            "pages", total=total, label=self._label, pages=0, failed=0, items=0
        )

    def page_settled(self, _index: int, outcome: object) -> None:
        """Pool callback: ``outcome`` is the page's item list or the raised exception."""

        if not self.state:
            raise RuntimeError("ProgressReporter.start must be called before page_settled")
        if isinstance(outcome, BaseException):
            self.state.failed += 1
        else:
            self.state.pages += 1
            self.state.items += len(outcome) if isinstance(outcome, list) else 0
        if self._progress is not None and self._task_id is not None:
            self._progress.update(
                self._task_id,
                advance=1,
                pages=self.state.pages,
                failed=self.state.failed,
                items=self.state.items,
            )

    def close(self) -> None:
        if self._progress is not None:
            self._progress.stop()
            self._progress.__exit__(None, None, None)
            self._progress = None
        self._task_id = None


__all__ = ["PageRateColumn", "ProgressReporter", "ProgressState"]
