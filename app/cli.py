from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Optional

import typer
from pydantic import ValidationError
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from adapters.filesystem.drawing_repository import FileSystemDrawingRepository
from adapters.filesystem.storyline_repository import FileSystemStorylineRepository
from adapters.solver.lp_text import format_lp
from app.config import AppSettings, LayoutSettings, load_settings
from app.pipeline import LayoutPipeline
from app.solver_wiring import build_solver
from domain.errors import SolveFailure, StructuralError
from domain.models import StorylineDocument
from domain.services.align_storyline import build_alignment_model, check_structure
from domain.services.storyline_metrics import compute_metrics

app = typer.Typer(no_args_is_help=True)
console = Console()


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )


def _layout_settings(settings: AppSettings, **overrides: Any) -> LayoutSettings:
    update = {key: value for key, value in overrides.items() if value is not None}
    return LayoutSettings.model_validate({**settings.layout.model_dump(), **update})


def _load_documents(input_path: Path) -> list[tuple[Path, StorylineDocument]]:
    repo = FileSystemStorylineRepository()
    if input_path.is_dir():
        return repo.load_all_with_paths(input_path)
    return [(input_path, repo.load_by_path(input_path))]


@app.command("layout")
def layout(
    input_path: Path = typer.Argument(..., help="Storyline JSON file or a directory of them."),
    output_dir: Path = typer.Option(
        Path("data/drawings"), help="Directory to write fragment files."
    ),
    config: Optional[Path] = typer.Option(None, help="YAML settings file."),
    criterion: Optional[str] = typer.Option(None, help="Alignment criterion."),
    gap_ratio: Optional[float] = typer.Option(None, help="Minimum gap between groups of a layer."),
    continued_meetings: Optional[bool] = typer.Option(
        None, "--continued-meetings/--no-continued-meetings", help="Pin repeated meetings."
    ),
    layer_style: Optional[str] = typer.Option(None, help="uniform or condensed."),
    block_handling: Optional[str] = typer.Option(None, help="continuous or full."),
    justify_method: Optional[str] = typer.Option(None, help="blocks or lp."),
    verbose: bool = typer.Option(False, "--verbose", "-v"),
) -> None:
    _configure_logging(verbose)
    if not input_path.exists():
        console.print(f"[red]File not found:[/] {input_path}")
        raise typer.Exit(code=1)

    settings = load_settings(config)
    try:
        layout_settings = _layout_settings(
            settings,
            alignment_criterion=criterion,
            gap_ratio=gap_ratio,
            align_continued_meetings=continued_meetings,
            layer_style=layer_style,
            block_handling=block_handling,
            justify_method=justify_method,
        )
    except ValidationError as exc:
        console.print(f"[red]Invalid settings:[/] {exc}")
        raise typer.Exit(code=2) from exc

    try:
        pairs = _load_documents(input_path)
    except ValidationError as exc:
        console.print(f"[red]Invalid storyline file:[/] {exc}")
        raise typer.Exit(code=1) from exc
    if not pairs:
        console.print(f"[yellow]No storyline files found in {input_path}[/]")
        raise typer.Exit(code=0)

    pipeline = LayoutPipeline(build_solver(settings), layout_settings)
    drawing_repo = FileSystemDrawingRepository()
    output_dir.mkdir(parents=True, exist_ok=True)
    failed = False
    for path, document in pairs:
        try:
            result = pipeline.run(document.to_realization())
        except StructuralError as exc:
            console.print(f"[red]Invalid storyline[/] {path}: {exc}")
            failed = True
            continue
        except SolveFailure as exc:
            console.print(f"[red]Could not align storyline[/] {path}: {exc}")
            failed = True
            continue
        target_path = output_dir / f"{path.stem}.frags.json"
        drawing_repo.save(result.fragments, target_path, metadata=result.metrics.to_dict())
        console.print(f"[green]Wrote[/] {target_path}")
    if failed:
        raise typer.Exit(code=1)


@app.command("metrics")
def metrics(
    input_path: Path = typer.Argument(..., help="Storyline JSON file."),
    config: Optional[Path] = typer.Option(None, help="YAML settings file."),
    criterion: Optional[str] = typer.Option(None, help="Alignment criterion."),
) -> None:
    _configure_logging(False)
    settings = load_settings(config)
    layout_settings = _layout_settings(settings, alignment_criterion=criterion)
    document = FileSystemStorylineRepository().load_by_path(input_path)
    pipeline = LayoutPipeline(build_solver(settings), layout_settings)
    try:
        aligned = pipeline.align(document.to_realization())
    except SolveFailure as exc:
        console.print(f"[red]Could not align storyline:[/] {exc}")
        raise typer.Exit(code=1) from exc

    table = Table(title=f"{input_path.name} ({layout_settings.alignment_criterion})")
    table.add_column("metric")
    table.add_column("value", justify="right")
    for key, value in compute_metrics(aligned).to_dict().items():
        table.add_row(key, f"{value:g}")
    console.print(table)


@app.command("dump-model")
def dump_model(
    input_path: Path = typer.Argument(..., help="Storyline JSON file."),
    output_path: Path = typer.Option(..., "--output", "-o", help="Target .lp file."),
    config: Optional[Path] = typer.Option(None, help="YAML settings file."),
    criterion: Optional[str] = typer.Option(None, help="Alignment criterion."),
) -> None:
    settings = load_settings(config)
    layout_settings = _layout_settings(settings, alignment_criterion=criterion)
    if layout_settings.alignment_criterion == "strict-center":
        console.print("[yellow]strict-center is solved in closed form, there is no model[/]")
        raise typer.Exit(code=1)
    realization = FileSystemStorylineRepository().load_by_path(input_path).to_realization()
    check_structure(realization)
    model = build_alignment_model(
        realization,
        layout_settings.alignment_criterion,
        layout_settings.gap_ratio,
        layout_settings.align_continued_meetings,
    )
    output_path.parent.mkdir(parents=True, exist_ok=True)
    output_path.write_text(format_lp(model), encoding="utf-8")
    console.print(f"[green]Wrote[/] {output_path}")


@app.command("validate")
def validate(
    input_path: Path = typer.Argument(..., help="Storyline JSON file to validate."),
) -> None:
    if not input_path.exists():
        console.print(f"[red]File not found:[/] {input_path}")
        raise typer.Exit(code=1)

    data = json.loads(input_path.read_text(encoding="utf-8"))
    try:
        document = StorylineDocument.model_validate(data)
        check_structure(document.to_realization())
        console.print(f"[green]Valid storyline file:[/] {input_path}")
    except (ValidationError, StructuralError) as exc:
        console.print(f"[red]Validation failed:[/] {exc}")
        raise typer.Exit(code=1) from exc


if __name__ == "__main__":
    app()
