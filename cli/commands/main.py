"""Main CLI interface using Typer."""

import asyncio
import json
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from puretrans.cleaning.cleaner import ContentCleaner
from puretrans.core.config import PureTransConfig
from puretrans.core.exceptions import PureTransError
from puretrans.core.gateway import TranslationGateway
from puretrans.core.models import Language
from puretrans.core.validator import PurityValidator
from puretrans.detection.detector import PatternDetector
from puretrans.engines import ENGINES, create_engine
from puretrans.terminology.reference import JsonReferenceDataset
from puretrans.terminology.store import TerminologyStore
from puretrans.utils.config_loader import load_pipeline_config
from puretrans.utils.logger import setup_logger

app = typer.Typer(
    name="puretrans",
    help="PureTrans: purity-enforcing Arabic/French legal translation",
    add_completion=False
)

console = Console()


def _load(config_path: Optional[Path], engine: Optional[str] = None) -> PureTransConfig:
    config = load_pipeline_config(str(config_path) if config_path else None)
    if engine:
        config.engine = engine
        config.validate()
    setup_logger(level=config.log_level, log_file=config.log_file)
    return config


def _parse_language(value: str) -> Language:
    try:
        return Language.parse(value)
    except PureTransError as e:
        console.print(f"[red]Error: {e.message}[/red]")
        raise typer.Exit(2)


def _build_gateway(config: PureTransConfig) -> TranslationGateway:
    engine = create_engine(config.engine, api_key=config.api_key, model=config.model_name)
    if not engine.is_available():
        console.print(f"[yellow]Warning: no API key configured for {config.engine}; "
                      f"requests will use fallback content[/yellow]")
    return TranslationGateway.from_config(config, engine)


@app.command()
def translate(
    text: Optional[str] = typer.Argument(None, help="Text to translate (omit to use --input)"),
    input_file: Optional[Path] = typer.Option(None, "-i", "--input", help="Read text from a file"),
    output: Optional[Path] = typer.Option(None, "-o", "--output", help="Write the translation to a file"),
    source_lang: str = typer.Option("ar", "-s", "--source", help="Source language (ar/fr)"),
    target_lang: str = typer.Option("fr", "-t", "--target", help="Target language (ar/fr)"),
    domain: Optional[str] = typer.Option(None, "-d", "--domain", help="Legal domain hint"),
    engine: Optional[str] = typer.Option(None, "-e", "--engine", help="Engine (openai/anthropic)"),
    config_path: Optional[Path] = typer.Option(None, "-c", "--config", help="YAML configuration file"),
    as_json: bool = typer.Option(False, "--json", help="Print the full result as JSON"),
):
    """Translate a legal text between Arabic and French."""
    if input_file is not None:
        if not input_file.exists():
            console.print(f"[red]Error: Input file not found: {input_file}[/red]")
            raise typer.Exit(1)
        text = input_file.read_text(encoding="utf-8")
    if not text:
        console.print("[red]Error: provide TEXT or --input[/red]")
        raise typer.Exit(1)

    source = _parse_language(source_lang)
    target = _parse_language(target_lang)

    try:
        config = _load(config_path, engine)
        gateway = _build_gateway(config)
        try:
            result = asyncio.run(gateway.translate_text(text, source, target, domain))
        finally:
            gateway.close()
    except PureTransError as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(1)

    if output:
        output.write_text(result.text, encoding="utf-8")

    if as_json:
        console.print_json(json.dumps(result.to_dict(), ensure_ascii=False))
        return

    color = "green" if result.method.value != "fallback" else "yellow"
    console.print(Panel(result.text, title=f"{source.value} → {target.value}", border_style=color))
    console.print(
        f"Method: [{color}]{result.method.value}[/{color}]  "
        f"Purity: {result.purity.target_script_ratio:.1%}  "
        f"Quality: {result.quality_score:.2f}"
    )
    if result.intent:
        console.print(f"Intent: {result.intent}")
    if output:
        console.print(f"Output: {output}")


@app.command()
def check(
    text: str = typer.Argument(..., help="Text to inspect"),
    language: str = typer.Option("fr", "-l", "--language", help="Expected language (ar/fr)"),
    threshold: float = typer.Option(0.90, "--threshold", help="Purity threshold (floor 0.70)"),
):
    """Detect contamination, clean, and validate a text without translating it."""
    lang = _parse_language(language)
    detector = PatternDetector()
    cleaner = ContentCleaner(detector)
    validator = PurityValidator(detector, threshold)

    findings = detector.detect(text, lang)
    if findings:
        table = Table(title="Findings")
        table.add_column("Pattern", style="cyan")
        table.add_column("Kind")
        table.add_column("Severity")
        table.add_column("Position", justify="right")
        for finding in findings:
            style = "red" if finding.severity.name == "CRITICAL" else "yellow"
            table.add_row(finding.pattern, finding.kind.value,
                          f"[{style}]{finding.severity.name}[/{style}]", str(finding.position))
        console.print(table)
    else:
        console.print("[green]No contamination found[/green]")

    report = cleaner.clean(text, lang)
    score = validator.validate(report.cleaned_text, lang)
    console.print(Panel(report.cleaned_text or "[dim](empty)[/dim]", title="Cleaned"))
    status = "[green]PASS[/green]" if score.passes else "[red]FAIL[/red]"
    console.print(
        f"{status}  target {score.target_script_ratio:.1%}  foreign {score.foreign_script_ratio:.1%}  "
        f"other {score.other_ratio:.1%}  threshold {score.threshold:.2f}  "
        f"cleaning confidence {report.confidence:.2f}"
    )
    if not score.passes:
        raise typer.Exit(1)


@app.command()
def lookup(
    term: str = typer.Argument(..., help="Legal term to look up"),
    source_lang: str = typer.Option("fr", "-s", "--source", help="Language of the term (ar/fr)"),
    dataset: Optional[Path] = typer.Option(None, "--dataset", help="Terminology JSON file"),
):
    """Look up a legal term in the terminology store."""
    source = _parse_language(source_lang)
    try:
        store = TerminologyStore(JsonReferenceDataset(dataset))
    except PureTransError as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(1)

    translated = store.lookup(term, source, source.other)
    if translated is None:
        console.print(f"[yellow]No entry for {term!r} ({source.value} → {source.other.value})[/yellow]")
        raise typer.Exit(1)

    console.print(f"[bold]{term}[/bold] → [green]{translated}[/green]")
    history = store.history(term, source, source.other)
    if len(history) > 1:
        for entry in history:
            console.print(f"  v{entry.version} {entry.target_term} [dim]({entry.origin})[/dim]")


@app.command()
def engines():
    """List the available translation engines."""
    console.print("\n[bold]Translation engines[/bold]\n")
    for name, engine_cls in ENGINES.items():
        engine = engine_cls()
        status = "✓ Available" if engine.is_available() else "✗ Not configured"
        color = "green" if engine.is_available() else "yellow"
        console.print(f"[{color}]{status}[/{color}] {name} ({engine.model})")


@app.command()
def serve(
    host: str = typer.Option("127.0.0.1", "--host", help="Bind address"),
    port: int = typer.Option(8000, "--port", "-p", help="Port"),
    engine: Optional[str] = typer.Option(None, "-e", "--engine", help="Engine (openai/anthropic)"),
    config_path: Optional[Path] = typer.Option(None, "-c", "--config", help="YAML configuration file"),
    no_feedback_loop: bool = typer.Option(False, "--no-feedback-loop", help="Do not run the background feedback cycle"),
):
    """Serve the HTTP API with uvicorn."""
    import uvicorn

    from puretrans.api.app import create_app
    from puretrans.feedback.loop import FeedbackLoop

    config = _load(config_path, engine)
    gateway = _build_gateway(config)
    loop = FeedbackLoop.for_gateway(gateway, systemic_min_reports=config.systemic_min_reports)
    api = create_app(
        gateway,
        loop,
        start_loop=not no_feedback_loop,
        feedback_interval=config.feedback_interval,
    )
    console.print(f"[bold blue]PureTrans API[/bold blue] on http://{host}:{port} (engine: {config.engine})")
    uvicorn.run(api, host=host, port=port, log_config=None)


def cli():
    """Main CLI entry point."""
    app()


if __name__ == "__main__":
    cli()
