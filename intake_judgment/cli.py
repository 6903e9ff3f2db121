"""
Intake Judgment CLI

Command-line interface for the decision pipeline.

Input JSON (one document, or a list of them):

    {
      "fast":   {"fields": {...}, "line_items": [...], "confidence": 0.82},
      "expert": {"fields": {...}, "line_items": [...], "confidence": 0.91},
      "classification": {"document_type": "INVOICE", "confidence": 0.95},
      "tenant": {"vat_number": "BE0123456789", "legal_name": "Acme NV"},
      "checksums": {"iban": {"is_valid": true}},
      "retry": {"kind": "CorrectedOnRetry", "attempt": 1, "corrected_fields": ["total_amount"]}
    }

Every key is optional.
"""

import json
import sys
from pathlib import Path
from typing import Optional, List, Dict, Any

import click
import yaml
from loguru import logger
from rich.console import Console
from rich.table import Table

from .config import ConfigError, PipelineConfig, load_config
from .decision import JudgmentOutcome
from .direction import TenantIdentity
from .doctypes import DocumentClassification
from .ensemble import CandidateFormatError, ExtractionCandidate, ExtractionSource
from .parser import normalize_amount
from .pipeline import DecisionPipeline, PipelineResult
from .retry import retry_result_from_dict
from .validation import ChecksumResults


def setup_logging(verbose: bool = False, log_file: Optional[Path] = None):
    """Configure loguru logging."""
    # Remove default handler
    logger.remove()

    # Console logging
    log_level = "DEBUG" if verbose else "WARNING"
    logger.add(
        sys.stderr,
        format="<green>{time:HH:mm:ss}</green> | <level>{level: <8}</level> | <cyan>{message}</cyan>",
        level=log_level,
        colorize=True
    )

    # File logging
    if log_file:
        logger.add(
            log_file,
            format="{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {name}:{function}:{line} | {message}",
            level="DEBUG",
            rotation="10 MB"
        )


_OUTCOME_STYLES = {
    JudgmentOutcome.AUTO_APPROVE: "green",
    JudgmentOutcome.NEEDS_REVIEW: "yellow",
    JudgmentOutcome.REJECT: "red",
}


def _section(document: Dict[str, Any], key: str) -> Optional[Dict[str, Any]]:
    """Optional JSON object under key; anything but an object is invalid input."""
    value = document.get(key)
    if value is not None and not isinstance(value, dict):
        raise ValueError(f"'{key}' must be a JSON object, got {type(value).__name__}")
    return value


def _candidate(data: Optional[Dict[str, Any]], source: ExtractionSource) -> Optional[ExtractionCandidate]:
    if data is None:
        return None
    return ExtractionCandidate.from_dict(data, source)


def run_document(pipeline: DecisionPipeline, document: Dict[str, Any]) -> PipelineResult:
    """
    Decide one document given as parsed JSON.

    Raises:
        CandidateFormatError: If a candidate is malformed
        ValueError: If another section is malformed
    """
    if not isinstance(document, dict):
        raise CandidateFormatError(f"Document must be a JSON object, got {type(document).__name__}")

    classification = _section(document, 'classification')
    tenant = _section(document, 'tenant')
    checksums = _section(document, 'checksums')

    return pipeline.process(
        fast=_candidate(document.get('fast'), ExtractionSource.FAST),
        expert=_candidate(document.get('expert'), ExtractionSource.EXPERT),
        classification=DocumentClassification.from_dict(classification) if classification else None,
        tenant=TenantIdentity.from_dict(tenant) if tenant else None,
        checksums=ChecksumResults.from_dict(checksums) if checksums else None,
        retry_result=retry_result_from_dict(_section(document, 'retry')),
    )


def print_summary(results: List[PipelineResult], console: Console):
    """Print a summary table of judgment results."""
    table = Table(title="Judgment Summary")

    table.add_column("#", justify="right")
    table.add_column("Type", style="cyan")
    table.add_column("Consensus")
    table.add_column("Audit")
    table.add_column("Direction")
    table.add_column("Confidence", justify="right")
    table.add_column("Outcome", style="bold")

    for index, result in enumerate(results, start=1):
        judgment = result.judgment
        style = _OUTCOME_STYLES.get(judgment.outcome, "white")
        table.add_row(
            str(index),
            result.document_type.name,
            result.consensus.kind,
            result.audit_report.overall_status.name,
            result.direction.direction.name,
            f"{judgment.confidence:.0%}",
            f"[{style}]{judgment.outcome.name}[/]",
        )

    console.print()
    console.print(table)

    for index, result in enumerate(results, start=1):
        judgment = result.judgment
        console.print(f"\n[bold]{index}. {judgment.outcome.display_name}[/] - {judgment.reasoning}")
        for issue in judgment.issues_for_user:
            console.print(f"   • {issue}")

    counts = {outcome: 0 for outcome in JudgmentOutcome}
    for result in results:
        counts[result.judgment.outcome] += 1

    console.print()
    console.print(f"[bold]Total:[/] {len(results)} documents")
    console.print(f"[bold green]Auto-approved:[/] {counts[JudgmentOutcome.AUTO_APPROVE]}")
    console.print(f"[bold yellow]Needs review:[/] {counts[JudgmentOutcome.NEEDS_REVIEW]}")
    console.print(f"[bold red]Rejected:[/] {counts[JudgmentOutcome.REJECT]}")


@click.group()
def cli():
    """Intake Judgment - decide what happens to extracted financial documents."""


@cli.command()
@click.argument('input_path', type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option(
    '--config', '-c',
    'config_path',
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    default=None,
    help='Path to pipeline YAML configuration'
)
@click.option(
    '--output', '-o',
    'output_path',
    type=click.Path(path_type=Path),
    default=None,
    help='Write the full result JSON to this file'
)
@click.option(
    '--verbose', '-v',
    is_flag=True,
    help='Enable verbose logging'
)
@click.option(
    '--log-file',
    type=click.Path(path_type=Path),
    default=None,
    help='Write logs to file'
)
def judge(
    input_path: Path,
    config_path: Optional[Path],
    output_path: Optional[Path],
    verbose: bool,
    log_file: Optional[Path],
):
    """
    Judge the document(s) described in INPUT_PATH.

    Examples:

        # Judge one document with default thresholds
        intake-judgment judge document.json

        # Strict thresholds, full result written to a file
        intake-judgment judge batch.json -c strict.yaml -o results.json
    """
    setup_logging(verbose=verbose, log_file=log_file)
    console = Console()

    try:
        pipeline = DecisionPipeline(load_config(config_path))
    except ConfigError as e:
        console.print(f"[bold red]Configuration error: {e}[/]")
        raise SystemExit(1)

    try:
        with open(input_path, 'r', encoding='utf-8') as f:
            payload = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        console.print(f"[bold red]Cannot read {input_path}: {e}[/]")
        raise SystemExit(1)

    documents = payload if isinstance(payload, list) else [payload]

    try:
        results = [run_document(pipeline, document) for document in documents]
    except ValueError as e:
        console.print(f"[bold red]Invalid input: {e}[/]")
        if verbose:
            logger.exception("Full traceback:")
        raise SystemExit(1)

    print_summary(results, console)

    output = [r.to_dict() for r in results]
    if not isinstance(payload, list):
        output = output[0]

    if output_path:
        with open(output_path, 'w', encoding='utf-8') as f:
            json.dump(output, f, indent=2, default=str)
        console.print(f"\n[green]✓ Result written to: {output_path}[/]")
    else:
        console.print()
        console.print_json(json.dumps(output, default=str))


@cli.command('show-config')
@click.option(
    '--config', '-c',
    'config_path',
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    default=None,
    help='Path to pipeline YAML configuration'
)
def show_config(config_path: Optional[Path]):
    """Print the effective configuration as YAML."""
    setup_logging()
    try:
        config = load_config(config_path) if config_path else PipelineConfig()
    except ConfigError as e:
        Console(stderr=True).print(f"[bold red]Configuration error: {e}[/]")
        raise SystemExit(1)

    click.echo(yaml.safe_dump(config.to_dict(), sort_keys=False, allow_unicode=True))


@cli.command('parse-amount', context_settings={'ignore_unknown_options': True})
@click.argument('value')
def parse_amount(value: str):
    """Show how VALUE is read as a monetary amount."""
    console = Console()
    amount = normalize_amount(value)
    if amount is None:
        console.print(f"[red]✗ Unparseable:[/] {value!r}")
        raise SystemExit(1)
    console.print(f"{value!r} → [bold]{amount}[/]")


def main():
    cli()


if __name__ == "__main__":
    main()
