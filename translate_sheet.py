#!/usr/bin/env python3
"""
Sheet Translator - translate every text cell of a worksheet through a
rate-limited completion service

Identical texts are sent once and the translation is written to every cell
sharing them. Entries of the override dictionary are used verbatim when a
cell matches exactly, and as terminology hints otherwise.

Usage:
    translate-sheet dictionary.txt source.xlsx translated.xlsx
    translate-sheet dictionary.txt source.xlsx out.xlsx --rpm 20 --language German
    translate-sheet dictionary.txt source.xlsx out.xlsx --dry-run
"""

import asyncio
import logging
import sys
from pathlib import Path
from typing import Optional

import click
from dotenv import load_dotenv

from core.config import TranslatorConfig
from core.document_loader import load_source_grid
from core.exceptions import SetupError
from core.overrides import load_overrides
from core.templater import Templater
from processors.parallel import RunSummary, TranslationProcessor
from providers.openai_provider import CandidatePolicy, OpenaiCompletionProvider
from utils.output_manager import WorkbookWriter
from utils.progress_tracker import ProgressTrackerFactory
from utils.rate_limiter import ReleaseOrder
from version import __version__

load_dotenv()

logger = logging.getLogger(__name__)


async def run_translation(config: TranslatorConfig,
                          dictionary_path: Path,
                          source_path: Path,
                          destination_path: Path,
                          api_key: Optional[str],
                          dry_run: bool = False,
                          show_progress: bool = True) -> RunSummary:
    """Set up every collaborator, then run both phases.

    Setup failures raise SetupError before anything is sent.
    """
    overrides = load_overrides(dictionary_path)
    grid = load_source_grid(source_path, config.sheet_name)
    writer = WorkbookWriter(destination_path, config.sheet_name)

    provider = None
    if not dry_run:
        provider = OpenaiCompletionProvider(config.provider_config(api_key))

    processor = TranslationProcessor(
        provider=provider,
        overrides=overrides,
        templater=Templater(config.target_language),
        rate_limit=config.rate_limit_config(),
    )

    if dry_run:
        progress = ProgressTrackerFactory.create_silent_tracker(grid.size)
        with progress:
            scan = processor.scan(grid, writer, progress)
        return RunSummary(unique_tasks=len(scan.queue), **scan.stats)

    async with provider:
        progress = ProgressTrackerFactory.create_translation_tracker(grid.size, show_bar=show_progress)
        with progress:
            summary = await processor.run(grid, writer, progress)

    writer.save()
    return summary


def print_summary(summary: RunSummary, dry_run: bool) -> None:
    click.echo(f"\n{'='*60}")
    click.echo("🔍 DRY RUN - nothing was sent" if dry_run else "✨ TRANSLATION COMPLETE")
    click.echo(f"{'='*60}")
    click.echo(f"📊 Cells scanned:      {summary.cells}")
    click.echo(f"📋 Copied verbatim:    {summary.verbatim + summary.passthrough}")
    click.echo(f"📖 From dictionary:    {summary.overridden}")
    click.echo(f"🎯 Unique requests:    {summary.unique_tasks}")
    click.echo(f"♻️  Duplicate cells:    {summary.duplicates}")
    if not dry_run:
        click.echo(f"✅ Translated:         {summary.resolved}")
        click.echo(f"❌ Failed:             {summary.failed}")
        click.echo(f"🚀 Bursts:             {len(summary.bursts)}")
        click.echo(f"⏱️  Total time:         {summary.duration_seconds:.1f} seconds")


@click.command()
@click.version_option(version=__version__, prog_name='translate-sheet')
@click.argument('dictionary_path', type=click.Path(dir_okay=False, path_type=Path))
@click.argument('source_path', type=click.Path(dir_okay=False, path_type=Path))
@click.argument('destination_path', type=click.Path(path_type=Path))
@click.option('--api-key', '-k', envvar='OPENAI_API_KEY', help='OpenAI API key')
@click.option('--config', '-c', 'config_path', type=click.Path(exists=True, dir_okay=False, path_type=Path),
              help='YAML file with run settings')
@click.option('--model', '-m', help='Completion model')
@click.option('--language', '-l', help='Target language')
@click.option('--sheet', help='Worksheet to translate')
@click.option('--rpm', type=int, help='Requests released per interval')
@click.option('--interval', type=float, help='Seconds between bursts')
@click.option('--release-order', type=click.Choice([o.value for o in ReleaseOrder]),
              help='Which queued texts go first')
@click.option('--first-burst/--delay-first-burst', default=None,
              help='Send the first burst immediately or after one interval')
@click.option('--candidate', type=click.Choice([p.value for p in CandidatePolicy]),
              help='Candidate kept when several are returned')
@click.option('--timeout', type=float, help='Per-request timeout in seconds')
@click.option('--dry-run', is_flag=True, help='Scan only, show how many requests would be sent')
@click.option('--no-progress', is_flag=True, help='Hide the progress bar')
@click.option('--verbose', '-v', is_flag=True, help='Debug logging')
def main(dictionary_path, source_path, destination_path, api_key, config_path, model, language,
         sheet, rpm, interval, release_order, first_burst, candidate, timeout, dry_run,
         no_progress, verbose):
    """
    Translate the text cells of SOURCE_PATH into DESTINATION_PATH.

    DICTIONARY_PATH holds one "key – value" entry per line; matching cells
    are taken from it instead of the service.
    """
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    try:
        config = TranslatorConfig.from_yaml(config_path) if config_path else TranslatorConfig()
        config = config.with_overrides(
            model=model,
            target_language=language,
            sheet_name=sheet,
            requests_per_minute=rpm,
            interval_seconds=interval,
            release_order=release_order,
            first_burst_immediate=first_burst,
            candidate_policy=candidate,
            request_timeout=timeout,
        )
        summary = asyncio.run(run_translation(
            config,
            dictionary_path,
            source_path,
            destination_path,
            api_key,
            dry_run=dry_run,
            show_progress=not no_progress,
        ))
    except SetupError as e:
        click.echo(f"❌ Error: {e}", err=True)
        sys.exit(1)

    print_summary(summary, dry_run)


if __name__ == '__main__':
    main()
