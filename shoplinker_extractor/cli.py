"""Command-line interface for the Shoplinker product extractor."""

import sys
from pathlib import Path
from typing import Optional

import click
from loguru import logger

from shoplinker_extractor.config_loader import ensure_directories, get_storage_config, load_config
from shoplinker_extractor.pipeline import run_extraction
from shoplinker_extractor.record_store import read_input_codes, select_codes


def setup_logging(config: dict):
    """Setup logging configuration."""
    log_config = config.get("logging", {})
    level = log_config.get("level", "INFO")
    log_file = log_config.get("file", "data/logs/extractor.log")

    Path(log_file).parent.mkdir(parents=True, exist_ok=True)

    logger.remove()
    logger.add(
        sys.stdout,
        level=level,
        format="<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | <cyan>{name}</cyan> | {message}",
    )
    logger.add(
        log_file,
        level=level,
        rotation=log_config.get("rotation", "1 week"),
        retention=log_config.get("retention", "1 month"),
        format="{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {name} | {message}",
    )


@click.group()
@click.option("--config", "-c", type=click.Path(exists=True), help="Path to config file")
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose output")
@click.pass_context
def cli(ctx, config: Optional[str], verbose: bool):
    """Shoplinker product extractor - copies product records out of the admin console."""
    ctx.ensure_object(dict)

    try:
        cfg = load_config(config)
        ctx.obj["config"] = cfg
        ctx.obj["config_path"] = config

        ensure_directories(cfg)

        if verbose:
            cfg.setdefault("logging", {})["level"] = "DEBUG"
        setup_logging(cfg)

        logger.info("Shoplinker extractor initialized")

    except Exception as e:
        click.echo(f"Error loading configuration: {e}", err=True)
        sys.exit(1)


@cli.command()
@click.option("--input", "-i", "input_path", type=click.Path(), default=None, help="Input CSV with codes in column A")
@click.option("--output", "-o", "output_path", type=click.Path(), default=None, help="Output CSV (appended to)")
@click.option("--images-dir", type=click.Path(), default=None, help="Root directory for downloaded images")
@click.option("--headless/--no-headless", default=None, help="Run browser in headless mode (default from config)")
@click.option("--offset", type=int, default=0, show_default=True, help="Skip the first N codes (resume a run)")
@click.option("--limit", "-n", type=int, default=None, help="Only process N codes")
@click.option("--dry-plan", is_flag=True, help="Show the selected codes and exit without a browser")
@click.pass_context
def extract(
    ctx,
    input_path: Optional[str],
    output_path: Optional[str],
    images_dir: Optional[str],
    headless: Optional[bool],
    offset: int,
    limit: Optional[int],
    dry_plan: bool,
):
    """Extract product records for every code in the input table."""
    config_path = ctx.obj["config_path"]

    logger.info(
        "Starting extraction: input={}, output={}, images_dir={}, headless={}, offset={}, limit={}, dry_plan={}",
        input_path,
        output_path,
        images_dir,
        headless,
        offset,
        limit,
        dry_plan,
    )

    try:
        results = run_extraction(
            config_path=config_path,
            input_path=input_path,
            output_path=output_path,
            images_dir=images_dir,
            headless=headless,
            offset=offset,
            limit=limit,
            dry_plan=dry_plan,
        )
    except Exception as e:
        logger.exception("Extraction failed")
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    click.echo(f"\n{'='*60}")
    click.echo("EXTRACTION RESULTS")
    click.echo(f"{'='*60}")
    click.echo(f"Status: {results.get('status', 'unknown')}")
    click.echo(f"Codes planned: {results.get('products_planned', 0)}")
    click.echo(f"Records extracted: {results.get('products_extracted', 0)}")
    click.echo(f"Codes failed: {results.get('products_failed', 0)}")
    click.echo(f"Output: {results.get('output_path', 'N/A')}")

    if results.get("errors"):
        click.echo(f"\nErrors ({len(results['errors'])}):")
        for error in results["errors"][:5]:
            click.echo(f"  - {error['code']}: {error['error_type']}: {error['error']}")

    click.echo(f"{'='*60}")


@cli.command()
@click.option("--input", "-i", "input_path", type=click.Path(), default=None, help="Input CSV with codes in column A")
@click.option("--offset", type=int, default=0, show_default=True, help="Skip the first N codes")
@click.option("--limit", "-n", type=int, default=None, help="Only list N codes")
@click.pass_context
def codes(ctx, input_path: Optional[str], offset: int, limit: Optional[int]):
    """List the input codes a run would process."""
    storage = get_storage_config(ctx.obj["config"])
    input_path = input_path or storage.get("input_csv", "input.csv")

    try:
        all_codes = read_input_codes(input_path, skip_rows=int(storage.get("input_skip_rows", 2)))
    except OSError as e:
        click.echo(f"Error reading {input_path}: {e}", err=True)
        sys.exit(1)

    selected = select_codes(all_codes, offset=offset, limit=limit)
    for index, code in enumerate(selected, start=offset + 1):
        click.echo(f"{index}\t{code}")
    click.echo(f"{len(selected)} of {len(all_codes)} codes", err=True)


if __name__ == "__main__":
    cli()
