"""Command-line interface for HUMINT/SIGINT fusion."""

import argparse
import json
import sys
from pathlib import Path
from typing import List, Optional

from rich.console import Console

from .adapters import parse_field_report, parse_signal_analysis
from .config import ConfigManager, FusionConfig
from .correlation import CorrelationEngine
from .error_handling import FusionError
from .json_extractor import JSONExtractor
from .logging_config import log_context, setup_logging
from .models import ExportFormat

console = Console()


def _load_config(args) -> FusionConfig:
    config = ConfigManager(config_path=args.config).load()
    level = "DEBUG" if args.verbose else config.logging.level
    setup_logging(format=config.logging.format, level=level, log_file=config.logging.log_file)
    return config


def _write_or_print(data, output: Optional[str]):
    if output:
        with open(output, "w") as f:
            json.dump(data, f, indent=2)
        console.print(f"[green]Saved to:[/green] {output}")
    else:
        console.print_json(data=data)


def extract_command(args):
    """Recover the JSON object from a model output file."""
    config = _load_config(args)
    text = Path(args.file).read_text()

    extractor = JSONExtractor.from_config(config.extraction)
    result = extractor.extract(text, extraction_type=args.type)
    if result is None:
        console.print(f"[red]No JSON object could be recovered from {args.file}[/red]")
        return 1

    _write_or_print(result, args.output)
    return 0


def fuse_command(args):
    """Fuse field reports and signal analyses into one product."""
    config = _load_config(args)
    extractor = JSONExtractor.from_config(config.extraction)

    humint = []
    for path in args.humint or []:
        humint.extend(parse_field_report(Path(path).read_text(), extractor))

    sigint = []
    for path in args.sigint or []:
        sigint.extend(parse_signal_analysis(Path(path).read_text(), extractor))

    if not humint and not sigint:
        console.print("[red]No observations found in the input files[/red]")
        return 1

    engine = CorrelationEngine(config=config.correlation)
    with log_context(command="fuse"):
        product = engine.build_product(humint, sigint, title=args.title)
        export = product.format_for_export(args.format)

    console.print(
        f"[bold]{len(humint)}[/bold] HUMINT and [bold]{len(sigint)}[/bold] SIGINT observations "
        f"fused into [bold]{len(product.entities)}[/bold] entities "
        f"({product.confidence} confidence)"
    )
    _write_or_print(export, args.output)
    return 0


def generate_config(args):
    """Generate a configuration template."""
    config_manager = ConfigManager(load_env_file=False)

    if args.output:
        config_manager.save_template(args.output)
        console.print(f"[green]Configuration template saved to:[/green] {args.output}")
    else:
        console.print_json(data=config_manager.DEFAULT_CONFIG)

    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="fusioncore",
        description="Correlate HUMINT and SIGINT observations into fused intelligence products",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Recover the JSON payload from a model response
  python -m fusioncore extract response.txt --type field-report

  # Fuse report and signal analyses into an INTSUM
  python -m fusioncore fuse --humint report1.txt --sigint signals.txt --format intsum

  # Generate configuration template
  python -m fusioncore generate-config > config.json
""",
    )

    subparsers = parser.add_subparsers(dest="command", help="Commands")

    extract_parser = subparsers.add_parser("extract", help="Recover a JSON object from model output")
    extract_parser.add_argument("file", help="Path to the model output")
    extract_parser.add_argument("--type", default="unknown", help="Purpose tag used in logs")
    extract_parser.add_argument("-o", "--output", help="Save result to file")

    fuse_parser = subparsers.add_parser("fuse", help="Fuse HUMINT and SIGINT into a product")
    fuse_parser.add_argument("--humint", nargs="+", help="Field report analysis files")
    fuse_parser.add_argument("--sigint", nargs="+", help="Signal analysis files")
    fuse_parser.add_argument(
        "--format",
        default=ExportFormat.JSON.value,
        help="Export layout: INTSUM, INTREP, NATO or JSON",
    )
    fuse_parser.add_argument("--title", default="Intelligence Report", help="Product title")
    fuse_parser.add_argument("-o", "--output", help="Save export to file")

    for sub in (extract_parser, fuse_parser):
        sub.add_argument("-c", "--config", help="Path to configuration file")
        sub.add_argument("-v", "--verbose", action="store_true", help="Verbose output")

    config_parser = subparsers.add_parser("generate-config", help="Generate configuration template")
    config_parser.add_argument("-o", "--output", help="Save to file (default: print to stdout)")

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Main CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 1

    try:
        if args.command == "extract":
            return extract_command(args)
        elif args.command == "fuse":
            return fuse_command(args)
        elif args.command == "generate-config":
            return generate_config(args)
    except KeyboardInterrupt:
        console.print("\n[yellow]Interrupted by user[/yellow]")
        return 1
    except (FusionError, OSError) as e:
        console.print(f"\n[red]Error:[/red] {e}")
        if getattr(args, "verbose", False):
            console.print_exception()
        return 1

    return 1


if __name__ == "__main__":
    sys.exit(main())
