"""
Command Line Interface for the Centrality Engine.

Provides the main entry point for running analysis.
"""

import argparse
import sys
from pathlib import Path
from typing import List, Optional

from .core.constants import ANALYSIS_MODES, MODE_STOCK, PERIOD_DAYS, VERSION_NAME


def main(argv: Optional[List[str]] = None) -> int:
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        prog='centrality-engine',
        description='Network Centrality Engine - correlation network betweenness ranking',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    # Stock-level network
    python -m centrality_engine analyze -d prices.csv

    # Sector-level network with a sector map and CSV export
    python -m centrality_engine analyze -d prices.csv -s sectors.yaml --mode sector --csv out.csv

    # Shock simulation on a stock-level network
    python -m centrality_engine analyze -d prices.csv --shock RELIANCE.NS --magnitude 0.05

    # Last year only, with a JSON data validation export
    python -m centrality_engine analyze -d prices.csv --period 1Y --validation-json check.json
        """
    )

    subparsers = parser.add_subparsers(dest='command', help='Commands')

    run_parser = subparsers.add_parser('analyze', help='Run network analysis')
    run_parser.add_argument('-d', '--data', required=True, type=Path,
                            help='Path to price CSV (date column + one column per symbol)')
    run_parser.add_argument('-c', '--config', type=Path,
                            help='Path to config.yaml')
    run_parser.add_argument('-s', '--sectors', type=Path,
                            help='Path to YAML sector map (symbol: sector)')
    run_parser.add_argument('--mode', choices=ANALYSIS_MODES, default=MODE_STOCK,
                            help='Network granularity (default: stock)')
    run_parser.add_argument('--period', choices=list(PERIOD_DAYS),
                            help='Lookback period counted back from --end or the last date')
    run_parser.add_argument('--start', help='First date to use (YYYY-MM-DD)')
    run_parser.add_argument('--end', help='Last date to use (YYYY-MM-DD)')
    run_parser.add_argument('--top', type=int, help='Rows in the ranking table')
    run_parser.add_argument('--csv', type=Path, help='Write the ranking table to CSV')
    run_parser.add_argument('--validation-json', type=Path,
                            help='Write the data validation report to JSON')
    run_parser.add_argument('-o', '--output', type=Path,
                            help='Output directory for the text report')
    run_parser.add_argument('--shock', help='Symbol (or sector code in sector mode) to shock')
    run_parser.add_argument('--magnitude', type=float, default=0.05,
                            help='Shock magnitude (default: 0.05)')
    run_parser.add_argument('--timeout', type=float, help='Seconds to wait for the analysis')
    run_parser.add_argument('-v', '--verbose', action='store_true',
                            help='Verbose output')
    run_parser.add_argument('-q', '--quiet', action='store_true',
                            help='Quiet mode (warnings only)')

    validate_parser = subparsers.add_parser('validate-config', help='Validate config file')
    validate_parser.add_argument('config', type=Path, help='Config file path')

    parser.add_argument('--version', action='store_true', help='Show version')

    args = parser.parse_args(argv)

    if args.version:
        from . import __version__
        print(f"{VERSION_NAME} v{__version__}")
        return 0

    if args.command == 'analyze':
        return run_analysis(args)
    elif args.command == 'validate-config':
        return validate_config(args)
    else:
        parser.print_help()
        return 0


def run_analysis(args) -> int:
    """Run the analysis pipeline."""
    import logging
    from datetime import datetime
    from .utils.logging import setup_logging, get_logger, log_exception
    from .core.config import ConfigLoader
    from .core.exceptions import CentralityEngineError
    from .data.loader import PriceLoader, load_sector_map
    from .engine import NetworkAnalysisFacade
    from .analysis.shock import ShockSimulator
    from .analysis.validation import DataValidator, export_validation_json
    from .report.generator import ReportGenerator, export_csv

    log_level = logging.DEBUG if args.verbose else (logging.WARNING if args.quiet else logging.INFO)
    setup_logging(level=log_level, quiet=args.quiet)
    logger = get_logger(__name__)

    try:
        config = ConfigLoader.load_or_default(args.config)
        overrides = {'period': args.period, 'start': args.start, 'end': args.end}
        for option, value in overrides.items():
            if value is not None:
                setattr(config.estimator, option, value)
        if args.top is not None:
            config.output.top_n = args.top
        config.validate()

        sectors = load_sector_map(args.sectors) if args.sectors else None
        data = PriceLoader(args.data, config, sectors).load()

        with NetworkAnalysisFacade() as facade:
            result = facade.analyze(data.instruments, args.mode, config, timeout=args.timeout)

        shock = None
        if args.shock:
            shock = ShockSimulator().simulate(result, args.shock, args.magnitude)

        validation = DataValidator().validate(result)
        report = ReportGenerator(config).generate(result, shock=shock, validation=validation)
        if args.output:
            output_dir = Path(args.output)
            output_dir.mkdir(parents=True, exist_ok=True)
            date_str = datetime.now().strftime('%Y%m%d')
            report_path = output_dir / f"{config.output.report_prefix}_{date_str}.txt"
            report_path.write_text(report, encoding='utf-8')
            logger.info(f"Report: {report_path}")
        if not args.quiet or not args.output:
            print(report)

        if args.csv:
            export_csv(result, args.csv, config.output.top_n)
        if args.validation_json:
            export_validation_json(result, args.validation_json, report=validation)

        return 0

    except CentralityEngineError as e:
        log_exception(logger, e, "Analysis failed")
        print(f"\nError: {e}", file=sys.stderr)
        return 1
    except Exception as e:
        log_exception(logger, e, "Unexpected error")
        print(f"\nUnexpected error: {e}", file=sys.stderr)
        return 1


def validate_config(args) -> int:
    """Validate a config file."""
    from .core.config import ConfigLoader
    from .core.exceptions import ConfigError

    print(f"Validating: {args.config}")

    try:
        config = ConfigLoader.load(args.config)
        print("✓ Config is valid")
        print(f"  Relationship: {config.estimator.method} on {config.estimator.returns} returns")
        print(f"  Min |strength|: {config.min_absolute_strength}")
        print(f"  Max edges/node: {config.max_edges_per_node or 'unlimited'}")
        print(f"  Distance: {config.centrality.distance_transform}")
        print(f"  Sector tags: {len(config.sectors)}")
        return 0
    except ConfigError as e:
        print(f"✗ Config validation failed: {e}")
        return 1


if __name__ == '__main__':
    sys.exit(main())
