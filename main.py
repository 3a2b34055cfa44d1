#!/usr/bin/env python3
"""
Main entry point for the robots audit.
"""

import asyncio
import argparse
import logging
import sys
from dataclasses import asdict
from pathlib import Path
from typing import Optional

from robots_audit import __version__, __description__
from robots_audit.audit.fetcher import WebFetcher
from robots_audit.audit.scheduler import AuditScheduler
from robots_audit.storage.workbook import WorkbookJobSource, WorkbookResultSink, WorkbookError
from robots_audit.utils.config import load_config, Config
from robots_audit.utils.logger import setup_logging
from robots_audit.utils.monitoring import initialize_monitoring, log_system_info


DEFAULT_CONFIG = 'config.yaml'


class AuditApp:
    """Main application class for the robots audit."""

    def __init__(self, config: Config):
        self.config = config
        self.logger = logging.getLogger(__name__)

    async def run(self, dry_run: bool = False) -> int:
        """Audit every link of the input workbook and save the output workbook."""
        workbook_config = self.config.workbook
        audit_config = self.config.audit

        self.logger.info("=== ROBOTS AUDIT STARTING ===")
        self.logger.info(f"Input: {workbook_config.input_file}")
        self.logger.info(f"Output: {workbook_config.output_file}")

        source = WorkbookJobSource(
            workbook_config.input_file,
            sheet=workbook_config.sheet,
            link_header=workbook_config.link_header,
            result_header=workbook_config.result_header
        )
        jobs = list(source.jobs())
        self.logger.info(f"Loaded {len(jobs)} links from {source.worksheet.title}")

        if dry_run:
            self.logger.info("DRY RUN MODE: no URL will be fetched")
            print(f"{len(jobs)} links found in {workbook_config.input_file}")
            return 0

        monitor = initialize_monitoring(
            self.config.monitoring.metrics_enabled,
            self.config.monitoring.prometheus_port
        )
        sink = WorkbookResultSink(source)

        async with WebFetcher(
            user_agent=audit_config.user_agent,
            transport_timeout=audit_config.transport_timeout,
            job_timeout=audit_config.job_timeout,
            max_connections=audit_config.max_connections
        ) as fetcher:
            scheduler = AuditScheduler(fetcher, pool_size=audit_config.workers, monitor=monitor)
            async for result in scheduler.run(jobs):
                sink.write(result)
            self.logger.info(f"Fetcher stats: {fetcher.get_stats()}")

        sink.save(workbook_config.output_file)
        self.logger.info(f"Monitoring summary: {monitor.get_summary()}")
        self.logger.info("=== ROBOTS AUDIT FINISHED ===")

        print(f"Finished. Output: {workbook_config.output_file}")
        return 0


def build_config(args) -> Config:
    """Load the configuration file and apply command line overrides."""
    config_path: Optional[str] = args.config
    if config_path is None and Path(DEFAULT_CONFIG).exists():
        config_path = DEFAULT_CONFIG

    config = load_config(config_path)

    if args.input:
        config.workbook.input_file = args.input
    if args.output:
        config.workbook.output_file = args.output
    if args.workers is not None:
        if args.workers < 1:
            raise ValueError("--workers must be at least 1")
        config.audit.workers = args.workers

    return config


def main(argv=None):
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description=__description__,
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python main.py                                # List-Link.xlsx -> Link-List_RESULT.xlsx
  python main.py input.xlsx output.xlsx         # Custom input and output
  python main.py --config my_config.yaml        # Run with custom config
  python main.py --workers 16                   # Fixed pool size
  python main.py --dry-run                      # Count links only
        """
    )

    parser.add_argument('input', nargs='?', help='Input workbook with a "Link" column')
    parser.add_argument('output', nargs='?', help='Output workbook')

    parser.add_argument(
        '--config',
        help=f'Path to configuration file (default: {DEFAULT_CONFIG} when present)'
    )

    parser.add_argument(
        '--workers',
        type=int,
        help='Number of concurrent workers (default: CPU count, at least 4)'
    )

    parser.add_argument(
        '--dry-run',
        action='store_true',
        help='Read the input workbook without fetching anything'
    )

    parser.add_argument(
        '--version',
        action='version',
        version=f'Robots Audit {__version__}'
    )

    args = parser.parse_args(argv)

    try:
        config = build_config(args)
    except (FileNotFoundError, ValueError) as e:
        print(f"Error: {e}")
        return 1

    setup_logging(asdict(config.logging), enable_json=config.logging.json)
    log_system_info()

    app = AuditApp(config)
    try:
        return asyncio.run(app.run(dry_run=args.dry_run))
    except WorkbookError as e:
        print(f"Error: {e}")
        return 1
    except KeyboardInterrupt:
        print("\nInterrupted by user")
        return 1


if __name__ == '__main__':
    sys.exit(main())
