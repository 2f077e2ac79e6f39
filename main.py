#!/usr/bin/env python3
"""Bank statement ledger converter.

Converts bank-statement PDFs (text-layer or scanned) and raw bank CSV exports
into a universal seven-column ledger, with a QA report describing extraction
confidence.

Usage:
    python main.py --pdf-file <statement.pdf> [--bank-name <bank>] [--max-pages N] [--output-dir <dir>]

    python main.py --csv-file <export.csv> [--output-dir <dir>]

    python main.py --batch-dir <directory_with_pdfs> [--format xlsx]

    python main.py --daemon  # Run as background worker

    python main.py --health
"""

import argparse
import json
import os
import sys
from pathlib import Path
from typing import List, Optional

from statement_ledger.config.settings import Settings, load_settings
from statement_ledger.conversion.models import ConversionResult
from statement_ledger.conversion.orchestrator import ConversionOrchestrator
from statement_ledger.conversion.writer import ExcelLedgerWriter, LedgerWriteError
from statement_ledger.utils.exceptions import ConversionError
from statement_ledger.utils.logger import get_logger, setup_logger
from statement_ledger.utils.validators import (
    validate_csv_file,
    validate_directory_path,
    validate_pdf_file,
)


class StatementConverter:
    """Command-line front end over the conversion orchestrator."""

    def __init__(self, settings: Optional[Settings] = None) -> None:
        self.settings = settings or Settings.from_env()
        self.logger = get_logger(__name__)
        self.orchestrator = ConversionOrchestrator(self.settings)
        self.excel_writer = ExcelLedgerWriter()

    def write_output(
        self,
        result: ConversionResult,
        source_path: str,
        output_dir: Optional[str] = None,
        output_format: str = "csv"
    ) -> str:
        """Write a conversion result next to its siblings in ``output_dir``.

        Returns:
            Path of the written file.
        """
        output_dir = output_dir or self.settings.converted_dir
        os.makedirs(output_dir, exist_ok=True)
        validate_directory_path(output_dir)
        stem = Path(source_path).stem

        if output_format == "xlsx":
            return self.excel_writer.write(result, output_dir, f"{stem}_ledger.xlsx")

        output_path = os.path.join(output_dir, f"{stem}_ledger.csv")
        with open(output_path, "w", encoding="utf-8", newline="") as f:
            f.write(result.csv)
        return output_path

    def report(self, result: ConversionResult, show_qa: bool = False) -> None:
        for warning in result.warnings:
            print(f"  warning: {warning}")
        if show_qa:
            print(json.dumps(result.qa_report.to_dict(), indent=2))

    def convert_pdf(
        self,
        pdf_path: str,
        bank_name: Optional[str] = None,
        max_pages: Optional[int] = None,
        output_dir: Optional[str] = None,
        output_format: str = "csv",
        show_qa: bool = False
    ) -> Optional[str]:
        """Convert a single PDF and write the ledger.

        Returns:
            Path to the written ledger, or None if the conversion failed.
        """
        try:
            validate_pdf_file(pdf_path, self.settings.max_file_size_mb)
            self.logger.info(f"Converting PDF: {pdf_path}")

            result = self.orchestrator.convert(pdf_path, max_pages=max_pages, bank_name=bank_name)
            output_path = self.write_output(result, pdf_path, output_dir, output_format)

            self.logger.info(
                f"Wrote {result.transactions} transactions ({result.qa_report.method}) to {output_path}"
            )
            self.report(result, show_qa)
            return output_path

        except (ConversionError, LedgerWriteError, OSError) as e:
            self.logger.error(f"Conversion failed for {pdf_path}: {str(e)}")
            return None

    def convert_csv(
        self,
        csv_path: str,
        output_dir: Optional[str] = None,
        output_format: str = "csv",
        show_qa: bool = False
    ) -> Optional[str]:
        """Normalize a bank CSV export and write the ledger."""
        try:
            validate_csv_file(csv_path, self.settings.max_file_size_mb)
            self.logger.info(f"Normalizing CSV: {csv_path}")

            with open(csv_path, "r", encoding="utf-8-sig") as f:
                result = self.orchestrator.convert_csv(f.read())

            output_path = self.write_output(result, csv_path, output_dir, output_format)
            self.report(result, show_qa)
            return output_path

        except (ConversionError, LedgerWriteError, OSError, UnicodeDecodeError) as e:
            self.logger.error(f"CSV conversion failed for {csv_path}: {str(e)}")
            return None

    def convert_batch(
        self,
        batch_dir: str,
        bank_name: Optional[str] = None,
        max_pages: Optional[int] = None,
        output_dir: Optional[str] = None,
        output_format: str = "csv"
    ) -> List[str]:
        """Convert every PDF and CSV export in a directory.

        Returns:
            Paths of the ledgers written.
        """
        self.logger.info(f"Processing batch directory: {batch_dir}")

        sources = sorted(
            path for path in Path(batch_dir).iterdir()
            if path.suffix.lower() in (".pdf", ".csv")
        )
        if not sources:
            self.logger.warning(f"No PDF or CSV files found in {batch_dir}")
            return []

        self.logger.info(f"Found {len(sources)} files")

        written = []
        for source in sources:
            if source.suffix.lower() == ".pdf":
                output_path = self.convert_pdf(str(source), bank_name, max_pages, output_dir, output_format)
            else:
                output_path = self.convert_csv(str(source), output_dir, output_format)
            if output_path:
                written.append(output_path)

        self.logger.info(f"Successfully converted {len(written)}/{len(sources)} files")
        return written

    def start_daemon(self) -> None:
        """Start a Celery worker for the conversion queue."""
        self.logger.info("Starting statement conversion worker")

        from statement_ledger.tasks.celery_app import celery_app

        celery_app.start(["worker", "--loglevel=info", "-Q", "statement_conversion"])

    def check_health(self) -> bool:
        from statement_ledger.monitoring.health_checker import HealthChecker

        checker = HealthChecker(self.settings)
        print(checker.get_health_summary())
        return checker.is_healthy()


def parse_arguments(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """Parse command line arguments.

    Returns:
        Parsed arguments namespace.
    """
    parser = argparse.ArgumentParser(
        description="Convert bank statements into a universal transaction ledger",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    # Convert a scanned ABSA statement, OCR'ing at most 20 pages
    python main.py --pdf-file statement.pdf --bank-name ABSA --max-pages 20

    # Normalize a CSV export and print the QA report
    python main.py --csv-file export.csv --qa-json

    # Convert a directory of statements to Excel workbooks
    python main.py --batch-dir ./statements --format xlsx

    # Run as background worker
    python main.py --daemon
        """
    )

    group = parser.add_mutually_exclusive_group(required=True)
    group.add_argument(
        '--pdf-file',
        type=str,
        help='Path to a single statement PDF'
    )
    group.add_argument(
        '--csv-file',
        type=str,
        help='Path to a bank CSV export'
    )
    group.add_argument(
        '--batch-dir',
        type=str,
        help='Directory containing statement PDFs and CSV exports'
    )
    group.add_argument(
        '--daemon',
        action='store_true',
        help='Run as background Celery worker'
    )
    group.add_argument(
        '--health',
        action='store_true',
        help='Check the OCR toolchain and infrastructure, then exit'
    )

    parser.add_argument(
        '--bank-name',
        type=str,
        help='Bank name, used to pick OCR correction rules'
    )
    parser.add_argument(
        '--max-pages',
        type=int,
        default=None,
        help='Maximum number of pages to OCR'
    )
    parser.add_argument(
        '--output-dir',
        type=str,
        default=None,
        help='Output directory for ledgers (default: CONVERTED_DIR)'
    )
    parser.add_argument(
        '--format',
        choices=['csv', 'xlsx'],
        default='csv',
        help='Ledger output format'
    )
    parser.add_argument(
        '--qa-json',
        action='store_true',
        help='Print the QA report as JSON'
    )
    parser.add_argument(
        '--config',
        type=str,
        default=None,
        help='JSON file overriding settings read from the environment'
    )

    return parser.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point.

    Returns:
        Exit code (0 for success, 1 for error).
    """
    try:
        args = parse_arguments(argv)

        settings = load_settings(args.config)
        settings.create_directories()
        setup_logger("statement_ledger", level=settings.get_log_level(), logs_dir=settings.logs_dir)
        converter = StatementConverter(settings)

        if args.daemon:
            converter.start_daemon()
        elif args.health:
            return 0 if converter.check_health() else 1
        elif args.pdf_file:
            output_path = converter.convert_pdf(
                args.pdf_file,
                bank_name=args.bank_name,
                max_pages=args.max_pages,
                output_dir=args.output_dir,
                output_format=args.format,
                show_qa=args.qa_json,
            )
            if output_path:
                print(f"Success! Ledger created: {output_path}")
                return 0
            print("Error: Conversion failed. Check logs for details.")
            return 1
        elif args.csv_file:
            output_path = converter.convert_csv(
                args.csv_file,
                output_dir=args.output_dir,
                output_format=args.format,
                show_qa=args.qa_json,
            )
            if output_path:
                print(f"Success! Ledger created: {output_path}")
                return 0
            print("Error: Conversion failed. Check logs for details.")
            return 1
        elif args.batch_dir:
            output_paths = converter.convert_batch(
                args.batch_dir,
                bank_name=args.bank_name,
                max_pages=args.max_pages,
                output_dir=args.output_dir,
                output_format=args.format,
            )
            if output_paths:
                print(f"Success! Created {len(output_paths)} ledgers:")
                for path in output_paths:
                    print(f"  - {path}")
                return 0
            print("Error: No files were converted successfully. Check logs for details.")
            return 1

        return 0

    except KeyboardInterrupt:
        print("\nOperation cancelled by user")
        return 130
    except (ConversionError, OSError, ValueError) as e:
        print(f"Error: {str(e)}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
