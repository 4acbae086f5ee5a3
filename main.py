import argparse
import logging
import sys
from typing import List, Optional

import structlog

from config import FaultPolicy, Settings, get_settings
from csv_io import read_records, write_accounts
from errors import FatalLedgerError
from services import get_ledger_service

logger = structlog.get_logger()


def configure_logging(settings: Settings) -> None:
    # Logs go to stderr; stdout carries the account table.
    logging.basicConfig(
        stream=sys.stderr,
        format="%(message)s",
        level=getattr(logging, settings.log_level.upper(), logging.WARNING),
        force=True,
    )

    if settings.log_format == "text":
        renderer = structlog.dev.ConsoleRenderer(colors=False)
    else:
        renderer = structlog.processors.JSONRenderer()

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            renderer,
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="transaction-ledger",
        description="Apply a CSV of client transactions and print the resulting account balances",
    )
    parser.add_argument("input", help="path to the transactions CSV file")
    parser.add_argument(
        "--on-missing-amount",
        choices=[policy.value for policy in FaultPolicy],
        default=None,
        help="abort the run or skip deposits/withdrawals without an amount",
    )
    parser.add_argument(
        "--on-malformed",
        choices=[policy.value for policy in FaultPolicy],
        default=None,
        help="abort the run or skip rows that do not parse",
    )
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    settings = get_settings()
    overrides = {}
    if args.on_missing_amount:
        overrides["missing_amount_policy"] = FaultPolicy(args.on_missing_amount)
    if args.on_malformed:
        overrides["malformed_record_policy"] = FaultPolicy(args.on_malformed)
    if overrides:
        settings = settings.model_copy(update=overrides)

    configure_logging(settings)
    logger.info("Starting ledger run", app=settings.app_name, version=settings.app_version, input=args.input)

    service = get_ledger_service(settings)
    try:
        accounts = service.process(read_records(args.input, settings.malformed_record_policy))
    except FatalLedgerError as e:
        logger.error("Ledger run aborted", reason=e.reason, error=e.message, tx=e.tx, client=e.client)
        return 1
    except OSError as e:
        logger.error("Cannot read input", input=args.input, error=str(e))
        return 1

    write_accounts(accounts, sys.stdout, settings.amount_precision)
    return 0


if __name__ == "__main__":
    sys.exit(main())
