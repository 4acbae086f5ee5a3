import csv
from typing import Dict, Iterator, List, TextIO

import structlog
from pydantic import ValidationError

from config import FaultPolicy
from errors import MalformedRecord
from models import Account, TransactionRecord

logger = structlog.get_logger()

BOM = "\ufeff"
OUTPUT_HEADER = ["client", "available", "held", "total", "locked"]


def parse_records(stream: TextIO, policy: FaultPolicy = FaultPolicy.abort) -> Iterator[TransactionRecord]:
    """Yield records from a CSV stream whose header names type, client, tx and amount.

    Columns are matched by header name, so their order does not matter, and
    a row may leave out the trailing amount. Rows that do not fit the record
    shape raise MalformedRecord, or are logged and dropped under the skip
    policy.
    """
    reader = csv.DictReader(stream)
    try:
        fieldnames = reader.fieldnames
    except csv.Error as e:
        _reject(["header: " + str(e)], reader.line_num, FaultPolicy.abort, e)
    if fieldnames is None:
        return
    reader.fieldnames = [name.strip().lstrip(BOM) for name in fieldnames]

    rows = iter(reader)
    while True:
        try:
            row = next(rows)
        except StopIteration:
            return
        except csv.Error as e:
            _reject(["record: " + str(e)], reader.line_num, policy, e)
            continue

        try:
            yield TransactionRecord.model_validate(row)
        except ValidationError as e:
            errors = [
                f"{'.'.join(str(part) for part in err['loc']) or 'record'}: {err['msg']}"
                for err in e.errors()
            ]
            _reject(errors, reader.line_num, policy, e)


def _reject(errors: List[str], line: int, policy: FaultPolicy, cause: Exception) -> None:
    if policy == FaultPolicy.skip:
        logger.warning("Malformed record skipped", line=line, errors=errors)
        return
    logger.error("Malformed record", line=line, errors=errors)
    raise MalformedRecord(f"Line {line} is not a valid record: {'; '.join(errors)}") from cause


def read_records(path: str, policy: FaultPolicy = FaultPolicy.abort) -> Iterator[TransactionRecord]:
    # Undecodable bytes become U+FFFD and fail record validation on their own row.
    with open(path, newline="", encoding="utf-8-sig", errors="replace") as file:
        yield from parse_records(file, policy)


def write_accounts(accounts: Dict[int, Account], stream: TextIO, precision: int = 4) -> None:
    writer = csv.writer(stream, lineterminator="\n")
    writer.writerow(OUTPUT_HEADER)
    for account in accounts.values():
        writer.writerow(account.to_row(precision))
