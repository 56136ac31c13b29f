"""
services/csv_parser.py — CSV batch validation for expense uploads.

Expected layout (header row required, columns in any order, all present):

    description,centAmount,paidByMemberId,includedMemberIds
    Dinner,4500,,
    Taxi,1200,<member uuid>,<member uuid>|<member uuid>

Two entry points:
  validate_structure() — syntax, emptiness, headers, row cap. Cheap; runs in
                         the upload request before anything is stored.
  parse_and_validate() — the structural checks plus every per-row rule
                         against a set of current member ids. Runs in the
                         import worker.

A structural failure is reported as a single RowError on row 0 and yields
no expenses. Otherwise each non-blank data row ends up either as one
ValidatedExpenseRow or as one or more RowErrors, never both and never
neither. Row numbers are 1-based with the header as row 1.

No Flask imports, no database access.
"""

from __future__ import annotations

import csv
import io
import re
from dataclasses import asdict, dataclass, field

from groupledger.app.models.base import MAX_CENT_AMOUNT

REQUIRED_HEADERS = (
    "description",
    "centAmount",
    "paidByMemberId",
    "includedMemberIds",
)

MAX_ROWS = 500

MEMBER_ID_SEPARATOR = "|"

_UUID_RE = re.compile(
    r"^[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}$",
    re.IGNORECASE,
)
_INTEGER_RE = re.compile(r"^[+-]?\d+$")


@dataclass(frozen=True)
class RowError:
    row: int
    field: str
    message: str
    value: str = ""

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class ValidatedExpenseRow:
    description: str
    cent_amount: int
    paid_by_member_id: str | None = None
    included_member_ids: list[str] | None = None

    def to_expense_data(self) -> dict:
        """Shape accepted by expense_service.create_batch()."""
        return {
            "description":         self.description,
            "cent_amount":         self.cent_amount,
            "paid_by_member_id":   self.paid_by_member_id,
            "included_member_ids": self.included_member_ids,
        }


@dataclass
class CsvParseResult:
    expenses: list[ValidatedExpenseRow] = field(default_factory=list)
    errors: list[RowError] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return not self.errors


@dataclass
class CsvStructureResult:
    valid: bool
    error: RowError | None = None


# ── Structural pass ────────────────────────────────────────────────────────

def _structural_error(field_name: str, message: str, value: str = "") -> RowError:
    return RowError(row=0, field=field_name, message=message, value=value)


def _read_records(csv_text: str) -> tuple[list[dict], RowError | None]:
    """
    Parses csv_text into header-keyed records with trimmed values.

    Fully blank lines are skipped. A record whose field count differs from
    the header is a syntax error, as is malformed quoting.
    """
    try:
        rows = list(csv.reader(io.StringIO(csv_text, newline=""), strict=True))
    except csv.Error:
        return [], _structural_error("csv", "Invalid CSV format")

    rows = [row for row in rows if any(cell.strip() for cell in row)]
    if not rows:
        return [], _structural_error("csv", "CSV file is empty")

    headers = [cell.strip() for cell in rows[0]]
    records = []
    for row in rows[1:]:
        if len(row) != len(headers):
            return [], _structural_error("csv", "Invalid CSV format")
        records.append({name: value.strip() for name, value in zip(headers, row)})

    if not records:
        return [], _structural_error("csv", "CSV file is empty")

    missing = [name for name in REQUIRED_HEADERS if name not in headers]
    if missing:
        return [], _structural_error(
            "headers",
            f"Missing required headers: {', '.join(missing)}",
            ", ".join(headers),
        )

    if len(records) > MAX_ROWS:
        return [], _structural_error(
            "csv",
            f"CSV file exceeds maximum of {MAX_ROWS} rows",
            str(len(records)),
        )

    return records, None


def validate_structure(csv_text: str) -> CsvStructureResult:
    """Syntax, emptiness, required headers and the row cap. No row rules."""
    _, error = _read_records(csv_text)
    if error is not None:
        return CsvStructureResult(valid=False, error=error)
    return CsvStructureResult(valid=True)


# ── Row rules ──────────────────────────────────────────────────────────────

def _validate_row(record: dict, row_number: int, valid_member_ids: set[str]) -> list[RowError]:
    errors: list[RowError] = []

    description = record["description"]
    if not description:
        errors.append(RowError(row_number, "description", "Description is required", description))

    raw_amount = record["centAmount"]
    if not _INTEGER_RE.match(raw_amount):
        errors.append(RowError(row_number, "centAmount", "Must be a valid integer", raw_amount))
    elif int(raw_amount) <= 0:
        errors.append(RowError(row_number, "centAmount", "Must be a positive integer", raw_amount))
    elif int(raw_amount) > MAX_CENT_AMOUNT:
        errors.append(
            RowError(row_number, "centAmount", f"Must be at most {MAX_CENT_AMOUNT}", raw_amount)
        )

    paid_by = record["paidByMemberId"]
    if paid_by:
        if not _UUID_RE.match(paid_by):
            errors.append(RowError(row_number, "paidByMemberId", "Must be a valid UUID", paid_by))
        elif paid_by not in valid_member_ids:
            errors.append(
                RowError(row_number, "paidByMemberId", "Not a member of this group", paid_by)
            )

    included = record["includedMemberIds"]
    if included:
        for member_id in _split_member_ids(included):
            if not _UUID_RE.match(member_id):
                errors.append(
                    RowError(row_number, "includedMemberIds", f"Invalid UUID: {member_id}", included)
                )
            elif member_id not in valid_member_ids:
                errors.append(
                    RowError(
                        row_number,
                        "includedMemberIds",
                        f"Not a member of this group: {member_id}",
                        included,
                    )
                )

    return errors


def _split_member_ids(raw: str) -> list[str]:
    return [token.strip() for token in raw.split(MEMBER_ID_SEPARATOR)]


def _to_validated_row(record: dict) -> ValidatedExpenseRow:
    included = record["includedMemberIds"]
    return ValidatedExpenseRow(
        description=record["description"],
        cent_amount=int(record["centAmount"]),
        paid_by_member_id=record["paidByMemberId"] or None,
        included_member_ids=_split_member_ids(included) if included else None,
    )


def parse_and_validate(csv_text: str, valid_member_ids: set[str]) -> CsvParseResult:
    """
    Full validation. Collects every row error instead of stopping at the
    first one, so a client can fix the whole file in one pass.
    """
    records, error = _read_records(csv_text)
    if error is not None:
        return CsvParseResult(errors=[error])

    result = CsvParseResult()
    for index, record in enumerate(records):
        row_errors = _validate_row(record, index + 2, valid_member_ids)
        if row_errors:
            result.errors.extend(row_errors)
        else:
            result.expenses.append(_to_validated_row(record))

    return result
