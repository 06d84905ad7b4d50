"""Roster import: turn an uploaded CSV/XLSX participant list into Participant rows.

Column headers are matched case-insensitively against a table of common
spellings, so exports from most race registration platforms load without
editing. Rows that cannot be imported are reported by spreadsheet row
number; the rest of the file is still imported.
"""

import csv
import io
import logging
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Dict, Iterator, List, Optional, Set, Tuple

from openpyxl import load_workbook
from sqlalchemy.orm import Session

from runner_checkin import models

logger = logging.getLogger("runner_checkin.roster_import")

HEADER_ALIASES = {
    "bib_no": ("bib_no", "bib", "bib number", "bib_number"),
    "last_name": ("last_name", "lastname", "surname"),
    "first_name": ("first_name", "firstname", "given name"),
    "full_name": ("full_name", "fullname", "name"),
    "name_on_bib": ("name_on_bib", "bib name"),
    "phone": ("phone", "phone_number", "mobile"),
    "email": ("email", "email_address"),
    "id_card_passport": ("id_card", "id_card_passport", "id"),
    "tshirt_size": ("tshirt_size", "shirt_size", "size"),
    "birthday_year": ("birthday_year", "birth_year", "year"),
    "nationality": ("nationality",),
    "emergency_contact_name": ("emergency_contact_name", "emergency_name"),
    "emergency_contact_phone": ("emergency_contact_phone", "emergency_phone"),
    "blood_type": ("blood_type",),
    "medical_information": ("medical_information", "medical_info"),
    "medicines_using": ("medicines_using", "medications"),
    "parent_full_name": ("parent_full_name", "parent_name"),
    "parent_date_of_birth": ("parent_date_of_birth",),
    "parent_email": ("parent_email",),
    "parent_id_card_passport": ("parent_id_card_passport", "parent_id"),
    "parent_relationship": ("parent_relationship", "relationship"),
    "start_time": ("start_time",),
    "participant_id": ("participant_id",),
    "category": ("category",),
    "age_group": ("age_group", "age group"),
}

ALIAS_TO_FIELD = {alias: name for name, aliases in HEADER_ALIASES.items() for alias in aliases}

# Header row offered as a download so organisers start from a file we can read
TEMPLATE_HEADERS = [
    "bib_no", "first_name", "last_name", "full_name", "name_on_bib", "category", "age_group",
    "start_time", "participant_id", "id_card_passport", "tshirt_size", "birthday_year",
    "nationality", "phone", "email", "emergency_contact_name", "emergency_contact_phone",
    "blood_type", "medical_information", "medicines_using", "parent_full_name",
    "parent_date_of_birth", "parent_email", "parent_id_card_passport", "parent_relationship",
]

EXCEL_EXTENSIONS = (".xlsx", ".xlsm")


class RosterFormatError(ValueError):
    """The uploaded file cannot be read as a roster at all."""


@dataclass
class RosterImportResult:
    created: int = 0
    errors: List[str] = field(default_factory=list)


def _cell_to_str(value) -> str:
    if value is None:
        return ""
    if isinstance(value, float) and value.is_integer():
        # Spreadsheets store bib 101 as 101.0
        return str(int(value))
    if isinstance(value, datetime):
        return value.date().isoformat() if value.time() == datetime.min.time() else value.isoformat()
    if isinstance(value, date):
        return value.isoformat()
    return str(value).strip()


def read_rows(filename: str, content: bytes) -> Tuple[List[str], Iterator[Tuple[int, List[str]]]]:
    """Return the normalised header row and an iterator of (row number, cells)."""
    if (filename or "").lower().endswith(EXCEL_EXTENSIONS):
        return _read_excel(content)
    return _read_csv(content)


def _read_csv(content: bytes):
    try:
        text = content.decode("utf-8-sig")
    except UnicodeDecodeError as e:
        raise RosterFormatError(f"File is not UTF-8 encoded CSV: {str(e)}")
    reader = csv.reader(io.StringIO(text))
    try:
        header = next(reader)
    except StopIteration:
        raise RosterFormatError("File is empty")
    except csv.Error as e:
        raise RosterFormatError(f"Could not parse CSV header: {str(e)}")
    headers = [h.strip().lower() for h in header]

    def rows():
        for cells in reader:
            # physical line of the record's last line; quoted newlines make it drift from a counter
            yield reader.line_num, [c.strip() for c in cells]

    return headers, rows()


def _read_excel(content: bytes):
    try:
        wb = load_workbook(filename=io.BytesIO(content), read_only=True, data_only=True)
    except Exception as e:
        raise RosterFormatError(f"Could not open Excel file: {str(e)}")
    ws = wb.active
    all_rows = ws.iter_rows(values_only=True)
    try:
        header = next(all_rows)
    except StopIteration:
        raise RosterFormatError("Worksheet is empty")
    headers = [_cell_to_str(h).lower() for h in header]
    # Excel pads every row to the sheet width; trailing empty header columns are noise
    while headers and not headers[-1]:
        headers.pop()

    def rows():
        for row_number, row in enumerate(all_rows, start=2):
            cells = [_cell_to_str(v) for v in row]
            cells += [""] * (len(headers) - len(cells))
            yield row_number, cells

    return headers, rows()


def map_row(headers: List[str], cells: List[str]) -> Dict[str, object]:
    """Map one row onto Participant attribute names, ignoring unknown columns."""
    data: Dict[str, object] = {}
    for header, value in zip(headers, cells):
        field_name = ALIAS_TO_FIELD.get(header)
        if not field_name or not value:
            continue
        if field_name == "birthday_year":
            try:
                data[field_name] = int(float(value))
            except (ValueError, OverflowError):
                data[field_name] = None
        else:
            data[field_name] = value
    return data


def apply_name_defaults(data: Dict[str, object]) -> Dict[str, object]:
    if not data.get("last_name"):
        data["last_name"] = "Unknown"
    if not data.get("first_name"):
        data["first_name"] = "Unknown"
    if not data.get("full_name"):
        data["full_name"] = f"{data['first_name']} {data['last_name']}"
    if not data.get("name_on_bib"):
        data["name_on_bib"] = data["full_name"]
    return data


def existing_bibs(db: Session, event_id: int) -> Set[str]:
    return {bib for (bib,) in db.query(models.Participant.bib_no).filter(models.Participant.event_id == event_id)}


def next_free_bib(taken: Set[str], start: Optional[int] = None) -> str:
    n = start if start is not None else len(taken) + 1
    while f"BIB-{n}" in taken:
        n += 1
    return f"BIB-{n}"


def import_roster(db: Session, event: models.Event, filename: str, content: bytes) -> RosterImportResult:
    """Create participants for ``event`` from an uploaded file and commit them."""
    result = RosterImportResult()
    try:
        headers, rows = read_rows(filename, content)
    except RosterFormatError as e:
        logger.error(f"Roster file {filename} for event {event.id} is unreadable: {str(e)}")
        result.errors.append(f"File processing error: {str(e)}")
        return result

    unknown = [h for h in headers if h and h not in ALIAS_TO_FIELD]
    if unknown:
        logger.debug(f"Ignoring unknown roster columns: {unknown}")

    taken = existing_bibs(db, event.id)
    try:
        for row_number, cells in rows:
            if not any(cells):
                continue
            if len(cells) < len(headers):
                result.errors.append(f"Row {row_number}: expected {len(headers)} columns, found {len(cells)}")
                continue
            data = apply_name_defaults(map_row(headers, cells))
            bib_no = data.get("bib_no") or next_free_bib(taken, result.created + 1)
            if bib_no in taken:
                result.errors.append(f"Row {row_number}: bib {bib_no} already exists in this event")
                continue
            data["bib_no"] = bib_no
            db.add(models.Participant(event_id=event.id, **data))
            taken.add(bib_no)
            result.created += 1
    except csv.Error as e:
        logger.error(f"CSV parsing failed for event {event.id}: {str(e)}")
        result.errors.append(f"File processing error: {str(e)}")

    db.commit()
    logger.info(f"Imported {result.created} participants into event {event.id} ({len(result.errors)} rows rejected)")
    return result
