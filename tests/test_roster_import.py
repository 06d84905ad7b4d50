import io

from openpyxl import Workbook

from runner_checkin import models
from runner_checkin.roster_import import apply_name_defaults, import_roster, map_row, next_free_bib

ROSTER_CSV = (
    "Bib,First_Name,Surname,Email,Birth_Year,Shirt_Size\n"
    "101,Ana,Reyes,ana@example.com,1990,M\n"
    "102,Ben,Cruz,,abc,L\n"
    "101,Dup,Runner,,,\n"
    ",NoBib,Person,,,\n"
    "103,Short\n"
)


def _participants(db_session, event):
    db_session.expire_all()
    return {p.bib_no: p for p in db_session.query(models.Participant).filter_by(event_id=event.id)}


def test_map_row_understands_header_aliases():
    headers = ["bib number", "given name", "lastname", "mobile", "year", "medications", "favourite colour"]
    cells = ["7", "Cara", "Lim", "0917", "1985", "none", "blue"]

    assert map_row(headers, cells) == {
        "bib_no": "7",
        "first_name": "Cara",
        "last_name": "Lim",
        "phone": "0917",
        "birthday_year": 1985,
        "medicines_using": "none",
    }


def test_non_numeric_birth_year_becomes_null():
    assert map_row(["birth_year"], ["unknown"]) == {"birthday_year": None}
    assert map_row(["birth_year"], ["inf"]) == {"birthday_year": None}
    assert map_row(["birth_year"], ["-inf"]) == {"birthday_year": None}
    assert map_row(["birth_year"], ["1e400"]) == {"birthday_year": None}


def test_name_defaults():
    assert apply_name_defaults({}) == {
        "first_name": "Unknown",
        "last_name": "Unknown",
        "full_name": "Unknown Unknown",
        "name_on_bib": "Unknown Unknown",
    }
    assert apply_name_defaults({"first_name": "Ana", "last_name": "Reyes", "name_on_bib": "ANA"})["name_on_bib"] == "ANA"


def test_next_free_bib_skips_taken_numbers():
    assert next_free_bib(set()) == "BIB-1"
    assert next_free_bib({"BIB-1", "BIB-2", "99"}) == "BIB-4"
    assert next_free_bib({"BIB-3"}, start=3) == "BIB-4"


def test_csv_import_reports_bad_rows_and_keeps_good_ones(db_session, event):
    result = import_roster(db_session, event, "roster.csv", ROSTER_CSV.encode("utf-8"))

    assert result.created == 3
    assert result.errors == [
        "Row 4: bib 101 already exists in this event",
        "Row 6: expected 6 columns, found 2",
    ]
    participants = _participants(db_session, event)
    assert set(participants) == {"101", "102", "BIB-3"}
    ana = participants["101"]
    assert ana.full_name == "Ana Reyes"
    assert ana.name_on_bib == "Ana Reyes"
    assert ana.email == "ana@example.com"
    assert ana.birthday_year == 1990
    assert ana.tshirt_size == "M"
    assert participants["102"].birthday_year is None
    assert participants["102"].email is None
    assert participants["BIB-3"].first_name == "NoBib"


def test_csv_with_byte_order_mark(db_session, event):
    content = "\ufeffbib_no,first_name,last_name\n1,Ana,Reyes\n".encode("utf-8")

    result = import_roster(db_session, event, "roster.csv", content)

    assert result.created == 1
    assert "1" in _participants(db_session, event)


def test_import_skips_bibs_already_in_event(db_session, event, make_participant):
    make_participant(event, "101")

    result = import_roster(db_session, event, "roster.csv", b"bib,first_name\n101,Ana\n102,Ben\n")

    assert result.created == 1
    assert result.errors == ["Row 2: bib 101 already exists in this event"]


def test_excel_import(db_session, event):
    wb = Workbook()
    ws = wb.active
    ws.append(["Bib Number", "Given Name", "Lastname", "Year", "Category"])
    ws.append([7, "Cara", "Lim", 1985, "21K"])
    ws.append([8.0, "Dan", "Go", None, "10K"])
    buffer = io.BytesIO()
    wb.save(buffer)

    result = import_roster(db_session, event, "Roster.XLSX", buffer.getvalue())

    assert result.errors == []
    assert result.created == 2
    participants = _participants(db_session, event)
    assert participants["7"].birthday_year == 1985
    assert participants["7"].category == "21K"
    assert participants["8"].full_name == "Dan Go"


def test_unreadable_excel_file(db_session, event):
    result = import_roster(db_session, event, "roster.xlsx", b"definitely not a zip archive")

    assert result.created == 0
    assert len(result.errors) == 1
    assert result.errors[0].startswith("File processing error: Could not open Excel file")


def test_csv_that_is_not_utf8(db_session, event):
    result = import_roster(db_session, event, "roster.csv", b"\xff\xfe\x00b\x00i\x00b")

    assert result.created == 0
    assert result.errors[0].startswith("File processing error:")


def test_infinite_birth_year_does_not_abort_import(db_session, event):
    result = import_roster(db_session, event, "roster.csv", b"bib_no,first_name,birth_year\n1,Ann,inf\n2,Bob,1990\n")

    assert result.created == 2
    assert result.errors == []
    participants = _participants(db_session, event)
    assert participants["1"].birthday_year is None
    assert participants["2"].birthday_year == 1990
