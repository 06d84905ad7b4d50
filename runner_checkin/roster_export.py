import csv
import io
import logging
from datetime import date, datetime
from typing import List

import openpyxl
from openpyxl.styles import Font, PatternFill
from openpyxl.utils import get_column_letter

from runner_checkin import models

logger = logging.getLogger("runner_checkin.roster_export")

XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


def _export_value(value):
    if value is None:
        return ""
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return value


def participant_rows(participants: List[models.Participant]) -> List[list]:
    return [
        [_export_value(getattr(p, column)) for column in models.PARTICIPANT_COLUMNS]
        for p in participants
    ]


def build_csv(participants: List[models.Participant]) -> str:
    output = io.StringIO()
    writer = csv.writer(output, lineterminator="\n")
    writer.writerow(models.PARTICIPANT_COLUMNS)
    writer.writerows(participant_rows(participants))
    return output.getvalue()


def build_xlsx(participants: List[models.Participant]) -> bytes:
    wb = openpyxl.Workbook()
    ws = wb.active
    ws.title = "Participants"

    header_font = Font(bold=True, color="FFFFFF")
    header_fill = PatternFill(start_color="366092", end_color="366092", fill_type="solid")
    ws.append(models.PARTICIPANT_COLUMNS)
    for cell in ws[1]:
        cell.font = header_font
        cell.fill = header_fill

    for row in participant_rows(participants):
        ws.append(row)

    for idx, column in enumerate(models.PARTICIPANT_COLUMNS, start=1):
        ws.column_dimensions[get_column_letter(idx)].width = max(12, len(column) + 2)
    ws.freeze_panes = "A2"

    buffer = io.BytesIO()
    wb.save(buffer)
    logger.debug(f"Built participants workbook with {len(participants)} rows")
    return buffer.getvalue()


def build_template_csv(headers: List[str]) -> str:
    output = io.StringIO()
    csv.writer(output, lineterminator="\n").writerow(headers)
    return output.getvalue()
