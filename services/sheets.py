import logging
from dataclasses import dataclass, field

from services.errors import SheetsError

logger = logging.getLogger(__name__)

SCOPES = [
    "https://www.googleapis.com/auth/spreadsheets.readonly",
    "https://www.googleapis.com/auth/drive.readonly",
]


@dataclass
class SheetData:
    sheet_name: str
    headers: list[str] = field(default_factory=list)
    rows: list[dict[str, str]] = field(default_factory=list)
    total_sheets: int = 0


def pick_worksheet(worksheets: list, gid: str | int | None = None, preferred_title: str = ""):
    """
    Choose which tab to read: explicit gid, then a Google Forms "responses" tab,
    then the configured title, then the first tab.
    """
    if not worksheets:
        return None
    if gid is not None and str(gid) != "":
        for ws in worksheets:
            if str(ws.id) == str(gid):
                return ws
    for ws in worksheets:
        title = ws.title.lower()
        if "form responses" in title or "responses" in title:
            return ws
    if preferred_title:
        for ws in worksheets:
            if ws.title == preferred_title:
                return ws
    return worksheets[0]


def rows_from_values(all_values: list[list[str]]) -> tuple[list[str], list[dict[str, str]]]:
    """
    Turn a raw value grid into (headers, rows). Headers are lowercased and trimmed;
    each row is padded / trimmed to header length.
    """
    if not all_values:
        return [], []
    headers = [str(h).strip().lower() for h in all_values[0]]
    if not headers:
        return [], []

    rows: list[dict[str, str]] = []
    for vals in all_values[1:]:
        padded = (list(vals) + [""] * len(headers))[: len(headers)]
        rows.append(dict(zip(headers, padded)))
    return headers, rows


def fetch_rows(gid: str | int | None = None) -> SheetData:
    """
    Fetch all data rows (excluding header) from the configured Google Sheet.
    Uses the header row as keys.
    """
    import gspread
    from google.oauth2.service_account import Credentials
    from gspread.exceptions import APIError

    from config import settings

    if not settings.google_sheets_id:
        raise SheetsError("GOOGLE_SHEETS_ID is not configured")

    creds = Credentials.from_service_account_file(settings.google_creds_path, scopes=SCOPES)
    gc = gspread.authorize(creds)
    try:
        sh = gc.open_by_key(settings.google_sheets_id)
        worksheets = sh.worksheets()
        logger.info(
            "Available sheets: %s",
            ", ".join(f'"{ws.title}" (gid: {ws.id})' for ws in worksheets),
        )
        ws = pick_worksheet(worksheets, gid=gid, preferred_title=settings.google_sheets_worksheet)
        if ws is None:
            return SheetData(sheet_name="", total_sheets=0)
        logger.info('Reading from sheet: "%s"', ws.title)
        all_values = ws.get_all_values()
    except APIError as e:
        # Surface HTTP status/message for faster debugging
        raise SheetsError(f"gspread APIError: {getattr(e, 'response', None)} {e}") from e

    headers, rows = rows_from_values(all_values)
    logger.info("Column headers found: %s", headers)
    return SheetData(sheet_name=ws.title, headers=headers, rows=rows, total_sheets=len(worksheets))
