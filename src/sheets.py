"""Google Sheets text blocks for the marketing video feature.

Sheet layout (``Sheet1``): row 1 is a header, column A holds a free-form row
label and columns B..Q hold, in order, hook, problem, solution, proof, offer,
urgency, cta and body lines 1-9.  Access uses a service account; the JSON key
is read from the ``GOOGLE_SERVICE_ACCOUNT_JSON`` secret.
"""
from __future__ import annotations

import json
import logging
from typing import Any, Optional, Sequence

import requests
from google.auth.transport.requests import Request
from google.oauth2 import service_account

from src.config import StudioConfig, load_config
from src.models import TEXT_BLOCK_FIELDS, TextBlock

_logger = logging.getLogger(__name__)

SHEETS_API = "https://sheets.googleapis.com/v4/spreadsheets"
SHEETS_SCOPES = ["https://www.googleapis.com/auth/spreadsheets.readonly"]
SHEET_NAME = "Sheet1"
FIRST_COLUMN = "A"
LAST_COLUMN = "Q"
# Column A is the row label; fields start at B.
FIELD_OFFSET = 1


class SheetsError(RuntimeError):
    def __init__(self, message: str, status_code: int = 500):
        super().__init__(message)
        self.status_code = status_code


def row_to_text_block(row: Sequence[Any], row_number: int) -> TextBlock:
    """Map one A..Q row to a :class:`TextBlock`; missing cells become ``""``."""
    values: dict[str, str] = {}
    for idx, name in enumerate(TEXT_BLOCK_FIELDS):
        col = idx + FIELD_OFFSET
        cell = row[col] if col < len(row) else ""
        values[name] = "" if cell is None else str(cell).strip()
    return TextBlock(id=f"block-{row_number}", **values)


def is_empty_row(row: Sequence[Any]) -> bool:
    return not any(str(cell or "").strip() for cell in row[FIELD_OFFSET:])


def text_block_lines(block: TextBlock) -> list[str]:
    """Non-empty fields of ``block`` in column order."""
    return [getattr(block, name) for name in TEXT_BLOCK_FIELDS if getattr(block, name)]


def text_from_block(block: TextBlock) -> str:
    return " ".join(text_block_lines(block))


class SheetsClient:
    """Minimal Sheets v4 reader authenticated with a service-account JWT."""

    def __init__(self, service_account_info: dict, timeout: int = 30):
        self._credentials = service_account.Credentials.from_service_account_info(
            service_account_info, scopes=SHEETS_SCOPES
        )
        self._timeout = timeout

    @classmethod
    def from_config(cls, config: Optional[StudioConfig] = None) -> "SheetsClient":
        config = config or load_config()
        raw = config.google_service_account_json
        if not raw:
            raise SheetsError("Google service account is not configured (GOOGLE_SERVICE_ACCOUNT_JSON).")
        try:
            info = json.loads(raw)
        except json.JSONDecodeError as exc:
            raise SheetsError(f"GOOGLE_SERVICE_ACCOUNT_JSON is not valid JSON: {exc}") from exc
        return cls(info)

    def _access_token(self) -> str:
        if not self._credentials.valid:
            self._credentials.refresh(Request())
        return self._credentials.token

    def _get_values(self, spreadsheet_id: str, cell_range: str) -> list[list[Any]]:
        url = f"{SHEETS_API}/{spreadsheet_id}/values/{cell_range}"
        resp = requests.get(
            url,
            headers={"Authorization": f"Bearer {self._access_token()}"},
            timeout=self._timeout,
        )
        if resp.status_code >= 400:
            _logger.error("Sheets API error %s: %s", resp.status_code, resp.text[:300])
            raise SheetsError(f"Google Sheets API error: {resp.status_code} - {resp.text[:300]}")
        return resp.json().get("values", []) or []

    def get_text_block(self, spreadsheet_id: str, row_number: int) -> Optional[TextBlock]:
        """Return the block on ``row_number`` (1-based, header excluded) or ``None`` when empty."""
        if row_number < 2:
            raise ValueError("Row number must be 2 or greater (row 1 is the header).")
        cell_range = f"{SHEET_NAME}!{FIRST_COLUMN}{row_number}:{LAST_COLUMN}{row_number}"
        rows = self._get_values(spreadsheet_id, cell_range)
        if not rows or is_empty_row(rows[0]):
            return None
        return row_to_text_block(rows[0], row_number)

    def list_text_blocks(self, spreadsheet_id: str) -> list[TextBlock]:
        rows = self._get_values(spreadsheet_id, f"{SHEET_NAME}!{FIRST_COLUMN}:{LAST_COLUMN}")
        blocks = []
        for offset, row in enumerate(rows[1:]):
            if is_empty_row(row):
                continue
            blocks.append(row_to_text_block(row, offset + 2))
        return blocks


def handle_sheets_request(payload: dict, client: Optional[SheetsClient] = None) -> tuple[int, dict]:
    """``{spreadsheetId, rowNumber}`` -> ``(status, {textBlock | error})``."""
    spreadsheet_id = str((payload or {}).get("spreadsheetId") or "").strip()
    try:
        row_number = int((payload or {}).get("rowNumber"))
    except (TypeError, ValueError):
        return 400, {"error": "rowNumber must be an integer"}
    if not spreadsheet_id:
        return 400, {"error": "spreadsheetId is required"}
    if row_number < 2:
        return 400, {"error": "rowNumber must be 2 or greater"}

    try:
        client = client or SheetsClient.from_config()
        block = client.get_text_block(spreadsheet_id, row_number)
    except SheetsError as exc:
        return exc.status_code, {"error": str(exc)}
    except Exception as exc:
        _logger.exception("Sheets lookup failed")
        return 500, {"error": str(exc)}

    return 200, {"textBlock": block.to_record() if block is not None else None}
