from src import sheets
from src.models import TextBlock


class _FakeCredentials:
    valid = True
    token = "test-token"

    def refresh(self, _request) -> None:
        raise AssertionError("valid credentials should not be refreshed")


class _FakeResp:
    def __init__(self, status_code: int, body: dict, text: str = ""):
        self.status_code = status_code
        self._body = body
        self.text = text

    def json(self):
        return self._body


def _client(monkeypatch, responses: list[_FakeResp], calls: list) -> sheets.SheetsClient:
    monkeypatch.setattr(
        sheets.service_account.Credentials,
        "from_service_account_info",
        lambda info, scopes: _FakeCredentials(),
    )

    def fake_get(url, headers, timeout):
        calls.append((url, headers))
        return responses.pop(0)

    monkeypatch.setattr(sheets.requests, "get", fake_get)
    return sheets.SheetsClient({"client_email": "svc@example.com"})


def test_row_maps_columns_b_to_q_in_order() -> None:
    row = ["Row label", "Hook", "Problem", "Solution", "Proof", "Offer", "Urgency", "CTA"] + [
        f"Body {i}" for i in range(1, 10)
    ]
    block = sheets.row_to_text_block(row, 5)

    assert block.id == "block-5"
    assert block.hook == "Hook"
    assert block.cta == "CTA"
    assert block.body_line1 == "Body 1"
    assert block.body_line9 == "Body 9"
    assert sheets.text_block_lines(block)[:3] == ["Hook", "Problem", "Solution"]


def test_short_row_defaults_missing_cells_to_empty() -> None:
    block = sheets.row_to_text_block(["label", "Hook", None, "  Solution  "], 2)

    assert block.problem == ""
    assert block.solution == "Solution"
    assert block.body_line9 == ""
    assert sheets.text_from_block(block) == "Hook Solution"


def test_text_block_accepts_camel_case_and_none() -> None:
    block = TextBlock.model_validate({"id": "x", "bodyLine2": "two", "hook": None})
    assert block.body_line2 == "two"
    assert block.hook == ""
    assert block.to_record()["bodyLine2"] == "two"


def test_get_text_block_reads_one_row(monkeypatch) -> None:
    calls = []
    client = _client(monkeypatch, [_FakeResp(200, {"values": [["label", "Hook", "Problem"]]})], calls)

    block = client.get_text_block("sheet-123", 4)

    assert block is not None and block.hook == "Hook"
    url, headers = calls[0]
    assert url.endswith("/sheet-123/values/Sheet1!A4:Q4")
    assert headers["Authorization"] == "Bearer test-token"


def test_get_text_block_returns_none_for_empty_row(monkeypatch) -> None:
    calls = []
    client = _client(monkeypatch, [_FakeResp(200, {"values": [["only a label"]]})], calls)
    assert client.get_text_block("sheet-123", 3) is None


def test_list_text_blocks_skips_header_and_empty_rows(monkeypatch) -> None:
    values = [
        ["Label", "Hook", "Problem"],
        ["one", "First hook"],
        ["", "", ""],
        ["three", "Third hook"],
    ]
    client = _client(monkeypatch, [_FakeResp(200, {"values": values})], [])

    blocks = client.list_text_blocks("sheet-123")

    assert [b.id for b in blocks] == ["block-2", "block-4"]


def test_upstream_error_is_wrapped(monkeypatch) -> None:
    client = _client(monkeypatch, [_FakeResp(403, {}, text="forbidden")], [])
    try:
        client.get_text_block("sheet-123", 2)
    except sheets.SheetsError as exc:
        assert "403" in str(exc)
    else:
        raise AssertionError("expected SheetsError")


class _StubClient:
    def __init__(self, block=None, error: Exception | None = None):
        self.block = block
        self.error = error

    def get_text_block(self, spreadsheet_id, row_number):
        if self.error:
            raise self.error
        return self.block


def test_handle_request_validates_input() -> None:
    stub = _StubClient()
    assert sheets.handle_sheets_request({"rowNumber": 2}, stub)[0] == 400
    assert sheets.handle_sheets_request({"spreadsheetId": "s", "rowNumber": "abc"}, stub)[0] == 400
    assert sheets.handle_sheets_request({"spreadsheetId": "s", "rowNumber": 1}, stub)[0] == 400


def test_handle_request_returns_block_or_null() -> None:
    block = TextBlock(id="block-2", hook="Hi")
    status, body = sheets.handle_sheets_request({"spreadsheetId": "s", "rowNumber": 2}, _StubClient(block))
    assert status == 200
    assert body["textBlock"]["hook"] == "Hi"

    status, body = sheets.handle_sheets_request({"spreadsheetId": "s", "rowNumber": 2}, _StubClient(None))
    assert (status, body) == (200, {"textBlock": None})


def test_handle_request_maps_missing_config_to_500(monkeypatch) -> None:
    def missing(cls, config=None):
        raise sheets.SheetsError("Google service account is not configured")

    monkeypatch.setattr(sheets.SheetsClient, "from_config", classmethod(missing))
    status, body = sheets.handle_sheets_request({"spreadsheetId": "s", "rowNumber": 2})
    assert status == 500
    assert "not configured" in body["error"]
