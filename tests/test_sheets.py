from __future__ import annotations

from dataclasses import dataclass

from services.sheets import pick_worksheet, rows_from_values


@dataclass
class FakeWorksheet:
    id: int
    title: str


def test_rows_are_keyed_by_lowercased_headers_and_padded():
    headers, rows = rows_from_values([
        [" Team Name ", "Email", "Description"],
        ["Nova", "a@x.com"],
        ["Orbit", "o@x.com", "desc", "stray"],
    ])
    assert headers == ["team name", "email", "description"]
    assert rows[0] == {"team name": "Nova", "email": "a@x.com", "description": ""}
    assert rows[1] == {"team name": "Orbit", "email": "o@x.com", "description": "desc"}


def test_empty_grid():
    assert rows_from_values([]) == ([], [])
    assert rows_from_values([["a"]]) == (["a"], [])


def test_pick_worksheet_order():
    sheets = [FakeWorksheet(0, "Overview"), FakeWorksheet(11, "Form Responses 1"), FakeWorksheet(22, "Manual")]
    assert pick_worksheet(sheets, gid="22").title == "Manual"
    assert pick_worksheet(sheets).title == "Form Responses 1"
    assert pick_worksheet(sheets, gid="999").title == "Form Responses 1"

    plain = [FakeWorksheet(0, "Overview"), FakeWorksheet(5, "Teams")]
    assert pick_worksheet(plain, preferred_title="Teams").title == "Teams"
    assert pick_worksheet(plain).title == "Overview"
    assert pick_worksheet([]) is None
