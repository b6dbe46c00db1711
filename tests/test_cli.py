from __future__ import annotations

from onsite_redemption.station.cli import build_parser, describe, parse_selection
from onsite_redemption.station.station import OutcomeKind, ScanOutcome


def test_parse_selection():
    assert parse_selection("1,3", 3) == [0, 2]
    assert parse_selection("2 2 9", 3) == [1]
    assert parse_selection("all", 2) == [0, 1]
    assert parse_selection("", 2) == []


def test_describe_outcome():
    outcome = ScanOutcome(
        OutcomeKind.RECORDED,
        "REG-001",
        message="Lunch Day 1 recorded",
        registration={"firstName": "Asha", "lastName": "Rao"},
        statistics={"count": 4, "today": 2, "uniqueAttendees": 3},
    )
    assert describe(outcome) == "[Recorded] REG-001 Asha Rao: Lunch Day 1 recorded (total 4, today 2, unique 3)"


def test_parser_defaults():
    args = build_parser().parse_args(["--event", "evt-1", "--type", "food", "--option", "opt-lunch"])
    assert args.resource_type == "food"
    assert args.actor == "scanner"
    assert args.no_background is False
