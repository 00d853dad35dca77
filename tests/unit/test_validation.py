"""Tests for paneltracker.ingestion.validation - row validators."""

import pytest

from paneltracker.ingestion.types import PanelHistoryImportRow, PanelImportRow, ProjectImportRow
from paneltracker.ingestion.validation import (
    parse_number,
    validate_history_row,
    validate_panel_row,
    validate_project_row,
    validate_rows,
)


def _panel(**values) -> PanelImportRow:
    return PanelImportRow(row_number=2, **values)


class TestParseNumber:
    @pytest.mark.parametrize(
        "text, expected", [("10.5", 10.5), (" 5 ", 5.0), ("-3", -3.0), ("1e3", 1000.0)]
    )
    def test_numbers(self, text, expected):
        assert parse_number(text) == expected

    @pytest.mark.parametrize("text", [None, "", "abc", "1,000", "nan", "inf"])
    def test_not_numbers(self, text):
        assert parse_number(text) is None


class TestValidatePanelRow:
    def test_minimal_row_is_valid(self):
        result = validate_panel_row(_panel(name="Panel 1"))
        assert result.is_valid
        assert result.errors == []
        assert result.warnings == []

    def test_fully_populated_row_is_valid(self):
        result = validate_panel_row(
            _panel(
                project_name="Project A",
                name="Panel 1",
                type="uhpc",
                status="Procced for Delivery",
                date="2024-01-15",
                unit_qty="10.5",
                ifp_qty_nos="5",
                ifp_qty="52.5",
                weight="0",
                building_name="Building A",
                facade_name="North",
            )
        )
        assert result.is_valid
        assert result.warnings == []

    @pytest.mark.parametrize("name", [None, "", "   "])
    def test_name_required(self, name):
        result = validate_panel_row(_panel(name=name))
        assert not result.is_valid
        assert "Panel name is required" in result.errors

    def test_invalid_date_is_an_error(self):
        result = validate_panel_row(_panel(name="P", date="sometime soon"))
        assert not result.is_valid
        assert result.errors[0].startswith("Invalid date format")

    def test_zero_date_is_accepted(self):
        assert validate_panel_row(_panel(name="P", date="00/00/0000")).is_valid

    def test_invalid_type_lists_valid_types(self):
        result = validate_panel_row(_panel(name="P", type="XYZ"))
        assert not result.is_valid
        assert result.errors == [
            'Invalid panel type "XYZ". Valid types are: GRC, GRG, GRP, EIFS, UHPC'
        ]

    def test_unknown_status_is_only_a_warning(self):
        result = validate_panel_row(_panel(name="P", status="Painted"))
        assert result.is_valid
        assert len(result.warnings) == 1
        assert "Issued For Production" in result.warnings[0]

    @pytest.mark.parametrize("field", ["unit_qty", "ifp_qty_nos", "ifp_qty", "weight"])
    def test_numeric_fields(self, field):
        result = validate_panel_row(_panel(name="P", **{field: "lots"}))
        assert not result.is_valid
        assert len(result.errors) == 1
        assert "must be a number" in result.errors[0]

    def test_negative_weight(self):
        result = validate_panel_row(_panel(name="P", weight="-1"))
        assert result.errors == ["Weight must be zero or greater"]

    def test_negative_quantity_is_allowed(self):
        assert validate_panel_row(_panel(name="P", unit_qty="-1")).is_valid

    def test_facade_without_building_warns(self):
        result = validate_panel_row(_panel(name="P", facade_name="North"))
        assert result.is_valid
        assert "has no building" in result.warnings[0]

    def test_errors_accumulate(self):
        result = validate_panel_row(_panel(name="", type="XYZ", weight="heavy"))
        assert len(result.errors) == 3


class TestValidateProjectRow:
    def test_valid(self):
        result = validate_project_row(
            ProjectImportRow(
                row_number=2,
                name="Project A",
                start_date="2024-01-15",
                end_date="30/06/2024",
                status="On-Hold",
                estimated_cost="500000",
                estimated_panels="1200",
            )
        )
        assert result.is_valid
        assert result.warnings == []

    def test_name_required(self):
        assert not validate_project_row(ProjectImportRow(row_number=2)).is_valid

    def test_end_before_start_warns(self):
        result = validate_project_row(
            ProjectImportRow(row_number=2, name="P", start_date="2024-06-30", end_date="2024-01-01")
        )
        assert result.is_valid
        assert result.warnings == ["End date is before start date"]

    def test_unknown_status_warns(self):
        result = validate_project_row(ProjectImportRow(row_number=2, name="P", status="paused"))
        assert result.is_valid
        assert "active" in result.warnings[0]

    def test_bad_dates_and_numbers(self):
        result = validate_project_row(
            ProjectImportRow(
                row_number=2,
                name="P",
                start_date="soon",
                estimated_cost="-5",
                estimated_panels="many",
            )
        )
        assert len(result.errors) == 3


class TestValidateHistoryRow:
    def test_valid(self):
        row = PanelHistoryImportRow(
            row_number=2, panel_name="Panel 1", status="Installed", created_at="15/01/2024 09:00"
        )
        assert validate_history_row(row).is_valid

    def test_status_required_and_recognised(self):
        missing = validate_history_row(PanelHistoryImportRow(row_number=2, panel_name="P"))
        assert missing.errors == ["Status is required"]

        unknown = validate_history_row(
            PanelHistoryImportRow(row_number=2, panel_name="P", status="Painted")
        )
        assert not unknown.is_valid
        assert unknown.errors[0].startswith('Invalid status "Painted"')

    def test_panel_name_required(self):
        result = validate_history_row(PanelHistoryImportRow(row_number=2, status="Produced"))
        assert result.errors == ["Panel name is required"]

    def test_bad_created_at(self):
        result = validate_history_row(
            PanelHistoryImportRow(row_number=2, panel_name="P", status="Produced", created_at="x")
        )
        assert result.errors[0].startswith("Invalid created_at format")


def test_validate_rows_preserves_order():
    rows = [_panel(name="A"), _panel(name=""), _panel(name="C")]
    results = validate_rows(rows, validate_panel_row)
    assert [r.is_valid for r in results] == [True, False, True]
