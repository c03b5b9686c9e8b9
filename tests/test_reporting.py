import pytest
import sys
from pathlib import Path
import tempfile
import os
from datetime import date

import pandas as pd

# Add src directory to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from duty_roster.data_manager import DataManager
from duty_roster.date_utils import days_in_month, days_in_range
from duty_roster.reporting import ExportManager
from duty_roster.storage import LocalCache


@pytest.fixture
def data_manager():
    """Fixture for a DataManager backed by a temp cache file (safe for tests)."""
    with tempfile.TemporaryDirectory() as temp_path:
        dm = DataManager(LocalCache(os.path.join(temp_path, "cache.json")))
        dm.load()
        dm.schedule.add_assignment("2025-08-01", "1", "09-17", note="Tribunal")
        dm.schedule.add_assignment("2025-08-01", "1", "radar")
        dm.schedule.add_assignment("2025-08-02", "2", "deleted-type")
        yield dm


@pytest.fixture
def export_manager(data_manager):
    """Fixture for an ExportManager instance."""
    return ExportManager(data_manager)


def test_pdf_export_basic(export_manager):
    """Test PDF export works on valid seeded data."""
    with tempfile.NamedTemporaryFile(suffix=".pdf", delete=False) as tmpfile:
        output_path = tmpfile.name
    success = export_manager.export_month(2025, 8, "pdf", output_path)
    assert success
    assert os.path.exists(output_path)
    assert os.path.getsize(output_path) > 200  # Allowing header + minimal table
    os.unlink(output_path)


def test_pdf_export_no_schedule(export_manager):
    """Test PDF export on a month with no assignments still renders the grid."""
    with tempfile.NamedTemporaryFile(suffix=".pdf", delete=False) as tmpfile:
        output_path = tmpfile.name
    success = export_manager.export_month(2030, 1, "pdf", output_path)
    assert success
    assert os.path.getsize(output_path) > 100
    os.unlink(output_path)


def test_pdf_export_invalid_path(export_manager):
    """Test export returns False when the target directory does not exist."""
    output_path = os.path.join(tempfile.gettempdir(), "no_such_dir", "out.pdf")
    assert not export_manager.export_month(2025, 8, "pdf", output_path)


def test_csv_export_contents(export_manager):
    """
    Why this is important: the CSV is what gets mailed around, so stacked
    shifts, notes and unknown types must all be readable in it.
    """
    with tempfile.TemporaryDirectory() as temp_path:
        output_path = os.path.join(temp_path, "schedule.csv")
        assert export_manager.export_schedule(days_in_range("2025-08-01", "2025-08-03"), "csv", output_path)

        df = pd.read_csv(output_path, keep_default_na=False)
        assert list(df.columns) == ["Employee", "01/08", "02/08", "03/08"]
        assert df.loc[0, "Employee"] == "PAIS"
        assert df.loc[0, "01/08"] == "09:00-17:00 (Tribunal), RADAR"
        assert df.loc[1, "02/08"] == "?"
        assert df.loc[1, "03/08"] == ""


def test_excel_export_sheets(export_manager):
    with tempfile.TemporaryDirectory() as temp_path:
        output_path = os.path.join(temp_path, "schedule.xlsx")
        assert export_manager.export_schedule(days_in_month(2025, 8), "excel", output_path)

        sheets = pd.read_excel(output_path, sheet_name=None)
        assert set(sheets) == {"Schedule", "Shift Types"}
        assert len(sheets["Schedule"].columns) == 32
        assert "TRIB" in sheets["Shift Types"]["Code"].tolist()


def test_unsupported_format(export_manager):
    with pytest.raises(ValueError):
        export_manager.export_schedule([date(2025, 8, 1)], "docx", "out.docx")


def test_default_filename(export_manager):
    assert export_manager.get_default_filename("2025-08", "excel").endswith(".xlsx")
    assert export_manager.get_default_filename("2025-08", "pdf").startswith("schedule_2025-08_")


def test_batch_export(export_manager):
    with tempfile.TemporaryDirectory() as temp_path:
        results = export_manager.batch_export(days_in_month(2025, 8), "2025-08", temp_path,
                                              formats=["pdf", "csv", "docx"])

        assert results == {"pdf": True, "csv": True, "docx": False}
        assert len(os.listdir(temp_path)) == 2
