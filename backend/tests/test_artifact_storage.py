"""
Unit tests for ArtifactStorage.
"""

import json
import pytest
from pathlib import Path
import sys

sys.path.insert(0, str(Path(__file__).parent.parent / "app"))

from artifact_storage import ArtifactStorage


@pytest.fixture
def storage(temp_data_dir):
    return ArtifactStorage(data_dir=str(temp_data_dir))


class TestArtifactStorage:
    """Test file-based artifact storage."""

    def test_directories_created(self, storage, temp_data_dir):
        """Test tests, page_objects and reports directories exist."""
        for name in ("tests", "page_objects", "reports"):
            assert (temp_data_dir / name).is_dir()

    def test_save_test(self, storage, temp_data_dir):
        """Test generated tests are written under tests/."""
        path = storage.save_test("test_login.py", "def test_x():\n    pass\n")

        assert Path(path) == temp_data_dir / "tests" / "test_login.py"
        assert Path(path).read_text(encoding="utf-8").startswith("def test_x")

    def test_file_names_cannot_escape(self, storage, temp_data_dir):
        """Test directory parts in file names are dropped."""
        path = storage.save_page_object("../../evil.py", "x = 1\n")

        assert Path(path) == temp_data_dir / "page_objects" / "evil.py"

    def test_report_round_trip(self, storage):
        """Test reports are stored as JSON and read back."""
        storage.save_report("login-report.json", {"test_name": "Login", "action_count": 3})

        assert storage.get_report("login-report.json") == {"test_name": "Login", "action_count": 3}
        assert storage.get_report("missing.json") is None

    def test_list_reports_newest_first(self, storage):
        """Test reports are listed by timestamp, newest first."""
        storage.save_report("a-report.json", {"test_name": "A", "timestamp": "2024-01-01T00:00:00"})
        storage.save_report("b-report.json", {"test_name": "B", "timestamp": "2024-06-01T00:00:00"})

        assert [r["test_name"] for r in storage.list_reports()] == ["B", "A"]

    def test_listed_reports_carry_file_name(self, storage):
        """Test listed reports can be addressed by their file name."""
        storage.save_report("login-report.json", {"test_name": "Login"})

        assert storage.list_reports()[0]["file_name"] == "login-report.json"

    def test_unreadable_report_skipped(self, storage, temp_data_dir):
        """Test a corrupt report file does not break listing."""
        (temp_data_dir / "reports" / "broken.json").write_text("{not json", encoding="utf-8")
        storage.save_report("ok-report.json", {"test_name": "OK"})

        assert [r["test_name"] for r in storage.list_reports()] == ["OK"]

    def test_report_is_indented_json(self, storage):
        """Test reports are human-readable JSON."""
        path = storage.save_report("x-report.json", {"a": 1})

        text = Path(path).read_text(encoding="utf-8")
        assert json.loads(text) == {"a": 1}
        assert "\n" in text
