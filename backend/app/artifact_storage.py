import json
import os
import logging
from typing import List, Optional, Dict, Any

# Configure logging
logger = logging.getLogger(__name__)


class ArtifactStorage:
    """File-based storage for generated tests, page objects and recording reports"""

    def __init__(self, data_dir: str = "data/recordings"):
        self.data_dir = data_dir
        self.tests_dir = os.path.join(data_dir, "tests")
        self.page_objects_dir = os.path.join(data_dir, "page_objects")
        self.reports_dir = os.path.join(data_dir, "reports")
        self._ensure_directories()

    def _ensure_directories(self):
        """Ensure all necessary directories exist"""
        os.makedirs(self.tests_dir, exist_ok=True)
        os.makedirs(self.page_objects_dir, exist_ok=True)
        os.makedirs(self.reports_dir, exist_ok=True)

    def _write(self, directory: str, file_name: str, content: str) -> str:
        # Generated names never carry directories
        file_path = os.path.join(directory, os.path.basename(file_name))
        with open(file_path, 'w', encoding='utf-8') as f:
            f.write(content)
        logger.info(f"Saved {file_path}")
        return file_path

    # Artifact operations

    def save_test(self, file_name: str, source: str) -> str:
        """Save a generated test module"""
        return self._write(self.tests_dir, file_name, source)

    def save_page_object(self, file_name: str, source: str) -> str:
        """Save a generated page-object module"""
        return self._write(self.page_objects_dir, file_name, source)

    def save_report(self, file_name: str, report: Dict[str, Any]) -> str:
        """Save a recording summary report as JSON"""
        return self._write(self.reports_dir, file_name, json.dumps(report, indent=2, default=str))

    # Report queries

    def get_report(self, file_name: str) -> Optional[Dict[str, Any]]:
        """Get a report by file name"""
        file_path = os.path.join(self.reports_dir, os.path.basename(file_name))
        if not os.path.exists(file_path):
            return None

        with open(file_path, 'r', encoding='utf-8') as f:
            return json.load(f)

    def list_reports(self) -> List[Dict[str, Any]]:
        """Get all reports, newest first"""
        reports = []
        for name in os.listdir(self.reports_dir):
            if not name.endswith(".json"):
                continue
            try:
                report = self.get_report(name)
            except (OSError, ValueError) as e:
                logger.warning(f"Skipping unreadable report {name}: {e}")
                continue
            if report:
                reports.append({**report, "file_name": name})

        return sorted(reports, key=lambda r: r.get("timestamp") or "", reverse=True)
