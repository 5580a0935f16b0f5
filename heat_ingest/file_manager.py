"""Moves processed CSV uploads out of the incoming directory.

Accepted files go to archived/YYYY-MM-DD/. Rejected or failed files go to
quarantine together with a `.issues.json` note describing why.
"""

from pathlib import Path
from typing import Dict, List, Optional
import datetime
import json
import logging
import shutil

logger = logging.getLogger(__name__)


class FileManager:
    def __init__(self, incoming_dir: str, archived_dir: str, quarantine_dir: str):
        self.incoming_dir = Path(incoming_dir)
        self.archived_dir = Path(archived_dir)
        self.quarantine_dir = Path(quarantine_dir)

        for d in (self.incoming_dir, self.archived_dir, self.quarantine_dir):
            d.mkdir(parents=True, exist_ok=True)

    def _archive_subdir(self) -> Path:
        subdir = self.archived_dir / datetime.date.today().isoformat()
        subdir.mkdir(parents=True, exist_ok=True)
        return subdir

    @staticmethod
    def _free_destination(dest: Path) -> Path:
        """Append a counter when a file of the same name was already moved."""
        candidate = dest
        counter = 1
        while candidate.exists():
            candidate = dest.with_name(f"{dest.stem}.{counter}{dest.suffix}")
            counter += 1
        return candidate

    def archive_file(self, filepath: Path) -> Path:
        """Move `filepath` to archive/YYYY-MM-DD/ and return the destination."""
        filepath = Path(filepath)
        if not filepath.exists():
            raise FileNotFoundError(f"File not found: {filepath}")

        dest = self._free_destination(self._archive_subdir() / filepath.name)
        shutil.move(str(filepath), str(dest))
        logger.info(f"Archived file {filepath} -> {dest}")
        return dest

    def quarantine_file(
        self,
        filepath: Path,
        error: str,
        issues: Optional[List[Dict[str, str]]] = None,
    ) -> Path:
        """Move a file to quarantine and write a `.issues.json` note beside it.

        When the file is already gone only the note is written.
        """
        filepath = Path(filepath)
        dest = self._free_destination(self.quarantine_dir / filepath.name)

        if filepath.exists():
            shutil.move(str(filepath), str(dest))
            moved_to = dest
        else:
            logger.warning(f"Quarantine requested for missing file {filepath}")
            moved_to = None

        note = {
            "quarantined_at": datetime.datetime.now(datetime.timezone.utc).isoformat(),
            "original_path": str(filepath),
            "error": error,
            "issues": issues or [],
        }
        note_path = self.quarantine_dir / (dest.name + ".issues.json")
        note_path.write_text(json.dumps(note, indent=2))

        logger.warning(f"Quarantined file {filepath.name}: {error}")
        return moved_to or note_path

    def pending_files(self, allowed_exts: Optional[List[str]] = None) -> List[Path]:
        """Files waiting in the incoming directory, oldest first."""
        files = [
            p
            for p in self.incoming_dir.iterdir()
            if self.is_valid_file(p, allowed_exts)
        ]
        return sorted(files, key=lambda p: p.stat().st_mtime)

    def is_valid_file(self, filepath: Path, allowed_exts=None) -> bool:
        filepath = Path(filepath)
        if not filepath.is_file():
            return False
        if allowed_exts and filepath.suffix.lower() not in allowed_exts:
            return False
        return True
