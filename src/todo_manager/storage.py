"""
JSON File Store with Atomic Writes

Persists the whole to-do document as one pretty-printed JSON file. Writes go
to a temporary sibling that is renamed over the primary, and the previous
primary is kept as a single-generation backup used for read recovery.
"""

import logging
import os
import shutil
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional, Union

from .errors import StorageReadError, StorageWriteError
from .models import StorageDocument, utc_now

logger = logging.getLogger(__name__)

STORAGE_FILE_NAME = "storage.json"
BACKUP_FILE_NAME = "storage.backup.json"
FILE_ENCODING = "utf-8"


class JsonFileStore:
    """
    File-backed owner of the StorageDocument.

    Features:
    - Lazy creation of an empty document on first load
    - Temp-file write + atomic rename so readers never see a partial file
    - Single-generation backup refreshed before every save
    - Backup fallback (then empty document) when the primary is unreadable
    - Re-entrant lock serializing load-mutate-save sequences
    """

    def __init__(self, data_dir: Union[str, Path], strict_load: bool = False, json_indent: int = 2):
        """
        Initialize the store for a data directory.

        Args:
            data_dir: Directory holding the primary and backup documents
            strict_load: Raise StorageReadError instead of starting empty when
                both primary and backup are unreadable
            json_indent: Indentation used when writing the document
        """
        self.data_dir = Path(data_dir)
        self.strict_load = strict_load
        self.json_indent = json_indent
        self.primary_path = self.data_dir / STORAGE_FILE_NAME
        self.backup_path = self.data_dir / BACKUP_FILE_NAME
        self.temp_path = self.data_dir / f"{STORAGE_FILE_NAME}.tmp"

        # Held by repositories across load + save so updates never interleave
        self.lock = threading.RLock()

    def _ensure_data_dir(self) -> None:
        if not self.data_dir.exists():
            self.data_dir.mkdir(parents=True, exist_ok=True)
            logger.info(f"Created data directory: {self.data_dir}")

    def _read_document(self, path: Path) -> StorageDocument:
        content = path.read_text(encoding=FILE_ENCODING)
        return StorageDocument.model_validate_json(content)

    def load(self) -> StorageDocument:
        """
        Load the current document.

        Creates and persists an empty document when none exists. Falls back to
        the backup file when the primary cannot be read or parsed, and to a
        fresh empty document when the backup fails too (unless strict_load).

        Returns:
            StorageDocument with timestamps reconstituted as datetimes

        Raises:
            StorageReadError: Both documents unreadable and strict_load is set
            StorageWriteError: The initial empty document could not be written
        """
        with self.lock:
            if not self.primary_path.exists():
                logger.info("Storage file not found, creating initial data")
                document = StorageDocument.empty()
                self.save(document)
                return document

            try:
                document = self._read_document(self.primary_path)
                logger.debug(
                    f"Read storage data: {len(document.task_lists)} lists, {len(document.tasks)} tasks"
                )
                return document
            except (OSError, ValueError) as e:
                logger.error(f"Error reading storage file {self.primary_path}: {e}")

            if self.backup_path.exists():
                logger.warning("Attempting to restore from backup file")
                try:
                    document = self._read_document(self.backup_path)
                    logger.info("Successfully restored from backup file")
                    return document
                except (OSError, ValueError) as e:
                    logger.error(f"Error reading backup file {self.backup_path}: {e}")

            error = StorageReadError(
                f"Primary and backup storage documents in {self.data_dir} are unreadable"
            )
            if self.strict_load:
                raise error
            logger.error(f"{error}; starting from an empty document, previous data is not loaded")
            return StorageDocument.empty()

    def save(self, document: StorageDocument) -> None:
        """
        Persist the document atomically.

        Stamps ``metadata.last_updated``, copies the current primary to the
        backup path, writes the new content to a temporary file and renames
        it over the primary.

        Args:
            document: Document to persist

        Raises:
            StorageWriteError: Any step of the backup/write/rename sequence failed
        """
        with self.lock:
            document.metadata.last_updated = utc_now()
            content = document.model_dump_json(by_alias=True, indent=self.json_indent)

            try:
                self._ensure_data_dir()

                if self.primary_path.exists():
                    shutil.copyfile(self.primary_path, self.backup_path)
                    logger.debug("Created backup of storage file")

                with open(self.temp_path, "w", encoding=FILE_ENCODING) as handle:
                    handle.write(content)
                    handle.flush()
                    os.fsync(handle.fileno())

                os.replace(self.temp_path, self.primary_path)
            except OSError as e:
                logger.error(f"Error writing storage data: {e}")
                self._discard_temp_file()
                raise StorageWriteError("Failed to save data to storage") from e

            logger.debug(
                f"Wrote storage data: {len(document.task_lists)} lists, {len(document.tasks)} tasks"
            )

    def _discard_temp_file(self) -> None:
        try:
            self.temp_path.unlink()
        except FileNotFoundError:
            pass
        except OSError as e:
            logger.warning(f"Could not remove temporary storage file {self.temp_path}: {e}")

    def is_accessible(self) -> bool:
        """
        Shallow health probe of the primary file.

        Returns:
            True when the primary is missing (creatable) or readable and writable
        """
        try:
            self._ensure_data_dir()
        except OSError as e:
            logger.error(f"Storage directory is not accessible: {e}")
            return False

        if not self.primary_path.exists():
            return True

        accessible = os.access(self.primary_path, os.R_OK | os.W_OK)
        if not accessible:
            logger.error(f"Storage file is not accessible: {self.primary_path}")
        return accessible

    def backup_now(self) -> Optional[Path]:
        """
        Copy the primary document to a uniquely timestamped sibling file.

        Returns:
            Path of the new backup, or None when no primary exists yet

        Raises:
            StorageWriteError: The copy failed
        """
        with self.lock:
            if not self.primary_path.exists():
                logger.warning("No storage file exists to backup")
                return None

            stamp = datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")
            stamp = stamp.replace(":", "-").replace(".", "-")
            backup_path = self.data_dir / f"storage.backup.{stamp}.json"
            counter = 1
            while backup_path.exists():
                backup_path = self.data_dir / f"storage.backup.{stamp}-{counter}.json"
                counter += 1

            try:
                shutil.copyfile(self.primary_path, backup_path)
            except OSError as e:
                logger.error(f"Error creating manual backup: {e}")
                raise StorageWriteError("Failed to create backup") from e

            logger.info(f"Manual backup created: {backup_path}")
            return backup_path
