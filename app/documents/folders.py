# app/documents/folders.py

"""
Local document queue.

Documents move through three folders: ready (waiting to be sent), progress
(sent to the provider, waiting for signatures) and finish (fully signed and
stamped). Files are looked up by an invoice-number substring match.
"""

import os
from pathlib import Path
from typing import List, Optional, Tuple

from app.core.config import settings
from app.esign.exceptions import DocumentIOException, DocumentNotFoundException
from app.utils.logger import get_logger

logger = get_logger(__name__)


class DocumentFolderManager:
    """
    File operations over the ready / progress / finish pipeline.

    Every operation accepts an optional override root, which takes precedence
    over the configured folder. The ERP setup supplies those overrides.
    """

    def __init__(
        self,
        base_path: Optional[str] = None,
        ready_folder: Optional[str] = None,
        progress_folder: Optional[str] = None,
        finish_folder: Optional[str] = None,
        file_extension: Optional[str] = None,
    ):
        base = Path(base_path or settings.document_base_path)
        self.ready_path = base / (ready_folder or settings.document_ready_folder)
        self.progress_path = base / (progress_folder or settings.document_progress_folder)
        self.finish_path = base / (finish_folder or settings.document_finish_folder)
        self.file_extension = (file_extension or settings.document_file_extension).lower()

    def ensure_directories(self) -> None:
        for folder in (self.ready_path, self.progress_path, self.finish_path):
            try:
                folder.mkdir(parents=True, exist_ok=True)
            except OSError as e:
                raise DocumentIOException(
                    f"failed to create directory {folder}: {e}", path=str(folder)
                ) from e
        logger.info(
            "Document directories ensured",
            ready=str(self.ready_path),
            progress=str(self.progress_path),
            finish=str(self.finish_path),
        )

    @staticmethod
    def _resolve(default: Path, override: Optional[str]) -> Path:
        return Path(override) if override else default

    def _matches(self, name: str, invoice_number: str) -> bool:
        return invoice_number in name and name.lower().endswith(self.file_extension)

    def list_files(self, folder: Path) -> List[str]:
        """Sorted names of the regular files in a folder."""
        try:
            return sorted(entry.name for entry in os.scandir(folder) if entry.is_file())
        except OSError as e:
            raise DocumentIOException(
                f"failed to read directory {folder}: {e}", path=str(folder)
            ) from e

    def find(self, invoice_number: str, folder: str, root: Optional[str] = None) -> Path:
        """
        Return the first file (in sorted order) whose name contains the invoice
        number and ends with the configured extension.

        Args:
            invoice_number: Substring to look for in the file name
            folder: One of "ready", "progress" or "finish"
            root: Optional override for the folder path
        """
        defaults = {
            "ready": self.ready_path,
            "progress": self.progress_path,
            "finish": self.finish_path,
        }
        if folder not in defaults:
            raise ValueError(f"unknown document folder: {folder}")

        directory = self._resolve(defaults[folder], root)
        if not invoice_number:
            raise DocumentNotFoundException(invoice_number, folder)

        for name in self.list_files(directory):
            if self._matches(name, invoice_number):
                logger.debug(
                    "Document found", invoice_number=invoice_number, folder=folder, filename=name
                )
                return directory / name

        raise DocumentNotFoundException(invoice_number, folder)

    def load_from_ready(
        self, invoice_number: str, root: Optional[str] = None
    ) -> Tuple[str, bytes]:
        path = self.find(invoice_number, "ready", root)
        try:
            content = path.read_bytes()
        except OSError as e:
            raise DocumentIOException(f"failed to read file {path}: {e}", path=str(path)) from e

        logger.info(
            "Document loaded from ready folder",
            invoice_number=invoice_number,
            filename=path.name,
            size=len(content),
        )
        return path.name, content

    def move_to_progress(
        self,
        filename: str,
        ready_root: Optional[str] = None,
        progress_root: Optional[str] = None,
    ) -> Path:
        source = self._resolve(self.ready_path, ready_root) / filename
        destination_dir = self._resolve(self.progress_path, progress_root)
        destination = destination_dir / filename

        if not source.is_file():
            raise DocumentIOException(f"source file not found: {source}", path=str(source))
        if destination.exists():
            raise DocumentIOException(
                f"destination file already exists: {destination}", path=str(destination)
            )

        try:
            destination_dir.mkdir(parents=True, exist_ok=True)
            os.replace(source, destination)
        except OSError as e:
            raise DocumentIOException(
                f"failed to move {source} to {destination}: {e}", path=str(source)
            ) from e

        logger.info("Document moved to progress folder", filename=filename, path=str(destination))
        return destination

    def replace_in_progress(
        self, filename: str, content: bytes, root: Optional[str] = None
    ) -> Path:
        destination_dir = self._resolve(self.progress_path, root)
        destination = destination_dir / filename
        self._write(destination, content)
        logger.info(
            "Document replaced in progress folder", filename=filename, size=len(content)
        )
        return destination

    def save_to_finish_and_delete_from_progress(
        self,
        filename: str,
        content: bytes,
        finish_root: Optional[str] = None,
        progress_root: Optional[str] = None,
    ) -> Path:
        """
        Write the final document to finish, then remove the progress copy.
        Removing is best-effort; a missing progress copy is not an error.
        """
        destination = self._resolve(self.finish_path, finish_root) / filename
        self._write(destination, content)
        logger.info("Document saved to finish folder", filename=filename, size=len(content))

        self._delete_quietly(self._resolve(self.progress_path, progress_root) / filename)
        return destination

    def _write(self, path: Path, content: bytes) -> None:
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_bytes(content)
        except OSError as e:
            raise DocumentIOException(f"failed to write file {path}: {e}", path=str(path)) from e

    def _delete_quietly(self, path: Path) -> None:
        try:
            path.unlink()
            logger.info("Document deleted from progress folder", path=str(path))
        except FileNotFoundError:
            logger.warning("Progress copy already removed", path=str(path))
        except OSError as e:
            logger.warning("Failed to delete progress copy", path=str(path), error=str(e))


def get_folder_manager() -> DocumentFolderManager:
    """Dependency returning a folder manager built from settings"""
    return DocumentFolderManager()
