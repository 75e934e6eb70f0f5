"""RecordStore: whole-document JSON persistence for the ticket file."""

from __future__ import annotations

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any

from pydantic import ValidationError as PydanticValidationError

from ticketflow.core.errors import StorageError
from ticketflow.core.models import Document, dump_model

logger = logging.getLogger(__name__)

TICKET_ID_FORMAT = "TICKET-{:04d}"


def next_ticket_id(document: Document) -> tuple[str, Document]:
    """Mint the next ticket id and return it with a copy of the document whose counter moved on."""
    ticket_id = TICKET_ID_FORMAT.format(document.next_id)
    return ticket_id, document.model_copy(update={"next_id": document.next_id + 1})


def write_json_atomic(path: Path, data: Any) -> None:
    """Write pretty-printed JSON to a temp file beside ``path`` and rename it into place."""
    path.parent.mkdir(parents=True, exist_ok=True)
    with tempfile.NamedTemporaryFile(
        mode="w",
        encoding="utf-8",
        dir=path.parent,
        prefix=f".{path.stem}.",
        suffix=".tmp",
        delete=False,
    ) as tmp_file:
        tmp_path = Path(tmp_file.name)
        try:
            json.dump(data, tmp_file, indent=2, ensure_ascii=False)
            tmp_file.write("\n")
            tmp_file.flush()
            os.fsync(tmp_file.fileno())
        except Exception:
            tmp_path.unlink(missing_ok=True)
            raise
    try:
        tmp_path.replace(path)
    except OSError:
        tmp_path.unlink(missing_ok=True)
        raise


class RecordStore:
    """Loads and saves the ticket document as a single unit.

    Nothing is cached between calls: every operation reads the file fresh and
    writes the whole document back.
    """

    def __init__(self, data_file: Path | str) -> None:
        self._path = Path(data_file)

    @property
    def path(self) -> Path:
        return self._path

    def exists(self) -> bool:
        return self._path.is_file()

    def initialize(self, version: str) -> bool:
        """Create an empty document at ``version`` if the file is missing.

        Returns True when a new file was written.
        """
        if self.exists():
            return False
        self.save(Document(version=version))
        logger.info("Created ticket file %s (version %s)", self._path, version)
        return True

    def load_raw(self) -> Any:
        """Return the parsed JSON without model validation."""
        try:
            text = self._path.read_text(encoding="utf-8")
        except OSError as e:
            raise StorageError(f"Failed to read ticket data from {self._path}: {e}") from e
        try:
            return json.loads(text)
        except json.JSONDecodeError as e:
            raise StorageError(f"Ticket data in {self._path} is not valid JSON: {e}") from e

    def load(self) -> Document:
        raw = self.load_raw()
        if not isinstance(raw, dict):
            raise StorageError(f"Ticket data in {self._path} is not a JSON object")
        try:
            return Document.model_validate(raw)
        except PydanticValidationError as e:
            raise StorageError(f"Ticket data in {self._path} is malformed: {e}") from e

    def save(self, document: Document) -> None:
        try:
            write_json_atomic(self._path, dump_model(document))
        except OSError as e:
            raise StorageError(f"Failed to write ticket data to {self._path}: {e}") from e
