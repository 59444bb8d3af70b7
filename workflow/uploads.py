"""Document uploads for a single wizard session."""
from __future__ import annotations

import asyncio
import logging
import re
import time
import unicodedata
from dataclasses import dataclass, field

from portal.storage import DocumentStorage, StorageError
from workflow.errors import OutcomeKind, UploadError
from workflow.validators import MAX_FILE_SIZE_BYTES, validate_file

logger = logging.getLogger(__name__)

DEFAULT_MAX_DOCUMENTS = 3

_DISALLOWED_NAME_CHARACTERS = re.compile(r"[^\w.\- ]+", re.ASCII)
_WHITESPACE = re.compile(r"\s+")


@dataclass(frozen=True)
class IncomingFile:
    filename: str
    data: bytes
    content_type: str | None = None

    @property
    def size(self) -> int:
        return len(self.data)


@dataclass(frozen=True)
class UploadedDocument:
    name: str
    path: str
    url: str
    size: int


@dataclass(frozen=True)
class FileFailure:
    filename: str
    kind: OutcomeKind
    message: str


@dataclass
class IngestReport:
    accepted: list[UploadedDocument] = field(default_factory=list)
    failures: list[FileFailure] = field(default_factory=list)
    capacity_rejected: list[str] = field(default_factory=list)

    @property
    def capacity_warning(self) -> str | None:
        if not self.capacity_rejected:
            return None
        return f"Upload limit reached; {len(self.capacity_rejected)} file(s) were not uploaded."


def sanitize_filename(filename: str) -> str:
    cleaned = unicodedata.normalize("NFKD", filename)
    cleaned = _DISALLOWED_NAME_CHARACTERS.sub("", cleaned)
    cleaned = _WHITESPACE.sub("-", cleaned.strip())
    return cleaned or "document"


class DocumentUploadManager:
    """Tracks the documents uploaded during one wizard session.

    Files are written one at a time so that slot counting stays exact, and the
    local list only ever reflects objects that storage has confirmed.
    """

    def __init__(
        self,
        storage: DocumentStorage,
        *,
        actor_id: str,
        opportunity_id: str,
        max_documents: int = DEFAULT_MAX_DOCUMENTS,
        max_bytes: int = MAX_FILE_SIZE_BYTES,
    ) -> None:
        self.storage = storage
        self.actor_id = actor_id
        self.opportunity_id = opportunity_id
        self.max_documents = max_documents
        self.max_bytes = max_bytes
        self._documents: list[UploadedDocument] = []
        self._last_stamp = 0

    @property
    def documents(self) -> list[UploadedDocument]:
        return list(self._documents)

    @property
    def urls(self) -> list[str]:
        return [doc.url for doc in self._documents]

    @property
    def free_slots(self) -> int:
        return max(0, self.max_documents - len(self._documents))

    def _next_stamp(self) -> int:
        self._last_stamp = max(int(time.time() * 1000), self._last_stamp + 1)
        return self._last_stamp

    def build_key(self, filename: str) -> str:
        return f"{self.actor_id}/{self.opportunity_id}/{self._next_stamp()}-{sanitize_filename(filename)}"

    async def ingest(self, files: list[IncomingFile]) -> IngestReport:
        report = IngestReport()
        slots = self.free_slots
        batch, overflow = files[:slots], files[slots:]
        report.capacity_rejected.extend(f.filename for f in overflow)
        if overflow:
            logger.info(
                "Capacity reached for %s/%s; rejected %d file(s)",
                self.actor_id,
                self.opportunity_id,
                len(overflow),
            )

        for incoming in batch:
            check = validate_file(
                incoming.filename, incoming.size, incoming.content_type, max_bytes=self.max_bytes
            )
            if not check.valid:
                report.failures.append(FileFailure(incoming.filename, OutcomeKind.VALIDATION, check.error or ""))
                continue

            try:
                document = await self._upload(incoming)
            except UploadError as exc:
                report.failures.append(FileFailure(incoming.filename, OutcomeKind.UPLOAD, exc.message))
                continue

            self._documents.append(document)
            report.accepted.append(document)

        return report

    async def _upload(self, incoming: IncomingFile) -> UploadedDocument:
        key = self.build_key(incoming.filename)
        # Cancelling the caller does not stop a write already handed to the file thread.
        write = asyncio.ensure_future(self.storage.put(key, incoming.data, content_type=incoming.content_type))
        try:
            url = await asyncio.shield(write)
        except StorageError as exc:
            logger.warning("Upload of %s failed: %s", key, exc)
            raise UploadError(f"Failed to upload {incoming.filename}: {exc}", filename=incoming.filename) from exc
        except asyncio.CancelledError:
            await asyncio.shield(self._delete_orphan(key, write))
            raise
        return UploadedDocument(name=incoming.filename, path=key, url=url, size=incoming.size)

    async def _delete_orphan(self, key: str, write: asyncio.Future) -> None:
        """Let the pending write settle, then remove whatever it left behind."""

        try:
            await write
        except StorageError:
            return
        except asyncio.CancelledError:
            pass
        try:
            await self.storage.delete(key)
        except StorageError as exc:
            logger.error("Could not remove orphaned object %s: %s", key, exc)

    def find(self, path: str) -> UploadedDocument | None:
        return next((doc for doc in self._documents if doc.path == path), None)

    async def remove(self, path: str) -> UploadedDocument:
        """Delete from storage first; the local entry goes only once storage confirms."""

        document = self.find(path)
        if document is None:
            raise UploadError(f"No uploaded document at {path}")
        try:
            await self.storage.delete(document.path)
        except StorageError as exc:
            logger.warning("Removal of %s failed: %s", document.path, exc)
            raise UploadError(f"Could not remove {document.name}: {exc}", filename=document.name) from exc
        self._documents = [doc for doc in self._documents if doc.path != document.path]
        return document

    async def discard_all(self) -> list[FileFailure]:
        failures: list[FileFailure] = []
        for document in self.documents:
            try:
                await self.remove(document.path)
            except UploadError as exc:
                failures.append(FileFailure(document.name, OutcomeKind.UPLOAD, exc.message))
        if failures:
            logger.warning("%d document(s) could not be cleaned up", len(failures))
        return failures
