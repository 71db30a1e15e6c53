import os
import re
import json
import uuid
import logging
import mimetypes
import threading
from pathlib import Path
from typing import List, Optional

from pydantic import ValidationError

from contract_intake.core.config import settings
from contract_intake.core.errors import DocumentNotFound, PersistenceError
from contract_intake.schemas.documents import DocumentInfo

logger = logging.getLogger(__name__)

_SAFE_ID = re.compile(r"^[A-Za-z0-9_-]+$")
_SAFE_EXT = re.compile(r"^\.[A-Za-z0-9]{1,10}$")
MANIFEST_SUFFIX = ".meta.json"


class LocalDocumentStore:
    """Uploaded documents kept on local disk.

    Each document is stored as ``<id><ext>`` next to a ``<id>.meta.json``
    manifest holding its metadata.
    """

    def __init__(self, directory: Optional[Path] = None):
        self.directory = Path(directory or settings.CONTRACTS_DIR)
        self.directory.mkdir(parents=True, exist_ok=True)
        self._lock = threading.Lock()

    def save(
        self,
        tenant_id: str,
        filename: str,
        data: bytes,
        mime_type: Optional[str] = None,
        title: Optional[str] = None,
    ) -> DocumentInfo:
        """Store an uploaded document.

        Args:
            tenant_id: Owning tenant
            filename: Original file name
            data: File contents
            mime_type: Declared content type, guessed from the name when missing
            title: Optional human readable title

        Returns:
            Metadata of the stored document
        """
        document_id = str(uuid.uuid4())
        filename = Path(filename or "document").name
        extension = Path(filename).suffix.lower()
        if not _SAFE_EXT.match(extension):
            extension = ""

        if not mime_type or mime_type == "application/octet-stream":
            mime_type = mimetypes.guess_type(filename)[0] or mime_type or "application/octet-stream"

        content_path = self.directory / f"{document_id}{extension}"
        info = DocumentInfo(
            document_id=document_id,
            tenant_id=tenant_id,
            title=title or None,
            filename=filename,
            mime_type=mime_type,
            content_ref=content_path.name,
            size=len(data),
        )

        try:
            with self._lock:
                content_path.write_bytes(data)
                self._write_manifest(info)
        except OSError as e:
            logger.error(f"Error storing document {filename}: {str(e)}")
            raise PersistenceError(f"Could not store document {filename}", {"error": str(e)})

        logger.info(f"Stored document {document_id} ({filename}, {len(data)} bytes) for tenant {tenant_id}")
        return info

    def get(self, document_id: str) -> DocumentInfo:
        """Load document metadata.

        Raises:
            DocumentNotFound: when no document has that id
        """
        manifest = self._manifest_path(document_id)
        if manifest is None or not manifest.exists():
            raise DocumentNotFound(document_id)

        try:
            return DocumentInfo.model_validate(json.loads(manifest.read_text(encoding="utf-8")))
        except (OSError, ValueError, ValidationError) as e:
            logger.error(f"Error reading manifest for document {document_id}: {str(e)}")
            raise PersistenceError(f"Could not read document {document_id}", {"error": str(e)})

    def read_bytes(self, document_id: str) -> bytes:
        """Return the stored contents of a document."""
        info = self.get(document_id)
        content_path = self.directory / info.content_ref
        if not content_path.exists():
            raise DocumentNotFound(document_id)
        return content_path.read_bytes()

    def list(self, tenant_id: Optional[str] = None) -> List[DocumentInfo]:
        documents = []
        for manifest in self.directory.glob(f"*{MANIFEST_SUFFIX}"):
            try:
                info = DocumentInfo.model_validate(json.loads(manifest.read_text(encoding="utf-8")))
            except (OSError, ValueError, ValidationError) as e:
                logger.warning(f"Skipping unreadable manifest {manifest.name}: {str(e)}")
                continue
            if tenant_id is None or info.tenant_id == tenant_id:
                documents.append(info)
        return sorted(documents, key=lambda info: info.upload_date)

    def _manifest_path(self, document_id: str) -> Optional[Path]:
        if not _SAFE_ID.match(document_id or ""):
            return None
        return self.directory / f"{document_id}{MANIFEST_SUFFIX}"

    def _write_manifest(self, info: DocumentInfo) -> None:
        manifest = self.directory / f"{info.document_id}{MANIFEST_SUFFIX}"
        tmp_path = manifest.with_name(manifest.name + ".tmp")
        tmp_path.write_text(json.dumps(info.model_dump(mode="json"), indent=2), encoding="utf-8")
        os.replace(tmp_path, manifest)
