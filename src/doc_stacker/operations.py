from __future__ import annotations

import io
import json
import logging
import shutil
import tempfile
import uuid
from pathlib import Path
from typing import List, Optional

import pymupdf as fitz  # PyMuPDF
from PIL import Image

from .config import PAGE_RENDER_DPI
from .layout import norm_box_to_pdf_rect, stamp_layout
from .models import DocumentInfo, SignatureField, SignatureMap, StackResult

logger = logging.getLogger(__name__)


class PDFOperationError(RuntimeError):
    """Raised when a low-level PDF manipulation fails."""


def stack_pdfs(
    parts: List[Path], letterhead: Optional[Path] = None
) -> fitz.Document:
    """Concatenate ``parts`` and lay the letterhead's first page under every page."""
    doc = fitz.open()
    try:
        for part in parts:
            with fitz.open(part) as source:
                doc.insert_pdf(source)
        if letterhead:
            with fitz.open(letterhead) as background:
                for page in doc:
                    page.show_pdf_page(page.rect, background, 0, overlay=False)
    except (RuntimeError, OSError, ValueError) as exc:
        doc.close()
        raise PDFOperationError(f"Could not stack documents: {exc}") from exc
    return doc


def insert_image(
    doc: fitz.Document,
    image: bytes,
    page_index: int,
    rect: fitz.Rect,
) -> fitz.Rect:
    """Insert an image on the requested page and return the final rectangle."""
    try:
        page = doc.load_page(page_index)
    except (IndexError, ValueError) as exc:
        raise PDFOperationError(
            f"Page {page_index} is out of range for document with {len(doc)} page(s)."
        ) from exc

    page.insert_image(rect, stream=image, keep_proportion=True, overlay=True)
    return rect


def apply_signatures(
    doc: fitz.Document,
    fields: List[SignatureField],
    signatures: SignatureMap,
    stamp: Optional[bytes] = None,
) -> int:
    """Draw each field's signature into its rectangle, over the stamp if one is given."""
    stamp_size = None
    if stamp:
        with Image.open(io.BytesIO(stamp)) as stamp_image:
            stamp_size = stamp_image.size

    applied = 0
    for field in fields:
        entry = signatures.get(field.id)
        if entry is None:
            continue
        try:
            page_rect = doc.load_page(field.page_number).rect
        except (IndexError, ValueError) as exc:
            raise PDFOperationError(
                f"Field {field.id} is on page {field.page_number}, "
                f"document has {len(doc)} page(s)."
            ) from exc
        rect = norm_box_to_pdf_rect(
            (field.x_norm, field.y_norm, field.width_norm, field.height_norm), page_rect
        )
        if stamp and stamp_size:
            stamp_rect, rect = stamp_layout(rect, stamp_size, page_rect)
            insert_image(doc, stamp, field.page_number, stamp_rect)
        insert_image(doc, entry.raster, field.page_number, rect)
        applied += 1
    return applied


class LocalDocumentService:
    """In-process document backend that keeps every document under ``storage_dir``."""

    def __init__(self, storage_dir: Optional[Path] = None) -> None:
        self.storage_dir = Path(storage_dir or tempfile.mkdtemp(prefix="doc-stacker-"))
        self.storage_dir.mkdir(parents=True, exist_ok=True)

    def _pdf_path(self, document_id: str) -> Path:
        return self.storage_dir / f"{document_id}.pdf"

    def _fields_path(self, document_id: str) -> Path:
        return self.storage_dir / f"{document_id}.fields.json"

    def _stamp_path(self, document_id: str) -> Path:
        return self.storage_dir / f"{document_id}.stamp"

    def _open(self, document_id: str) -> fitz.Document:
        path = self._pdf_path(document_id)
        if not path.exists():
            raise PDFOperationError(f"Unknown document {document_id}.")
        return fitz.open(path)

    def _save(self, doc: fitz.Document, **options) -> str:
        document_id = str(uuid.uuid4())
        doc.save(self._pdf_path(document_id), **options)
        return document_id

    def stack(
        self,
        cover: Path,
        body: Path,
        letterhead: Optional[Path] = None,
        terms: Optional[Path] = None,
        stamp: Optional[Path] = None,
    ) -> StackResult:
        parts = [Path(p) for p in (cover, body, terms) if p]
        for part in parts:
            if not part.exists():
                raise PDFOperationError(f"Source document {part} does not exist.")
        doc = stack_pdfs(parts, Path(letterhead) if letterhead else None)
        try:
            page_count = len(doc)
            document_id = self._save(doc)
        finally:
            doc.close()
        if stamp:
            shutil.copyfile(stamp, self._stamp_path(document_id))
        logger.info("Stacked %d part(s) into %s (%d pages)", len(parts), document_id, page_count)
        return StackResult(document_id=document_id, page_count=page_count)

    def get_document_info(self, document_id: str) -> DocumentInfo:
        with self._open(document_id) as doc:
            rect = doc.load_page(0).rect if len(doc) else fitz.Rect()
            return DocumentInfo(
                document_id=document_id,
                page_count=len(doc),
                page_width=rect.width,
                page_height=rect.height,
            )

    def get_page_image(self, document_id: str, page_number: int) -> bytes:
        with self._open(document_id) as doc:
            if not 0 <= page_number < len(doc):
                raise PDFOperationError(f"Invalid page number: {page_number}")
            pix = doc.load_page(page_number).get_pixmap(dpi=PAGE_RENDER_DPI, alpha=False)
            return pix.tobytes("png")

    def save_fields(self, document_id: str, fields: List[SignatureField]) -> None:
        if not self._pdf_path(document_id).exists():
            raise PDFOperationError(f"Unknown document {document_id}.")
        payload = [f.to_dict() for f in fields]
        self._fields_path(document_id).write_text(json.dumps(payload, indent=2))
        logger.info("Saved %d field(s) for %s", len(fields), document_id)

    def get_fields(self, document_id: str) -> List[SignatureField]:
        path = self._fields_path(document_id)
        if not path.exists():
            return []
        return [SignatureField.from_dict(item) for item in json.loads(path.read_text())]

    def sign(self, document_id: str, signatures: SignatureMap) -> str:
        fields = self.get_fields(document_id)
        stamp_path = self._stamp_path(document_id)
        stamp = stamp_path.read_bytes() if stamp_path.exists() else None
        with self._open(document_id) as doc:
            applied = apply_signatures(doc, fields, signatures, stamp)
            signed_id = self._save(doc)
        logger.info("Applied %d signature(s) to %s -> %s", applied, document_id, signed_id)
        return signed_id

    def finalize(self, document_id: str) -> str:
        with self._open(document_id) as doc:
            doc.bake()
            final_id = self._save(doc, garbage=3, deflate=True)
        logger.info("Finalized %s -> %s", document_id, final_id)
        return final_id

    def download_url(self, document_id: str) -> str:
        return self._pdf_path(document_id).resolve().as_uri()

    def preview_url(self, document_id: str) -> str:
        return self.download_url(document_id)
