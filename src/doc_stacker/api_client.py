from __future__ import annotations

import logging
from contextlib import ExitStack
from pathlib import Path
from typing import Any, Dict, List, Optional

import requests

from .config import API_URL, REQUEST_TIMEOUT
from .errors import CollaboratorFailure
from .models import (
    DocumentInfo,
    SignatureField,
    SignatureMap,
    StackResult,
    signature_map_to_payload,
)

logger = logging.getLogger(__name__)


class HttpDocumentService:
    """REST client for the DocStacker backend."""

    def __init__(
        self,
        base_url: str = API_URL,
        session: Optional[requests.Session] = None,
        timeout: float = REQUEST_TIMEOUT,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.session = session or requests.Session()
        self.timeout = timeout

    def _url(self, path: str) -> str:
        return f"{self.base_url}/api/{path.lstrip('/')}"

    def _request(self, method: str, path: str, **kwargs) -> requests.Response:
        url = self._url(path)
        logger.debug("%s %s", method, url)
        try:
            response = self.session.request(method, url, timeout=self.timeout, **kwargs)
            response.raise_for_status()
        except requests.RequestException as exc:
            logger.error("%s %s failed: %s", method, url, exc)
            raise CollaboratorFailure(f"{method} {path} failed: {exc}") from exc
        return response

    def _json(self, method: str, path: str, **kwargs) -> Any:
        response = self._request(method, path, **kwargs)
        try:
            return response.json()
        except ValueError as exc:
            raise CollaboratorFailure(f"{method} {path} returned invalid JSON.") from exc

    def stack(
        self,
        cover: Path,
        body: Path,
        letterhead: Optional[Path] = None,
        terms: Optional[Path] = None,
        stamp: Optional[Path] = None,
    ) -> StackResult:
        parts = {
            "letterhead": letterhead,
            "cover": cover,
            "body": body,
            "terms": terms,
            "stamp": stamp,
        }
        with ExitStack() as stack:
            files = {
                name: (Path(path).name, stack.enter_context(open(path, "rb")))
                for name, path in parts.items()
                if path
            }
            data = self._json("POST", "stack", files=files)
        logger.info("Stacked document %s (%s pages)", data.get("documentId"), data.get("pageCount"))
        return StackResult(document_id=str(data["documentId"]), page_count=int(data["pageCount"]))

    def get_document_info(self, document_id: str) -> DocumentInfo:
        data = self._json("GET", f"documents/{document_id}/info")
        return DocumentInfo(
            document_id=str(data.get("documentId", document_id)),
            page_count=int(data["pageCount"]),
            page_width=float(data.get("pageWidth", 0)),
            page_height=float(data.get("pageHeight", 0)),
        )

    def get_page_image(self, document_id: str, page_number: int) -> bytes:
        return self._request("GET", f"documents/{document_id}/pages/{page_number}/image").content

    def save_fields(self, document_id: str, fields: List[SignatureField]) -> None:
        payload: Dict[str, Any] = {"fields": [f.to_dict() for f in fields]}
        self._request("POST", f"documents/{document_id}/fields", json=payload)

    def get_fields(self, document_id: str) -> List[SignatureField]:
        data = self._json("GET", f"documents/{document_id}/fields")
        return [SignatureField.from_dict(item) for item in data]

    def sign(self, document_id: str, signatures: SignatureMap) -> str:
        data = self._json(
            "POST",
            f"documents/{document_id}/sign",
            json=signature_map_to_payload(signatures),
        )
        return str(data["documentId"])

    def finalize(self, document_id: str) -> str:
        data = self._json("POST", f"documents/{document_id}/finalize")
        return str(data["documentId"])

    def download_url(self, document_id: str) -> str:
        return self._url(f"documents/{document_id}/download")

    def preview_url(self, document_id: str) -> str:
        return self._url(f"documents/{document_id}/preview")
