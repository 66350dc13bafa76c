from __future__ import annotations

import sys
from pathlib import Path

import pytest


# Ensure the src/ directory is importable when running tests without
# installing the package in editable mode.
ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

from doc_stacker.models import DocumentInfo, Signer, StackResult  # noqa: E402


class RecordingBackend:
    """In-memory document backend that records every call it receives."""

    def __init__(self, page_count: int = 2):
        self.page_count = page_count
        self.calls: list[tuple] = []
        self.saved_fields: dict[str, list] = {}
        self.signed: dict[str, dict] = {}
        self.fail_on: set[str] = set()
        self._counter = 0

    def _next_id(self, prefix: str) -> str:
        self._counter += 1
        return f"{prefix}-{self._counter}"

    def _record(self, name: str, *args):
        self.calls.append((name, *args))
        if name in self.fail_on:
            raise RuntimeError(f"{name} unavailable")

    def stack(self, cover, body, letterhead=None, terms=None, stamp=None):
        self._record("stack", cover, body, letterhead, terms, stamp)
        return StackResult(document_id=self._next_id("doc"), page_count=self.page_count)

    def get_document_info(self, document_id):
        self._record("get_document_info", document_id)
        return DocumentInfo(document_id, self.page_count, 612.0, 792.0)

    def get_page_image(self, document_id, page_number):
        self._record("get_page_image", document_id, page_number)
        return b""

    def save_fields(self, document_id, fields):
        self._record("save_fields", document_id, fields)
        self.saved_fields[document_id] = list(fields)

    def get_fields(self, document_id):
        self._record("get_fields", document_id)
        return list(self.saved_fields.get(document_id, []))

    def sign(self, document_id, signatures):
        self._record("sign", document_id, signatures)
        signed_id = self._next_id("signed")
        self.signed[signed_id] = dict(signatures)
        return signed_id

    def finalize(self, document_id):
        self._record("finalize", document_id)
        return self._next_id("final")

    def download_url(self, document_id):
        return f"memory://{document_id}/download"

    def preview_url(self, document_id):
        return f"memory://{document_id}/preview"


@pytest.fixture
def backend():
    return RecordingBackend()


@pytest.fixture
def roster():
    return [
        Signer(id="a", name="Alice", color="#1976d2"),
        Signer(id="b", name="Bob", color="#9c27b0"),
        Signer(id="c", name="Carol", color="#2e7d32"),
    ]


@pytest.fixture
def field_ids():
    counter = iter(range(1, 1000))
    return lambda: f"field-{next(counter)}"
