from __future__ import annotations

import webbrowser
from pathlib import Path
from typing import List, Optional, Protocol

from tkinter import filedialog, messagebox

from .models import DocumentInfo, SignatureField, SignatureMap, StackResult


class DocumentService(Protocol):
    """The document backend the workflow hands stacking, signing and storage to."""

    def stack(
        self,
        cover: Path,
        body: Path,
        letterhead: Optional[Path] = None,
        terms: Optional[Path] = None,
        stamp: Optional[Path] = None,
    ) -> StackResult: ...

    def get_document_info(self, document_id: str) -> DocumentInfo: ...

    def get_page_image(self, document_id: str, page_number: int) -> bytes: ...

    def save_fields(self, document_id: str, fields: List[SignatureField]) -> None: ...

    def get_fields(self, document_id: str) -> List[SignatureField]: ...

    def sign(self, document_id: str, signatures: SignatureMap) -> str: ...

    def finalize(self, document_id: str) -> str: ...

    def download_url(self, document_id: str) -> str: ...

    def preview_url(self, document_id: str) -> str: ...


class FileDialogs(Protocol):
    def ask_open_pdf(self, parent, title: str = "Open PDF") -> Path | None: ...

    def ask_image(self, parent) -> Path | None: ...


class MessageService(Protocol):
    def info(self, title: str, message: str) -> None: ...

    def error(self, title: str, message: str) -> None: ...


class BrowserService(Protocol):
    def open(self, url: str) -> bool: ...


class DefaultFileDialogs:
    def ask_open_pdf(self, parent, title: str = "Open PDF") -> Path | None:
        filename = filedialog.askopenfilename(
            title=title, filetypes=[("PDF files", "*.pdf")], parent=parent
        )
        return Path(filename) if filename else None

    def ask_image(self, parent) -> Path | None:
        filename = filedialog.askopenfilename(
            title="Select stamp image",
            filetypes=[
                ("Image files", "*.png *.jpg *.jpeg *.bmp"),
                ("All files", "*.*"),
            ],
            parent=parent,
        )
        return Path(filename) if filename else None


class DefaultMessageService:
    def info(self, title: str, message: str) -> None:  # pragma: no cover - UI side effect
        messagebox.showinfo(title, message)

    def error(self, title: str, message: str) -> None:  # pragma: no cover - UI side effect
        messagebox.showerror(title, message)


class DefaultBrowserService:
    def open(self, url: str) -> bool:  # pragma: no cover - system side effect
        try:
            return webbrowser.open_new_tab(url)
        except webbrowser.Error:
            return False
