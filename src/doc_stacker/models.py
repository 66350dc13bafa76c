from __future__ import annotations

import base64
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Optional


SignatureRaster = bytes


class FieldType(str, Enum):
    SIGNATURE = "signature"
    TEXT = "text"
    DATE = "date"


@dataclass
class Signer:
    id: str
    name: str
    color: str


@dataclass
class SignatureField:
    """A placeholder on one page, in normalized page coordinates.

    ``x_norm``/``y_norm`` is the top-left corner; y grows downwards.
    """

    id: str
    field_type: FieldType
    page_number: int
    x_norm: float
    y_norm: float
    width_norm: float
    height_norm: float
    signer_role: str
    required: bool = True
    anchor_logic: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "id": self.id,
            "fieldType": self.field_type.value,
            "pageNumber": self.page_number,
            "xNorm": self.x_norm,
            "yNorm": self.y_norm,
            "widthNorm": self.width_norm,
            "heightNorm": self.height_norm,
            "signerRole": self.signer_role,
            "required": self.required,
        }
        if self.anchor_logic is not None:
            data["anchorLogic"] = self.anchor_logic
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SignatureField":
        return cls(
            id=str(data["id"]),
            field_type=FieldType(data.get("fieldType", FieldType.SIGNATURE.value)),
            page_number=int(data.get("pageNumber", 0)),
            x_norm=float(data["xNorm"]),
            y_norm=float(data["yNorm"]),
            width_norm=float(data["widthNorm"]),
            height_norm=float(data["heightNorm"]),
            signer_role=str(data["signerRole"]),
            required=bool(data.get("required", True)),
            anchor_logic=data.get("anchorLogic"),
        )


@dataclass(frozen=True)
class SignatureEntry:
    raster: SignatureRaster
    field_id: str


SignatureMap = Dict[str, SignatureEntry]


def raster_to_data_url(raster: SignatureRaster) -> str:
    return "data:image/png;base64," + base64.b64encode(raster).decode("ascii")


def signature_map_to_payload(signatures: SignatureMap) -> Dict[str, Any]:
    return {
        "signatures": {
            field_id: {
                "imageBase64": raster_to_data_url(entry.raster),
                "fieldId": entry.field_id,
            }
            for field_id, entry in signatures.items()
        }
    }


@dataclass(frozen=True)
class StackResult:
    document_id: str
    page_count: int


@dataclass(frozen=True)
class DocumentInfo:
    document_id: str
    page_count: int
    page_width: float
    page_height: float


@dataclass
class SourceDocuments:
    """The PDFs that get stacked into one document; cover and body are mandatory."""

    cover: Optional[Path] = None
    body: Optional[Path] = None
    letterhead: Optional[Path] = None
    terms: Optional[Path] = None
    stamp: Optional[Path] = None

    def missing(self) -> list[str]:
        return [name for name in ("cover", "body") if not getattr(self, name)]

    def fingerprint(self) -> tuple:
        return tuple(
            str(getattr(self, name) or "")
            for name in ("letterhead", "cover", "body", "terms", "stamp")
        )
