from __future__ import annotations

import logging
from enum import Enum
from typing import Dict, Iterable, List, Optional, Sequence, Set

from .errors import IncompleteSignature, ValidationError
from .models import (
    FieldType,
    SignatureEntry,
    SignatureField,
    SignatureMap,
    SignatureRaster,
    Signer,
)

logger = logging.getLogger(__name__)


class CaptureMode(str, Enum):
    DRAW = "draw"
    TYPE = "type"


def signature_fields(fields: Iterable[SignatureField]) -> List[SignatureField]:
    return [f for f in fields if f.field_type == FieldType.SIGNATURE]


class SigningSequencer:
    """Walks the signers that own signature fields, one at a time.

    Signers without a signature field never enter the sequence. Each signer
    holds at most one raster, shared by all of their fields.
    """

    def __init__(self, signers: Sequence[Signer], fields: Iterable[SignatureField]) -> None:
        self._signatures: Dict[str, Optional[SignatureRaster]] = {}
        self._editing: Set[str] = set()
        self.index = 0
        self.mode = CaptureMode.DRAW
        self.sequence: List[Signer] = []
        self.fields: List[SignatureField] = []
        self.refresh(signers, fields)

    def refresh(self, signers: Sequence[Signer], fields: Iterable[SignatureField]) -> None:
        """Rebuild the sequence, keeping signatures of signers still in it."""
        self.fields = signature_fields(fields)
        owners = {f.signer_role for f in self.fields}
        self.sequence = [s for s in signers if s.id in owners]
        kept = {s.id for s in self.sequence}
        self._signatures = {
            signer_id: raster
            for signer_id, raster in self._signatures.items()
            if signer_id in kept
        }
        for signer in self.sequence:
            self._signatures.setdefault(signer.id, None)
        self._editing &= kept
        self.index = min(self.index, max(0, len(self.sequence) - 1))
        self._enter_current()

    # State ---------------------------------------------------------------------
    @property
    def current(self) -> Optional[Signer]:
        if not self.sequence:
            return None
        return self.sequence[self.index]

    @property
    def has_navigation(self) -> bool:
        return len(self.sequence) > 1

    @property
    def all_complete(self) -> bool:
        return bool(self.sequence) and all(
            self._signatures.get(s.id) is not None for s in self.sequence
        )

    @property
    def progress(self) -> tuple[int, int]:
        done = sum(1 for s in self.sequence if self._signatures.get(s.id) is not None)
        return done, len(self.sequence)

    def signature_for(self, signer_id: str) -> Optional[SignatureRaster]:
        return self._signatures.get(signer_id)

    def is_editing(self, signer_id: str) -> bool:
        return signer_id in self._editing

    def field_count(self, signer_id: str) -> int:
        return sum(1 for f in self.fields if f.signer_role == signer_id)

    # Transitions ---------------------------------------------------------------
    def capture(self, raster: Optional[SignatureRaster]) -> None:
        """Store (or clear, with ``None``) the current signer's signature."""
        signer = self._require_current()
        if signer.id not in self._editing:
            raise ValidationError(f"Choose re-sign to replace {signer.name}'s signature.")
        self._signatures[signer.id] = raster

    def switch_mode(self, mode: CaptureMode) -> None:
        signer = self._require_current()
        self.mode = CaptureMode(mode)
        if signer.id in self._editing:
            self._signatures[signer.id] = None

    def next(self) -> None:
        signer = self._require_current()
        if self._signatures.get(signer.id) is None:
            raise ValidationError(f"{signer.name} has not signed yet.")
        if self.index < len(self.sequence) - 1:
            self.index += 1
            self._enter_current()

    def previous(self) -> None:
        if self.index > 0:
            self.index -= 1
            self._enter_current()

    def resign(self, signer_id: str) -> None:
        if signer_id not in self._signatures:
            raise ValidationError(f"Signer {signer_id!r} has no signature fields.")
        self._signatures[signer_id] = None
        self._editing.add(signer_id)
        logger.debug("Signature of %s cleared for re-signing", signer_id)

    def finalize(self) -> SignatureMap:
        if not self.sequence:
            raise ValidationError("No signers have been assigned signature fields.")
        if not self.all_complete:
            raise ValidationError("Please provide signatures for all signers.")
        signatures: SignatureMap = {}
        for field in self.fields:
            raster = self._signatures.get(field.signer_role)
            if raster is None:
                raise IncompleteSignature(
                    f"Field {field.id} has no signature for {field.signer_role}."
                )
            signatures[field.id] = SignatureEntry(raster=raster, field_id=field.id)
        logger.info(
            "Built signature map for %d field(s) from %d signer(s)",
            len(signatures),
            len(self.sequence),
        )
        return signatures

    def _require_current(self) -> Signer:
        signer = self.current
        if signer is None:
            raise ValidationError("No signers have been assigned signature fields.")
        return signer

    def _enter_current(self) -> None:
        self.mode = CaptureMode.DRAW
        signer = self.current
        if signer is None:
            return
        if self._signatures.get(signer.id) is None:
            self._editing.add(signer.id)
        else:
            self._editing.discard(signer.id)
