from __future__ import annotations

import logging
import uuid
from contextlib import contextmanager
from dataclasses import dataclass, field
from enum import IntEnum
from pathlib import Path
from typing import Callable, Dict, Iterator, List, Optional, Set, TypeVar

from .config import MAX_SIGNERS, MIN_SIGNERS, SIGNER_COLORS
from .errors import CollaboratorFailure, ValidationError
from .models import SignatureMap, Signer, SourceDocuments
from .placement import FieldPlacementEngine
from .sequencer import SigningSequencer
from .services import DocumentService

logger = logging.getLogger(__name__)

T = TypeVar("T")


class Stage(IntEnum):
    UPLOAD = 0
    PLACE_FIELDS = 1
    SIGN = 2
    DOWNLOAD = 3

    @property
    def label(self) -> str:
        return STAGE_LABELS[self]


STAGE_LABELS = {
    Stage.UPLOAD: "Upload Documents",
    Stage.PLACE_FIELDS: "Place Signature Fields",
    Stage.SIGN: "Sign",
    Stage.DOWNLOAD: "Download",
}


def _new_signer_id() -> str:
    return f"signer_{uuid.uuid4().hex[:8]}"


def default_roster() -> List[Signer]:
    return [Signer(id="signer_1", name="Signer 1", color=SIGNER_COLORS[0])]


@dataclass
class SigningSession:
    """Everything one document session owns, shared by all workflow stages."""

    signers: List[Signer] = field(default_factory=default_roster)
    sources: SourceDocuments = field(default_factory=SourceDocuments)
    document_id: Optional[str] = None
    page_count: int = 0
    signed_document_id: Optional[str] = None
    final_document_id: Optional[str] = None
    stacked_from: Optional[tuple] = None
    engine: FieldPlacementEngine = field(init=False)
    sequencer: Optional[SigningSequencer] = None

    def __post_init__(self) -> None:
        self.engine = FieldPlacementEngine(lambda: self.signers)

    def signer(self, signer_id: str) -> Optional[Signer]:
        for signer in self.signers:
            if signer.id == signer_id:
                return signer
        return None


class WorkflowController:
    """Four-stage stepper: Upload, Place Fields, Sign, Download.

    Forward moves are gated on the checks of the stage being left; ``back``
    never discards roster, fields or signatures.
    """

    def __init__(
        self,
        backend: DocumentService,
        session: Optional[SigningSession] = None,
        signer_id_factory: Callable[[], str] = _new_signer_id,
    ) -> None:
        self.backend = backend
        self.session = session or SigningSession()
        self.stage = Stage.UPLOAD
        self._new_signer_id = signer_id_factory
        self._in_flight: Set[str] = set()

    @property
    def engine(self) -> FieldPlacementEngine:
        return self.session.engine

    @property
    def sequencer(self) -> Optional[SigningSequencer]:
        return self.session.sequencer

    # Roster ------------------------------------------------------------------
    def add_signer(self, name: str = "") -> Signer:
        signers = self.session.signers
        if len(signers) >= MAX_SIGNERS:
            raise ValidationError(f"Maximum {MAX_SIGNERS} signers allowed.")
        signer = Signer(
            id=self._new_signer_id(),
            name=name,
            color=SIGNER_COLORS[len(signers) % len(SIGNER_COLORS)],
        )
        signers.append(signer)
        return signer

    def remove_signer(self, signer_id: str) -> None:
        signers = self.session.signers
        if len(signers) <= MIN_SIGNERS:
            raise ValidationError("At least one signer is required.")
        remaining = [s for s in signers if s.id != signer_id]
        if len(remaining) == len(signers):
            return
        signers[:] = remaining
        dropped = self.engine.remove_signer_fields(signer_id)
        if dropped:
            logger.info("Removed %d field(s) of signer %s", dropped, signer_id)

    def rename_signer(self, signer_id: str, name: str) -> None:
        signer = self.session.signer(signer_id)
        if signer is None:
            raise ValidationError(f"Unknown signer {signer_id!r}.")
        signer.name = name

    def signer_choices(self) -> Dict[str, str]:
        """Map a unique display label to each signer id, in roster order.

        Names need not be unique, so every label carries the roster position.
        """
        return {
            f"{index + 1}. {signer.name or signer.id}": signer.id
            for index, signer in enumerate(self.session.signers)
        }

    def set_source(self, slot: str, path: Optional[Path]) -> None:
        if slot not in ("letterhead", "cover", "body", "terms", "stamp"):
            raise ValueError(f"Unknown source slot {slot!r}.")
        setattr(self.session.sources, slot, Path(path) if path else None)

    # Stage transitions -----------------------------------------------------------
    def advance(self) -> Stage:
        if self.stage == Stage.UPLOAD:
            self._upload()
        elif self.stage == Stage.PLACE_FIELDS:
            self._place_fields()
        elif self.stage == Stage.SIGN:
            self._sign()
        else:
            return self.stage
        self.stage = Stage(self.stage + 1)
        logger.info("Workflow advanced to %s", self.stage.label)
        return self.stage

    def back(self) -> Stage:
        if self.stage > Stage.UPLOAD:
            self.stage = Stage(self.stage - 1)
            logger.info("Workflow moved back to %s", self.stage.label)
        return self.stage

    def validate_upload(self) -> None:
        session = self.session
        missing = session.sources.missing()
        if missing:
            raise ValidationError("Cover and Body are required.")
        if not session.signers or any(not s.name.strip() for s in session.signers):
            raise ValidationError("Please add at least one signer with a valid name.")

    def _upload(self) -> None:
        self.validate_upload()
        session = self.session
        fingerprint = session.sources.fingerprint()
        if session.document_id and session.stacked_from == fingerprint:
            logger.debug("Sources unchanged, keeping document %s", session.document_id)
            return
        sources = session.sources
        result = self._call(
            "stack",
            lambda: self.backend.stack(
                sources.cover,
                sources.body,
                letterhead=sources.letterhead,
                terms=sources.terms,
                stamp=sources.stamp,
            ),
        )
        info = self._call(
            result.document_id,
            lambda: self.backend.get_document_info(result.document_id),
        )
        page_count = max(1, info.page_count)
        for item in list(self.engine):
            if item.page_number >= page_count:
                self.engine.delete_field(item.id)
                logger.info("Dropped field %s, page %d no longer exists", item.id, item.page_number)
        session.document_id = result.document_id
        session.page_count = page_count
        session.stacked_from = fingerprint
        session.signed_document_id = None
        session.final_document_id = None

    def validate_placement(self) -> None:
        missing = self.engine.validate_coverage(self.session.signers)
        if missing:
            names = ", ".join(s.name or s.id for s in missing)
            raise ValidationError(f"Please add at least one signature field for: {names}")

    def _place_fields(self) -> None:
        self.validate_placement()
        document_id = self._require_document()
        fields = list(self.engine.fields)
        self._call(document_id, lambda: self.backend.save_fields(document_id, fields))
        session = self.session
        if session.sequencer is None:
            session.sequencer = SigningSequencer(session.signers, fields)
        else:
            session.sequencer.refresh(session.signers, fields)

    def reload_fields(self) -> int:
        """Replace the local fields with the ones the backend has stored."""
        document_id = self._require_document()
        fields = self._call(document_id, lambda: self.backend.get_fields(document_id))
        try:
            self.engine.replace_fields(fields)
        except ValueError as exc:
            raise CollaboratorFailure(f"Stored fields for {document_id} are invalid: {exc}") from exc
        return len(fields)

    def build_signature_map(self) -> SignatureMap:
        if self.sequencer is None:
            raise ValidationError("Place signature fields before signing.")
        return self.sequencer.finalize()

    def _sign(self) -> None:
        signatures = self.build_signature_map()
        document_id = self._require_document()
        signed_id = self._call(document_id, lambda: self.backend.sign(document_id, signatures))
        self.session.signed_document_id = signed_id
        self.session.final_document_id = None

    # Download stage -----------------------------------------------------------------
    @property
    def result_document_id(self) -> str:
        session = self.session
        return session.final_document_id or session.signed_document_id or self._require_document()

    def finalize_document(self) -> str:
        if self.stage != Stage.DOWNLOAD:
            raise ValidationError("Sign the document before finalizing it.")
        session = self.session
        if session.final_document_id:
            return session.final_document_id
        document_id = session.signed_document_id or self._require_document()
        session.final_document_id = self._call(
            document_id, lambda: self.backend.finalize(document_id)
        )
        return session.final_document_id

    def download_url(self) -> str:
        return self.backend.download_url(self.result_document_id)

    def preview_url(self) -> str:
        return self.backend.preview_url(self.result_document_id)

    def page_image(self, page_number: int) -> bytes:
        document_id = self._require_document()
        return self._call(
            f"{document_id}:page:{page_number}",
            lambda: self.backend.get_page_image(document_id, page_number),
        )

    # Collaborator calls -----------------------------------------------------------
    def _require_document(self) -> str:
        if not self.session.document_id:
            raise ValidationError("Upload the documents first.")
        return self.session.document_id

    @contextmanager
    def _guard(self, key: str) -> Iterator[None]:
        if key in self._in_flight:
            raise CollaboratorFailure(f"A request for {key} is already in progress.")
        self._in_flight.add(key)
        try:
            yield
        finally:
            self._in_flight.discard(key)

    def _call(self, key: str, operation: Callable[[], T]) -> T:
        """Run a backend call, converting any failure into ``CollaboratorFailure``."""
        with self._guard(key):
            try:
                return operation()
            except CollaboratorFailure:
                raise
            except Exception as exc:
                logger.exception("Backend call for %s failed", key)
                raise CollaboratorFailure(f"Backend request failed: {exc}") from exc
