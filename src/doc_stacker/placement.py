from __future__ import annotations

import logging
import uuid
from typing import Callable, Iterable, Iterator, List, Optional, Sequence, Tuple

from .config import DEFAULT_FIELD_BOX
from .errors import InvalidSigner, UnknownField
from .layout import clamp_position, has_size, pixels_to_norm
from .models import FieldType, SignatureField, Signer

logger = logging.getLogger(__name__)


def _new_field_id() -> str:
    return str(uuid.uuid4())


def _check_box(width: float, height: float, page_number: int) -> None:
    if not (0.0 < width <= 1.0 and 0.0 < height <= 1.0):
        raise ValueError(f"Field size {width}x{height} must lie in (0, 1].")
    if page_number < 0:
        raise ValueError(f"Page number {page_number} is negative.")


class FieldPlacementEngine:
    """Owns the ordered field collection of one document.

    ``roster`` is a callable returning the current signers so that roster
    edits made elsewhere in the session are always seen here.
    """

    def __init__(
        self,
        roster: Callable[[], Sequence[Signer]],
        id_factory: Callable[[], str] = _new_field_id,
    ) -> None:
        self._roster = roster
        self._new_id = id_factory
        self._fields: List[SignatureField] = []
        self._active_drag: Optional[str] = None

    def __len__(self) -> int:
        return len(self._fields)

    def __iter__(self) -> Iterator[SignatureField]:
        return iter(list(self._fields))

    @property
    def fields(self) -> tuple[SignatureField, ...]:
        return tuple(self._fields)

    @property
    def active_drag(self) -> Optional[str]:
        return self._active_drag

    def get(self, field_id: str) -> SignatureField:
        for field in self._fields:
            if field.id == field_id:
                return field
        raise UnknownField(field_id)

    def add_field(
        self,
        field_type: FieldType | str,
        signer_id: str,
        page_number: int,
        size: Optional[Tuple[float, float]] = None,
    ) -> SignatureField:
        """Append a field with the default box; ``size`` overrides its width and height."""
        if signer_id not in {signer.id for signer in self._roster()}:
            raise InvalidSigner(signer_id)
        x, y, width, height = DEFAULT_FIELD_BOX
        if size is not None:
            width, height = size
        _check_box(width, height, page_number)
        x, y = clamp_position(x, y, width, height)
        field = SignatureField(
            id=self._new_id(),
            field_type=FieldType(field_type),
            page_number=int(page_number),
            x_norm=x,
            y_norm=y,
            width_norm=width,
            height_norm=height,
            signer_role=signer_id,
            required=True,
        )
        self._fields.append(field)
        logger.debug(
            "Added %s field %s for %s on page %d",
            field.field_type.value,
            field.id,
            signer_id,
            field.page_number,
        )
        return field

    def move_field(self, field_id: str, delta: Tuple[float, float]) -> SignatureField:
        field = self.get(field_id)
        field.x_norm, field.y_norm = clamp_position(
            field.x_norm + delta[0],
            field.y_norm + delta[1],
            field.width_norm,
            field.height_norm,
        )
        return field

    def delete_field(self, field_id: str) -> bool:
        """Remove a field; deleting an id that is already gone is a no-op."""
        for index, field in enumerate(self._fields):
            if field.id == field_id:
                del self._fields[index]
                if self._active_drag == field_id:
                    self._active_drag = None
                return True
        logger.debug("Ignoring delete of absent field %s", field_id)
        return False

    def fields_on_page(self, page_number: int) -> tuple[SignatureField, ...]:
        return tuple(f for f in self._fields if f.page_number == page_number)

    def validate_coverage(self, signers: Iterable[Signer]) -> list[Signer]:
        """Return the signers that do not own a single field yet."""
        covered = {field.signer_role for field in self._fields}
        return [signer for signer in signers if signer.id not in covered]

    def remove_signer_fields(self, signer_id: str) -> int:
        before = len(self._fields)
        self._fields = [f for f in self._fields if f.signer_role != signer_id]
        if self._active_drag and all(f.id != self._active_drag for f in self._fields):
            self._active_drag = None
        return before - len(self._fields)

    def replace_fields(self, fields: Iterable[SignatureField]) -> None:
        """Swap in a stored field set, pulling any overhanging box back onto its page.

        Nothing is replaced if a field has a duplicate id, a bad size, a
        negative page or a signer outside the roster.
        """
        roster = {signer.id for signer in self._roster()}
        incoming = list(fields)
        seen = set()
        for field in incoming:
            if field.id in seen:
                raise ValueError(f"Duplicate field id {field.id!r}.")
            seen.add(field.id)
            _check_box(field.width_norm, field.height_norm, field.page_number)
            if field.signer_role not in roster:
                raise InvalidSigner(field.signer_role)
        for field in incoming:
            field.x_norm, field.y_norm = clamp_position(
                field.x_norm, field.y_norm, field.width_norm, field.height_norm
            )
        self._fields = incoming
        self._active_drag = None

    # Drag protocol -------------------------------------------------------------
    def begin_drag(
        self,
        field_id: str,
        pointer: Tuple[float, float],
        image_size: Optional[Tuple[float, float]],
    ) -> Optional["DragSession"]:
        """Grab a field under the pointer.

        Returns ``None`` when another drag is active or the page image size is
        not known yet.
        """
        if self._active_drag is not None:
            logger.debug("Drag of %s rejected, %s is active", field_id, self._active_drag)
            return None
        if not has_size(image_size):
            return None
        field = self.get(field_id)
        pointer_x, pointer_y = pixels_to_norm(pointer[0], pointer[1], image_size)
        offset = (pointer_x - field.x_norm, pointer_y - field.y_norm)
        self._active_drag = field_id
        return DragSession(self, field_id, offset, image_size)

    def _release(self, field_id: str) -> None:
        if self._active_drag == field_id:
            self._active_drag = None


class DragSession:
    """One pointer gesture on one field, from pointer-down to pointer-up."""

    def __init__(
        self,
        engine: FieldPlacementEngine,
        field_id: str,
        offset: Tuple[float, float],
        image_size: Tuple[float, float],
    ) -> None:
        self.engine = engine
        self.field_id = field_id
        self.offset = offset
        self.image_size = image_size
        self.active = True

    def update_image_size(self, image_size: Optional[Tuple[float, float]]) -> None:
        self.image_size = image_size

    def move(self, pointer: Tuple[float, float]) -> Optional[SignatureField]:
        if not self.active or self.engine.active_drag != self.field_id:
            return None
        if not has_size(self.image_size):
            return None
        field = self.engine.get(self.field_id)
        pointer_x, pointer_y = pixels_to_norm(pointer[0], pointer[1], self.image_size)
        target_x = pointer_x - self.offset[0]
        target_y = pointer_y - self.offset[1]
        return self.engine.move_field(
            self.field_id, (target_x - field.x_norm, target_y - field.y_norm)
        )

    def release(self) -> None:
        if self.active:
            self.active = False
            self.engine._release(self.field_id)

    def __enter__(self) -> "DragSession":
        return self

    def __exit__(self, *_exc) -> None:
        self.release()
