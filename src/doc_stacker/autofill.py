"""Auto-place and auto-sign shortcuts for demos and end-to-end runs.

Randomness always comes from an explicit ``random.Random`` so runs can be
replayed with the same seed.
"""

from __future__ import annotations

import random
from typing import List, Optional, Sequence

from .capture import render_typed_signature
from .config import DEFAULT_SIGNATURE_STYLE
from .errors import ValidationError
from .models import FieldType, SignatureField, Signer
from .placement import FieldPlacementEngine
from .sequencer import SigningSequencer

AUTO_FIELD_SIZE = (0.20, 0.06)


def auto_place_fields(
    engine: FieldPlacementEngine,
    signers: Sequence[Signer],
    page_count: int,
    rng: Optional[random.Random] = None,
) -> List[SignatureField]:
    """Give every signer one signature field in the lower half of a page.

    Signer ``i`` lands on page ``min(i, page_count - 1)``; columns of three
    keep fields on the same page from overlapping.
    """
    rng = rng or random.Random(0)
    placed = []
    for index, signer in enumerate(signers):
        page = min(index, max(0, page_count - 1))
        field = engine.add_field(FieldType.SIGNATURE, signer.id, page, size=AUTO_FIELD_SIZE)
        x = min(0.15 + (index % 3) * 0.25 + rng.random() * 0.1, 0.7)
        y = min(0.55 + (index // 3) * 0.15 + rng.random() * 0.1, 0.85)
        engine.move_field(field.id, (x - field.x_norm, y - field.y_norm))
        placed.append(field)
    return placed


def auto_sign_all(
    sequencer: SigningSequencer, style: str = DEFAULT_SIGNATURE_STYLE
) -> int:
    """Sign every signer in the sequence with a typed rendering of their name."""
    signed = 0
    for offset, signer in enumerate(sequencer.sequence):
        if sequencer.signature_for(signer.id) is not None:
            continue
        rendered = render_typed_signature(signer.name or signer.id, style)
        if rendered is None:
            raise ValidationError(f"Cannot render a signature for {signer.id}.")
        while sequencer.index > offset:
            sequencer.previous()
        while sequencer.index < offset:
            sequencer.next()
        sequencer.capture(rendered.raster)
        signed += 1
    return signed
