from __future__ import annotations

import random

import pytest

from doc_stacker.errors import InvalidSigner, UnknownField
from doc_stacker.models import FieldType, SignatureField, Signer
from doc_stacker.placement import FieldPlacementEngine


@pytest.fixture
def engine(roster, field_ids):
    return FieldPlacementEngine(lambda: roster, id_factory=field_ids)


def test_add_field_uses_default_box(engine):
    field = engine.add_field(FieldType.SIGNATURE, "a", 2)

    assert field.id == "field-1"
    assert field.page_number == 2
    assert (field.x_norm, field.y_norm) == (0.30, 0.70)
    assert (field.width_norm, field.height_norm) == (0.25, 0.08)
    assert field.signer_role == "a"
    assert field.required is True
    assert engine.fields == (field,)


def test_add_field_accepts_plain_type_names(engine):
    assert engine.add_field("date", "b", 0).field_type is FieldType.DATE


def test_add_field_rejects_signer_outside_roster(engine):
    with pytest.raises(InvalidSigner):
        engine.add_field(FieldType.SIGNATURE, "zed", 0)
    assert len(engine) == 0


def test_add_then_delete_leaves_collection_unchanged(engine):
    existing = engine.add_field(FieldType.SIGNATURE, "a", 0)
    before = engine.fields

    added = engine.add_field(FieldType.TEXT, "b", 1)
    assert engine.delete_field(added.id) is True

    assert engine.fields == before
    assert engine.fields[0] is existing


def test_delete_of_absent_field_is_a_no_op(engine):
    field = engine.add_field(FieldType.SIGNATURE, "a", 0)
    engine.delete_field(field.id)

    assert engine.delete_field(field.id) is False
    assert engine.delete_field("never-existed") is False


def test_move_field_clamps_each_axis(engine):
    field = engine.add_field(FieldType.SIGNATURE, "a", 0)

    engine.move_field(field.id, (0.1, -0.2))
    assert field.x_norm == pytest.approx(0.4)
    assert field.y_norm == pytest.approx(0.5)

    engine.move_field(field.id, (5.0, 5.0))
    assert field.x_norm == pytest.approx(0.75)
    assert field.y_norm == pytest.approx(0.92)

    engine.move_field(field.id, (-5.0, 0.0))
    assert field.x_norm == 0.0
    assert field.y_norm == pytest.approx(0.92)


def test_move_unknown_field_raises(engine):
    with pytest.raises(UnknownField):
        engine.move_field("nope", (0.1, 0.1))


def test_random_drags_never_leave_the_page(engine):
    rng = random.Random(1234)
    fields = [engine.add_field(FieldType.SIGNATURE, "a", 0) for _ in range(3)]
    for _ in range(500):
        field = rng.choice(fields)
        delta = (rng.uniform(-3, 3), rng.uniform(-3, 3))
        engine.move_field(field.id, delta)
        assert 0.0 <= field.x_norm <= 1.0 - field.width_norm
        assert 0.0 <= field.y_norm <= 1.0 - field.height_norm


def test_fields_on_page_is_ordered_and_read_only(engine):
    first = engine.add_field(FieldType.SIGNATURE, "a", 0)
    engine.add_field(FieldType.SIGNATURE, "b", 1)
    third = engine.add_field(FieldType.DATE, "c", 0)

    on_page = engine.fields_on_page(0)

    assert on_page == (first, third)
    assert engine.fields_on_page(7) == ()
    assert len(engine) == 3


def test_validate_coverage_returns_signers_without_fields(engine, roster):
    engine.add_field(FieldType.SIGNATURE, "a", 0)
    engine.add_field(FieldType.SIGNATURE, "b", 1)

    missing = engine.validate_coverage(roster)

    assert missing == [roster[2]]

    engine.add_field(FieldType.SIGNATURE, "c", 0)
    assert engine.validate_coverage(roster) == []


def test_remove_signer_fields(engine):
    engine.add_field(FieldType.SIGNATURE, "a", 0)
    engine.add_field(FieldType.DATE, "a", 0)
    kept = engine.add_field(FieldType.SIGNATURE, "b", 0)

    assert engine.remove_signer_fields("a") == 2
    assert engine.fields == (kept,)


def test_replace_fields_checks_roster(engine, roster):
    field = engine.add_field(FieldType.SIGNATURE, "a", 0)
    engine.delete_field(field.id)
    engine.replace_fields([field])
    assert engine.fields == (field,)

    field.signer_role = "ghost"
    with pytest.raises(InvalidSigner):
        engine.replace_fields([field])


def test_drag_follows_pointer_with_grab_offset(engine):
    field = engine.add_field(FieldType.SIGNATURE, "a", 0)
    image_size = (1000, 500)
    # Grab the field 10px right and 5px below its top-left corner.
    drag = engine.begin_drag(field.id, (310, 355), image_size)
    assert drag is not None
    assert engine.active_drag == field.id

    drag.move((510, 105))

    assert field.x_norm == pytest.approx(0.5)
    assert field.y_norm == pytest.approx(0.2)

    drag.release()
    assert engine.active_drag is None
    assert drag.move((0, 0)) is None


def test_drag_clamps_pointer_far_outside_page(engine):
    field = engine.add_field(FieldType.SIGNATURE, "a", 0)
    with engine.begin_drag(field.id, (300, 350), (1000, 500)) as drag:
        drag.move((-5000, 9000))
    assert field.x_norm == 0.0
    assert field.y_norm == pytest.approx(1.0 - field.height_norm)
    assert engine.active_drag is None


def test_second_drag_is_rejected_while_one_is_active(engine):
    first = engine.add_field(FieldType.SIGNATURE, "a", 0)
    second = engine.add_field(FieldType.SIGNATURE, "b", 0)
    drag = engine.begin_drag(first.id, (300, 350), (1000, 500))

    assert engine.begin_drag(second.id, (300, 350), (1000, 500)) is None
    assert engine.active_drag == first.id

    drag.release()
    assert engine.begin_drag(second.id, (300, 350), (1000, 500)) is not None


def test_drag_is_suppressed_until_image_size_is_known(engine):
    field = engine.add_field(FieldType.SIGNATURE, "a", 0)

    assert engine.begin_drag(field.id, (10, 10), None) is None
    assert engine.begin_drag(field.id, (10, 10), (0, 0)) is None
    assert engine.active_drag is None

    drag = engine.begin_drag(field.id, (300, 350), (1000, 500))
    drag.update_image_size(None)
    assert drag.move((900, 100)) is None
    assert (field.x_norm, field.y_norm) == (0.30, 0.70)


def test_deleting_dragged_field_ends_the_drag(engine):
    field = engine.add_field(FieldType.SIGNATURE, "a", 0)
    drag = engine.begin_drag(field.id, (300, 350), (1000, 500))

    engine.delete_field(field.id)

    assert engine.active_drag is None
    assert drag.move((500, 100)) is None


def test_single_signer_out_of_range_drag_lands_on_boundary(field_ids):
    signer = Signer(id="solo", name="Solo", color="#1976d2")
    engine = FieldPlacementEngine(lambda: [signer], id_factory=field_ids)
    field = engine.add_field(FieldType.SIGNATURE, "solo", 0, size=(0.2, 0.06))

    engine.move_field(field.id, (2.0, -2.0))

    assert field.x_norm == pytest.approx(0.8)
    assert field.y_norm == 0.0


def test_add_field_rejects_sizes_outside_unit_range(engine):
    for size in [(1.4, 0.1), (0.2, 0.0), (0.2, -0.1), (0.0, 0.5)]:
        with pytest.raises(ValueError):
            engine.add_field(FieldType.SIGNATURE, "a", 0, size=size)
    assert len(engine) == 0

    full_width = engine.add_field(FieldType.SIGNATURE, "a", 0, size=(1.0, 0.1))
    assert full_width.x_norm + full_width.width_norm <= 1.0


def test_add_field_rejects_negative_page(engine):
    with pytest.raises(ValueError):
        engine.add_field(FieldType.SIGNATURE, "a", -1)
    assert len(engine) == 0


def _stored_field(field_id, x=0.1, width=0.1, page=0, signer="a"):
    return SignatureField(
        id=field_id,
        field_type=FieldType.SIGNATURE,
        page_number=page,
        x_norm=x,
        y_norm=0.5,
        width_norm=width,
        height_norm=0.1,
        signer_role=signer,
    )


def test_replace_fields_rejects_duplicate_ids_and_bad_boxes(engine):
    kept = engine.add_field(FieldType.SIGNATURE, "a", 0)

    with pytest.raises(ValueError):
        engine.replace_fields([_stored_field("dup"), _stored_field("dup", x=0.5)])
    with pytest.raises(ValueError):
        engine.replace_fields([_stored_field("neg", page=-3)])
    with pytest.raises(ValueError):
        engine.replace_fields([_stored_field("wide", width=1.25)])

    assert engine.fields == (kept,)


def test_replace_fields_pulls_overhanging_boxes_onto_the_page(engine):
    overhang = _stored_field("f1", x=0.9, width=0.25)

    engine.replace_fields([overhang])

    stored = engine.get("f1")
    assert stored.x_norm == pytest.approx(0.75)
    assert stored.x_norm + stored.width_norm <= 1.0
