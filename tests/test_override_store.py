from datetime import datetime, timedelta, timezone

import pytest

from proposal_engine.models.schemas import TextOverride
from proposal_engine.models.sections import SectionId, SectionKind, Slot
from proposal_engine.services.override_store import OverrideStore

T0 = datetime(2026, 10, 18, 9, 0, tzinfo=timezone.utc)


def _ov(section_id, original, new, minutes=0, ai=False, instruction=None):
    return TextOverride(section_id=section_id, original_text=original, new_text=new,
                        is_ai_generated=ai, instruction=instruction, timestamp=T0 + timedelta(minutes=minutes))


def test_replace_not_chain():
    store = OverrideStore()
    store = store.set(_ov("background", "T0", "T1", 1))
    store = store.set(_ov("background", "T1", "T2", 2, ai=True))
    current = store.get("background")
    assert current.original_text == "T0"
    assert current.new_text == "T2"
    assert current.is_ai_generated
    assert store.count() == 1
    restored = store.restore("background")
    assert restored.get("background") is None
    assert restored.count() == 0


def test_set_does_not_mutate_previous_store():
    empty = OverrideStore()
    one = empty.set(_ov("transition", "orig", "new"))
    assert empty.count() == 0
    assert one.count() == 1


def test_restore_is_idempotent():
    store = OverrideStore().set(_ov("background", "orig", "new"))
    once = store.restore("background")
    twice = once.restore("background")
    assert twice is once
    assert twice == once
    assert OverrideStore().restore("background").count() == 0


def test_different_sections_do_not_interfere():
    store = OverrideStore().set(_ov("background", "b0", "b1")).set(_ov("service-a", "s0", "s1", 1))
    store = store.restore("background")
    assert store.get("background") is None
    assert store.get("service-a").new_text == "s1"


def test_list_newest_first_with_stable_ties():
    store = (
        OverrideStore()
        .set(_ov("transition", "o", "n", 1))
        .set(_ov("closing-farewell", "o", "n", 5))
        .set(_ov("background", "o", "n", 1))
    )
    assert [o.section_id for o in store.list()] == ["closing-farewell", "background", "transition"]


def test_log_records_set_and_effective_restore_only():
    store = OverrideStore().set(_ov("background", "o", "n1", 1, instruction="más formal"))
    store = store.set(_ov("background", "o", "n2", 2))
    store = store.restore("background")
    store = store.restore("background")
    assert [e.action for e in store.log] == ["set", "set", "restore"]
    assert store.log[0].instruction == "más formal"


def test_naive_timestamps_become_utc():
    ov = TextOverride(section_id="background", original_text="o", new_text="n",
                      timestamp=datetime(2026, 1, 1, 12, 0))
    assert ov.timestamp.tzinfo is not None
    assert ov.timestamp.utcoffset() == timedelta(0)


def test_unknown_section_is_rejected():
    with pytest.raises(ValueError):
        TextOverride(section_id="not-a-section", original_text="o", new_text="n")
    assert OverrideStore().get("not-a-section") is None


def test_from_overrides_keeps_first_original():
    store = OverrideStore.from_overrides([_ov("background", "later", "n2", 2), _ov("background", "first", "n1", 1)])
    assert store.get("background").original_text == "first"
    assert store.get("background").new_text == "n2"


@pytest.mark.parametrize("raw, slot, service_id", [
    ("background", Slot.BACKGROUND, None),
    ("closing-farewell", Slot.CLOSING, None),
    ("pricing-intro", Slot.PRICING_INTRO, None),
    ("service-abc", Slot.SERVICE, "abc"),
    ("pricing-service-42", Slot.PRICING_SERVICE, "42"),
    ("service-pricing-x", Slot.SERVICE, "pricing-x"),
])
def test_section_id_parse(raw, slot, service_id):
    sid = SectionId.parse(raw)
    assert sid.slot == slot
    assert sid.service_id == service_id
    assert str(sid) == raw


@pytest.mark.parametrize("raw", ["", None, "service-", "nope", "pricing-service-"])
def test_section_id_parse_unknown(raw):
    assert SectionId.parse(raw) is None


def test_section_id_shape_is_checked():
    with pytest.raises(ValueError):
        SectionId(Slot.SERVICE)
    with pytest.raises(ValueError):
        SectionId(Slot.BACKGROUND, "x")
    assert SectionId.service("a").default_kind == SectionKind.EDITABLE
    assert SectionId.of(Slot.LETTERHEAD).order < SectionId.of(Slot.ACCEPTANCE).order
