import json

import pytest

from projection import DateRange, to_datetime
from sync import UNASSIGNED_GROUP
from ui.timeline_tab import TimelineTab

pytestmark = pytest.mark.usefixtures("qapp")


@pytest.fixture
def tab(store):
    t = TimelineTab(store, {"timeline": {"editable": True, "show_week_scale": False, "default_span_hours": 2}})
    yield t
    t.shutdown()


@pytest.fixture
def board(store):
    date_prop = store.add_property("Период", "date")
    group_prop = store.add_property("group", "select")
    return date_prop, group_prop


def reload(tab, store):
    return tab.set_board(store.list_properties(), store.list_cards())


def test_fallback_without_date_property(tab, store):
    """Нет свойства с датой — заглушка и ни одного элемента."""
    store.add_property("Заметка", "text")
    store.create_card({"x": '{"from": 1, "to": 2}'})
    entries = reload(tab, store)
    assert entries == []
    assert not tab.displayable
    assert tab.stack.currentWidget() is tab.lbl_empty
    assert len(tab.timeline.dataset) == 0


def test_cards_projected_onto_timeline(tab, store, board):
    date_prop, group_prop = board
    a = store.create_card({date_prop.id: '{"from": 100, "to": 200}'}, title="A")
    store.create_card({}, title="без даты")
    entries = reload(tab, store)
    assert [e.id for e in entries] == [a.id]
    assert tab.stack.currentWidget() is tab.timeline.widget
    assert tab.timeline.dataset.get(a.id)["group"] == UNASSIGNED_GROUP
    assert [g.id for g in tab.timeline.widget.scene().groups] == [UNASSIGNED_GROUP]


def test_projection_memoized_by_identity(tab, store, board):
    date_prop, _ = board
    store.create_card({date_prop.id: '{"from": 1, "to": 2}'})
    schema, cards = store.list_properties(), store.list_cards()
    first = tab.set_board(schema, cards)
    assert tab.set_board(schema, cards) is first
    assert tab.set_board(schema, list(cards)) is not first


def test_move_updates_store(tab, store, board):
    date_prop, group_prop = board
    b = store.create_card({date_prop.id: '{"from": 100, "to": 200}'}, title="B")
    reload(tab, store)
    item = dict(tab.timeline.dataset.get(b.id), start=to_datetime(500), end=to_datetime(900), group="Team1")
    tab.timeline.widget.options["on_move"](item)
    saved = store.get_card(b.id)
    assert json.loads(saved.properties[date_prop.id]) == {"from": 500, "to": 900}
    assert saved.properties[group_prop.id] == "Team1"
    reload(tab, store)
    assert tab.timeline.dataset.get(b.id)["group"] == "Team1"
    assert [g.id for g in tab.timeline.widget.scene().groups] == ["Team1", UNASSIGNED_GROUP]


def test_move_back_to_unassigned_clears_group(tab, store, board):
    date_prop, group_prop = board
    b = store.create_card({date_prop.id: '{"from": 100, "to": 200}', group_prop.id: "Team1"})
    reload(tab, store)
    item = dict(tab.timeline.dataset.get(b.id), group=UNASSIGNED_GROUP)
    tab.timeline.widget.options["on_move"](item)
    assert group_prop.id not in store.get_card(b.id).properties


def test_remove_and_stale_remove(tab, store, board):
    date_prop, _ = board
    a = store.create_card({date_prop.id: '{"from": 1, "to": 2}'})
    reload(tab, store)
    events = []
    store.subscribe(events.append)
    tab.timeline.widget.options["on_remove"]({"id": "ghost"})
    assert events == []
    tab.timeline.widget.options["on_remove"]({"id": a.id})
    assert store.get_card(a.id) is None
    reload(tab, store)
    assert len(tab.timeline.dataset) == 0


def test_add_creates_card_and_requests_opening(tab, store, board):
    date_prop, group_prop = board
    reload(tab, store)
    opened = []
    tab.card_activated.connect(lambda event, card: opened.append(card))
    rejected = []
    item = {"id": "tmp", "start": to_datetime(1000), "end": to_datetime(2000), "group": "Team1"}
    tab.timeline.widget.options["on_add"](item, rejected.append)
    assert rejected == [None]
    cards = store.list_cards()
    assert len(cards) == 1
    assert json.loads(cards[0].properties[date_prop.id]) == {"from": 1000, "to": 2000}
    assert cards[0].properties[group_prop.id] == "Team1"
    assert [c.id for c in opened] == [cards[0].id]
    assert "tmp" not in tab.timeline.dataset


def test_add_card_without_group_property(tab, store):
    date_prop = store.add_property("Период", "date")
    reload(tab, store)
    tab.on_card_add(DateRange(1, 2), "Team1")
    assert store.list_cards()[0].properties == {date_prop.id: '{"from":1,"to":2}'}


def test_double_click_activates_card(tab, store, board):
    date_prop, _ = board
    a = store.create_card({date_prop.id: '{"from": 1, "to": 2}'}, title="A")
    reload(tab, store)
    opened = []
    tab.card_activated.connect(lambda event, card: opened.append((event, card.id)))
    tab.timeline.widget._emit("double_click", {"what": "item", "item": a.id, "event": "ev"})
    assert opened == [("ev", a.id)]


def test_default_span_from_config(tab):
    assert tab.default_span_ms == 2 * 60 * 60 * 1000
    assert tab.timeline.widget.default_span_ms == tab.default_span_ms


def test_shutdown_is_idempotent(store):
    t = TimelineTab(store)
    t.shutdown()
    t.shutdown()
