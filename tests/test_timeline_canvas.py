import pytest

from dataset import DataSet
from projection import to_datetime, to_millis
from sync import Group, UNASSIGNED_GROUP
from ui.timeline_canvas import DAY_MS, HEADER_HEIGHT, LANE_HEIGHT, TimelineCanvas

pytestmark = pytest.mark.usefixtures("qapp")

BASE = 20_000 * DAY_MS


def _item(item_id, day, group=UNASSIGNED_GROUP, days=1):
    return {"id": item_id, "content": item_id, "start": to_datetime(BASE + day * DAY_MS), "end": to_datetime(BASE + (day + days) * DAY_MS), "group": group}


@pytest.fixture
def calls():
    return {"move": [], "remove": [], "add": []}


@pytest.fixture
def canvas_factory(calls):
    made = []

    def make(dataset, **options):
        opts = {
            "editable": True,
            "show_week_scale": True,
            "on_move": calls["move"].append,
            "on_remove": calls["remove"].append,
            "on_add": lambda item, cb: (calls["add"].append(item), cb(None)),
        }
        opts.update(options)
        canvas = TimelineCanvas(dataset, opts)
        made.append(canvas)
        return canvas

    yield make
    for c in made:
        c.destroy()


def test_blocks_follow_dataset(canvas_factory):
    ds = DataSet([_item("a", 0), _item("b", 2)])
    canvas = canvas_factory(ds)
    assert set(canvas.blocks) == {"a", "b"}
    ds.update(_item("a", 5))
    assert canvas.blocks["a"].start_ms == BASE + 5 * DAY_MS
    ds.remove("b")
    assert set(canvas.blocks) == {"a"}
    ds.add(_item("c", 1))
    assert set(canvas.blocks) == {"a", "c"}


def test_origin_moves_left_for_earlier_items(canvas_factory):
    ds = DataSet([_item("a", 10)])
    canvas = canvas_factory(ds)
    x_before = canvas.blocks["a"].rect().x()
    ds.add(_item("early", 0))
    assert canvas.blocks["a"].rect().x() > x_before
    assert canvas.blocks["early"].rect().x() < canvas.blocks["a"].rect().x()


def test_groups_define_lanes(canvas_factory):
    ds = DataSet([_item("a", 0, "Team1"), _item("b", 0)])
    canvas = canvas_factory(ds)
    canvas.set_groups([Group("Team1", "Team1"), Group(UNASSIGNED_GROUP, "Без группы")])
    assert canvas.blocks["a"].rect().y() == HEADER_HEIGHT + 6
    assert canvas.blocks["b"].rect().y() == HEADER_HEIGHT + LANE_HEIGHT + 6
    scene = canvas.scene()
    assert scene.group_at(HEADER_HEIGHT + LANE_HEIGHT + 1) == UNASSIGNED_GROUP
    assert scene.group_at(-100) == "Team1"
    assert scene.group_at(10_000) == UNASSIGNED_GROUP


def test_label_uses_template(canvas_factory):
    ds = DataSet([_item("a", 0)])
    canvas = canvas_factory(ds, template=lambda item: f"<span>метка {item['id']}</span>")
    assert "метка a" in canvas.blocks["a"]._label.toPlainText()


def test_moved_block_reports_new_position(canvas_factory, calls):
    ds = DataSet([_item("a", 0, "Team1")])
    canvas = canvas_factory(ds)
    canvas.set_groups([Group("Team1", "Team1"), Group(UNASSIGNED_GROUP, "Без группы")])
    block = canvas.blocks["a"]
    block.start_ms += DAY_MS
    block.end_ms += DAY_MS
    block.group = UNASSIGNED_GROUP
    canvas.scene().item_moved(block)
    assert len(calls["move"]) == 1
    moved = calls["move"][0]
    assert to_millis(moved["start"]) == BASE + DAY_MS
    assert moved["group"] == UNASSIGNED_GROUP
    # Набор не изменён виджетом
    assert ds.get("a")["group"] == "Team1"


def test_propose_item_rejected_and_accepted(canvas_factory, calls):
    ds = DataSet()
    canvas = canvas_factory(ds)
    canvas.propose_item(BASE + 90 * 60 * 1000, "Team1")
    assert len(calls["add"]) == 1
    proposed = calls["add"][0]
    assert to_millis(proposed["start"]) == BASE + 60 * 60 * 1000
    assert to_millis(proposed["end"]) - to_millis(proposed["start"]) == DAY_MS
    assert proposed["group"] == "Team1"
    assert len(ds) == 0

    accepting = canvas_factory(DataSet(), on_add=None)
    accepting.propose_item(BASE)
    assert len(accepting.dataset) == 1


def test_propose_item_ignored_when_not_editable(canvas_factory, calls):
    canvas = canvas_factory(DataSet(), editable=False)
    canvas.propose_item(BASE)
    assert calls["add"] == []


def test_double_click_listeners(canvas_factory):
    canvas = canvas_factory(DataSet())
    got = []
    canvas.on("double_click", got.append)
    canvas._emit("double_click", {"what": "background", "item": None, "event": None})
    assert got == [{"what": "background", "item": None, "event": None}]


def test_destroy_detaches_from_dataset(canvas_factory):
    ds = DataSet([_item("a", 0)])
    canvas = canvas_factory(ds)
    canvas.destroy()
    canvas.destroy()
    ds.add(_item("b", 1))
    assert canvas.blocks == {}


def test_render_to_image(canvas_factory):
    canvas = canvas_factory(DataSet([_item("a", 0)]))
    img = canvas.render_to_image(400)
    assert not img.isNull()
    assert abs(img.width() - 400) <= 1
