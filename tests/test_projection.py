import datetime
import json

from db import PropertyTemplate
from projection import (
    MAX_MS,
    DateRange,
    apply_entry,
    decode_date_range,
    encode_date_range,
    find_property,
    get_date_property,
    get_group_property,
    make_entry_factory,
    new_card_properties,
    project_cards,
    to_datetime,
    to_millis,
)
from tests.conftest import DATE_PROP, GROUP_PROP, TEXT_PROP, make_card


def test_date_property_is_first_date_typed(schema):
    """Берётся первое свойство с типом date."""
    second = PropertyTemplate("p_date2", "Другая дата", "date")
    assert get_date_property(schema + [second]) is DATE_PROP
    assert get_date_property([TEXT_PROP]) is None


def test_group_property_matches_name_exactly(schema):
    """Имя group сравнивается с учётом регистра."""
    assert get_group_property(schema) is GROUP_PROP
    assert get_group_property([PropertyTemplate("x", "Group", "text")]) is None
    assert find_property([], lambda p: True) is None


def test_decode_complete_range():
    date = decode_date_range('{"from": 100, "to": 200}')
    assert date == DateRange(100, 200)


def test_decode_keeps_extra_fields():
    date = decode_date_range('{"from": 1, "to": 2, "includeTime": true, "timeZone": "Europe/Moscow"}')
    assert date.include_time is True
    assert date.time_zone == "Europe/Moscow"
    assert json.loads(encode_date_range(date)) == {"from": 1, "to": 2, "includeTime": True, "timeZone": "Europe/Moscow"}


def test_decode_rejects_incomplete_or_malformed():
    """Неполный или битый диапазон не вызывает исключений — только None."""
    for raw in (None, "", '{"from": 100}', '{"to": 200}', "not json", "[1, 2]", '{"from": "1", "to": 2}', '{"from": true, "to": 2}', "null"):
        assert decode_date_range(raw) is None, raw


def test_decode_rejects_non_finite_and_out_of_range():
    """NaN, бесконечность и метки вне диапазона datetime дают None без исключения."""
    for raw in (
        '{"from": NaN, "to": 1}',
        '{"from": 1, "to": Infinity}',
        '{"from": -Infinity, "to": 1}',
        '{"from": 1e18, "to": 2e18}',
        json.dumps({"from": 0, "to": MAX_MS + 1}),
    ):
        assert decode_date_range(raw) is None, raw
    edge = decode_date_range(json.dumps({"from": 0, "to": MAX_MS}))
    assert edge is not None
    assert to_datetime(edge.end).year == 9999


def test_projection_skips_out_of_range_dates():
    """Карточка с неразбираемой меткой исключается, остальные проецируются."""
    cards = [make_card("huge", '{"from": 1e18, "to": 2e18}'), make_card("ok", '{"from": 100, "to": 200}')]
    entries = project_cards(cards, DATE_PROP, GROUP_PROP)
    assert [e.id for e in entries] == ["ok"]


def test_encode_is_compact():
    assert encode_date_range(DateRange(500, 900)) == '{"from":500,"to":900}'


def test_projection_completeness():
    """Запись создаётся только для карточек с полным диапазоном."""
    cards = [
        make_card("a", '{"from": 100, "to": 200}'),
        make_card("b"),
        make_card("c", '{"from": 100}'),
        make_card("d", "{broken"),
        make_card("e", '{"from": 300, "to": 400}', group="Team1"),
    ]
    entries = project_cards(cards, DATE_PROP, GROUP_PROP)
    assert [e.id for e in entries] == ["a", "e"]
    assert entries[0].group is None
    assert entries[1].group == "Team1"
    assert entries[1].card is cards[4]


def test_group_ignored_without_group_property():
    create = make_entry_factory(DATE_PROP)
    entry = create(make_card("a", '{"from": 100, "to": 200}', group="Team1"))
    assert entry.group is None
    assert entry.start == to_datetime(100)
    assert entry.end == to_datetime(200)


def test_apply_entry_sets_date_and_group():
    card = make_card("b", '{"from": 100, "to": 200}')
    card.properties[TEXT_PROP.id] = "заметка"
    entry = project_cards([card], DATE_PROP, GROUP_PROP)[0]
    patched = apply_entry(card, entry.moved(DateRange(500, 900), "Team1"), DATE_PROP, GROUP_PROP)
    assert json.loads(patched.properties[DATE_PROP.id]) == {"from": 500, "to": 900}
    assert patched.properties[GROUP_PROP.id] == "Team1"
    assert patched.properties[TEXT_PROP.id] == "заметка"
    # Исходная карточка не меняется
    assert GROUP_PROP.id not in card.properties
    assert json.loads(card.properties[DATE_PROP.id]) == {"from": 100, "to": 200}


def test_apply_entry_removes_cleared_group():
    """Пустая группа удаляет значение свойства, а не пишет пустую строку."""
    card = make_card("b", '{"from": 100, "to": 200}', group="Team1")
    entry = project_cards([card], DATE_PROP, GROUP_PROP)[0]
    patched = apply_entry(card, entry.moved(entry.date, None), DATE_PROP, GROUP_PROP)
    assert GROUP_PROP.id not in patched.properties
    assert card.properties[GROUP_PROP.id] == "Team1"


def test_round_trip_is_stable():
    card = make_card("r", '{"from": 100, "to": 200}', group="A")
    entry = project_cards([card], DATE_PROP, GROUP_PROP)[0]
    moved = entry.moved(DateRange(1000, 5000), "B")
    again = project_cards([apply_entry(card, moved, DATE_PROP, GROUP_PROP)], DATE_PROP, GROUP_PROP)[0]
    assert again.date == moved.date
    assert again.group == moved.group


def test_new_card_properties():
    props = new_card_properties(DateRange(1, 2), "Team1", DATE_PROP, GROUP_PROP)
    assert props == {DATE_PROP.id: '{"from":1,"to":2}', GROUP_PROP.id: "Team1"}
    assert new_card_properties(DateRange(1, 2), "Team1", DATE_PROP) == {DATE_PROP.id: '{"from":1,"to":2}'}
    assert new_card_properties(DateRange(1, 2), None, DATE_PROP, GROUP_PROP) == {DATE_PROP.id: '{"from":1,"to":2}'}


def test_millis_conversion_is_exact():
    ms = 1_700_000_123_456
    assert to_millis(to_datetime(ms)) == ms
    naive = datetime.datetime(1970, 1, 1, 0, 0, 1)
    assert to_millis(naive) == 1000
