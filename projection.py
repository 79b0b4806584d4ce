"""
Назначение:
    Проекция карточек доски на таймлайн (без Qt, без состояния).

Как работает:
    - По схеме доски находит свойство с датой (первое с типом ``date``) и
      необязательное свойство группировки (первое с именем ``group``).
    - Значение свойства даты — JSON вида ``{"from": <мс>, "to": <мс>}``.
      Карточка без значения или с неполным/битым диапазоном на таймлайн не
      попадает (это не ошибка, а обычный фильтр).
    - Обратное преобразование: из изменённой записи таймлайна собирается
      копия карточки с новым диапазоном и группой.

Стиль:
    - Нумерованные секции и краткие комментарии.
"""

# 1. Импорт
from __future__ import annotations

import dataclasses
import datetime
import json
import math
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, List, Optional

from db import Card, PropertyTemplate

# 2. Константы
DATE_TYPE = "date"
GROUP_NAME = "group"
EPOCH = datetime.datetime(1970, 1, 1, tzinfo=datetime.timezone.utc)
# Границы, которые ещё переводятся в datetime (годы 1..9999)
MIN_MS = (datetime.datetime.min.replace(tzinfo=datetime.timezone.utc) - EPOCH) // datetime.timedelta(milliseconds=1)
MAX_MS = (datetime.datetime.max.replace(tzinfo=datetime.timezone.utc) - EPOCH) // datetime.timedelta(milliseconds=1)


# 3. Перевод времени (эпоха в миллисекундах <-> datetime UTC)
def to_datetime(ms: int | float | datetime.datetime) -> datetime.datetime:
    """Миллисекунды от эпохи -> ``datetime`` (UTC). ``datetime`` возвращается как есть."""
    if isinstance(ms, datetime.datetime):
        return ms
    return EPOCH + datetime.timedelta(milliseconds=ms)


def to_millis(value: int | float | datetime.datetime) -> int:
    """``datetime`` -> целые миллисекунды от эпохи (без потерь на float)."""
    if isinstance(value, datetime.datetime):
        if value.tzinfo is None:
            value = value.replace(tzinfo=datetime.timezone.utc)
        return (value - EPOCH) // datetime.timedelta(milliseconds=1)
    return int(value)


# 4. Структуры данных
@dataclass(frozen=True)
class DateRange:
    """Диапазон дат карточки. Обе границы обязательны."""
    start: int
    end: int
    include_time: Optional[bool] = None
    time_zone: Optional[str] = None


@dataclass(frozen=True)
class TimelineEntry:
    """Запись таймлайна, полученная из карточки. ``id`` совпадает с ``card.id``."""
    id: str
    content: str
    date: DateRange
    group: Optional[str]
    card: Card

    @property
    def start(self) -> datetime.datetime:
        return to_datetime(self.date.start)

    @property
    def end(self) -> datetime.datetime:
        return to_datetime(self.date.end)

    def moved(self, date: DateRange, group: Optional[str]) -> "TimelineEntry":
        """Копия записи с новым диапазоном и группой (карточка остаётся исходной)."""
        return dataclasses.replace(self, date=date, group=group or None)


# 5. Поиск свойств в схеме
def find_property(schema: Iterable[PropertyTemplate], predicate: Callable[[PropertyTemplate], bool]) -> Optional[PropertyTemplate]:
    for prop in schema:
        if predicate(prop):
            return prop
    return None


def get_date_property(schema: Iterable[PropertyTemplate]) -> Optional[PropertyTemplate]:
    """Свойство, задающее период карточки (первое с типом ``date``)."""
    return find_property(schema, lambda prop: prop.type == DATE_TYPE)


def get_group_property(schema: Iterable[PropertyTemplate]) -> Optional[PropertyTemplate]:
    """Свойство группировки (первое с именем ровно ``group``)."""
    return find_property(schema, lambda prop: prop.name == GROUP_NAME)


# 6. Кодирование диапазона дат
def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _is_timestamp(value: Any) -> bool:
    # NaN, бесконечность и значения вне диапазона datetime не годятся
    return _is_number(value) and math.isfinite(value) and MIN_MS <= value <= MAX_MS


def decode_date_range(raw: Optional[str]) -> Optional[DateRange]:
    """Разбирает JSON диапазона. Для пустого, битого или неполного значения — ``None``."""
    if not raw:
        return None
    try:
        data = json.loads(raw)
    except (TypeError, ValueError):
        return None
    if not isinstance(data, dict):
        return None
    start, end = data.get("from"), data.get("to")
    if not _is_timestamp(start) or not _is_timestamp(end):
        return None
    include_time = data.get("includeTime")
    time_zone = data.get("timeZone")
    return DateRange(
        start=int(start),
        end=int(end),
        include_time=include_time if isinstance(include_time, bool) else None,
        time_zone=time_zone if isinstance(time_zone, str) else None,
    )


def encode_date_range(date: DateRange) -> str:
    payload: Dict[str, Any] = {"from": date.start, "to": date.end}
    if date.include_time is not None:
        payload["includeTime"] = date.include_time
    if date.time_zone is not None:
        payload["timeZone"] = date.time_zone
    return json.dumps(payload, separators=(",", ":"))


# 7. Прямое преобразование: карточка -> запись таймлайна
EntryFactory = Callable[[Card], Optional[TimelineEntry]]


def make_entry_factory(date_prop: PropertyTemplate, group_prop: Optional[PropertyTemplate] = None) -> EntryFactory:
    def create_entry(card: Card) -> Optional[TimelineEntry]:
        value = card.properties.get(date_prop.id)
        if not value:
            return None
        date = decode_date_range(value)
        if date is None:
            return None
        group = card.properties.get(group_prop.id) if group_prop else None
        return TimelineEntry(id=card.id, content=card.title, date=date, group=group or None, card=card)
    return create_entry


def project_cards(cards: Iterable[Card], date_prop: PropertyTemplate, group_prop: Optional[PropertyTemplate] = None) -> List[TimelineEntry]:
    """Отображаемые записи в исходном порядке карточек."""
    create_entry = make_entry_factory(date_prop, group_prop)
    entries: List[TimelineEntry] = []
    for card in cards:
        entry = create_entry(card)
        if entry is not None:
            entries.append(entry)
    return entries


# 8. Обратное преобразование: запись таймлайна -> патч карточки
def apply_entry(card: Card, entry: TimelineEntry, date_prop: PropertyTemplate, group_prop: Optional[PropertyTemplate] = None) -> Card:
    """Копия ``card`` с диапазоном и группой из ``entry``.

    Пустая группа удаляет значение свойства целиком: «нет группы» и группа
    с пустым названием — разные вещи.
    """
    properties = dict(card.properties)
    properties[date_prop.id] = encode_date_range(entry.date)
    if group_prop:
        if entry.group:
            properties[group_prop.id] = entry.group
        else:
            properties.pop(group_prop.id, None)
    return dataclasses.replace(card, properties=properties)


def new_card_properties(date: DateRange, group: Optional[str], date_prop: PropertyTemplate, group_prop: Optional[PropertyTemplate] = None) -> Dict[str, str]:
    """Начальные свойства карточки, созданной на таймлайне."""
    properties = {date_prop.id: encode_date_range(date)}
    if group_prop and group:
        properties[group_prop.id] = group
    return properties
