"""
Назначение:
    Синхронизация записей таймлайна с набором элементов виджета и перевод
    событий виджета (перенос, удаление, создание, двойной клик) в действия
    над карточками.

Как работает:
    - ``TimelineSync`` владеет набором ``DataSet`` и экземпляром виджета.
      Виджет создаётся один раз в конструкторе и уничтожается в ``close()``
      (или при выходе из ``with``), слушатель двойного клика регистрируется
      один раз за жизнь экземпляра.
    - ``sync(entries)`` удаляет из набора лишние ``id``, вставляет/заменяет
      актуальные и пересчитывает список групп. Набор никогда не
      пересобирается целиком, поэтому прокрутка и масштаб виджета
      сохраняются.
    - Обработчики событий не меняют набор: они вызывают колбэки, а новое
      состояние приходит позже через очередной ``sync``.

Стиль:
    - Нумерованные секции и краткие комментарии.
"""

# 1. Импорт
from __future__ import annotations

import html
import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, List, Optional

from dataset import DataSet
from db import Card
from projection import DateRange, TimelineEntry, to_datetime, to_millis

logger = logging.getLogger(__name__)

# 2. Константы
UNASSIGNED_GROUP = "___unassigned"
UNASSIGNED_LABEL = "Без группы"
UNNAMED_LABEL = "Без названия"


# 3. Группы и элементы
@dataclass(frozen=True)
class Group:
    id: str
    content: str


def resolve_group(group: Optional[str]) -> Optional[str]:
    """Группа элемента виджета -> группа карточки (служебная группа = без группы)."""
    if not group or group == UNASSIGNED_GROUP:
        return None
    return group


def create_item(entry: TimelineEntry) -> Dict[str, Any]:
    """Полный элемент набора для записи таймлайна."""
    return {
        "id": entry.id,
        "content": entry.content,
        "start": to_datetime(entry.date.start),
        "end": to_datetime(entry.date.end),
        "group": entry.group or UNASSIGNED_GROUP,
        "date": entry.date,
        "card": entry.card,
    }


def derive_groups(dataset: DataSet) -> List[Group]:
    """Группы в порядке появления в наборе; «Без группы» — всегда последняя."""
    names: Dict[str, None] = {}
    for item in dataset.get():
        group = item.get("group")
        if not group or group == UNASSIGNED_GROUP:
            continue
        names.setdefault(group, None)
    groups = [Group(name, name) for name in names]
    groups.append(Group(UNASSIGNED_GROUP, UNASSIGNED_LABEL))
    return groups


# 4. Подпись элемента
def render_item_label(item: Optional[Dict[str, Any]]) -> str:
    """HTML-подпись: иконка и название карточки, иначе ``content``, иначе заглушка."""
    if not item:
        return f"<span>{UNNAMED_LABEL}</span>"
    card = item.get("card")
    if card is None:
        return f"<span>{html.escape(str(item.get('content') or ''))}</span>"
    text = " ".join(part for part in (card.icon, card.title) if part) or UNNAMED_LABEL
    return f"<span>{html.escape(text)}</span>"


# 5. Синхронизатор
class TimelineSync:
    """Связывает записи таймлайна, набор элементов и виджет."""

    def __init__(
        self,
        widget_factory: Callable[[DataSet, Dict[str, Any]], Any],
        on_card_move: Optional[Callable[[TimelineEntry], None]] = None,
        on_card_remove: Optional[Callable[[TimelineEntry], None]] = None,
        on_card_add: Optional[Callable[[DateRange, Optional[str]], None]] = None,
        on_card_clicked: Optional[Callable[[Any, Card], None]] = None,
        editable: bool = True,
        show_week_scale: bool = True,
    ) -> None:
        self.on_card_move = on_card_move
        self.on_card_remove = on_card_remove
        self.on_card_add = on_card_add
        self.on_card_clicked = on_card_clicked
        self.dataset = DataSet()
        self._entries: Dict[str, TimelineEntry] = {}
        self._closed = False
        options = {
            "editable": editable,
            "show_week_scale": show_week_scale,
            "template": render_item_label,
            "on_move": self._on_move,
            "on_remove": self._on_remove,
            "on_add": self._on_add,
        }
        self.widget = widget_factory(self.dataset, options)
        # Дополнительные слушатели — один раз за жизнь виджета
        self.widget.on("double_click", self._on_double_click)

    # 5.1 Жизненный цикл
    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self.widget.destroy()

    def __enter__(self) -> "TimelineSync":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    # 5.2 Синхронизация набора
    def sync(self, entries: Iterable[TimelineEntry]) -> List[Group]:
        """Приводит набор к ``entries`` минимальными изменениями и обновляет группы."""
        entries = list(entries)
        next_ids = {entry.id for entry in entries}
        removed = [item_id for item_id in self.dataset.get_ids() if item_id not in next_ids]
        if removed:
            self.dataset.remove(removed)
        self.dataset.update([create_item(entry) for entry in entries])
        self._entries = {entry.id: entry for entry in entries}
        groups = derive_groups(self.dataset)
        self.widget.set_groups(groups)
        return groups

    @property
    def entries(self) -> List[TimelineEntry]:
        return list(self._entries.values())

    def find_entry(self, item_id: Any) -> Optional[TimelineEntry]:
        return self._entries.get(item_id)

    # 5.3 Обработчики событий виджета
    def _on_move(self, item: Dict[str, Any]) -> None:
        entry = self._entries.get(item.get("id"))
        if entry is None:
            logger.debug("Перенос неизвестного элемента %r пропущен", item.get("id"))
            return
        date = DateRange(
            start=to_millis(item["start"]),
            end=to_millis(item["end"]),
            include_time=entry.date.include_time,
            time_zone=entry.date.time_zone,
        )
        moved = entry.moved(date, resolve_group(item.get("group")))
        logger.debug("Перенос %s: %s -> %s, группа %r", entry.id, entry.date, moved.date, moved.group)
        if self.on_card_move:
            self.on_card_move(moved)

    def _on_remove(self, item: Dict[str, Any]) -> None:
        entry = self._entries.get(item.get("id"))
        if entry is None:
            return
        if self.on_card_remove:
            self.on_card_remove(entry)

    def _on_add(self, item: Dict[str, Any], callback: Callable[[Optional[Dict[str, Any]]], None]) -> None:
        date = DateRange(start=to_millis(item["start"]), end=to_millis(item["end"]))
        group = resolve_group(item.get("group"))
        try:
            if self.on_card_add:
                self.on_card_add(date, group)
        finally:
            # Виджет сам элемент не вставляет: он придёт через sync после создания карточки
            callback(None)

    def _on_double_click(self, props: Dict[str, Any]) -> None:
        if props.get("what") != "item":
            return
        entry = self._entries.get(props.get("item"))
        if entry is None:
            return
        if self.on_card_clicked:
            self.on_card_clicked(props.get("event"), entry.card)
