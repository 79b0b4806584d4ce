"""
Модуль `timeline_tab` реализует вкладку «Таймлайн»: карточки доски,
у которых заполнено свойство с датой, показываются на графическом
таймлайне, а перенос, удаление и создание элементов превращаются в
изменения карточек в хранилище.

Основные принципы:

1. **Схема решает всё.** Период карточки берётся из первого свойства с типом
   `date`, группа — из свойства с именем `group` (если оно есть).  Нет
   свойства даты — вместо таймлайна показывается заглушка.
2. **Проекция кэшируется.** Записи таймлайна пересчитываются только когда
   меняется список карточек или схема (сравнение по идентичности объектов).
3. **Хранилище — источник истины.** Обработчики лишь отправляют изменения в
   хранилище; таймлайн обновится, когда главное окно передаст новый список
   карточек через `set_board`.

Код разбит на пронумерованные секции и снабжён краткими комментариями.
"""

from __future__ import annotations

# 1. Импорт
from typing import Any, Callable, Dict, List, Optional

from PySide6 import QtWidgets, QtCore

from db import BoardStore, Card, PropertyTemplate
from projection import (
    DateRange,
    TimelineEntry,
    apply_entry,
    get_date_property,
    get_group_property,
    new_card_properties,
    project_cards,
)
from sync import TimelineSync
from .timeline_canvas import TimelineCanvas, DAY_MS, HOUR_MS

NO_DATE_PROPERTY_TEXT = "Не найдено свойство с датой"


# 2. Вкладка таймлайна
class TimelineTab(QtWidgets.QWidget):
    """Таймлайн карточек доски с заглушкой на случай отсутствия свойства даты."""

    # (событие мыши или None, карточка) — карточку нужно открыть
    card_activated = QtCore.Signal(object, object)

    def __init__(self, store: BoardStore, config: Optional[Dict[str, Any]] = None, log_fn: Optional[Callable[..., None]] = None, parent: Optional[QtWidgets.QWidget] = None) -> None:
        super().__init__(parent)
        self.store = store
        self._log_fn = log_fn
        cfg = dict((config or {}).get("timeline", {}))
        self.default_span_ms = int(float(cfg.get("default_span_hours", 24)) * HOUR_MS) or DAY_MS
        self.schema: List[PropertyTemplate] = []
        self.cards: List[Card] = []
        self.date_property: Optional[PropertyTemplate] = None
        self.group_property: Optional[PropertyTemplate] = None
        self._memo_key: Optional[tuple] = None
        self._memo_entries: List[TimelineEntry] = []

        # 2.1 Виджеты: заглушка и таймлайн
        self.lbl_empty = QtWidgets.QLabel(NO_DATE_PROPERTY_TEXT)
        self.lbl_empty.setAlignment(QtCore.Qt.AlignCenter)
        self.timeline = TimelineSync(
            self._create_canvas,
            on_card_move=self.on_card_move,
            on_card_remove=self.on_card_remove,
            on_card_add=self.on_card_add,
            on_card_clicked=self._on_card_clicked,
            editable=bool(cfg.get("editable", True)),
            show_week_scale=bool(cfg.get("show_week_scale", True)),
        )
        self.stack = QtWidgets.QStackedWidget()
        self.stack.addWidget(self.lbl_empty)
        self.stack.addWidget(self.timeline.widget)
        layout = QtWidgets.QVBoxLayout(self)
        layout.setContentsMargins(0, 0, 0, 0)
        layout.addWidget(self.stack)

    def _create_canvas(self, dataset, options) -> TimelineCanvas:
        return TimelineCanvas(dataset, options, self, default_span_ms=self.default_span_ms)

    def _log(self, msg: str, level: str = "info") -> None:
        if self._log_fn:
            self._log_fn(msg, level)

    # 2.2 Данные доски
    def set_board(self, schema: List[PropertyTemplate], cards: List[Card]) -> List[TimelineEntry]:
        """Принимает актуальные схему и карточки, обновляет таймлайн.  Возвращает записи."""
        self.schema = schema
        self.cards = cards
        self.date_property = get_date_property(schema)
        self.group_property = get_group_property(schema)
        entries = self.entries()
        if self.date_property is None:
            self.stack.setCurrentWidget(self.lbl_empty)
        else:
            self.stack.setCurrentWidget(self.timeline.widget)
        self.timeline.sync(entries)
        return entries

    def entries(self) -> List[TimelineEntry]:
        """Записи таймлайна для текущих схемы и карточек (с кэшем по идентичности)."""
        if self._memo_key is not None and self._memo_key[0] is self.schema and self._memo_key[1] is self.cards:
            return self._memo_entries
        if self.date_property is None:
            entries: List[TimelineEntry] = []
        else:
            entries = project_cards(self.cards, self.date_property, self.group_property)
        self._memo_key = (self.schema, self.cards)
        self._memo_entries = entries
        return entries

    @property
    def displayable(self) -> bool:
        return self.date_property is not None

    # 2.3 Изменения карточек
    def on_card_move(self, entry: TimelineEntry) -> None:
        if self.date_property is None:
            return
        new_card = apply_entry(entry.card, entry, self.date_property, self.group_property)
        try:
            self.store.update_card(new_card, entry.card, "update")
        except Exception as ex:
            self._log(f"Ошибка переноса карточки '{entry.card.title}': {ex}", "error")

    def on_card_remove(self, entry: TimelineEntry) -> None:
        try:
            self.store.delete_card(entry.card)
            self._log(f"Карточка '{entry.card.title}' удалена.")
        except Exception as ex:
            self._log(f"Ошибка удаления карточки '{entry.card.title}': {ex}", "error")

    def on_card_add(self, date: DateRange, group: Optional[str] = None) -> None:
        if self.date_property is None:
            return
        properties = new_card_properties(date, group, self.date_property, self.group_property)
        self.add_card(properties, show=True)

    def add_card(self, properties: Dict[str, str], show: bool = False) -> Optional[Card]:
        """Создаёт карточку; при ``show`` сразу просит открыть её."""
        try:
            card = self.store.create_card(properties)
        except Exception as ex:
            self._log(f"Ошибка создания карточки: {ex}", "error")
            return None
        self._log("Создана карточка на таймлайне.")
        if show:
            self.card_activated.emit(None, card)
        return card

    def _on_card_clicked(self, event: Any, card: Card) -> None:
        self.card_activated.emit(event, card)

    # 2.4 Экспорт и завершение
    def export_image(self, path: str, width_px: int = 1400) -> None:
        """Сохраняет изображение таймлайна в указанном файле."""
        img = self.timeline.widget.render_to_image(width_px)
        if not img.save(path):
            raise IOError(f"Не удалось сохранить изображение: {path}")
        self._log(f"Изображение таймлайна сохранено в {path}.")

    def shutdown(self) -> None:
        """Освобождает виджет таймлайна (повторный вызов безопасен)."""
        self.timeline.close()
