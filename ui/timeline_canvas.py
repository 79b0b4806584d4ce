"""
Модуль ``timeline_canvas`` реализует графический таймлайн карточек на базе
``QGraphicsView``.  Время идёт по горизонтали (ось дней и, при желании,
недель), группы — горизонтальные дорожки.  Виджет ничего не знает о
карточках: он отображает элементы из ``DataSet`` и сообщает о действиях
пользователя через колбэки из ``options``.

Основные компоненты:

* ``ItemBlock`` — графический элемент, наследующий ``QGraphicsRectItem``.
  Перетаскивается по времени и между дорожками, правая граница тянется для
  изменения окончания.
* ``TimelineScene`` — сцена: рисует шкалу дат, недели и подписи дорожек,
  переводит время в координаты и обратно.
* ``TimelineCanvas`` — виджет.  Создаётся с набором элементов и опциями
  ``editable``, ``show_week_scale``, ``template``, ``on_move``,
  ``on_remove``, ``on_add``; предоставляет ``set_groups``, ``on`` (событие
  ``double_click``), ``destroy`` и ``render_to_image``.

Набор элементов — источник истины: после переноса блок остаётся там, куда
его бросили, пока набор не пришлёт обновление.

Код разделён на пронумерованные секции и снабжён краткими комментариями.
"""

from __future__ import annotations

import datetime
import logging
import uuid
from typing import Any, Callable, Dict, List, Optional

from PySide6 import QtWidgets, QtCore, QtGui

from dataset import DataSet
from projection import to_datetime, to_millis

logger = logging.getLogger(__name__)

# Высота шапки со шкалой дат (в пикселях).  Верхняя половина — недели.
HEADER_HEIGHT: int = 44

# Отступ слева для подписей дорожек (групп).
LEFT_MARGIN: int = 140

# Высота одной дорожки.
LANE_HEIGHT: int = 48


# 1. Константы для оформления
GRID_BG = QtGui.QColor("#1f232a")
GRID_LINE = QtGui.QColor("#3a3f46")
WEEK_LINE = QtGui.QColor("#5a606a")
HEADER_BG = QtGui.QColor("#2f343d")
TEXT_COLOR = QtGui.QColor("#e9edf5")
ITEM_COLOR = QtGui.QColor("#4f8fd8")
ITEM_SELECTED = QtGui.QColor("#f0b94a")
BORDER_COLOR = QtGui.QColor("#0f1216")

DAY_MS = 24 * 60 * 60 * 1000
HOUR_MS = 60 * 60 * 1000


# 2. Элемент таймлайна
class ItemBlock(QtWidgets.QGraphicsRectItem):
    """Блок элемента.  Поддерживает перетаскивание и растяжение вправо."""

    def __init__(self, scene: "TimelineScene", data: Dict[str, Any]) -> None:
        super().__init__()
        self.setFlags(QtWidgets.QGraphicsItem.ItemIsSelectable | QtWidgets.QGraphicsItem.ItemIsFocusable)
        self.setAcceptHoverEvents(True)
        self._tl_scene = scene
        self._drag_resize = False
        self._dragging = False
        self._drag_origin = QtCore.QPointF()
        self._label = QtWidgets.QGraphicsTextItem(self)
        self._label.setDefaultTextColor(TEXT_COLOR)
        self._label.setZValue(1)
        self.set_data(data)

    # 2.1 Данные элемента
    def set_data(self, data: Dict[str, Any]) -> None:
        self.item_data = dict(data)
        self.start_ms = to_millis(data["start"])
        self.end_ms = to_millis(data["end"]) if data.get("end") is not None else self.start_ms + HOUR_MS
        self.group = data.get("group")
        self._orig_start = self.start_ms
        self._orig_end = self.end_ms
        self._orig_group = self.group
        self.update_rect()

    @property
    def item_id(self) -> Any:
        return self.item_data.get("id")

    def current_item(self) -> Dict[str, Any]:
        """Элемент с текущим (возможно, перетащенным) положением."""
        item = dict(self.item_data)
        item["start"] = to_datetime(self.start_ms)
        item["end"] = to_datetime(self.end_ms)
        item["group"] = self.group
        return item

    def update_rect(self) -> None:
        """Обновляет положение, размер и подпись блока."""
        sc = self._tl_scene
        x1 = sc.x_for(self.start_ms)
        x2 = sc.x_for(self.end_ms)
        w = max(8.0, x2 - x1)
        y = sc.lane_y(sc.lane_index(self.group))
        self.setRect(QtCore.QRectF(x1, y + 6, w, LANE_HEIGHT - 12))
        self._label.setTextWidth(max(20.0, w - 8))
        self._label.setHtml(sc.render_label(self.item_data))
        self._label.setPos(self.rect().x() + 4, self.rect().y() + 2)
        color = ITEM_SELECTED if self.isSelected() else ITEM_COLOR
        self.setBrush(QtGui.QBrush(color))
        self.setPen(QtGui.QPen(BORDER_COLOR, 1))

    def itemChange(self, change, value):
        if change == QtWidgets.QGraphicsItem.ItemSelectedHasChanged:
            self.setBrush(QtGui.QBrush(ITEM_SELECTED if value else ITEM_COLOR))
        return super().itemChange(change, value)

    # 2.2 Наведение мыши — определяем область растяжения
    def hoverMoveEvent(self, ev: QtWidgets.QGraphicsSceneHoverEvent) -> None:
        if self._tl_scene.editable and abs(ev.pos().x() - self.rect().right()) < 6:
            self.setCursor(QtCore.Qt.SizeHorCursor)
            self._drag_resize = True
        else:
            self.setCursor(QtCore.Qt.OpenHandCursor if self._tl_scene.editable else QtCore.Qt.ArrowCursor)
            self._drag_resize = False
        super().hoverMoveEvent(ev)

    # 2.3 Нажатие мыши — запоминаем исходное состояние
    def mousePressEvent(self, ev: QtWidgets.QGraphicsSceneMouseEvent) -> None:
        super().mousePressEvent(ev)
        if not self._tl_scene.editable or ev.button() != QtCore.Qt.LeftButton:
            return
        self._dragging = True
        self._drag_origin = ev.scenePos()
        self._orig_start = self.start_ms
        self._orig_end = self.end_ms
        self._orig_group = self.group
        self.setCursor(QtCore.Qt.ClosedHandCursor)
        ev.accept()

    # 2.4 Перемещение мыши — меняем время и дорожку
    def mouseMoveEvent(self, ev: QtWidgets.QGraphicsSceneMouseEvent) -> None:
        if not self._dragging:
            super().mouseMoveEvent(ev)
            return
        sc = self._tl_scene
        dx = ev.scenePos().x() - self._drag_origin.x()
        dms = sc.snap(dx * sc.ms_per_px)
        if self._drag_resize:
            self.end_ms = max(self._orig_start + sc.snap_ms, self._orig_end + dms)
        else:
            self.start_ms = self._orig_start + dms
            self.end_ms = self._orig_end + dms
            self.group = sc.group_at(ev.scenePos().y(), self._orig_group)
        self.update_rect()

    # 2.5 Отпускание мыши — сообщаем о переносе
    def mouseReleaseEvent(self, ev: QtWidgets.QGraphicsSceneMouseEvent) -> None:
        super().mouseReleaseEvent(ev)
        if not self._dragging:
            return
        self._dragging = False
        self.setCursor(QtCore.Qt.OpenHandCursor)
        changed = (self.start_ms, self.end_ms, self.group) != (self._orig_start, self._orig_end, self._orig_group)
        if changed:
            self._tl_scene.item_moved(self)


# 3. Сцена таймлайна
class TimelineScene(QtWidgets.QGraphicsScene):
    """Сцена: шкала дат, дорожки групп и перевод координат."""

    def __init__(self, options: Dict[str, Any], day_px: float = 96.0) -> None:
        super().__init__()
        self.options = options
        self.day_px = day_px
        self.ms_per_px = DAY_MS / day_px
        self.snap_ms = HOUR_MS
        # Начало оси (в мс).  Задаётся при первой загрузке и сдвигается только влево.
        self.origin_ms: Optional[int] = None
        self.groups: List[Any] = []
        self.blocks: Dict[Any, ItemBlock] = {}
        self.setBackgroundBrush(QtGui.QBrush(GRID_BG))

    @property
    def editable(self) -> bool:
        return bool(self.options.get("editable", False))

    @property
    def show_week_scale(self) -> bool:
        return bool(self.options.get("show_week_scale", False))

    def render_label(self, data: Dict[str, Any]) -> str:
        template = self.options.get("template")
        if template is not None:
            return template(data)
        return f"<span>{data.get('content', '')}</span>"

    # 3.1 Перевод координат
    def x_for(self, ms: int) -> float:
        origin = self.origin_ms if self.origin_ms is not None else ms
        return LEFT_MARGIN + (ms - origin) / self.ms_per_px

    def ms_at(self, x: float) -> int:
        origin = self.origin_ms if self.origin_ms is not None else self._today_ms()
        return origin + int(round((x - LEFT_MARGIN) * self.ms_per_px))

    def snap(self, ms: float) -> int:
        return int(round(ms / self.snap_ms)) * self.snap_ms

    def lane_y(self, index: int) -> float:
        return HEADER_HEIGHT + index * LANE_HEIGHT

    def lane_index(self, group: Any) -> int:
        if not self.groups:
            return 0
        for i, g in enumerate(self.groups):
            if g.id == group:
                return i
        return len(self.groups) - 1

    def group_at(self, y: float, default: Any = None) -> Any:
        """Группа дорожки под координатой Y (с ограничением по краям)."""
        if not self.groups:
            return default
        idx = int((y - HEADER_HEIGHT) // LANE_HEIGHT)
        idx = max(0, min(len(self.groups) - 1, idx))
        return self.groups[idx].id

    @staticmethod
    def _today_ms() -> int:
        today = datetime.datetime.now(datetime.timezone.utc).replace(hour=0, minute=0, second=0, microsecond=0)
        return to_millis(today)

    # 3.2 Ось времени
    def ensure_origin(self, starts: List[int]) -> bool:
        """Сдвигает начало оси, чтобы все элементы были видны.  True — если сдвинули."""
        if not starts:
            if self.origin_ms is None:
                self.origin_ms = self._today_ms() - DAY_MS
                return True
            return False
        wanted = (min(starts) // DAY_MS) * DAY_MS - DAY_MS
        if self.origin_ms is None or wanted < self.origin_ms:
            self.origin_ms = wanted
            return True
        return False

    def fit(self) -> None:
        """Подгоняет размеры сцены под элементы и дорожки."""
        ends = [b.end_ms for b in self.blocks.values()]
        last = max(ends) if ends else (self.origin_ms or 0) + 14 * DAY_MS
        w = self.x_for(last) + 4 * self.day_px
        h = self.lane_y(max(1, len(self.groups))) + 40
        self.setSceneRect(0, 0, max(w, LEFT_MARGIN + 14 * self.day_px), h)

    # 3.3 Рисование сетки
    def drawBackground(self, painter: QtGui.QPainter, rect: QtCore.QRectF) -> None:
        """Рисует шкалу дней/недель, дорожки и их подписи."""
        painter.fillRect(rect, GRID_BG)
        if self.origin_ms is None:
            return
        lanes = max(1, len(self.groups))
        bottom = self.lane_y(lanes)
        half = HEADER_HEIGHT / 2
        # Шапка
        painter.fillRect(QtCore.QRectF(rect.left(), 0, rect.width(), HEADER_HEIGHT), HEADER_BG)
        # Дни (вертикальные линии и даты)
        first_day = self.ms_at(max(LEFT_MARGIN, rect.left())) // DAY_MS
        last_day = self.ms_at(rect.right()) // DAY_MS + 1
        for day in range(first_day, last_day + 1):
            x = self.x_for(day * DAY_MS)
            date = to_datetime(day * DAY_MS).date()
            monday = date.weekday() == 0
            if self.show_week_scale and monday:
                painter.setPen(QtGui.QPen(WEEK_LINE, 2))
                painter.drawLine(QtCore.QLineF(x, 0, x, bottom))
                painter.setPen(QtGui.QPen(TEXT_COLOR))
                week = date.isocalendar()[1]
                painter.drawText(QtCore.QRectF(x + 4, 0, 7 * self.day_px - 8, half), QtCore.Qt.AlignLeft | QtCore.Qt.AlignVCenter, f"Нед. {week}")
            else:
                painter.setPen(QtGui.QPen(GRID_LINE, 1))
                painter.drawLine(QtCore.QLineF(x, half if self.show_week_scale else 0, x, bottom))
            painter.setPen(QtGui.QPen(TEXT_COLOR))
            top = half if self.show_week_scale else 0
            painter.drawText(QtCore.QRectF(x, top, self.day_px, HEADER_HEIGHT - top), QtCore.Qt.AlignCenter, date.strftime("%d.%m"))
        # Дорожки и подписи групп (поверх шкалы, слева)
        painter.fillRect(QtCore.QRectF(0, 0, LEFT_MARGIN, bottom), HEADER_BG)
        painter.setPen(QtGui.QPen(GRID_LINE, 1))
        for i in range(lanes + 1):
            y = self.lane_y(i)
            painter.drawLine(QtCore.QLineF(0, y, rect.right(), y))
        painter.setPen(QtGui.QPen(TEXT_COLOR))
        for i, g in enumerate(self.groups):
            painter.drawText(QtCore.QRectF(6, self.lane_y(i), LEFT_MARGIN - 12, LANE_HEIGHT), QtCore.Qt.AlignLeft | QtCore.Qt.AlignVCenter, str(g.content))

    # 3.4 Работа с блоками
    def add_block(self, data: Dict[str, Any]) -> ItemBlock:
        block = ItemBlock(self, data)
        self.addItem(block)
        self.blocks[block.item_id] = block
        return block

    def remove_block(self, item_id: Any) -> None:
        block = self.blocks.pop(item_id, None)
        if block is not None:
            self.removeItem(block)

    def relayout(self) -> None:
        for block in self.blocks.values():
            block.update_rect()
        self.fit()
        self.update()

    def item_moved(self, block: ItemBlock) -> None:
        on_move = self.options.get("on_move")
        if on_move is not None:
            on_move(block.current_item())

    # 3.5 Поиск блока по сцене
    def block_at(self, pos: QtCore.QPointF) -> Optional[ItemBlock]:
        item = self.itemAt(pos, QtGui.QTransform())
        if isinstance(item, ItemBlock):
            return item
        # Если клик попал на подпись, берём родителя
        if item is not None and isinstance(item.parentItem(), ItemBlock):
            return item.parentItem()
        return None


# 4. Виджет таймлайна
class TimelineCanvas(QtWidgets.QGraphicsView):
    """Обёртка над сценой: наблюдает за набором и сообщает о действиях пользователя."""

    def __init__(self, dataset: DataSet, options: Optional[Dict[str, Any]] = None, parent: Optional[QtWidgets.QWidget] = None, default_span_ms: int = DAY_MS) -> None:
        super().__init__(parent)
        self.setRenderHints(QtGui.QPainter.Antialiasing | QtGui.QPainter.TextAntialiasing)
        self.setHorizontalScrollBarPolicy(QtCore.Qt.ScrollBarAlwaysOn)
        self.setVerticalScrollBarPolicy(QtCore.Qt.ScrollBarAsNeeded)
        self.setAlignment(QtCore.Qt.AlignLeft | QtCore.Qt.AlignTop)
        self.dataset = dataset
        self.options = dict(options or {})
        self.default_span_ms = default_span_ms
        self._listeners: Dict[str, List[Callable[[Dict[str, Any]], None]]] = {}
        self._destroyed = False
        self._scene = TimelineScene(self.options)
        self.setScene(self._scene)
        # Начальная загрузка и подписка на изменения набора
        self._on_dataset("add", dataset.get_ids())
        dataset.on("*", self._on_dataset)

    # 4.1 Контракт виджета
    def on(self, event: str, callback: Callable[[Dict[str, Any]], None]) -> None:
        """Подписка на дополнительные события (``double_click``)."""
        self._listeners.setdefault(event, []).append(callback)

    def _emit(self, event: str, props: Dict[str, Any]) -> None:
        for callback in list(self._listeners.get(event, [])):
            callback(props)

    def set_groups(self, groups: List[Any]) -> None:
        self._scene.groups = list(groups)
        self._scene.relayout()

    def destroy(self) -> None:
        """Отписывается от набора и освобождает сцену.  Повторный вызов безопасен."""
        if self._destroyed:
            return
        self._destroyed = True
        logger.debug("Таймлайн освобождён, элементов: %d", len(self._scene.blocks))
        self.dataset.off("*", self._on_dataset)
        self._listeners.clear()
        self._scene.blocks.clear()
        self._scene.clear()
        self.deleteLater()

    @property
    def blocks(self) -> Dict[Any, ItemBlock]:
        return self._scene.blocks

    # 4.2 Изменения набора
    def _on_dataset(self, event: str, ids: List[Any]) -> None:
        if event == "remove":
            for item_id in ids:
                self._scene.remove_block(item_id)
        else:
            for item_id in ids:
                data = self.dataset.get(item_id)
                if data is None:
                    continue
                block = self._scene.blocks.get(item_id)
                if block is None:
                    self._scene.add_block(data)
                else:
                    block.set_data(data)
        starts = [b.start_ms for b in self._scene.blocks.values()]
        if self._scene.ensure_origin(starts):
            self._scene.relayout()
        else:
            self._scene.fit()

    # 4.3 Клавиатура — удаление выбранных элементов
    def keyPressEvent(self, ev: QtGui.QKeyEvent) -> None:
        if ev.key() in (QtCore.Qt.Key_Delete, QtCore.Qt.Key_Backspace) and self._scene.editable:
            on_remove = self.options.get("on_remove")
            for block in list(self._scene.selectedItems()):
                if isinstance(block, ItemBlock) and on_remove is not None:
                    on_remove(block.current_item())
            ev.accept()
            return
        super().keyPressEvent(ev)

    # 4.4 Двойной клик — открытие элемента или предложение нового
    def mouseDoubleClickEvent(self, ev: QtGui.QMouseEvent) -> None:
        scene_pos = self.mapToScene(ev.position().toPoint())
        block = self._scene.block_at(scene_pos)
        if block is not None:
            self._emit("double_click", {"what": "item", "item": block.item_id, "event": ev})
            ev.accept()
            return
        self._emit("double_click", {"what": "background", "item": None, "event": ev})
        if scene_pos.x() > LEFT_MARGIN and scene_pos.y() > HEADER_HEIGHT:
            self.propose_item(self._scene.ms_at(scene_pos.x()), self._scene.group_at(scene_pos.y()))
        ev.accept()

    def propose_item(self, start_ms: int, group: Any = None) -> None:
        """Предлагает новый элемент через ``on_add``; вставка — только если колбэк вернёт элемент."""
        if not self._scene.editable:
            return
        start_ms = (start_ms // self._scene.snap_ms) * self._scene.snap_ms
        item = {
            "id": uuid.uuid4().hex,
            "content": "Новый элемент",
            "start": to_datetime(start_ms),
            "end": to_datetime(start_ms + self.default_span_ms),
            "group": group,
        }

        def callback(validated: Optional[Dict[str, Any]]) -> None:
            if validated is not None:
                self.dataset.add(validated)

        on_add = self.options.get("on_add")
        if on_add is None:
            callback(item)
        else:
            on_add(item, callback)

    # 4.5 Рендер в изображение для экспорта
    def render_to_image(self, width: int) -> QtGui.QImage:
        rect = self._scene.sceneRect()
        scale = width / max(1, rect.width())
        img = QtGui.QImage(int(rect.width() * scale), int(rect.height() * scale), QtGui.QImage.Format_ARGB32)
        img.fill(QtCore.Qt.white)
        painter = QtGui.QPainter(img)
        painter.scale(scale, scale)
        self._scene.render(painter)
        painter.end()
        return img
