"""
Назначение:
    Главное окно приложения CardTimeline: список карточек, таймлайн и док-панель лога.

Как работает:
    - Слева — список карточек доски с периодом; кнопки создания/удаления
      карточки и редактора свойств.
    - Справа — TimelineTab.  Окно подписано на изменения хранилища и после
      каждого изменения передаёт во вкладку свежие схему и карточки.
    - Двойной клик по элементу таймлайна или по строке списка открывает CardDialog.

Стиль:
    - Нумерованные секции + краткие комментарии.
"""

# 1. Импорт
import logging
from typing import Any, Dict, Optional

from PySide6 import QtWidgets, QtCore

from db import BoardStore, Card, UpdateMsg
from projection import decode_date_range, get_date_property, to_datetime
from .timeline_tab import TimelineTab
from .dialogs import CardDialog, PropertiesDialog
from .widgets import LogDock

logger = logging.getLogger(__name__)


def _format_period(card: Card, date_prop_id: Optional[str]) -> str:
    date = decode_date_range(card.properties.get(date_prop_id)) if date_prop_id else None
    if date is None:
        return "—"
    return f"{to_datetime(date.start):%d.%m.%Y} – {to_datetime(date.end):%d.%m.%Y}"


# 2. Класс MainWindow
class MainWindow(QtWidgets.QMainWindow):
    def __init__(self, store: BoardStore, config: Optional[Dict[str, Any]] = None, parent=None):
        super().__init__(parent)
        self.setWindowTitle("CardTimeline — таймлайн карточек")
        self.resize(1360, 860)
        self.store = store
        self.config = config or {}

        # 2.1 Левый сайдбар карточек
        left = QtWidgets.QWidget(); left_layout = QtWidgets.QVBoxLayout(left)
        self.list_cards = QtWidgets.QListWidget()
        self.btn_add = QtWidgets.QPushButton("Создать карточку")
        self.btn_del = QtWidgets.QPushButton("Удалить карточку")
        self.btn_props = QtWidgets.QPushButton("Свойства…")
        self.btn_export = QtWidgets.QPushButton("Экспорт в PNG")
        left_layout.addWidget(QtWidgets.QLabel("Карточки"))
        left_layout.addWidget(self.list_cards, 1)
        for b in (self.btn_add, self.btn_del, self.btn_props, self.btn_export):
            left_layout.addWidget(b)

        # 2.2 Правая часть — таймлайн
        self.timeline_tab = TimelineTab(store, self.config, log_fn=self.log)
        splitter = QtWidgets.QSplitter()
        splitter.addWidget(left); splitter.addWidget(self.timeline_tab)
        splitter.setStretchFactor(0, 0); splitter.setStretchFactor(1, 1)
        splitter.setSizes([280, 1080])
        self.setCentralWidget(splitter)

        # 2.3 Док «Лог»
        self.log_dock = LogDock(self)
        self.addDockWidget(QtCore.Qt.BottomDockWidgetArea, self.log_dock)
        self.log_dock.resized.connect(self._apply_log_ratio)

        # 2.4 Сигналы
        self.btn_add.clicked.connect(self.create_card)
        self.btn_del.clicked.connect(self.delete_selected_card)
        self.btn_props.clicked.connect(self.edit_properties)
        self.btn_export.clicked.connect(self.export_timeline)
        self.list_cards.itemDoubleClicked.connect(self._on_list_double_clicked)
        self.timeline_tab.card_activated.connect(self._on_card_activated)
        self.store.subscribe(self._on_store_changed)

        # 2.5 Начальная загрузка
        self.reload()
        self.log("Приложение запущено.")

    # 2.6 Лог (в док + logging)
    def log(self, msg: str, level: str = "info") -> None:
        getattr(logger, level if level in ("debug", "info", "warning", "error") else "info")(msg)
        if hasattr(self, "log_dock"):
            self.log_dock.append(msg, level)

    def _apply_log_ratio(self, ratio: float) -> None:
        ratio = max(0.08, min(0.8, float(ratio or LogDock.COLLAPSED_RATIO)))
        dock_h = max(60, int(max(1, self.size().height()) * ratio))
        self.resizeDocks([self.log_dock], [dock_h], QtCore.Qt.Vertical)

    # 2.7 Перезагрузка данных доски
    def _on_store_changed(self, msg: UpdateMsg) -> None:
        logger.debug("Изменение хранилища: %s", msg.action)
        self.reload()

    def reload(self) -> None:
        schema = self.store.list_properties()
        cards = self.store.list_cards()
        self.timeline_tab.set_board(schema, cards)
        date_prop = get_date_property(schema)
        current = self._selected_card_id()
        self.list_cards.blockSignals(True)
        self.list_cards.clear()
        for card in cards:
            text = f"{card.icon} {card.title}".strip() or "Без названия"
            it = QtWidgets.QListWidgetItem(f"{text}\n{_format_period(card, date_prop.id if date_prop else None)}")
            it.setData(QtCore.Qt.UserRole, card.id)
            self.list_cards.addItem(it)
            if card.id == current:
                self.list_cards.setCurrentItem(it)
        self.list_cards.blockSignals(False)

    def _selected_card_id(self) -> Optional[str]:
        it = self.list_cards.currentItem()
        return None if it is None else it.data(QtCore.Qt.UserRole)

    # 2.8 Карточки
    def create_card(self) -> None:
        card = self.timeline_tab.add_card({}, show=False)
        if card is not None:
            self.open_card(card)

    def delete_selected_card(self) -> None:
        card_id = self._selected_card_id()
        card = self.store.get_card(card_id) if card_id else None
        if card is None:
            return
        if QtWidgets.QMessageBox.question(self, "Удаление", f"Удалить карточку '{card.title}'?") != QtWidgets.QMessageBox.Yes:
            return
        try:
            self.store.delete_card(card)
            self.log(f"Карточка '{card.title}' удалена.")
        except Exception as ex:
            self.log(f"Ошибка удаления карточки: {ex}", "error")
            QtWidgets.QMessageBox.critical(self, "Ошибка", f"Не удалось удалить карточку: {ex}")

    def _on_list_double_clicked(self, item: QtWidgets.QListWidgetItem) -> None:
        card = self.store.get_card(item.data(QtCore.Qt.UserRole))
        if card is not None:
            self.open_card(card)

    def _on_card_activated(self, _event: Any, card: Card) -> None:
        # Диалог открываем после выхода из обработчика мыши таймлайна
        QtCore.QTimer.singleShot(0, lambda: self.open_card(card))

    def open_card(self, card: Card) -> None:
        current = self.store.get_card(card.id)
        if current is None:
            return
        dlg = CardDialog(self.store.list_properties(), current, self)
        if dlg.exec() != QtWidgets.QDialog.Accepted:
            return
        try:
            self.store.update_card(dlg.get_card(), current, "edit")
            self.log(f"Карточка '{dlg.get_card().title}' сохранена.")
        except Exception as ex:
            self.log(f"Ошибка сохранения карточки: {ex}", "error")
            QtWidgets.QMessageBox.critical(self, "Ошибка", f"Не удалось сохранить: {ex}")

    # 2.9 Свойства и экспорт
    def edit_properties(self) -> None:
        PropertiesDialog(self.store, self).exec()

    def export_timeline(self) -> None:
        path, _ = QtWidgets.QFileDialog.getSaveFileName(self, "Экспорт таймлайна", "timeline.png", "PNG (*.png)")
        if not path:
            return
        try:
            self.timeline_tab.export_image(path)
        except Exception as ex:
            self.log(f"Ошибка экспорта изображения таймлайна: {ex}", "error")
            QtWidgets.QMessageBox.critical(self, "Ошибка", f"Не удалось экспортировать: {ex}")

    # 2.10 Закрытие окна — освобождаем таймлайн
    def closeEvent(self, ev) -> None:
        self.store.unsubscribe(self._on_store_changed)
        self.timeline_tab.shutdown()
        super().closeEvent(ev)
