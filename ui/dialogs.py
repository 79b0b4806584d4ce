"""
Назначение:
    Диалоги: карточка доски и редактор свойств (схемы).

Как работает:
    - CardDialog — название, иконка и значения свойств карточки. Свойство с
      датой редактируется двумя полями «С» / «По» и флажком «Задан».
    - PropertiesDialog — добавление, переименование и удаление свойств доски.

Стиль:
    - Нумерованные секции и краткие комментарии.
"""

# 1. Импорт
import dataclasses
from typing import Dict, List, Optional, Tuple

from PySide6 import QtWidgets, QtCore

from db import BoardStore, Card, PropertyTemplate, PROPERTY_TYPES
from projection import DateRange, decode_date_range, encode_date_range

TYPE_LABELS = {"text": "Текст", "date": "Дата", "select": "Выбор", "number": "Число"}


def _to_qdatetime(ms: int) -> QtCore.QDateTime:
    return QtCore.QDateTime.fromMSecsSinceEpoch(int(ms), QtCore.QTimeZone.utc())


# 2. Диалог карточки
class CardDialog(QtWidgets.QDialog):
    def __init__(self, schema: List[PropertyTemplate], card: Card, parent=None):
        super().__init__(parent)
        self.setWindowTitle("Карточка")
        self.resize(520, 360)
        self._schema = list(schema)
        self._card = card
        self._text_edits: Dict[str, QtWidgets.QLineEdit] = {}
        self._date_edits: Dict[str, Tuple[QtWidgets.QCheckBox, QtWidgets.QDateTimeEdit, QtWidgets.QDateTimeEdit]] = {}
        layout = QtWidgets.QFormLayout(self)
        self.edit_title = QtWidgets.QLineEdit(card.title)
        self.edit_icon = QtWidgets.QLineEdit(card.icon); self.edit_icon.setMaxLength(4)
        layout.addRow("Название:", self.edit_title)
        layout.addRow("Иконка:", self.edit_icon)
        # 2.1 Поля свойств по схеме
        for prop in self._schema:
            raw = card.properties.get(prop.id, "")
            if prop.type == "date":
                date = decode_date_range(raw)
                chk = QtWidgets.QCheckBox("Задан"); chk.setChecked(date is not None)
                dt_from = QtWidgets.QDateTimeEdit(); dt_from.setCalendarPopup(True); dt_from.setDisplayFormat("dd.MM.yyyy HH:mm")
                dt_to = QtWidgets.QDateTimeEdit(); dt_to.setCalendarPopup(True); dt_to.setDisplayFormat("dd.MM.yyyy HH:mm")
                if date is not None:
                    dt_from.setDateTime(_to_qdatetime(date.start)); dt_to.setDateTime(_to_qdatetime(date.end))
                else:
                    now = QtCore.QDateTime.currentDateTimeUtc()
                    dt_from.setDateTime(now); dt_to.setDateTime(now.addDays(1))
                row = QtWidgets.QHBoxLayout()
                row.addWidget(chk); row.addWidget(QtWidgets.QLabel("С")); row.addWidget(dt_from)
                row.addWidget(QtWidgets.QLabel("По")); row.addWidget(dt_to)
                layout.addRow(f"{prop.name}:", row)
                self._date_edits[prop.id] = (chk, dt_from, dt_to)
            else:
                edit = QtWidgets.QLineEdit(raw)
                layout.addRow(f"{prop.name}:", edit)
                self._text_edits[prop.id] = edit
        btns = QtWidgets.QDialogButtonBox(QtWidgets.QDialogButtonBox.Ok | QtWidgets.QDialogButtonBox.Cancel)
        btns.accepted.connect(self.accept); btns.rejected.connect(self.reject)
        layout.addRow(btns)

    def get_card(self) -> Card:
        """Копия карточки с введёнными значениями. Пустое значение удаляет свойство."""
        properties = dict(self._card.properties)
        for prop_id, edit in self._text_edits.items():
            text = edit.text().strip()
            if text:
                properties[prop_id] = text
            else:
                properties.pop(prop_id, None)
        for prop_id, (chk, dt_from, dt_to) in self._date_edits.items():
            if not chk.isChecked():
                properties.pop(prop_id, None)
                continue
            old = decode_date_range(self._card.properties.get(prop_id))
            start = dt_from.dateTime().toMSecsSinceEpoch()
            end = max(start, dt_to.dateTime().toMSecsSinceEpoch())
            date = DateRange(start, end, include_time=True) if old is None else dataclasses.replace(old, start=start, end=end)
            properties[prop_id] = encode_date_range(date)
        return dataclasses.replace(self._card, title=self.edit_title.text().strip(), icon=self.edit_icon.text().strip(), properties=properties)


# 3. Диалог свойств доски
class PropertiesDialog(QtWidgets.QDialog):
    def __init__(self, store: BoardStore, parent=None):
        super().__init__(parent)
        self.setWindowTitle("Свойства доски")
        self.resize(420, 320)
        self.store = store
        v = QtWidgets.QVBoxLayout(self)
        self.list_props = QtWidgets.QListWidget()
        v.addWidget(self.list_props, 1)
        bar = QtWidgets.QHBoxLayout()
        self.btn_add = QtWidgets.QPushButton("Добавить")
        self.btn_rename = QtWidgets.QPushButton("Переименовать")
        self.btn_del = QtWidgets.QPushButton("Удалить")
        bar.addWidget(self.btn_add); bar.addWidget(self.btn_rename); bar.addWidget(self.btn_del)
        v.addLayout(bar)
        btns = QtWidgets.QDialogButtonBox(QtWidgets.QDialogButtonBox.Close)
        btns.rejected.connect(self.reject); v.addWidget(btns)
        self.btn_add.clicked.connect(self._add)
        self.btn_rename.clicked.connect(self._rename)
        self.btn_del.clicked.connect(self._delete)
        self.reload()

    def reload(self) -> None:
        self.list_props.clear()
        for prop in self.store.list_properties():
            it = QtWidgets.QListWidgetItem(f"{prop.name} ({TYPE_LABELS.get(prop.type, prop.type)})")
            it.setData(QtCore.Qt.UserRole, prop.id)
            self.list_props.addItem(it)

    def _selected_id(self) -> Optional[str]:
        it = self.list_props.currentItem()
        return None if it is None else it.data(QtCore.Qt.UserRole)

    def _add(self) -> None:
        name, ok = QtWidgets.QInputDialog.getText(self, "Новое свойство", "Название свойства:")
        if not ok or not name.strip():
            return
        labels = [TYPE_LABELS[t] for t in PROPERTY_TYPES]
        label, ok = QtWidgets.QInputDialog.getItem(self, "Новое свойство", "Тип:", labels, 0, False)
        if not ok:
            return
        self.store.add_property(name.strip(), PROPERTY_TYPES[labels.index(label)])
        self.reload()

    def _rename(self) -> None:
        prop_id = self._selected_id()
        if prop_id is None:
            return
        current = next((p.name for p in self.store.list_properties() if p.id == prop_id), "")
        name, ok = QtWidgets.QInputDialog.getText(self, "Переименование", "Новое название:", text=current)
        if ok and name.strip():
            self.store.rename_property(prop_id, name.strip())
            self.reload()

    def _delete(self) -> None:
        prop_id = self._selected_id()
        if prop_id is None:
            return
        if QtWidgets.QMessageBox.question(self, "Удаление", "Удалить свойство и его значения у всех карточек?") != QtWidgets.QMessageBox.Yes:
            return
        self.store.delete_property(prop_id)
        self.reload()
