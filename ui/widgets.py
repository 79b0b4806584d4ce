"""
Назначение:
    Виджеты интерфейса: док-панель «Лог».

Как работает:
    - LogDock — док-панель лога: цветные строки по уровню, кнопки
      «Очистить» и «Сохранить в файл», флажок «Развернуть лог».

Стиль:
    - Нумерованные секции и краткие комментарии.
"""

# 1. Импорт
import datetime
import html
from pathlib import Path

from PySide6 import QtWidgets, QtCore

LEVEL_COLORS = {"info": "#dddddd", "warning": "#f0b94a", "error": "#ff6b6b", "debug": "#8a8f98"}


# 2. LogDock
class LogDock(QtWidgets.QDockWidget):
    resized = QtCore.Signal(float)
    COLLAPSED_RATIO = 0.15
    EXPANDED_RATIO = 0.50

    def __init__(self, parent=None):
        super().__init__("Лог", parent)
        self.setAllowedAreas(QtCore.Qt.BottomDockWidgetArea)
        self.view = QtWidgets.QTextEdit()
        self.view.setReadOnly(True)
        self.view.setStyleSheet("QTextEdit { background: #1e1e1e; color: #dddddd; }")
        self.setWidget(self.view)
        # Заголовок
        self._title_widget = QtWidgets.QWidget()
        h = QtWidgets.QHBoxLayout(self._title_widget); h.setContentsMargins(6, 2, 6, 2)
        title_lbl = QtWidgets.QLabel("Лог"); title_lbl.setStyleSheet("QLabel { font-weight: 600; }")
        self.chk_expand = QtWidgets.QCheckBox("Развернуть лог")
        self.btn_clear = QtWidgets.QPushButton("Очистить")
        self.btn_save = QtWidgets.QPushButton("Сохранить в файл")
        h.addWidget(title_lbl); h.addStretch(1); h.addWidget(self.chk_expand); h.addWidget(self.btn_clear); h.addWidget(self.btn_save)
        self.setTitleBarWidget(self._title_widget)
        self.chk_expand.toggled.connect(self._on_expand_toggled)
        self.btn_clear.clicked.connect(self.view.clear)
        self.btn_save.clicked.connect(self._save_to_file)

    # 2.1 Добавление строки
    def append(self, msg: str, level: str = "info") -> None:
        ts = datetime.datetime.now().strftime("%H:%M:%S")
        color = LEVEL_COLORS.get(level, LEVEL_COLORS["info"])
        self.view.append(f"<span style='color:{color}'>[{ts}] {html.escape(msg)}</span>")

    # 2.2 Развернуть/свернуть
    def _on_expand_toggled(self, checked: bool) -> None:
        self.resized.emit(self.EXPANDED_RATIO if checked else self.COLLAPSED_RATIO)

    # 2.3 Сохранение лога
    def _save_to_file(self) -> None:
        path, _ = QtWidgets.QFileDialog.getSaveFileName(self, "Сохранить лог", "log.txt", "Text (*.txt)")
        if not path:
            return
        try:
            Path(path).write_text(self.view.toPlainText(), encoding="utf-8")
        except OSError as ex:
            QtWidgets.QMessageBox.critical(self, "Ошибка", f"Не удалось сохранить лог: {ex}")
