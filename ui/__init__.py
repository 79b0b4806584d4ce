"""
Назначение:
    Пакет графического интерфейса (Qt Widgets) приложения CardTimeline.

Принцип работы:
    - Экспортирует ключевые классы: MainWindow, TimelineTab, TimelineCanvas,
      а также диалоги и док-панель лога.

Стиль:
    - Нумерованные секции и краткие комментарии.
"""

# 1. Экспорт основных классов
from .main_window import MainWindow  # noqa: F401
from .timeline_tab import TimelineTab  # noqa: F401
from .timeline_canvas import TimelineCanvas  # noqa: F401

# 2. Экспорт вспомогательных классов
from .dialogs import CardDialog, PropertiesDialog  # noqa: F401
from .widgets import LogDock  # noqa: F401
