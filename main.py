"""
Назначение: Точка входа в приложение.
Как работает:
- Готовит конфиг, папки, логи и БД доски.
- Запускает главное окно (PySide6).
"""
# 1. Импорт библиотек
import sys
from pathlib import Path
from PySide6 import QtWidgets

APP_DIR = Path(__file__).resolve().parent
if str(APP_DIR) not in sys.path:
    sys.path.insert(0, str(APP_DIR))

from utils import init_logging, ensure_folders, load_config  # noqa: E402
from db import BoardStore  # noqa: E402
from ui import MainWindow  # noqa: E402

# 2. Главная функция
def main():
    config = load_config()
    ensure_folders()
    init_logging(config["app"]["log_path"], config["app"].get("log_level", "INFO"))
    store = BoardStore(Path(config["app"]["db_path"]).resolve())
    store.init_schema()
    store.seed_demo()
    try:
        app = QtWidgets.QApplication(sys.argv)
        w = MainWindow(store=store, config=config)
        w.show()
        code = app.exec()
    finally:
        store.close()
    sys.exit(code)

# 3. Точка входа
if __name__ == "__main__":
    main()
