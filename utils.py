"""
Назначение: Утилиты (конфиг, папки, логирование).
"""
# 1. Импорт
import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path
try:
    import tomllib  # 3.11+
except ImportError:
    import tomli as tomllib  # 3.10

ROOT = Path(__file__).resolve().parent
CONFIG_PATH = ROOT / "config.toml"
DATA_DIR = ROOT / "data"
LOGS_DIR = ROOT / "logs"

# Значения по умолчанию, если в config.toml чего-то нет
DEFAULT_CONFIG = {
    "app": {"db_path": "data/board.sqlite3", "log_path": "logs/app.log", "log_level": "INFO"},
    "timeline": {"editable": True, "show_week_scale": True, "default_span_hours": 24},
}

# 2. Папки
def ensure_folders():
    DATA_DIR.mkdir(parents=True, exist_ok=True)
    LOGS_DIR.mkdir(parents=True, exist_ok=True)

# 3. Конфиг
def load_config(path: Path = CONFIG_PATH) -> dict:
    """Читает TOML и дополняет недостающие ключи значениями по умолчанию.

    Относительные пути из секции [app] считаются от корня проекта.
    """
    data = {}
    if Path(path).exists():
        with open(path, "rb") as f:
            data = tomllib.load(f)
    config = {section: {**values, **data.get(section, {})} for section, values in DEFAULT_CONFIG.items()}
    for key in ("db_path", "log_path"):
        p = Path(config["app"][key])
        config["app"][key] = str(p if p.is_absolute() else ROOT / p)
    return config

# 4. Логи
def init_logging(log_path: str, level: str = "INFO"):
    handler = RotatingFileHandler(log_path, maxBytes=2_000_000, backupCount=3, encoding="utf-8")
    fmt = logging.Formatter("%(asctime)s | %(levelname)s | %(name)s | %(message)s")
    handler.setFormatter(fmt)
    lg = logging.getLogger()
    lg.setLevel(getattr(logging, str(level).upper(), logging.INFO))
    lg.addHandler(handler)
    lg.info("Логирование инициализировано")
