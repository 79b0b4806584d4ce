"""
Назначение файла:
    Слой доступа к данным (SQLite): схема свойств доски и карточки.

Принцип работы (кратко):
    - Подключение к SQLite (WAL + foreign_keys).
    - Безопасная инициализация/миграция схемы: CREATE TABLE → ensure_column.
    - Таблицы:
        * properties — шаблоны свойств доски (id, name, type, position);
        * cards      — карточки (title, icon, properties_json).
    - Методы изменения карточек (create_card / update_card / delete_card)
      вызываются таймлайном «по принципу выстрелил и забыл»: результат не
      проверяется, а новое состояние приходит через подписку (subscribe).
    - Подписчики получают UpdateMsg с действием и затронутой карточкой.

Стиль:
    - Код разбит на пронумерованные секции; у ключевых операций краткие
      комментарии. Ошибки SQLite логируются и пробрасываются выше.
"""

# 1. Импорт стандартных библиотек
from __future__ import annotations

import datetime
import json
import logging
import sqlite3
import uuid
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Dict, List, Optional

logger = logging.getLogger(__name__)

# Допустимые типы свойств
PROPERTY_TYPES = ("text", "date", "select", "number")

# Действия в уведомлениях об изменениях
ACTION_INSERT = "INSERT_BLOCK"
ACTION_UPDATE = "UPDATE_BLOCK"
ACTION_DELETE = "DELETE_BLOCK"
ACTION_SCHEMA = "UPDATE_SCHEMA"


# 2. Структуры данных
@dataclass(frozen=True)
class PropertyTemplate:
    id: str
    name: str
    type: str


@dataclass
class Card:
    id: str
    title: str = ""
    icon: str = ""
    properties: Dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class UpdateMsg:
    """Уведомление об изменении: действие и карточка (для схемы — None)."""
    action: str
    card: Optional[Card] = None


def _now() -> str:
    return datetime.datetime.now(datetime.timezone.utc).isoformat()


def _row_to_card(row: sqlite3.Row) -> Card:
    try:
        props = json.loads(row["properties_json"] or "{}")
    except ValueError:
        logger.warning("Карточка %s: повреждён properties_json, свойства сброшены", row["id"])
        props = {}
    if not isinstance(props, dict):
        props = {}
    return Card(id=row["id"], title=row["title"] or "", icon=row["icon"] or "", properties={str(k): str(v) for k, v in props.items()})


# 3. Класс BoardStore — хранилище доски
class BoardStore:
    """Слой доступа к SQLite со схемой свойств, карточками и подпиской на изменения."""

    # 3.1 Конструктор: подключение к базе и базовые настройки
    def __init__(self, db_path: Path | str):
        # ":memory:" передаётся как есть, остальное — путь к файлу
        self.db_path = db_path
        self._conn = sqlite3.connect(str(db_path), check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        # Включаем журналирование WAL и внешние ключи
        self._conn.execute("PRAGMA journal_mode=WAL;")
        self._conn.execute("PRAGMA foreign_keys=ON;")
        self._listeners: List[Callable[[UpdateMsg], None]] = []

    # 3.2 Инициализация схемы (безопасный порядок)
    def init_schema(self) -> None:
        cur = self._conn.cursor()
        cur.executescript(
            """
            -- Шаблоны свойств доски
            CREATE TABLE IF NOT EXISTS properties(
                id TEXT PRIMARY KEY,
                name TEXT NOT NULL,
                type TEXT NOT NULL DEFAULT 'text',
                position INTEGER NOT NULL DEFAULT 0
            );

            -- Карточки
            CREATE TABLE IF NOT EXISTS cards(
                id TEXT PRIMARY KEY,
                title TEXT NOT NULL DEFAULT '',
                properties_json TEXT NOT NULL DEFAULT '{}',
                created_at TEXT NOT NULL
            );
            CREATE INDEX IF NOT EXISTS idx_cards_created ON cards(created_at);
            """
        )
        self._conn.commit()
        # Поля, появившиеся позже
        self._ensure_column("cards", "icon", "ALTER TABLE cards ADD COLUMN icon TEXT NOT NULL DEFAULT '';")
        self._ensure_column("cards", "updated_at", "ALTER TABLE cards ADD COLUMN updated_at TEXT;")
        self._conn.commit()

    # 3.3 Вспомогательные: обеспечение столбцов
    def _ensure_column(self, table: str, column: str, ddl: str) -> None:
        cur = self._conn.cursor()
        cur.execute(f"PRAGMA table_info({table})")
        cols = [r[1] for r in cur.fetchall()]
        if column not in cols:
            cur.execute(ddl)
            self._conn.commit()

    def close(self) -> None:
        self._conn.close()

    # 3.4 Подписка на изменения
    def subscribe(self, callback: Callable[[UpdateMsg], None]) -> None:
        if callback not in self._listeners:
            self._listeners.append(callback)

    def unsubscribe(self, callback: Callable[[UpdateMsg], None]) -> None:
        if callback in self._listeners:
            self._listeners.remove(callback)

    def _notify(self, msg: UpdateMsg) -> None:
        for callback in list(self._listeners):
            callback(msg)

    def _execute(self, what: str, sql: str, args: tuple) -> sqlite3.Cursor:
        """Выполняет запрос с commit; ошибки логирует и пробрасывает."""
        try:
            cur = self._conn.execute(sql, args)
            self._conn.commit()
            return cur
        except sqlite3.Error as ex:
            self._conn.rollback()
            logger.error("%s: ошибка запроса: %s", what, ex, exc_info=True)
            raise

    # 3.5 ------- Методы СХЕМЫ -------
    def list_properties(self) -> List[PropertyTemplate]:
        """Шаблоны свойств в порядке отображения."""
        cur = self._conn.cursor()
        cur.execute("SELECT id, name, type FROM properties ORDER BY position, rowid")
        return [PropertyTemplate(r["id"], r["name"], r["type"]) for r in cur.fetchall()]

    def add_property(self, name: str, type_: str = "text") -> PropertyTemplate:
        if type_ not in PROPERTY_TYPES:
            raise ValueError(f"Неизвестный тип свойства: {type_}")
        prop = PropertyTemplate(uuid.uuid4().hex, name.strip(), type_)
        cur = self._conn.cursor()
        cur.execute("SELECT COALESCE(MAX(position), -1) + 1 FROM properties")
        position = cur.fetchone()[0]
        self._execute("add_property", "INSERT INTO properties(id, name, type, position) VALUES(?, ?, ?, ?)", (prop.id, prop.name, prop.type, position))
        logger.info("Добавлено свойство '%s' (%s)", prop.name, prop.type)
        self._notify(UpdateMsg(ACTION_SCHEMA))
        return prop

    def rename_property(self, prop_id: str, new_name: str) -> None:
        self._execute("rename_property", "UPDATE properties SET name=? WHERE id=?", (new_name.strip(), prop_id))
        self._notify(UpdateMsg(ACTION_SCHEMA))

    def delete_property(self, prop_id: str) -> None:
        """Удаляет шаблон свойства и его значения у всех карточек."""
        try:
            self._conn.execute("DELETE FROM properties WHERE id=?", (prop_id,))
            for card in self.list_cards():
                if prop_id in card.properties:
                    card.properties.pop(prop_id)
                    self._conn.execute("UPDATE cards SET properties_json=?, updated_at=? WHERE id=?", (json.dumps(card.properties, ensure_ascii=False), _now(), card.id))
            self._conn.commit()
        except sqlite3.Error as ex:
            self._conn.rollback()
            logger.error("delete_property: ошибка удаления %s: %s", prop_id, ex, exc_info=True)
            raise
        self._notify(UpdateMsg(ACTION_SCHEMA))

    # 3.6 ------- Методы КАРТОЧЕК -------
    def list_cards(self) -> List[Card]:
        """Карточки в порядке создания."""
        cur = self._conn.cursor()
        cur.execute("SELECT * FROM cards ORDER BY created_at, rowid")
        return [_row_to_card(r) for r in cur.fetchall()]

    def get_card(self, card_id: str) -> Optional[Card]:
        cur = self._conn.cursor()
        cur.execute("SELECT * FROM cards WHERE id=?", (card_id,))
        row = cur.fetchone()
        return None if row is None else _row_to_card(row)

    def create_card(self, properties: Optional[Dict[str, str]] = None, title: str = "", icon: str = "") -> Card:
        """Создаёт карточку с начальными свойствами."""
        card = Card(id=uuid.uuid4().hex, title=title, icon=icon, properties=dict(properties or {}))
        now = _now()
        self._execute(
            "create_card",
            "INSERT INTO cards(id, title, icon, properties_json, created_at, updated_at) VALUES(?, ?, ?, ?, ?, ?)",
            (card.id, card.title, card.icon, json.dumps(card.properties, ensure_ascii=False), now, now),
        )
        logger.info("Создана карточка %s", card.id)
        self._notify(UpdateMsg(ACTION_INSERT, card))
        return card

    def update_card(self, new_card: Card, old_card: Optional[Card] = None, reason: str = "update") -> None:
        """Записывает новое состояние карточки. ``old_card`` и ``reason`` попадают в лог."""
        cur = self._execute(
            "update_card",
            "UPDATE cards SET title=?, icon=?, properties_json=?, updated_at=? WHERE id=?",
            (new_card.title, new_card.icon, json.dumps(new_card.properties, ensure_ascii=False), _now(), new_card.id),
        )
        if cur.rowcount == 0:
            logger.warning("update_card: карточка %s не найдена (%s)", new_card.id, reason)
            return
        if old_card is not None:
            changed = sorted(k for k in set(old_card.properties) | set(new_card.properties) if old_card.properties.get(k) != new_card.properties.get(k))
            logger.debug("update_card %s (%s): изменены свойства %s", new_card.id, reason, changed)
        self._notify(UpdateMsg(ACTION_UPDATE, new_card))

    def delete_card(self, card: Card) -> None:
        cur = self._execute("delete_card", "DELETE FROM cards WHERE id=?", (card.id,))
        if cur.rowcount == 0:
            logger.warning("delete_card: карточка %s уже удалена", card.id)
            return
        logger.info("Удалена карточка %s", card.id)
        self._notify(UpdateMsg(ACTION_DELETE, card))

    # 3.7 Демонстрационные данные для пустой базы
    def seed_demo(self) -> None:
        """Заполняет пустую доску: свойство даты, свойство group и несколько карточек."""
        if self.list_properties() or self.list_cards():
            return
        date_prop = self.add_property("Период", "date")
        group_prop = self.add_property("group", "select")
        day = 24 * 60 * 60 * 1000
        today = int(datetime.datetime.now(datetime.timezone.utc).replace(hour=0, minute=0, second=0, microsecond=0).timestamp()) * 1000
        samples = [
            ("Монтаж сцены", "🛠", 0, 2, "Техника"),
            ("Репетиция", "🎤", 2, 3, "Артисты"),
            ("Концерт", "🎉", 3, 4, "Артисты"),
            ("Демонтаж", "📦", 4, 5, None),
        ]
        for title, icon, d_from, d_to, group in samples:
            props = {date_prop.id: json.dumps({"from": today + d_from * day, "to": today + d_to * day})}
            if group:
                props[group_prop.id] = group
            self.create_card(props, title=title, icon=icon)
        logger.info("Демо-доска заполнена")
