"""
Назначение:
    Изменяемый индексированный набор элементов таймлайна (по ``id``).

Как работает:
    - Элемент — словарь с обязательным ключом ``id``; порядок набора — порядок
      первой вставки.
    - ``update`` вставляет отсутствующие элементы и ПОЛНОСТЬЮ заменяет
      существующие (без слияния полей). Неизменённые элементы пропускаются.
    - Подписчики получают события ``add`` / ``update`` / ``remove`` со
      списком затронутых ``id``.

Стиль:
    - Нумерованные секции и краткие комментарии.
"""

# 1. Импорт
from __future__ import annotations

from typing import Any, Callable, Dict, Iterable, List, Optional

Item = Dict[str, Any]
Listener = Callable[[str, List[Any]], None]

EVENTS = ("add", "update", "remove")


# 2. Класс DataSet
class DataSet:
    def __init__(self, items: Optional[Iterable[Item]] = None) -> None:
        self._items: Dict[Any, Item] = {}
        self._listeners: Dict[str, List[Listener]] = {name: [] for name in EVENTS}
        if items:
            self.add(items)

    # 2.1 Подписка
    def on(self, event: str, callback: Listener) -> None:
        """Подписка на событие; ``"*"`` — на все события."""
        names = EVENTS if event == "*" else (event,)
        for name in names:
            if name not in self._listeners:
                raise ValueError(f"Неизвестное событие набора: {event}")
            if callback not in self._listeners[name]:
                self._listeners[name].append(callback)

    def off(self, event: str, callback: Listener) -> None:
        names = EVENTS if event == "*" else (event,)
        for name in names:
            if callback in self._listeners.get(name, []):
                self._listeners[name].remove(callback)

    def _emit(self, event: str, ids: List[Any]) -> None:
        if not ids:
            return
        for callback in list(self._listeners[event]):
            callback(event, ids)

    # 2.2 Чтение
    def __len__(self) -> int:
        return len(self._items)

    def __contains__(self, item_id: Any) -> bool:
        return item_id in self._items

    def get_ids(self) -> List[Any]:
        return list(self._items)

    def get(self, item_id: Any = None) -> Any:
        """Без аргумента — копии всех элементов по порядку, иначе — элемент или ``None``."""
        if item_id is None:
            return [dict(it) for it in self._items.values()]
        item = self._items.get(item_id)
        return None if item is None else dict(item)

    # 2.3 Изменение
    def add(self, items: Item | Iterable[Item]) -> List[Any]:
        """Добавляет новые элементы; повтор ``id`` — ошибка."""
        batch = [items] if isinstance(items, dict) else list(items)
        for it in batch:
            if "id" not in it:
                raise ValueError("Элемент набора без id")
            if it["id"] in self._items:
                raise ValueError(f"Элемент с id={it['id']!r} уже есть в наборе")
        added = []
        for it in batch:
            self._items[it["id"]] = dict(it)
            added.append(it["id"])
        self._emit("add", added)
        return added

    def update(self, items: Item | Iterable[Item]) -> List[Any]:
        """Вставка или полная замена. Возвращает ``id`` реально изменённых элементов."""
        batch = [items] if isinstance(items, dict) else list(items)
        added: List[Any] = []
        updated: List[Any] = []
        for it in batch:
            if "id" not in it:
                raise ValueError("Элемент набора без id")
            item_id = it["id"]
            current = self._items.get(item_id)
            if current is None:
                self._items[item_id] = dict(it)
                added.append(item_id)
            elif current != it:
                self._items[item_id] = dict(it)
                updated.append(item_id)
        self._emit("add", added)
        self._emit("update", updated)
        return added + updated

    def remove(self, ids: Any) -> List[Any]:
        """Удаляет элементы по ``id`` (один или список). Отсутствующие пропускаются."""
        batch = list(ids) if isinstance(ids, (list, tuple, set)) else [ids]
        removed = []
        for item_id in batch:
            if self._items.pop(item_id, None) is not None:
                removed.append(item_id)
        self._emit("remove", removed)
        return removed

    def clear(self) -> List[Any]:
        return self.remove(self.get_ids())
