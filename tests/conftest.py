import os

import pytest

# Qt-тесты без дисплея
os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")

from db import BoardStore, Card, PropertyTemplate  # noqa: E402

DATE_PROP = PropertyTemplate("p_date", "Период", "date")
GROUP_PROP = PropertyTemplate("p_group", "group", "select")
TEXT_PROP = PropertyTemplate("p_text", "Заметка", "text")


def make_card(card_id: str, date: str | None = None, group: str | None = None, title: str = "", icon: str = "") -> Card:
    """Карточка с (необязательными) значениями свойств даты и группы."""
    props = {}
    if date is not None:
        props[DATE_PROP.id] = date
    if group is not None:
        props[GROUP_PROP.id] = group
    return Card(id=card_id, title=title or card_id, icon=icon, properties=props)


@pytest.fixture
def schema():
    return [TEXT_PROP, DATE_PROP, GROUP_PROP]


@pytest.fixture
def store():
    """Хранилище в памяти со свойствами даты и группы."""
    s = BoardStore(":memory:")
    s.init_schema()
    yield s
    s.close()


@pytest.fixture(scope="session")
def qapp():
    from PySide6 import QtWidgets
    app = QtWidgets.QApplication.instance() or QtWidgets.QApplication([])
    yield app
