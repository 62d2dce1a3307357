import os

import pytest

os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")


@pytest.fixture(scope="session")
def qapp():
    from Qt.QtGui import QGuiApplication

    app = QGuiApplication.instance()
    if app is None:
        app = QGuiApplication([])
    return app


@pytest.fixture
def arena():
    from annotext import TextArena

    return TextArena()


@pytest.fixture
def document(arena):
    """A document over two ten character blocks"""
    from annotext import AnnotatedDocument

    doc = AnnotatedDocument(arena)
    doc.register_blocks(arena.add_texts(["0123456789", "abcdefghij"]))
    return doc
