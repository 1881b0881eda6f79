from __future__ import annotations

from collections.abc import Iterator
from pathlib import Path

import pytest

from quire.block_list import BlockList
from quire.models import Page
from quire.page_tree import PageTree
from quire.session import Session
from quire.store.sqlite import SqliteStore
from quire.workspace import Workspace

OWNER = "alice"


@pytest.fixture
def db_path(tmp_path: Path) -> Path:
    return tmp_path / "quire-test.db"


@pytest.fixture
def store(db_path: Path) -> Iterator[SqliteStore]:
    """A SQLite store on a temp file, closed after the test."""
    store = SqliteStore(db_path)
    try:
        yield store
    finally:
        store.close()


@pytest.fixture
def session() -> Session:
    return Session(owner_id=OWNER)


@pytest.fixture
def tree(store: SqliteStore, session: Session) -> PageTree:
    tree = PageTree(store, session)
    tree.refresh()
    return tree


@pytest.fixture
def page(tree: PageTree) -> Page:
    """A root page to hang blocks on."""
    return tree.create("Notes")


@pytest.fixture
def blocks(store: SqliteStore, session: Session, page: Page) -> BlockList:
    """A BlockList already scoped to ``page``."""
    return BlockList(store, session, page.id)


@pytest.fixture
def workspace(store: SqliteStore) -> Workspace:
    return Workspace(store, owner_id=OWNER)
