"""Tests for store/sqlite.py - owner-scoped SQLite record store.

Tests:
- Schema creation
- Insert/select/update/delete primitives
- Owner scoping for pages and blocks
- Cascade delete through foreign keys
- Retry of lock contention
"""

from __future__ import annotations

import sqlite3
from pathlib import Path
from unittest.mock import Mock

import pytest

from quire.errors import NotFoundError, StoreError
from quire.store.sqlite import SCHEMA_VERSION, SqliteStore


# =============================================================================
# Schema Tests
# =============================================================================


class TestSchema:
    def test_tables_exist(self, store: SqliteStore) -> None:
        conn = store._get_connection()
        names = {
            row[0]
            for row in conn.execute("SELECT name FROM sqlite_master WHERE type='table'")
        }
        assert {"schema_version", "pages", "blocks"} <= names

    def test_schema_version_recorded(self, store: SqliteStore) -> None:
        conn = store._get_connection()
        row = conn.execute("SELECT version FROM schema_version").fetchone()
        assert row[0] == SCHEMA_VERSION

    def test_reopen_keeps_data(self, db_path: Path) -> None:
        first = SqliteStore(db_path)
        first.pages("alice").insert({"title": "Kept"})
        first.close()

        second = SqliteStore(db_path)
        try:
            rows = second.pages("alice").select()
            assert [r["title"] for r in rows] == ["Kept"]
        finally:
            second.close()

    def test_usable_after_close(self, store: SqliteStore) -> None:
        store.pages("alice").insert({"title": "A"})
        store.close()
        assert len(store.pages("alice").select()) == 1


# =============================================================================
# Primitive Tests
# =============================================================================


class TestPageRecords:
    def test_insert_assigns_server_fields(self, store: SqliteStore) -> None:
        row = store.pages("alice").insert({"position": 0})

        assert row["id"].startswith("page-")
        assert row["owner_id"] == "alice"
        assert row["title"] == "Untitled"
        assert row["created_at"]
        assert row["created_at"] == row["updated_at"]
        assert row["is_favorite"] is False

    def test_insert_rejects_unknown_columns(self, store: SqliteStore) -> None:
        with pytest.raises(ValueError):
            store.pages("alice").insert({"id": "page-custom"})

    def test_select_none_filter_matches_null(self, store: SqliteStore) -> None:
        pages = store.pages("alice")
        root = pages.insert({"title": "Root"})
        pages.insert({"title": "Child", "parent_id": root["id"]})

        roots = pages.select({"parent_id": None})
        assert [r["title"] for r in roots] == ["Root"]

    def test_select_orders_by_position_then_insertion(self, store: SqliteStore) -> None:
        pages = store.pages("alice")
        pages.insert({"title": "B", "position": 1})
        pages.insert({"title": "A1", "position": 0})
        pages.insert({"title": "A2", "position": 0})

        assert [r["title"] for r in pages.select()] == ["A1", "A2", "B"]

    def test_select_rejects_unknown_column(self, store: SqliteStore) -> None:
        with pytest.raises(ValueError):
            store.pages("alice").select({"bogus": 1})
        with pytest.raises(ValueError):
            store.pages("alice").select(order_by="bogus; DROP TABLE pages")

    def test_update_returns_stored_row(self, store: SqliteStore) -> None:
        pages = store.pages("alice")
        row = pages.insert({"title": "Old"})

        updated = pages.update(row["id"], {"title": "New", "is_favorite": True})

        assert updated["title"] == "New"
        assert updated["is_favorite"] is True
        assert updated["updated_at"] >= row["updated_at"]

    def test_update_rejects_read_only_columns(self, store: SqliteStore) -> None:
        pages = store.pages("alice")
        row = pages.insert({"title": "Mine"})
        with pytest.raises(ValueError):
            pages.update(row["id"], {"owner_id": "bob"})

    def test_update_missing_row(self, store: SqliteStore) -> None:
        with pytest.raises(NotFoundError):
            store.pages("alice").update("page-missing", {"title": "x"})

    def test_delete_reports_existence(self, store: SqliteStore) -> None:
        pages = store.pages("alice")
        row = pages.insert({"title": "Gone"})

        assert pages.delete_by_id(row["id"]) is True
        assert pages.delete_by_id(row["id"]) is False


class TestBlockRecords:
    def test_insert_and_select_by_page(self, store: SqliteStore) -> None:
        page = store.pages("alice").insert({"title": "P"})
        blocks = store.blocks("alice")
        blocks.insert({"page_id": page["id"], "type": "todo", "content": "x", "checked": True})

        rows = blocks.select({"page_id": page["id"]})
        assert len(rows) == 1
        assert rows[0]["id"].startswith("block-")
        assert rows[0]["type"] == "todo"
        assert rows[0]["checked"] is True

    def test_rejects_unknown_block_type(self, store: SqliteStore) -> None:
        page = store.pages("alice").insert({"title": "P"})
        with pytest.raises(StoreError):
            store.blocks("alice").insert({"page_id": page["id"], "type": "bogus"})


# =============================================================================
# Owner Scoping Tests
# =============================================================================


class TestOwnerScoping:
    """A collection opened for one owner never reaches another's rows."""

    def test_pages_invisible_to_other_owner(self, store: SqliteStore) -> None:
        row = store.pages("alice").insert({"title": "Private"})
        bob = store.pages("bob")

        assert bob.select() == []
        with pytest.raises(NotFoundError):
            bob.update(row["id"], {"title": "Hijacked"})
        assert bob.delete_by_id(row["id"]) is False
        assert store.pages("alice").select()[0]["title"] == "Private"

    def test_cannot_parent_under_foreign_page(self, store: SqliteStore) -> None:
        alice_page = store.pages("alice").insert({"title": "Alice"})
        with pytest.raises(StoreError):
            store.pages("bob").insert({"title": "Bob", "parent_id": alice_page["id"]})

    def test_cannot_insert_for_other_owner(self, store: SqliteStore) -> None:
        with pytest.raises(StoreError):
            store.pages("alice").insert({"title": "x", "owner_id": "bob"})

    def test_cannot_add_block_to_foreign_page(self, store: SqliteStore) -> None:
        alice_page = store.pages("alice").insert({"title": "Alice"})
        with pytest.raises(StoreError):
            store.blocks("bob").insert({"page_id": alice_page["id"]})

    def test_blocks_invisible_to_other_owner(self, store: SqliteStore) -> None:
        page = store.pages("alice").insert({"title": "Alice"})
        block = store.blocks("alice").insert({"page_id": page["id"], "content": "secret"})

        assert store.blocks("bob").select({"page_id": page["id"]}) == []
        with pytest.raises(NotFoundError):
            store.blocks("bob").update(block["id"], {"content": "leaked"})

    def test_no_owner_sees_nothing_and_writes_nothing(self, store: SqliteStore) -> None:
        store.pages("alice").insert({"title": "A"})

        assert store.pages(None).select() == []
        with pytest.raises(StoreError):
            store.pages(None).insert({"title": "Anon"})


# =============================================================================
# Cascade Tests
# =============================================================================


class TestCascadeDelete:
    def test_delete_page_removes_subtree_and_blocks(self, store: SqliteStore) -> None:
        pages = store.pages("alice")
        blocks = store.blocks("alice")
        root = pages.insert({"title": "Root"})
        child = pages.insert({"title": "Child", "parent_id": root["id"]})
        grandchild = pages.insert({"title": "Grandchild", "parent_id": child["id"]})
        other = pages.insert({"title": "Other"})
        for page in (root, child, grandchild, other):
            blocks.insert({"page_id": page["id"], "content": page["title"]})

        assert pages.delete_by_id(root["id"]) is True

        assert [r["id"] for r in pages.select()] == [other["id"]]
        assert [r["content"] for r in blocks.select()] == ["Other"]


# =============================================================================
# Retry Tests
# =============================================================================


class TestRetry:
    def test_transient_lock_is_retried(self, db_path: Path) -> None:
        store = SqliteStore(db_path, retry_attempts=3)
        func = Mock(side_effect=[sqlite3.OperationalError("database is locked"), 42])
        try:
            assert store.run("select", "pages", func) == 42
        finally:
            store.close()
        assert func.call_count == 2

    def test_exhausted_retries_raise_recoverable_store_error(self, db_path: Path) -> None:
        store = SqliteStore(db_path, retry_attempts=2)
        func = Mock(side_effect=sqlite3.OperationalError("database is locked"))
        try:
            with pytest.raises(StoreError) as exc_info:
                store.run("update", "blocks", func)
        finally:
            store.close()

        assert func.call_count == 2
        assert exc_info.value.recoverable is True
        assert exc_info.value.table == "blocks"

    def test_other_errors_are_not_retried(self, db_path: Path) -> None:
        store = SqliteStore(db_path, retry_attempts=3)
        func = Mock(side_effect=sqlite3.IntegrityError("constraint failed"))
        try:
            with pytest.raises(StoreError) as exc_info:
                store.run("insert", "pages", func)
        finally:
            store.close()

        assert func.call_count == 1
        assert exc_info.value.recoverable is False

    def test_domain_errors_pass_through(self, store: SqliteStore) -> None:
        func = Mock(side_effect=NotFoundError("nope", resource_type="page"))
        with pytest.raises(NotFoundError):
            store.run("update", "pages", func)
        assert func.call_count == 1
