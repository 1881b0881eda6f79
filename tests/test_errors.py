"""Tests for the quire error hierarchy."""

from __future__ import annotations

import pytest

from quire.errors import (
    ERROR_CODES,
    InvalidMoveError,
    NoPageSelectedError,
    NotAuthenticatedError,
    NotFoundError,
    PartialShiftError,
    QuireError,
    StoreError,
    ValidationError,
    get_error_code,
)
from quire.models import Block


class TestQuireError:
    def test_base_attributes(self) -> None:
        err = QuireError("boom", recoverable=True, context={"k": "v"})
        assert str(err) == "boom"
        assert err.recoverable is True
        assert err.to_dict() == {"type": "quire", "message": "boom", "recoverable": True, "k": "v"}

    def test_to_dict_drops_none_context(self) -> None:
        data = NotFoundError("missing", resource_type="page").to_dict()
        assert data["resource_type"] == "page"
        assert "resource_id" not in data

    @pytest.mark.parametrize(
        "exc_type",
        [ValidationError, NotAuthenticatedError, NoPageSelectedError, InvalidMoveError, NotFoundError, StoreError],
    )
    def test_all_derive_from_base(self, exc_type: type[QuireError]) -> None:
        assert issubclass(exc_type, QuireError)


class TestSpecificErrors:
    def test_validation_error_context(self) -> None:
        err = ValidationError("bad", field="type", constraint="block_type")
        assert err.field == "type"
        assert err.to_dict()["constraint"] == "block_type"
        assert err.recoverable is False

    def test_default_messages(self) -> None:
        assert NotAuthenticatedError(operation="pages.create").message == "Not authenticated"
        assert NoPageSelectedError().message == "No page selected"

    def test_invalid_move_context(self) -> None:
        err = InvalidMoveError("no", page_id="a", target_id="b", reason="descendant")
        assert err.to_dict()["target_id"] == "b"
        assert err.reason == "descendant"

    def test_partial_shift_carries_block(self) -> None:
        block = Block(id="block-1", page_id="page-1", position=2)
        err = PartialShiftError("partial", block=block, shifted=["b1"], unshifted=["b2"])

        assert isinstance(err, StoreError)
        assert err.block is block
        assert err.recoverable is True
        data = err.to_dict()
        assert data["type"] == "partialshift"
        assert data["block_id"] == "block-1"
        assert data["unshifted"] == ["b2"]
        assert data["table"] == "blocks"


class TestErrorCodes:
    def test_exact_types(self) -> None:
        for exc_type, code in ERROR_CODES.items():
            assert code <= -32000
            assert get_error_code(exc_type.__new__(exc_type)) == code

    def test_subclass_gets_specific_code(self) -> None:
        block = Block(id="b", page_id="p")
        err = PartialShiftError("x", block=block, shifted=[], unshifted=[])
        assert get_error_code(err) == ERROR_CODES[PartialShiftError]
        assert get_error_code(err) != ERROR_CODES[StoreError]

    def test_unknown_subclass_falls_back_to_parent(self) -> None:
        class CustomStoreError(StoreError):
            pass

        assert get_error_code(CustomStoreError("x")) == ERROR_CODES[StoreError]

    def test_base_error_is_internal(self) -> None:
        assert get_error_code(QuireError("x")) == -32603
