"""Unit tests for kernel error hierarchy."""

from __future__ import annotations

import json

from sheetstream.kernel.errors import (
    ApplicationError,
    BaseError,
    DomainError,
    InfrastructureError,
    ValidationError,
)


class TestBaseError:
    def test_message_is_stored(self) -> None:
        err = BaseError("something went wrong")
        assert err.message == "something went wrong"

    def test_default_code(self) -> None:
        assert BaseError("m").code == "base_error"

    def test_custom_code(self) -> None:
        err = BaseError("m", code="custom")
        assert err.code == "custom"

    def test_to_dict_basic(self) -> None:
        err = BaseError("m", code="my_code", detail={"key": "val"})
        d = err.to_dict()
        assert d == {"code": "my_code", "message": "m", "detail": {"key": "val"}}

    def test_to_dict_includes_cause_repr(self) -> None:
        cause = ValueError("original")
        err = BaseError("wrapper", cause=cause)
        d = err.to_dict()
        assert "cause" in d
        assert "original" in d["cause"]

    def test_cause_sets_dunder_cause(self) -> None:
        cause = RuntimeError("root")
        err = BaseError("wrap", cause=cause)
        assert err.__cause__ is cause

    def test_str_is_valid_json(self) -> None:
        err = BaseError("oops", code="oops", detail={"x": 1})
        parsed = json.loads(str(err))
        assert parsed["code"] == "oops"

    def test_repr_names_class_and_code(self) -> None:
        assert repr(DomainError("bad")) == "DomainError(code='domain_error', message='bad')"


class TestHierarchy:
    def test_validation_is_domain(self) -> None:
        assert issubclass(ValidationError, DomainError)

    def test_layers_share_root(self) -> None:
        for cls in (DomainError, ApplicationError, InfrastructureError):
            assert issubclass(cls, BaseError)

    def test_validation_errors_list(self) -> None:
        err = ValidationError("invalid", errors=[{"field": "name", "msg": "required"}])
        assert err.to_dict()["errors"] == [{"field": "name", "msg": "required"}]

    def test_validation_errors_default_empty(self) -> None:
        assert ValidationError("invalid").errors == []
