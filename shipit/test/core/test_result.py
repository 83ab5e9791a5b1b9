"""Tests for shipit.core.result module."""

from shipit.core.result import Err, Ok, Result


class TestOk:
    """Tests for Ok type."""

    def test_ok_holds_value(self) -> None:
        assert Ok(42).value == 42

    def test_ok_equality_and_repr(self) -> None:
        assert Ok(1) == Ok(1)
        assert Ok(1) != Err(1)
        assert repr(Ok("v")) == "Ok('v')"


class TestErr:
    """Tests for Err type."""

    def test_err_holds_error(self) -> None:
        assert Err("boom").error == "boom"

    def test_err_repr(self) -> None:
        assert repr(Err("boom")) == "Err('boom')"


def test_isinstance_narrowing() -> None:
    results: list[Result[int, str]] = [Ok(1), Err("no")]
    assert [isinstance(r, Ok) for r in results] == [True, False]


def test_pattern_matching() -> None:
    def describe(result: Result[int, str]) -> str:
        match result:
            case Ok(value):
                return f"ok {value}"
            case Err(error):
                return f"err {error}"

    assert describe(Ok(3)) == "ok 3"
    assert describe(Err("x")) == "err x"
