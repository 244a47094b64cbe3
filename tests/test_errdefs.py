import pytest

from vkubelet.errdefs import (
    InvalidInputError,
    NotFoundError,
    as_invalid_input,
    as_not_found,
    invalid_input,
    is_invalid_input,
    is_not_found,
    not_found,
)


class _CustomInvalid(Exception):
    def __init__(self, flag):
        super().__init__()
        self.flag = flag

    def __str__(self):
        return str(self.flag).lower()

    def invalid_input(self):
        return self.flag


class _CustomNotFound(Exception):
    def __init__(self, flag):
        super().__init__()
        self.flag = flag

    def __str__(self):
        return str(self.flag).lower()

    def not_found(self):
        return self.flag


def _wrap(err, msg):
    outer = RuntimeError(msg)
    outer.__cause__ = err
    return outer


@pytest.mark.parametrize(
    "err, msg, expected",
    [
        (invalid_input("%s not found" % "foo"), "foo not found", True),
        (as_invalid_input(Exception("this is a test")), "this is a test", True),
        (_CustomInvalid(False), "false", False),
        (_CustomInvalid(True), "true", True),
    ],
)
def test_is_invalid_input(err, msg, expected):
    assert is_invalid_input(err) == expected
    assert str(err) == msg


def test_as_invalid_input_with_none():
    assert as_invalid_input(None) is None
    assert is_invalid_input(as_invalid_input(None)) is False


def test_is_invalid_input_none():
    assert is_invalid_input(None) is False


def test_invalid_input_cause():
    err = Exception("test")
    e = InvalidInputError(err)
    assert e.cause is err
    assert is_invalid_input(_wrap(e, "some details"))


def test_invalid_input_is_raisable():
    err = invalid_input("bad value")
    assert str(err) == "bad value"
    assert err.invalid_input() is True
    with pytest.raises(InvalidInputError, match="bad value") as info:
        raise err
    assert info.value is err


@pytest.mark.parametrize(
    "err, msg, expected",
    [
        (not_found("%s not found" % "foo"), "foo not found", True),
        (as_not_found(Exception("this is a test")), "this is a test", True),
        (_CustomNotFound(False), "false", False),
        (_CustomNotFound(True), "true", True),
    ],
)
def test_is_not_found(err, msg, expected):
    assert is_not_found(err) == expected
    assert str(err) == msg


def test_as_not_found_with_none():
    assert as_not_found(None) is None
    assert is_not_found(as_not_found(None)) is False


def test_is_not_found_none():
    assert is_not_found(None) is False


def test_not_found_cause():
    err = Exception("test")
    e = NotFoundError(err)
    assert e.cause is err
    assert is_not_found(_wrap(e, "some details"))


def test_kinds_are_distinct():
    assert is_not_found(invalid_input("x")) is False
    assert is_invalid_input(not_found("x")) is False


def test_plain_error_is_neither():
    err = ValueError("plain")
    assert is_not_found(err) is False
    assert is_invalid_input(err) is False