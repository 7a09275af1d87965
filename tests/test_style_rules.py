from __future__ import annotations

from modbuild.style import DEFAULT_RULES, scan

_PARAM = "@param should be followed by 2 spaces"
_RETURN = "@return should be followed by 1 space"
_RETURNS = "Use @return instead of @returns"
_THROWS = "@throws should be followed by 1 space"


def _messages(text: str) -> list[str]:
    return [m.rule_message for m in scan(text, DEFAULT_RULES)]


def test_registry_order_and_messages() -> None:
    assert [r.message for r in DEFAULT_RULES] == [_PARAM, _RETURN, _RETURNS, _THROWS]


def test_param_single_space_is_flagged() -> None:
    assert _messages(" * @param x some text\n") == [_PARAM]


def test_param_two_spaces_after_name_is_accepted() -> None:
    assert _messages(" * @param x  some text\n") == []


def test_param_two_spaces_after_tag_is_accepted() -> None:
    assert _messages(" * @param  x some text\n") == []


def test_param_three_spaces_is_flagged() -> None:
    assert _messages(" * @param   x some text\n") == [_PARAM]


def test_param_without_blank_is_not_a_tag_spacing_defect() -> None:
    assert _messages(" * @params\n * @param\n") == []


def test_returns_is_always_flagged() -> None:
    assert _messages(" * @returns {string}\n") == [_RETURNS]
    assert _messages(" * @returns  {string}\n") == [_RETURNS]


def test_return_single_space_is_accepted() -> None:
    assert _messages(" * @return {string}\n") == []


def test_return_double_space_is_flagged() -> None:
    assert _messages(" * @return  {string}\n") == [_RETURN]


def test_throws_spacing() -> None:
    assert _messages(" * @throws {Error} when broken\n") == []
    assert _messages(" * @throws  {Error} when broken\n") == [_THROWS]
