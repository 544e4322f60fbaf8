from __future__ import annotations

import pytest
from pydantic import BaseModel

from arcore.adapters.validation import RuleValidator, parse_rules, rules_model
from arcore.errors import ConfigurationError


def test_parse_rules_splits_parameters() -> None:
    assert parse_rules("required|in:a,b|min:3") == (
        ("required", ()),
        ("in", ("a", "b")),
        ("min", ("3",)),
    )
    assert parse_rules(["required", "email"]) == (("required", ()), ("email", ()))


def test_unknown_rule_is_a_configuration_error() -> None:
    with pytest.raises(ConfigurationError, match="frobnicate"):
        parse_rules("required|frobnicate")


@pytest.mark.parametrize("declared", ["min", "max:lots", "in", "regex:(unclosed"])
def test_malformed_parameters_are_configuration_errors(declared: str) -> None:
    with pytest.raises(ConfigurationError):
        RuleValidator().validate({"field": "x"}, {"field": declared}, {})


def test_rule_sets_compile_to_cached_pydantic_models() -> None:
    rule_set = (("title", parse_rules("required|min:3")),)

    model = rules_model(rule_set)

    assert issubclass(model, BaseModel)
    assert rules_model(rule_set) is model


@pytest.mark.parametrize(
    ("rules", "value", "valid"),
    [
        ("required", "x", True),
        ("required", "  ", False),
        ("required", None, False),
        ("min:3", "abc", True),
        ("min:3", "ab", False),
        ("max:2", 3, False),
        ("max:2", [1, 2], True),
        ("email", "ann@mail.com", True),
        ("email", "ann@", False),
        ("numeric", "1.5", True),
        ("numeric", "x", False),
        ("numeric", True, False),
        ("integer", "-4", True),
        ("integer", "4.2", False),
        ("in:draft,live", "live", True),
        ("in:draft,live", "gone", False),
        ("regex:^[a-z]+$", "abc", True),
        ("regex:^[a-z]+$", "ABC", False),
    ],
)
def test_rules(rules: str, value: object, valid: bool) -> None:
    passed, errors = RuleValidator().validate({"field": value}, {"field": rules}, {})

    assert passed is valid
    assert bool(errors) is not valid


def test_missing_required_attribute_fails() -> None:
    passed, errors = RuleValidator().validate({}, {"name": "required"}, {})

    assert not passed
    assert errors.first("name") == "The name field is required."


def test_optional_empty_values_skip_rules() -> None:
    passed, _ = RuleValidator().validate({"email": ""}, {"email": "email|min:5"}, {})

    assert passed


def test_first_failing_rule_is_reported() -> None:
    _, errors = RuleValidator().validate({"code": "ab"}, {"code": "min:3|integer"}, {})

    assert errors.get("code") == ("The code must be at least 3.",)


def test_confirmed_compares_confirmation_attribute() -> None:
    validator = RuleValidator()
    rules = {"password": "confirmed"}

    ok, _ = validator.validate({"password": "a", "password_confirmation": "a"}, rules, {})
    bad, errors = validator.validate({"password": "a", "password_confirmation": "b"}, rules, {})

    assert ok
    assert not bad
    assert errors.first("password") == "The password confirmation does not match."


def test_messages_use_placeholders_and_custom_overrides() -> None:
    validator = RuleValidator()
    rules = {"first_name": "required", "title": "min:4"}
    custom = {"title.min": "Give :attribute at least :param chars.", "required": ":attribute!"}

    _, errors = validator.validate({"title": "abc"}, rules, custom)

    assert errors.as_dict() == {
        "first_name": ["first name!"],
        "title": ["Give title at least 4 chars."],
    }
