"""Pipe-separated attribute rules (``"required|min:3"``) checked by pydantic.

Each distinct rule set becomes a pydantic model built with ``create_model``:
one field per attribute, aliased to the attribute name, whose annotation
carries one ``AfterValidator`` per rule. A failing rule raises a
``PydanticCustomError`` typed with the rule name, so the collected errors map
straight back to rule messages. Rules stop at the first failure per attribute.
"""

from __future__ import annotations

from collections.abc import Sized
from functools import lru_cache
from typing import TYPE_CHECKING, Annotated, Any, Final, Literal

from pydantic import (
    AfterValidator,
    BaseModel,
    ConfigDict,
    EmailStr,
    Field,
    StringConstraints,
    TypeAdapter,
    ValidationError,
    WrapValidator,
    create_model,
)
from pydantic_core import PydanticCustomError, SchemaError

from arcore.errors import ConfigurationError
from arcore.model.messages import MessageBag

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable, Mapping

    from pydantic import ValidationInfo, ValidatorFunctionWrapHandler

    type Parsed = tuple[tuple[str, tuple[str, ...]], ...]
    type RuleSet = tuple[tuple[str, Parsed], ...]
    type Predicate = Callable[[object, Mapping[str, object]], bool]

RULE_NAMES: Final[frozenset[str]] = frozenset(
    {"required", "min", "max", "email", "numeric", "integer", "in", "regex", "confirmed"}
)

DEFAULT_MESSAGES: Final[dict[str, str]] = {
    "required": "The :attribute field is required.",
    "min": "The :attribute must be at least :param.",
    "max": "The :attribute may not be greater than :param.",
    "email": "The :attribute must be a valid email address.",
    "numeric": "The :attribute must be a number.",
    "integer": "The :attribute must be an integer.",
    "in": "The selected :attribute is invalid.",
    "regex": "The :attribute format is invalid.",
    "confirmed": "The :attribute confirmation does not match.",
}

_EMAIL: Final = TypeAdapter(EmailStr)
_NUMBER: Final = TypeAdapter(float)
_INTEGER: Final = TypeAdapter(int)


def _is_empty(value: object) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    if isinstance(value, Sized):
        return len(value) == 0
    return False


def _size(value: object) -> float | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, int | float):
        return value
    if isinstance(value, Sized):
        return len(value)
    return None


def _accepts(adapter: TypeAdapter[Any], value: object) -> bool:
    try:
        adapter.validate_python(value)
    except ValidationError:
        return False
    return True


def _number(params: tuple[str, ...], rule: str) -> float:
    if len(params) != 1:
        raise ConfigurationError(f"Rule {rule!r} expects exactly one parameter")
    try:
        return float(params[0])
    except ValueError as exc:
        raise ConfigurationError(f"Rule {rule!r} expects a number, got {params[0]!r}") from exc


@lru_cache(maxsize=128)
def _pattern(pattern: str) -> TypeAdapter[str]:
    try:
        return TypeAdapter(Annotated[str, StringConstraints(pattern=pattern)])
    except SchemaError as exc:
        raise ConfigurationError(f"Invalid regex rule pattern: {pattern!r}") from exc


@lru_cache(maxsize=128)
def _choices(params: tuple[str, ...]) -> TypeAdapter[str]:
    return TypeAdapter(Literal[params])  # pyright: ignore[reportInvalidTypeForm]


def _predicate(attribute: str, rule: str, params: tuple[str, ...]) -> Predicate:
    match rule:
        case "required":
            return lambda value, _: not _is_empty(value)
        case "min":
            least = _number(params, rule)
            return lambda value, _: (size := _size(value)) is not None and size >= least
        case "max":
            most = _number(params, rule)
            return lambda value, _: (size := _size(value)) is not None and size <= most
        case "email":
            return lambda value, _: _accepts(_EMAIL, value)
        case "numeric":
            return lambda value, _: not isinstance(value, bool) and _accepts(_NUMBER, value)
        case "integer":
            return lambda value, _: not isinstance(value, bool) and _accepts(_INTEGER, value)
        case "in":
            if not params:
                raise ConfigurationError("Rule 'in' expects at least one choice")
            choices = _choices(params)
            return lambda value, _: _accepts(choices, str(value))
        case "regex":
            pattern = _pattern(",".join(params))
            return lambda value, _: isinstance(value, str) and _accepts(pattern, value)
        case "confirmed":
            confirmation = f"{attribute}_confirmation"
            return lambda value, attributes: attributes.get(confirmation) == value
        case _:
            raise ConfigurationError(f"Unknown validation rule: {rule!r}")


def _rule_validator(attribute: str, rule: str, params: tuple[str, ...]) -> AfterValidator:
    holds = _predicate(attribute, rule, params)

    def check(value: object, info: ValidationInfo) -> object:
        attributes: Mapping[str, object] = info.context or {}
        if not holds(value, attributes):
            raise PydanticCustomError(rule, DEFAULT_MESSAGES[rule], {"param": ",".join(params)})
        return value

    return AfterValidator(check)


def _skip_empty(value: object, handler: ValidatorFunctionWrapHandler) -> object:
    if _is_empty(value):
        return value
    return handler(value)


def parse_rules(declared: str | Iterable[str]) -> Parsed:
    """``"required|in:a,b"`` -> ``(("required", ()), ("in", ("a", "b")))``."""

    entries = declared.split("|") if isinstance(declared, str) else list(declared)
    parsed: list[tuple[str, tuple[str, ...]]] = []
    for entry in entries:
        if not entry.strip():
            continue
        name, _, raw_params = entry.strip().partition(":")
        if name not in RULE_NAMES:
            raise ConfigurationError(f"Unknown validation rule: {name!r}")
        params = tuple(raw_params.split(",")) if raw_params else ()
        parsed.append((name, params))
    return tuple(parsed)


@lru_cache(maxsize=256)
def rules_model(rule_set: RuleSet) -> type[BaseModel]:
    """Pydantic model checking one attribute bag against ``rule_set``."""

    fields: dict[str, Any] = {}
    for index, (attribute, parsed) in enumerate(rule_set):
        metadata: list[object] = [
            _rule_validator(attribute, name, params) for name, params in parsed
        ]
        # empty optional attributes skip every rule
        if all(name != "required" for name, _ in parsed):
            metadata.append(WrapValidator(_skip_empty))
        annotation = Annotated[Any, *metadata]  # pyright: ignore[reportInvalidTypeArguments]
        fields[f"field_{index}"] = (
            annotation,
            Field(default=None, alias=attribute, validate_default=True),
        )
    return create_model(
        "AttributeRules",
        __config__=ConfigDict(extra="ignore"),
        **fields,
    )


class RuleValidator:
    """Validate an attribute bag; the first failing rule of each attribute is reported."""

    def validate(
        self,
        attributes: Mapping[str, object],
        rules: Mapping[str, str | Iterable[str]],
        custom_messages: Mapping[str, str],
    ) -> tuple[bool, MessageBag]:
        errors = MessageBag()
        rule_set = tuple(
            (attribute, parse_rules(declared)) for attribute, declared in rules.items()
        )
        model = rules_model(rule_set)
        try:
            model.model_validate(dict(attributes), context=dict(attributes))
        except ValidationError as exc:
            for error in exc.errors():
                attribute = str(error["loc"][0])
                rule = error["type"]
                params = str(error.get("ctx", {}).get("param", ""))
                template = self._template(attribute, rule, custom_messages) or error["msg"]
                errors.add(attribute, self._render(template, attribute, params))
        return not errors, errors

    @staticmethod
    def _template(attribute: str, rule: str, custom_messages: Mapping[str, str]) -> str | None:
        return (
            custom_messages.get(f"{attribute}.{rule}")
            or custom_messages.get(rule)
            or DEFAULT_MESSAGES.get(rule)
        )

    @staticmethod
    def _render(template: str, attribute: str, params: str) -> str:
        label = attribute.replace("_", " ")
        return template.replace(":attribute", label).replace(":param", params)


if TYPE_CHECKING:
    from arcore.ports.validation import Validator

    _validator_check: Validator = RuleValidator()
