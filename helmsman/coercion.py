"""
Value coercion: turn raw option text into the option's declared kind.

- True (the flag-without-value marker) passes through for every kind.
- number: integer literals become int, other numeric literals float; NaN,
  infinities, "1_000"-style grouping and non-numeric text raise
  UncastableValueError.
- boolean: "true" or "1" (case-insensitive) is True, anything else False.
- array: split on ",", each element trimmed; order, duplicates and empty
  segments are kept.
- string: unchanged, but must be one of the declared choices when any exist.
"""
import math

from .faults import FaultCode, UncastableValueError, InvalidChoiceError


def _number(value, option):
    text = value.strip()
    number = math.nan
    # int() and float() accept "1_000"; command-line numbers do not
    if "_" not in text:
        try:
            return int(text)
        except ValueError:
            pass
        try:
            number = float(text)
        except ValueError:
            pass
    if not math.isfinite(number):
        raise UncastableValueError(
            "option %r expects a number, got %r" % (option.name, value),
            title="uncastable value",
            code=FaultCode.UNCASTABLE_VALUE,
            hint="pass a numeric value (for example: --%s=42)" % option.name,
            option=option,
            input=value,
        )
    return number


def coerce(value, option, /):
    """
    Convert a raw value into the typed value declared by option.kind.

    Parameters
    - value: str | True
      Raw text taken from the command line (or a prompt), or True when the
      option was given without a value.
    - option: Option

    Raises
    - UncastableValueError: number kind with a non-numeric value.
    - InvalidChoiceError: string kind with a value outside option.choices.
    """
    if value is True:
        return value

    match option.kind:
        case "number":
            return _number(value, option)
        case "boolean":
            return value.strip().lower() in ("true", "1")
        case "array":
            return [item.strip() for item in value.split(",")]

    if option.choices and value not in option.choices:
        raise InvalidChoiceError(
            "option %r must be one of %s, got %r" % (option.name, ", ".join(option.choices), value),
            title="invalid choice",
            code=FaultCode.INVALID_CHOICE,
            hint="choose one of: %s" % ", ".join(option.choices),
            option=option,
            input=value,
            choices=option.choices,
        )
    return value


def zero(option, /):
    """
    Return the kind-appropriate empty value used to seed prompts.
    """
    return {"number": 0, "boolean": False, "array": []}.get(option.kind, "")


__all__ = (
    "coerce",
    "zero",
)
