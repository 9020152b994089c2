r"""
Helmsman option and argument specifications.

Overview
- Specs
  • Option: named value carrier given as --name / -alias, with a declared kind
    (string, number, boolean or array), optional default, required flag and choices.
  • Argument: positional value following the command name, optionally required
    or variadic (accepts every remaining positional).

- Introspection & representation
  • ArgumentType metaclass provides stable __repr__/__rich_repr__ and exposes the
    fields declared in __introspectable__ as read-only properties.
  • Specs are immutable once constructed and sealed against subclassing.

Metadata (sanitized on construction)
- Shared
  • name: str matching r"[A-Za-z][A-Za-z0-9_-]*".
  • descr: Unset | str | Text (short help), non-empty when provided.
  • hidden: bool (suppresses from help).
- Option only
  • alias: Unset | str matching r"[A-Za-z0-9][A-Za-z0-9_-]*" (one character for
    clustering, e.g. -vq).
  • kind: one of KINDS.
  • required: bool.
  • default: Unset or a value matching kind (arrays are stored as tuples).
  • choices: iterable of distinct non-empty strings, string kind only; a string
    default must be one of them.
- Argument only
  • required / variadic: bool.

Schema-level rules (unique names, single trailing variadic) are enforced by the
command layer when specs are attached, since a spec alone cannot see its siblings.

Quick example:
    >>> from helmsman.arguments import Option, Argument
    >>> Option("output", "Output directory", alias="o", default="./dist")
    option(name='output', alias='o', kind='string', ...)
    >>> Argument("files", variadic=True)
    argument(name='files', ...)
"""
import functools
import math
import operator
import re
from collections.abc import Iterable, Sequence

from rich.text import Text

from .utils import *

KINDS = ("string", "number", "boolean", "array")


class ArgumentType(type):
    """
    Metaclass that turns spec classes into immutable, introspectable records.

    Responsibilities
    - Derive __typename__ from the class name (camel-case split with hyphens),
      used in messages and help output.
    - Expose every name listed in __introspectable__ as a read-only property
      using mirror().
    - Provide stable __repr__/__rich_repr__ implementations.
    - Seal classes created with sealed=True against subclassing.
    """
    __introspectable__ = ()
    __displayable__ = Unset

    def __new__(cls, name, bases, namespace, **options):
        self = super().__new__(
            cls,
            name,
            bases,
            namespace | {
                "__typename__": re.sub(r"(?<!^)(?=[A-Z])", r"-", name).lower(),
            } | {
                name: mirror(name) for name in namespace.get("__introspectable__", ())
            },
        )

        @rename("__repr__")
        def __repr__(self):
            """
            Return a concise, stable representation with key metadata.

            Example
            - option(name='verbose', alias='v', kind='boolean', ...)
            """
            return f"{type(self).__typename__}({', '.join(map(functools.partial(operator.mod, '%s=%r'), self.__rich_repr__()))})"
        self.__repr__ = __repr__

        @rename("__rich_repr__")
        def __rich_repr__(self):
            for name in coalesce(type(self).__displayable__, type(self).__introspectable__):
                yield name, getattr(self, name)
        self.__rich_repr__ = __rich_repr__

        if options.get("sealed", False):
            @rename("__init_subclass__")
            def __init_subclass__(cls, **options):  # NOQA: F-841
                raise TypeError(f"type {self.__name__!r} is not an acceptable base type")
            self.__init_subclass__ = classmethod(__init_subclass__)

        return self


def _sanitize_metadata(cls, metadata, /):
    """
    Internal: normalize and validate the metadata shared by Option and Argument.

    - name: required non-empty string matching r"[A-Za-z][A-Za-z0-9_-]*".
    - descr: Unset becomes None; a provided string must be non-empty after trimming.

    Mutates metadata in place.
    """
    if not isinstance(name := metadata["name"], str):
        raise TypeError(f"{cls.__typename__} 'name' must be a string")
    elif not (name := name.strip()):
        raise ValueError(f"{cls.__typename__} 'name' cannot be empty")
    elif not re.fullmatch(r"[A-Za-z][A-Za-z0-9_-]*", name):
        raise ValueError(f"{cls.__typename__} 'name' must start with a letter and contain only letters, digits, '_' or '-'")
    metadata["name"] = name

    if not isinstance(descr := metadata["descr"], str | Text | Unset):
        raise TypeError(f"{cls.__typename__} 'descr' must be a string")
    elif isinstance(descr, str) and not (descr := descr.strip()):
        raise ValueError(f"{cls.__typename__} 'descr' cannot be empty")
    metadata["descr"] = coalesce(descr)


def _sanitize_default(cls, metadata, /):
    """
    Internal: check that a declared default matches the declared kind.

    number accepts int/float (bool excluded, NaN rejected), boolean accepts bool,
    string accepts str, and array accepts a non-string sequence of strings, which
    is frozen into a tuple.
    """
    if (default := metadata["default"]) is Unset:
        return

    match metadata["kind"]:
        case "string":
            if not isinstance(default, str):
                raise TypeError(f"{cls.__typename__} {metadata['name']!r} default must be a string")
        case "number":
            if isinstance(default, bool) or not isinstance(default, int | float):
                raise TypeError(f"{cls.__typename__} {metadata['name']!r} default must be a number")
            if isinstance(default, float) and math.isnan(default):
                raise ValueError(f"{cls.__typename__} {metadata['name']!r} default cannot be NaN")
        case "boolean":
            if not isinstance(default, bool):
                raise TypeError(f"{cls.__typename__} {metadata['name']!r} default must be a boolean")
        case "array":
            if isinstance(default, str) or not isinstance(default, Sequence):
                raise TypeError(f"{cls.__typename__} {metadata['name']!r} default must be a sequence of strings")
            if not all(isinstance(item, str) for item in default):
                raise TypeError(f"{cls.__typename__} {metadata['name']!r} default must only contain strings")
            metadata["default"] = tuple(default)


def _sanitize_option_metadata(cls, metadata, /):
    """
    Internal: validate and normalize metadata specific to named options.

    Responsibilities
    - alias: Unset becomes None; a provided alias must match
      r"[A-Za-z0-9][A-Za-z0-9_-]*" and differ from the name.
    - kind: one of KINDS.
    - default: checked by _sanitize_default.
    - choices: iterable of distinct non-empty strings, normalized to a tuple.
      Only the string kind may declare choices, and a string default must be
      a member.

    Mutates metadata in place.
    """
    if not isinstance(alias := metadata["alias"], str | Unset):
        raise TypeError(f"{cls.__typename__} 'alias' must be a string")
    elif isinstance(alias, str):
        if not re.fullmatch(r"[A-Za-z0-9][A-Za-z0-9_-]*", alias := alias.strip()):
            raise ValueError(f"{cls.__typename__} 'alias' must contain only letters, digits, '_' or '-'")
        if alias == metadata["name"]:
            raise ValueError(f"{cls.__typename__} 'alias' cannot repeat the name {alias!r}")
    metadata["alias"] = coalesce(alias)

    if metadata["kind"] not in KINDS:
        raise ValueError(f"{cls.__typename__} 'kind' must be one of {', '.join(map(repr, KINDS))}")

    _sanitize_default(cls, metadata)

    if isinstance(choices := metadata["choices"], str) or not isinstance(choices, Iterable):
        raise TypeError(f"{cls.__typename__} 'choices' must be an iterable of strings")
    sanitized = []
    for choice in choices:
        if not isinstance(choice, str):
            raise TypeError(f"{cls.__typename__} 'choices' must only contain strings")
        if not choice:
            raise ValueError(f"{cls.__typename__} 'choices' cannot contain empty strings")
        if choice in sanitized:
            raise ValueError(f"{cls.__typename__} 'choices' cannot contain duplicates")
        sanitized.append(choice)
    metadata["choices"] = tuple(sanitized)

    if metadata["choices"] and metadata["kind"] != "string":
        raise TypeError(f"{cls.__typename__} 'choices' are only allowed for the 'string' kind")
    if metadata["choices"] and isinstance(metadata["default"], str) and metadata["default"] not in metadata["choices"]:
        raise ValueError(f"{cls.__typename__} {metadata['name']!r} default must be one of its choices")


class Option(metaclass=ArgumentType, sealed=True):
    """
    Named option specification (e.g., --output / -o).

    Properties
    - The names listed in __introspectable__ are exposed as read-only attributes
      mirroring the sanitized metadata.
    - default is Unset when none was declared; absent options without a default
      stay absent from the parsed mapping.
    """

    __introspectable__ = (
        "name",
        "descr",
        "alias",
        "kind",
        "required",
        "default",
        "choices",
        "hidden",
    )

    def __new__(
            cls,
            name,
            /,
            descr=Unset,
            alias=Unset,
            kind="string",
            required=False,
            default=Unset,
            choices=(),
            *,
            hidden=False
    ):
        """
        Construct an Option spec.

        Parameters
        - name: str
          Long name, given on the command line as --name.
        - descr: Unset | str | Text
          Short description for help. None when Unset.
        - alias: Unset | str
          Short form, given as -alias (single characters may be clustered).
        - kind: "string" | "number" | "boolean" | "array"
          Declared value kind driving coercion.
        - required: bool
          When True, a missing value fails the parse (or is prompted for).
        - default: Any
          Seeded into the parsed options before tokens are read. Must match kind.
        - choices: Iterable[str]
          Allowed values for the string kind.
        - hidden: bool
          Suppress from help output.

        Raises
        - TypeError / ValueError on malformed metadata.
        """
        metadata = {
            "name": name,
            "descr": descr,
            "alias": alias,
            "kind": kind,
            "required": bool(required),
            "default": default,
            "choices": choices,
            "hidden": bool(hidden),
        }
        _sanitize_metadata(cls, metadata)
        _sanitize_option_metadata(cls, metadata)

        self = super().__new__(cls)
        for name, object in metadata.items():
            setattr(self, "_" + name, object)
        return self

    @property
    def boolean(self):
        """True when the option carries the boolean kind."""
        return self._kind == "boolean"

    def __setattr__(self, name, value):
        if name in type(self).__introspectable__ or hasattr(self, name):
            raise AttributeError(f"{type(self).__typename__} is read-only")
        super().__setattr__(name, value)


class Argument(metaclass=ArgumentType, sealed=True):
    """
    Positional argument specification.

    A variadic argument accepts every remaining positional (including none) and
    must be the last one declared on its command.
    """

    __introspectable__ = (
        "name",
        "descr",
        "required",
        "variadic",
        "hidden",
    )

    def __new__(cls, name, /, descr=Unset, required=False, variadic=False, *, hidden=False):
        metadata = {
            "name": name,
            "descr": descr,
            "required": bool(required),
            "variadic": bool(variadic),
            "hidden": bool(hidden),
        }
        _sanitize_metadata(cls, metadata)

        self = super().__new__(cls)
        for name, object in metadata.items():
            setattr(self, "_" + name, object)
        return self

    def __setattr__(self, name, value):
        if name in type(self).__introspectable__ or hasattr(self, name):
            raise AttributeError(f"{type(self).__typename__} is read-only")
        super().__setattr__(name, value)


__all__ = (
    "Option",
    "Argument",
    "KINDS",
)

del ArgumentType
