"""
Option resolution cache.

Memoizes option lookups so repeated parses against the same schema do not scan
it linearly for every token. Entries are keyed by (mode, token, len(schema)):

- mode "name" matches an option whose name or alias equals the token.
- mode "alias" matches on the alias only (used for combined short clusters).

The schema size is a coarse stand-in for schema identity: two schemas of equal
size but different contents share entries. Callers reusing the cache across
such schemas must clear() it in between; Program.resolve() clears the shared
cache at the start of every top-level call.

The cache is not thread-safe. Concurrent parses need an external lock or a
private OptionCache per thread.
"""
from .utils import Unset

# Recorded for lookups that found nothing, so misses are memoized as well.
_missing = type("missing-type", (), {
    "__slots__": (),
    "__repr__": lambda self: "(missing)",
    "__bool__": lambda self: False,
})()


class OptionCache:
    """
    Memo table for option lookups.

    Results are identical to a linear scan for name == token or alias == token
    (alias == token when alias=True), provided the cache is cleared whenever a
    schema it has served changes contents without changing size.
    """

    def __init__(self):
        self._entries = {}

    def lookup(self, token, schema, /, *, alias=False):
        """
        Resolve token against schema, returning the Option or None.

        Parameters
        - token: str, the name (without dashes) as typed by the user.
        - schema: Sequence[Option], the options in effect for this parse.
        - alias: bool, match on aliases only.
        """
        key = ("alias" if alias else "name", token, len(schema))
        try:
            option = self._entries[key]
        except KeyError:
            option = next((
                option for option in schema
                if option.alias == token or (not alias and option.name == token)
            ), _missing)
            self._entries[key] = option
        return option if option is not _missing else None

    def clear(self):
        self._entries.clear()

    def __len__(self):
        return len(self._entries)

    def __contains__(self, key):
        return key in self._entries

    def __repr__(self):
        return f"{type(self).__name__}(entries={len(self)})"


shared = OptionCache()


def lookup(token, schema, /, *, alias=False, cache=Unset):
    """
    Resolve token against schema through cache (the shared cache by default).
    """
    return (shared if cache is Unset else cache).lookup(token, schema, alias=alias)


def clear_cache():
    """
    Empty the shared cache.

    Call between independent parses in long-running processes or tests that
    reuse equally sized schemas with different contents.
    """
    shared.clear()


__all__ = (
    "OptionCache",
    "lookup",
    "clear_cache",
)
