"""Parsing for ``key=value`` parameter lists.

Spaces and index methods are configured with ordered lists of strings such as
``["M=16", "efConstruction=200"]``. An element may also carry several
comma-separated pairs (``"M=16,efConstruction=200"``).
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator
from dataclasses import dataclass, field

from knnvec.errors import InvalidParameterError


def _split_pairs(raw: str) -> Iterator[tuple[str, str]]:
    for chunk in raw.split(","):
        chunk = chunk.strip()
        if not chunk:
            continue
        key, sep, value = chunk.partition("=")
        key = key.strip()
        if not sep or not key:
            raise InvalidParameterError(
                f"Malformed parameter {chunk!r}; expected 'key=value'"
            )
        yield key, value.strip()


@dataclass(slots=True)
class ParamSet:
    """Ordered parameter mapping that remembers which keys were consumed."""

    values: dict[str, str] = field(default_factory=dict)
    _consumed: set[str] = field(default_factory=set, repr=False)

    @classmethod
    def parse(cls, params: Iterable[str] | str | None) -> "ParamSet":
        """Parse a parameter list into a :class:`ParamSet`.

        Raises:
            InvalidParameterError: On a malformed element or a repeated key.
        """
        if params is None:
            return cls()
        if isinstance(params, str):
            params = [params]

        values: dict[str, str] = {}
        for raw in params:
            if not isinstance(raw, str):
                raise InvalidParameterError(
                    f"Parameters must be strings; got {type(raw).__name__}"
                )
            for key, value in _split_pairs(raw):
                if key in values:
                    raise InvalidParameterError(f"Parameter {key!r} given more than once")
                values[key] = value
        return cls(values=values)

    def __contains__(self, key: str) -> bool:
        return key in self.values

    def __len__(self) -> int:
        return len(self.values)

    def as_list(self) -> list[str]:
        """Return the canonical ``key=value`` list form."""
        return [f"{key}={value}" for key, value in self.values.items()]

    def _take(self, *names: str) -> tuple[str, str] | None:
        found = [name for name in names if name in self.values]
        if len(found) > 1:
            raise InvalidParameterError(
                f"Parameters {found} are aliases; specify only one"
            )
        self._consumed.update(names)
        if not found:
            return None
        return found[0], self.values[found[0]]

    def get_str(self, *names: str, default: str) -> str:
        taken = self._take(*names)
        return default if taken is None else taken[1]

    def get_int(self, *names: str, default: int, minimum: int | None = None) -> int:
        """Read an integer parameter, accepting aliases in ``names``."""
        taken = self._take(*names)
        if taken is None:
            return default
        key, raw = taken
        try:
            value = int(raw)
        except ValueError as exc:
            raise InvalidParameterError(
                f"Parameter {key!r} expects an integer; got {raw!r}"
            ) from exc
        if minimum is not None and value < minimum:
            raise InvalidParameterError(f"Parameter {key!r} must be >= {minimum}; got {value}")
        return value

    def get_float(self, *names: str, default: float | None) -> float | None:
        taken = self._take(*names)
        if taken is None:
            return default
        key, raw = taken
        try:
            return float(raw)
        except ValueError as exc:
            raise InvalidParameterError(
                f"Parameter {key!r} expects a number; got {raw!r}"
            ) from exc

    def check_unused(self, owner: str) -> None:
        """Fail if any parameter was never read by ``owner``."""
        unused = [key for key in self.values if key not in self._consumed]
        if unused:
            raise InvalidParameterError(
                f"Unrecognized parameter(s) for {owner}: {', '.join(unused)}"
            )
