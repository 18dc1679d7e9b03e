"""Path-keyed flattening utilities.

Converts nested structures (mappings and lists) into single-level maps
keyed by divider-joined paths and back again. List indices are wrapped in
the array-wrapper pair so that reconstruction can tell lists from
mappings::

    >>> flatten({"a": {"b": [1, 2]}})
    {'a/b/[0]': 1, 'a/b/[1]': 2}
    >>> unflatten({"a/b/[0]": 1, "a/b/[1]": 2})
    {'a': {'b': [1, 2]}}

The divider and wrapper are bound to a ``PathCodec`` instance through a
``PathCodecConfig``. The module-level functions use ``DEFAULT_CODEC``
unless an explicit ``config`` is passed.
"""

import copy
import re
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple, Union

from .errors import StructuralInconsistencyError

_MISSING = object()

PathLike = Union[str, Sequence[Union[str, int]]]


def _is_container(value: Any) -> bool:
    return isinstance(value, (Mapping, list, tuple))


@dataclass(frozen=True)
class PathCodecConfig:
    """Tokens used to build and parse flat keys."""

    divider: str = "/"                           # Joins object keys
    array_wrapper: Tuple[str, str] = ("[", "]")  # Wraps list indices
    max_deep_unflatten: int = 99                 # Bound for find_value backtracking

    def __post_init__(self):
        if not self.divider:
            raise ValueError("divider must be a non-empty string")
        wrapper = tuple(self.array_wrapper)
        if len(wrapper) != 2:
            raise ValueError("array_wrapper must be a pair of opening and closing tokens")
        object.__setattr__(self, "array_wrapper", wrapper)
        if self.max_deep_unflatten < 1:
            raise ValueError("max_deep_unflatten must be positive")


class PathCodec:
    """Flatten, unflatten, look up and merge nested structures."""

    def __init__(self, config: Optional[PathCodecConfig] = None):
        """Initialize codec.

        Args:
            config: Divider and wrapper tokens (defaults to ``/`` and ``[]``)
        """
        self.config = config or PathCodecConfig()
        opening, closing = self.config.array_wrapper
        self._index_pattern = re.compile(rf"^{re.escape(opening)}(\d+){re.escape(closing)}$")

    @property
    def divider(self) -> str:
        return self.config.divider

    def index_of(self, segment: Any) -> Optional[int]:
        """Return the list index a path segment denotes, or None.

        Non-negative integers are taken as indices directly; strings must
        match the array-wrapper pattern.
        """
        if isinstance(segment, bool):
            return None
        if isinstance(segment, int):
            return segment if segment >= 0 else None
        match = self._index_pattern.match(str(segment))
        return int(match.group(1)) if match else None

    def wrap_index(self, index: int) -> str:
        opening, closing = self.config.array_wrapper
        return f"{opening}{index}{closing}"

    def split(self, path: PathLike) -> List[Union[str, int]]:
        """Split a divider-joined path; sequences are copied as given."""
        if isinstance(path, str):
            return path.split(self.divider) if path else []
        return list(path)

    # Flattening

    def flatten(self, obj: Any) -> Dict[str, Any]:
        """Flatten a nested structure into a path-keyed map.

        Args:
            obj: Mapping or list to flatten

        Returns:
            Dict of flat path to scalar leaf, in first-visit order
        """
        result: Dict[str, Any] = {}
        self._flatten_into(obj, None, result)
        return result

    def _flatten_into(self, obj: Any, prefix: Optional[str], result: Dict[str, Any]) -> None:
        if isinstance(obj, Mapping):
            items = ((str(key), value) for key, value in obj.items())
        elif isinstance(obj, (list, tuple)):
            items = ((self.wrap_index(index), value) for index, value in enumerate(obj))
        else:
            return

        for key, value in items:
            name = key if prefix is None else f"{prefix}{self.divider}{key}"
            if _is_container(value):
                self._flatten_into(value, name, result)
            else:
                result[name] = value

    # Lookup

    def _child(self, container: Any, segment: Any) -> Any:
        if isinstance(container, Mapping):
            if segment in container:
                return container[segment]
            if isinstance(segment, int) and str(segment) in container:
                return container[str(segment)]
            return _MISSING
        index = self.index_of(segment)
        if index is None or index >= len(container):
            return _MISSING
        return container[index]

    def find(self, path: PathLike, obj: Any, default: Any = None) -> Any:
        """Find a value by path.

        Args:
            path: Divider-joined string or sequence of segments
            obj: Structure to search
            default: Returned when the path does not resolve

        Returns:
            The value at path (possibly a container) or default
        """
        acc = obj
        for segment in self.split(path):
            if not _is_container(acc):
                return default
            acc = self._child(acc, segment)
            if acc is _MISSING:
                return default
        return acc

    def find_value(
        self,
        path: PathLike,
        obj: Any,
        skip_scalar: bool = False
    ) -> Tuple[Any, List[Union[str, int]]]:
        """Find the value at path or at the nearest prefix that resolves.

        Pops the last segment until something is found, the empty prefix
        (the structure itself) has been tried, or ``max_deep_unflatten``
        shortenings were made without a hit.

        Args:
            path: Divider-joined string or sequence of segments
            obj: Structure to search
            skip_scalar: Treat scalar results as not found

        Returns:
            Tuple of (value or None, path that produced it)
        """
        parent_path = self.split(path)
        attempts = 0
        while True:
            value = self.find(parent_path, obj, _MISSING)
            if skip_scalar and value is not _MISSING and not _is_container(value):
                value = _MISSING
            if value is not _MISSING or not parent_path:
                break
            parent_path.pop()
            attempts += 1
            if attempts >= self.config.max_deep_unflatten:
                break
        return (None if value is _MISSING else value), parent_path

    # Unflattening

    def _key_for(self, container: Any, segment: str, path: List[Any]) -> Any:
        if isinstance(container, list):
            index = self.index_of(segment)
            if index is None:
                joined = self.divider.join([*map(str, path), segment])
                raise StructuralInconsistencyError("Segment is not an array index", joined)
            return index
        return segment

    @staticmethod
    def _assign(container: Any, key: Any, value: Any) -> None:
        if isinstance(container, list):
            if key >= len(container):
                container.extend([None] * (key + 1 - len(container)))
        container[key] = value

    def unflatten(self, flat: Mapping[str, Any]) -> Dict[str, Any]:
        """Rebuild a nested structure from a path-keyed map.

        The container created for a segment is a list when the following
        segment is a wrapped index and a dict otherwise.

        Args:
            flat: Map of flat path to leaf value

        Returns:
            Nested dict

        Raises:
            StructuralInconsistencyError: If a non-index segment lands in a
                list or a leaf cannot be placed under any container
        """
        result: Dict[str, Any] = {}
        for flat_key, leaf in flat.items():
            keys = str(flat_key).split(self.divider)
            path: List[Any] = []
            node: Any = result
            blocked = False

            for current, following in zip(keys[:-1], keys[1:]):
                key = self._key_for(node, current, path)
                child = self._child(node, key)
                if child is _MISSING or child is None:
                    child = [] if self.index_of(following) is not None else {}
                    self._assign(node, key, child)
                elif not _is_container(child):
                    # a scalar already sits on this segment
                    blocked = True
                    break
                path.append(key)
                node = child

            if not blocked:
                self._assign(node, self._key_for(node, keys[-1], path), leaf)
                continue

            ancestor, ancestor_path = self.find_value(path, result, skip_scalar=True)
            if not isinstance(ancestor, dict):
                raise StructuralInconsistencyError("Value key not found", str(flat_key))
            ancestor[self.divider.join(keys[len(ancestor_path):])] = leaf
        return result

    # Merging

    def merge(self, target: Optional[Mapping[str, Any]], source: Mapping[str, Any]) -> Dict[str, Any]:
        """Deep merge source into a copy of target.

        Lists in source replace the target value wholesale; mappings are
        merged recursively; everything else overwrites.

        Args:
            target: Base structure (never mutated)
            source: Structure whose values take precedence

        Returns:
            New merged dict
        """
        merged = copy.deepcopy(dict(target)) if target is not None else {}
        for key, value in source.items():
            if isinstance(value, (list, tuple)):
                merged[key] = copy.deepcopy(list(value))
            elif isinstance(value, Mapping):
                existing = merged.get(key)
                merged[key] = self.merge(existing if isinstance(existing, Mapping) else {}, value)
            else:
                merged[key] = value
        return merged


DEFAULT_CODEC = PathCodec()


def _codec(config: Optional[PathCodecConfig]) -> PathCodec:
    return DEFAULT_CODEC if config is None else PathCodec(config)


def flatten(obj: Any, *, config: Optional[PathCodecConfig] = None) -> Dict[str, Any]:
    return _codec(config).flatten(obj)


def unflatten(flat: Mapping[str, Any], *, config: Optional[PathCodecConfig] = None) -> Dict[str, Any]:
    return _codec(config).unflatten(flat)


def find(path: PathLike, obj: Any, default: Any = None, *, config: Optional[PathCodecConfig] = None) -> Any:
    return _codec(config).find(path, obj, default)


def find_value(
    path: PathLike,
    obj: Any,
    skip_scalar: bool = False,
    *,
    config: Optional[PathCodecConfig] = None
) -> Tuple[Any, List[Union[str, int]]]:
    return _codec(config).find_value(path, obj, skip_scalar)


def merge(target: Optional[Mapping[str, Any]], source: Mapping[str, Any]) -> Dict[str, Any]:
    return DEFAULT_CODEC.merge(target, source)


__all__ = [
    'PathCodecConfig',
    'PathCodec',
    'DEFAULT_CODEC',
    'flatten',
    'unflatten',
    'find',
    'find_value',
    'merge',
]
