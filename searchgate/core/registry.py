"""
Named function registry.

Search configs stay plain JSON: wherever a config needs behaviour (a filter value
transform, a post-filter predicate, a response post-processor or an event handler)
it names a function registered here instead of embedding a callable. Event handler
entries are factories: they receive the analytics sinks and return the handler.

    @transforms.register("upper")
    def upper(value):
        return value.upper()
"""

from typing import Any, Callable, Dict, Iterable, List, Optional, Union

from .errors import ConfigError


class FunctionRegistry:
    """Name -> callable lookup for one kind of configurable function"""

    def __init__(self, kind: str):
        self.kind = kind
        self._functions: Dict[str, Callable] = {}

    def register(self, name: str, func: Optional[Callable] = None):
        """Register ``func`` under ``name``; usable as a decorator"""
        def decorator(f: Callable) -> Callable:
            self._functions[name] = f
            return f

        if func is not None:
            return decorator(func)
        return decorator

    def get(self, name: str) -> Callable:
        try:
            return self._functions[name]
        except KeyError:
            raise ConfigError(f"Unknown {self.kind}: {name}",
                              {"code": "UNKNOWN_FUNCTION", "kind": self.kind, "name": name}) from None

    def require(self, name: Optional[str]) -> Optional[str]:
        """Fail at config time if ``name`` is set but unregistered"""
        if name is not None:
            self.get(name)
        return name

    def __contains__(self, name: str) -> bool:
        return name in self._functions

    def names(self) -> List[str]:
        return sorted(self._functions)


transforms = FunctionRegistry("filter value transform")
predicates = FunctionRegistry("post-filter predicate")
post_processors = FunctionRegistry("response post-processor")
event_handlers = FunctionRegistry("event handler")


def _as_list(value: Any) -> List[Any]:
    if value is None:
        return []
    if isinstance(value, (list, tuple, set)):
        return list(value)
    return [value]


@transforms.register("lang")
def lang_values(value: Union[Dict[str, Any], str]) -> Union[str, List[str]]:
    """``{primary, secondary}`` -> primary, or primary plus secondaries"""
    if not isinstance(value, dict):
        return value
    secondary = value.get("secondary")
    if secondary:
        return unique([value.get("primary")] + list(secondary))
    return value.get("primary")


@transforms.register("lowercase")
def lowercase(value: Any) -> Any:
    if isinstance(value, list):
        return [v.lower() if isinstance(v, str) else v for v in value]
    return value.lower() if isinstance(value, str) else value


@predicates.register("equals")
def equals(doc: Dict[str, Any], field: str, value: Any) -> bool:
    return doc.get(field) == value


@predicates.register("in")
def in_values(doc: Dict[str, Any], field: str, value: Any) -> bool:
    return doc.get(field) in _as_list(value)


@predicates.register("contains")
def contains(doc: Dict[str, Any], field: str, value: Any) -> bool:
    return any(v in _as_list(doc.get(field)) for v in _as_list(value))


@predicates.register("exists")
def exists(doc: Dict[str, Any], field: str, value: Any) -> bool:
    return (doc.get(field) is not None) == bool(value)


def unique(values: Iterable[Any]) -> List[Any]:
    seen = []
    for value in values:
        if value is not None and value not in seen:
            seen.append(value)
    return seen


