from typing import Any, Callable, TypeVar

T = TypeVar("T")

# Attributes set on the functions decorated with `@on`
ON: str = "_webify_on"
ON_PRIORITY: str = "_webify_on_priority"


def routes(value: Any) -> list[tuple[str, str]]:
    """Returns the `(method, path)` pairs declared on the value with `@on`."""
    return getattr(value, ON, None) or []


def on(priority: int = 0, **methods: str | list[str] | tuple[str, ...]) -> Callable[[T], T]:
    """Declares that the decorated method handles the requests matching the
    given methods and URI patterns (see `Route`). Methods can be combined
    with `_`, and `ANY` matches every method:

    >    @on(GET_HEAD="/{path:any}")
    >    def read(self, request, path):
    >        ....

    The decorated method takes the request and the pattern parameters, and
    returns a response."""

    def decorator(function: T) -> T:
        declared = routes(function) + [
            (method, path)
            for names, paths in methods.items()
            for method in names.upper().split("_")
            for path in ((paths,) if isinstance(paths, str) else paths)
        ]
        setattr(function, ON, declared)
        setattr(function, ON_PRIORITY, priority)
        return function

    return decorator


# EOF
