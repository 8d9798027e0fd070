import re
from inspect import isawaitable
from typing import Any, Callable, ClassVar, Iterable, NamedTuple, Optional, Pattern

from .decorators import ON_PRIORITY, routes
from .http.model import HTTPRequest, HTTPRequestError, HTTPResponse
from .utils.logging import debug

# Matches any HTTP method
ANY_METHOD: str = "ANY"

TParams = dict[str, Any]


class RoutePattern(NamedTuple):
    """What a `{name:pattern}` parameter matches, and how its value is
    converted."""

    expr: str
    extractor: Callable[[str], Any] = str


class Route:
    """A path template where parameters are written `{name}` or
    `{name:pattern}`, the pattern defaulting to the parameter's name. The
    rest of the template is matched literally."""

    RE_PARAMETER: ClassVar[Pattern[str]] = re.compile(r"\{(\w+)(?::([^}]+))?\}")

    PATTERNS: ClassVar[dict[str, RoutePattern]] = {
        "id": RoutePattern(r"[\w\-]+"),
        "segment": RoutePattern(r"[^/]+"),
        "int": RoutePattern(r"-?\d+", int),
        "any": RoutePattern(r".*"),
    }

    def __init__(self, text: str, handler: Optional["Handler"] = None):
        self.text: str = text
        self.handler: Handler | None = handler
        self.extractors: dict[str, Callable[[str], Any]] = {}
        expr: list[str] = []
        offset: int = 0
        for match in self.RE_PARAMETER.finditer(text):
            name, kind = match.group(1), (match.group(2) or match.group(1)).lower()
            pattern = self.PATTERNS.get(kind)
            if pattern is None:
                raise ValueError(
                    f"Route pattern '{kind}' is not registered, pick one of: {', '.join(sorted(self.PATTERNS))}"
                )
            expr.append(re.escape(text[offset : match.start()]))
            expr.append(f"(?P<{name}>{pattern.expr})")
            self.extractors[name] = pattern.extractor
            offset = match.end()
        expr.append(re.escape(text[offset:]))
        self.regexp: Pattern[str] = re.compile("".join(expr))

    @property
    def priority(self) -> int:
        return self.handler.priority if self.handler else 0

    def match(self, path: str) -> TParams | None:
        if not (match := self.regexp.fullmatch(path)):
            return None
        return {k: extract(match.group(k)) for k, extract in self.extractors.items()}

    def __repr__(self) -> str:
        return f"(Route {self.text!r})"


class Handler:
    """Wraps a function declared with `@on`, along with the methods and
    paths it responds to."""

    @classmethod
    def Get(cls, value: Any) -> Optional["Handler"]:
        declared = routes(value) if callable(value) else None
        return (
            Handler(value, declared, getattr(value, ON_PRIORITY, 0)) if declared else None
        )

    def __init__(
        self,
        functor: Callable[..., Any],
        methods: Iterable[tuple[str, str]],
        priority: int = 0,
    ):
        self.functor = functor
        self.methods: list[tuple[str, str]] = list(methods)
        self.priority: int = priority

    async def __call__(self, request: HTTPRequest, params: TParams) -> HTTPResponse:
        try:
            res = self.functor(request, **params)
            return await res if isawaitable(res) else res
        except HTTPRequestError as e:
            return request.error(e.status, e.message)

    def __repr__(self) -> str:
        return f"(Handler {self.functor.__name__} {self.methods})"


class Dispatcher:
    """Finds the route of a request. Routes registered for `ANY` match all
    methods, the highest priority wins, and earlier routes win ties."""

    def __init__(self) -> None:
        self.routes: dict[str, list[Route]] = {}

    def register(self, handler: Handler, prefix: str | None = None) -> "Dispatcher":
        for method, path in handler.methods:
            path = f"{prefix or ''}{path}"
            path = path if path.startswith("/") else f"/{path}"
            debug("Registered route", Method=method, Path=path)
            self.routes.setdefault(method, []).append(Route(path, handler))
        return self

    def match(self, method: str, path: str) -> tuple[Route | None, TParams | None]:
        candidates = self.routes.get(method, []) + self.routes.get(ANY_METHOD, [])
        best: tuple[Route | None, TParams | None] = (None, None)
        for route in sorted(candidates, key=lambda _: -_.priority):
            if (params := route.match(path)) is not None:
                best = (route, params)
                break
        return best

    def allowed(self, path: str) -> list[str]:
        """The methods that have a route for the path, for `405` responses."""
        return sorted(
            method
            for method, routes in self.routes.items()
            if method != ANY_METHOD and any(_.match(path) is not None for _ in routes)
        )


# EOF
