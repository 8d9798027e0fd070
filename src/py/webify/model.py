from abc import ABC, abstractmethod
from typing import Awaitable, Callable, ClassVar, Iterable, Optional

from .decorators import routes
from .routing import Handler, Dispatcher
from .http.model import HTTPRequest, HTTPResponse
from .utils.logging import exception

TForward = Callable[[HTTPRequest], Awaitable[HTTPResponse]]

# -----------------------------------------------------------------------------
#
# SERVICE
#
# -----------------------------------------------------------------------------


class Service:
    """Groups handlers (methods decorated with `@on`) under a common path
    prefix."""

    PREFIX: ClassVar[str] = ""

    def __init__(self, name: Optional[str] = None, *, prefix: str | None = None) -> None:
        self.name: str = name or self.__class__.__name__
        self.app: Optional[Application] = None
        self.prefix: str = self.PREFIX if prefix is None else prefix
        self._handlers: Optional[list[Handler]] = None

    @property
    def isMounted(self) -> bool:
        return self.app is not None

    @property
    def handlers(self) -> list[Handler]:
        if self._handlers is None:
            self._handlers = list(self.iterHandlers())
        return self._handlers

    def iterHandlers(self) -> Iterable[Handler]:
        # Declarations are looked up on the class, so that properties
        # are never evaluated.
        for name in dir(type(self)):
            if routes(getattr(type(self), name, None)):
                if handler := Handler.Get(getattr(self, name)):
                    yield handler

    def __repr__(self) -> str:
        return f"(Service {self.name}{' :mounted' if self.isMounted else ''})"


# -----------------------------------------------------------------------------
#
# MIDDLEWARE
#
# -----------------------------------------------------------------------------


class Middleware(ABC):
    """Intercepts every request before it reaches the dispatcher. A
    middleware either calls `forward` and returns (possibly updating) its
    response, or answers the request directly."""

    @abstractmethod
    async def __call__(self, request: HTTPRequest, forward: TForward) -> HTTPResponse: ...

    def __repr__(self) -> str:
        return f"(Middleware {self.__class__.__name__})"


def chain(middleware: Middleware, forward: TForward) -> TForward:
    async def intercepted(request: HTTPRequest) -> HTTPResponse:
        return await middleware(request, forward)

    return intercepted


# -----------------------------------------------------------------------------
#
# APPLICATION
#
# -----------------------------------------------------------------------------


class Application:
    """Runs each request through the middlewares, in order, and then
    dispatches it to the handler of the matching route."""

    def __init__(
        self,
        services: Iterable[Service] | None = None,
        middlewares: Iterable[Middleware] | None = None,
    ) -> None:
        self.dispatcher: Dispatcher = Dispatcher()
        self.services: list[Service] = []
        self.middlewares: list[Middleware] = list(middlewares or ())
        self._pipeline: TForward | None = None
        for service in services or ():
            self.mount(service)

    @property
    def pipeline(self) -> TForward:
        if self._pipeline is None:
            res: TForward = self.dispatch
            for middleware in reversed(self.middlewares):
                res = chain(middleware, res)
            self._pipeline = res
        return self._pipeline

    async def process(self, request: HTTPRequest) -> HTTPResponse:
        return await self.pipeline(request)

    async def dispatch(self, request: HTTPRequest) -> HTTPResponse:
        route, params = self.dispatcher.match(request.method, request.path)
        if route and route.handler:
            try:
                return await route.handler(request, params or {})
            except Exception as e:
                exception(e, "Handler failed", Method=request.method, Path=request.path)
                return request.fail()
        elif allowed := self.dispatcher.allowed(request.path):
            return request.notAllowed(allowed)
        else:
            return request.notFound()

    def mount(self, service: Service) -> Service:
        if service.isMounted:
            raise RuntimeError(
                f"Cannot mount service, it is already mounted: {service}"
            )
        for handler in service.handlers:
            self.dispatcher.register(handler, service.prefix)
        service.app = self
        self.services.append(service)
        return service


# EOF
