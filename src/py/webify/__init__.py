from .http.model import (
    HTTPRequest,
    HTTPResponse,
    HTTPRequestError,
)  # NOQA: F401
from .config import ServerConfig, ConfigurationError  # NOQA: F401
from .decorators import on  # NOQA: F401
from .model import Application, Middleware, Service  # NOQA: F401
from .app import application  # NOQA: F401
from .server import run  # NOQA: F401

__version__ = "1.0.0"

# EOF
