from importlib.metadata import version

from .errors import (
    ConfigurationError,
    DispatchModeError,
    InvalidRouteContext,
    MissingResourceHandler,
    RouterError,
)
from .invoke import CONTINUE, STOP, Outcome, Route, current_route
from .router import Router, RouterOptions, Session

__all__ = [
    "CONTINUE",
    "STOP",
    "ConfigurationError",
    "DispatchModeError",
    "InvalidRouteContext",
    "MissingResourceHandler",
    "Outcome",
    "Route",
    "Router",
    "RouterError",
    "RouterOptions",
    "Session",
    "__version__",
    "current_route",
]

__version__ = version("switchyard")
