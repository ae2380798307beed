"""Exception hierarchy shared by the route table, matcher and router."""


class RouterError(Exception):
    """Base for all switchyard errors."""


class ConfigurationError(RouterError):
    """Raised when a router option has an invalid value."""


class InvalidRouteContext(RouterError):
    """Raised when an insertion targets a slot holding an incompatible value.

    Either a path segment is already occupied by a handler, or a method/hook
    key is already occupied by a nested route.
    """


class MissingResourceHandler(RouterError, LookupError):
    """Raised when a handler name is not present on the configured resource."""


class DispatchModeError(RouterError):
    """Raised when dispatching through the entry point of the other mode."""
