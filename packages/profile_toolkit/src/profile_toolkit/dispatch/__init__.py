"""Command resolution: session resolver chain and the lazy-loading dispatcher."""

from profile_toolkit.dispatch.dispatcher import CommandDispatcher, coerce_timeout
from profile_toolkit.dispatch.models import LookupEventArgs, ResolverError
from profile_toolkit.dispatch.session import Resolver, ShellSession

__all__ = [
    "CommandDispatcher",
    "LookupEventArgs",
    "Resolver",
    "ResolverError",
    "ShellSession",
    "coerce_timeout",
]
