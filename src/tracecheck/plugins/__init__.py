"""Plugin system: hookspecs, manager and the builtin collaborators.

Builtins are the Lotus JSON-RPC client, the Beryx event provider and the
filesystem trace source. Trace parsers are always external.
"""

from tracecheck.plugins.hookspecs import PROJECT_NAME, hookimpl, hookspec
from tracecheck.plugins.manager import PluginManager

__all__ = ["PROJECT_NAME", "PluginManager", "hookimpl", "hookspec"]
