"""HTTP clients for the node and the event height provider."""

from tracecheck.plugins.clients.beryx import BeryxEventProvider
from tracecheck.plugins.clients.lotus import LotusClient

__all__ = ["BeryxEventProvider", "LotusClient"]
