# src/tracecheck/core/equivalence.py
"""Equivalent address resolution.

One actor has several string forms (ID, robust key/actor address, and an
f4 delegated address). Every resolution is made against the current head.
"""

from tracecheck.contracts.chain import EMPTY_TIPSET_KEY
from tracecheck.contracts.errors import ResolutionError, UpstreamError
from tracecheck.contracts.protocols import ChainStateReader
from tracecheck.core.address import parse_address

# Node error text for an ID address whose actor has no account key.
NOT_ACCOUNT_ACTOR = "actor code is not account"


class EquivalentAddressResolver:
    """Resolves the set of address strings naming the same actor."""

    def __init__(self, reader: ChainStateReader) -> None:
        self._reader = reader

    def resolve(self, address: str) -> frozenset[str]:
        """Return every known string form of the actor, the input included.

        Raises:
            InvalidAddressError: If address is malformed
            ResolutionError: If the node cannot resolve the actor
        """
        parsed = parse_address(address)
        addresses = {address}
        try:
            actor = self._reader.get_actor(address, EMPTY_TIPSET_KEY)
            if actor.delegated_address is not None:
                addresses.add(actor.delegated_address)

            if parsed.is_robust:
                addresses.add(self._reader.lookup_id(address, EMPTY_TIPSET_KEY))
                return frozenset(addresses)

            try:
                addresses.add(self._reader.account_key(address, EMPTY_TIPSET_KEY))
            except UpstreamError as exc:
                if NOT_ACCOUNT_ACTOR not in str(exc):
                    raise
                addresses.add(self._reader.lookup_robust_address(address, EMPTY_TIPSET_KEY))
        except ResolutionError:
            raise
        except UpstreamError as exc:
            raise ResolutionError(f"resolving {address}: {exc}") from exc
        return frozenset(addresses)
