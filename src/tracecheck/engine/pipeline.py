# src/tracecheck/engine/pipeline.py
"""Per-height trace pipeline: fetch, filter, tipsets, parse."""

from collections.abc import Sequence
from dataclasses import dataclass

from tracecheck.contracts.chain import EMPTY_TIPSET_KEY, TipSet
from tracecheck.contracts.enums import TraceSchemaVersion
from tracecheck.contracts.errors import SetupError
from tracecheck.contracts.protocols import ChainStateReader, TraceParser, TraceSource
from tracecheck.contracts.trace import MultisigEvent, ParsedTransaction
from tracecheck.core import trace_codec
from tracecheck.core.context import CheckContext
from tracecheck.engine.trace_filter import filter_trace


@dataclass(frozen=True)
class HeightData:
    """Everything the ledgers and comparators need for one height.

    Attributes:
        height: Processed height
        version: Trace schema version of the height
        tipset: Tipset at height (an earlier one for a null round)
        next_tipset: Tipset at height + 1, where the height's effects are visible
        transactions: Parsed transactions of the filtered trace
    """

    height: int
    version: TraceSchemaVersion
    tipset: TipSet
    next_tipset: TipSet
    transactions: tuple[ParsedTransaction, ...]


class TracePipeline:
    """Turns a height into parsed transactions for a watched address set."""

    def __init__(
        self,
        context: CheckContext,
        source: TraceSource,
        reader: ChainStateReader,
        parser: TraceParser | None = None,
    ) -> None:
        self._context = context
        self._source = source
        self._reader = reader
        self._parser = parser
        self._upgrade_height = context.settings.trace_schema.upgrade_height

    def fetch(self, height: int) -> bytes:
        """Raw trace bytes of a height.

        Raises:
            TraceFetchError: If the source cannot supply them
        """
        self._context.cancellation.raise_if_cancelled()
        return self._source.get_trace(height)

    def tipset(self, height: int) -> TipSet:
        self._context.cancellation.raise_if_cancelled()
        return self._reader.get_tipset_by_height(height, EMPTY_TIPSET_KEY)

    def require_parser(self) -> TraceParser:
        """The configured trace parser.

        Raises:
            SetupError: If no parser plugin is configured
        """
        if self._parser is None:
            raise SetupError("no trace parser configured")
        return self._parser

    @property
    def parser(self) -> TraceParser:
        return self.require_parser()

    def load(self, height: int, watched: frozenset[str]) -> HeightData:
        """Fetch, filter and parse a height.

        Raises:
            TraceFetchError, TraceDecodeError, RpcError, TraceParseError
        """
        version = trace_codec.schema_version_for_height(height, self._upgrade_height)
        self._context.logger.debug(
            "Loading height",
            height=height,
            schema_version=str(version),
            node_version=trace_codec.node_version_for_height(height, self._upgrade_height),
        )
        filtered = filter_trace(height, watched, self.fetch(height), self._upgrade_height)
        tipset = self.tipset(height)
        next_tipset = self.tipset(height + 1)
        self._context.cancellation.raise_if_cancelled()
        transactions = tuple(self.parser.parse_transactions(filtered, tipset, version))
        return HeightData(
            height=height,
            version=version,
            tipset=tipset,
            next_tipset=next_tipset,
            transactions=transactions,
        )

    def multisig_events(self, data: HeightData, watched: frozenset[str]) -> Sequence[MultisigEvent]:
        """Multisig events of the height's transactions touching watched.

        Several multisigs may share one filtered trace, so events are parsed
        from each actor's own transactions only. The first of them names the
        tipset.
        """
        own = [tx for tx in data.transactions if tx.tx_from in watched or tx.tx_to in watched]
        if not own:
            return ()
        self._context.cancellation.raise_if_cancelled()
        return self.parser.parse_multisig_events(own, own[0].tipset_cid, data.tipset.key)

    def award_block_reward_miner(self, height: int, params: str) -> str:
        return self.parser.award_block_reward_miner(height, params)
