import logging

from bandtrader.analysis import BandAnalyzer
from bandtrader.config import TradeParams
from bandtrader.context import RunContext
from bandtrader.errors import call_collaborator
from bandtrader.events import EventDispatcher
from bandtrader.execution.broker import BrokerClient
from bandtrader.execution.executor import PriceBandExecutor
from bandtrader.report import Report
from bandtrader.simulation.harness import SimulationHarness
from bandtrader.strategy.base import Strategy


log = logging.getLogger(__name__)


class PriceBandStrategy(Strategy):
    """
    Buys near the recent average low and sells near the recent average high.

    Live runs trade through ``PriceBandExecutor`` until cancelled; simulated
    runs replay yesterday through ``SimulationHarness`` once.
    """

    name = "PriceBand"

    def __init__(
        self,
        client: BrokerClient,
        analyzer: BandAnalyzer | None = None,
        dispatcher: EventDispatcher | None = None,
    ):
        super().__init__(client)
        self.analyzer = analyzer if analyzer is not None else BandAnalyzer(client)
        self.executor = PriceBandExecutor(client, analyzer=self.analyzer, dispatcher=dispatcher)
        self.harness = SimulationHarness(client, analyzer=self.analyzer)

    async def run(self, params: TradeParams, ctx: RunContext) -> Report | None:
        params.validate()

        if not params.simulate:
            log.info("Run strategy %s for %s", self.name, params.instrument_id)
            await self.executor.run(params, ctx)
            return None

        instrument = await call_collaborator(
            "get_instrument", self.client.get_instrument(params.instrument_id)
        )
        log.info("Run strategy %s for %s (simulation)", self.name, instrument)
        return await self.harness.simulate(params, instrument, ctx)
