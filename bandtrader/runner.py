"""
Strategy orchestration and execution.
"""

import asyncio
import logging
import sys
from collections.abc import Callable
from pathlib import Path

from bandtrader.config import TradeParams
from bandtrader.context import RunContext
from bandtrader.execution.broker import BrokerClient
from bandtrader.report import Report
from bandtrader.strategy import StrategyRegistry, default_registry


log = logging.getLogger(__name__)


__all__ = [
    "configure_logging",
    "run_strategy",
    "run_strategy_async",
]


def configure_logging(level: str = "INFO", force: bool = False) -> None:
    """
    Configure root logger with console output.

    By default, this is non-destructive: if the root logger already has handlers,
    it will do nothing (assuming the application has configured logging).

    Args:
        level: Logging level (DEBUG, INFO, WARNING, ERROR)
        force: If True, clear existing handlers and force this configuration
    """
    root_logger = logging.getLogger()

    if root_logger.hasHandlers() and not force:
        return

    root_logger.setLevel(level.upper())

    if force:
        root_logger.handlers.clear()

    formatter = logging.Formatter(
        "%(asctime)s %(levelname)s %(name)s %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)
    root_logger.addHandler(handler)


async def run_strategy_async(
    name: str,
    params: TradeParams,
    client: BrokerClient,
    *,
    registry: StrategyRegistry | None = None,
    timeout: float | None = None,
    ctx: RunContext | None = None,
) -> Report | None:
    """
    Start ``client``, run strategy ``name`` with ``params`` and close the client.

    The client is closed even if the strategy cannot be created or fails.

    Returns:
        The simulation report for simulated runs, otherwise None.
    """
    registry = registry if registry is not None else default_registry()
    ctx = ctx if ctx is not None else RunContext(timeout=timeout)

    await client.start()
    try:
        strategy = registry.create(name, client)

        log.info("=" * 70)
        log.info("Bandtrader Strategy Runner")
        log.info("=" * 70)
        log.info(
            "Loaded %s for %s on account %s%s",
            strategy.name,
            params.instrument_id,
            params.account_id,
            " (simulation)" if params.simulate else "",
        )
        log.info("-" * 70)

        try:
            return await strategy.run(params, ctx)
        except asyncio.CancelledError:
            log.info("Strategy cancelled")
            ctx.cancel()
            raise
    finally:
        await client.close()


def run_strategy(
    name: str,
    params: TradeParams,
    client_factory: Callable[[], BrokerClient],
    *,
    registry: StrategyRegistry | None = None,
    timeout: float | None = None,
    log_level: str | None = None,
    setup_logging: bool = True,
    report_dir: Path | None = None,
) -> Report | None:
    """
    Run one strategy against a broker connection.

    This is the main synchronous entry point. It manages the asyncio event
    loop and the lifecycle of the broker client.

    Args:
        name: Registry key of the strategy (e.g. "band").
        params: Validated run parameters.
        client_factory: A callable that returns an unstarted ``BrokerClient``.
        registry: Strategy registry; defaults to ``default_registry()``.
        timeout: Seconds after which the run is cancelled. None runs until
            interrupted.
        log_level: The logging level to configure. Defaults to "INFO".
        setup_logging: If True, configures the root logger.
        report_dir: If given, the published simulation report is written
            there once the run ends, even after an error or interrupt.

    Returns:
        The published simulation report, or None.
    """
    if setup_logging:
        configure_logging(log_level or "INFO")

    exit_code = 0

    try:
        asyncio.run(
            run_strategy_async(
                name,
                params,
                client_factory(),
                registry=registry,
                timeout=timeout,
            )
        )

    except KeyboardInterrupt:
        log.info("")
        log.info("-" * 70)
        log.info("Interrupted by user - shutting down gracefully")

    except Exception as e:
        log.exception("Fatal error in strategy runner: %s", e)
        exit_code = 1

    finally:
        report = params.report_sink.report
        if report is not None and report_dir is not None:
            report.write(Path(report_dir))
            log.info("Report written to %s", report_dir)

        log.info("=" * 70)
        log.info("Bandtrader shut down complete")
        log.info("=" * 70)

    if exit_code:
        sys.exit(exit_code)

    return report
