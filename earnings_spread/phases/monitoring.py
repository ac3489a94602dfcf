"""Monitor phase: one lifecycle tick over the open orders."""

from typing import Any, Dict

from earnings_spread.monitor import OrderLifecycleMonitor
from earnings_spread.results import success_result

from .context import PhaseContext, market_gate, phase


@phase("monitor_trades")
def run_monitor_trades(payload: Dict[str, Any], context: PhaseContext) -> Dict[str, Any]:
    gate = market_gate(context)
    if gate is not None:
        return gate

    monitor = OrderLifecycleMonitor(
        context.client,
        context.repository,
        drift_threshold=context.settings.drift_threshold,
        exit_discount=context.settings.exit_discount,
        max_workers=context.settings.max_workers,
    )
    report = monitor.tick()
    return success_result(
        f"Processed {report.orders_processed} of {report.orders_monitored} open orders",
        **report.to_dict(),
    )
