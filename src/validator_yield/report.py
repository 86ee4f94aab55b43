"""Validator yield report.

Connects to the chain, picks the last era that paid rewards, computes every
active validator's APY batch by batch and prints the top validators.

Usage:
    python -m validator_yield.report

Configuration comes from the environment (or a .env file), see
``helpers/config.py``.
"""

from __future__ import annotations

from asyncio import run

from typing import TYPE_CHECKING

from rich.console import Console
from rich.table import Table

from validator_yield.chain.queries import get_validators
from validator_yield.chain.session import SessionEvent, connect
from validator_yield.errors import ChainConnectionError
from validator_yield.helpers.config import RunConfig, load_run_config
from validator_yield.helpers.parsers import format_apy, planck_to_dot
from validator_yield.helpers.progress import create_standard_progress, track_batches
from validator_yield.staking.eras import last_rewarded_era
from validator_yield.staking.ranking import rank
from validator_yield.staking.retriever import BatchRetriever


if TYPE_CHECKING:
    from validator_yield.staking.models import RetrievalResult, ValidatorMetrics


def build_table(era: int, ranked: list[ValidatorMetrics]) -> Table:
    """Render ranked validators as a Rich table."""
    table = Table(title=f"Top validators by APY (era {era})")
    table.add_column("#", justify="right")
    table.add_column("Validator")
    table.add_column("Commission", justify="right")
    table.add_column("Total Stake (DOT)", justify="right")
    table.add_column("Own Stake (DOT)", justify="right")
    table.add_column("Net Reward (DOT)", justify="right")
    table.add_column("APY", justify="right")

    for position, metrics in enumerate(ranked, start=1):
        table.add_row(
            str(position),
            metrics.validator_id,
            f"{metrics.commission_percent:.2f}%",
            f"{planck_to_dot(metrics.total_stake):,.2f}",
            f"{planck_to_dot(metrics.own_stake):,.2f}",
            f"{planck_to_dot(metrics.reward_after_commission):,.4f}",
            format_apy(metrics.apy),
        )
    return table


class YieldReport:
    """Compute and print validator yields for the last rewarded era."""

    def __init__(
        self, config: RunConfig | None = None, console: Console | None = None
    ) -> None:
        """Initialize the report.

        Args:
            config: Run parameters, loaded from the environment when omitted
            console: Rich console for output
        """
        self.config = config or load_run_config()
        self.console = console or Console()
        self.ranked: list[ValidatorMetrics] = []

    def _on_session_event(
        self, event: SessionEvent, error: BaseException | None
    ) -> None:
        if event is SessionEvent.DISCONNECTED:
            self.console.print(f"[yellow]Disconnected from node: {error}[/yellow]")
        elif event is SessionEvent.RECONNECTED:
            self.console.print("[green]Reconnected to node[/green]")

    async def run(self) -> RetrievalResult:
        """Run the report.

        Returns:
            The retrieval result behind the printed table

        Raises:
            ChainConnectionError: If the node cannot be reached
        """
        config = self.config
        self.console.print(f"[cyan]Connecting to {config.endpoint}...[/cyan]")

        async with await connect(
            config.endpoint,
            config.max_connect_attempts,
            batch_size=config.batch_size,
        ) as session:
            session.on(SessionEvent.DISCONNECTED, self._on_session_event)
            session.on(SessionEvent.RECONNECTED, self._on_session_event)

            validator_ids = await get_validators(session)
            self.console.print(
                f"[cyan]Found {len(validator_ids):,} active validators[/cyan]"
            )

            era = await last_rewarded_era(
                session, max_lookback=config.max_era_lookback
            )
            self.console.print(f"[cyan]Using era {era}[/cyan]")

            retriever = BatchRetriever(
                session,
                batch_size=config.batch_size,
                fetch_retries=config.fetch_retries,
                annualization_factor=config.annualization_factor,
            )
            batches = retriever.batches(validator_ids)
            delivered: list[ValidatorMetrics] = []

            progress = create_standard_progress(console=self.console)
            with progress:
                task_id = progress.add_task(
                    f"Era {era} validators", total=len(validator_ids)
                )

                def on_batch(batch_index: int, metrics: list[ValidatorMetrics]) -> None:
                    delivered.extend(metrics)
                    self.ranked = rank(delivered, top_n=config.top_n)
                    track_batches(
                        progress,
                        task_id,
                        batch_index + 1,
                        len(batches),
                        len(batches[batch_index]),
                        f"Era {era} validators",
                    )

                result = await retriever.retrieve_progressively(
                    era, validator_ids, on_batch
                )

        self.console.print(build_table(era, self.ranked))
        if result.skipped:
            self.console.print(
                f"[yellow]Skipped {len(result.skipped)} validators:[/yellow]"
            )
            for skipped in result.skipped:
                self.console.print(f"  {skipped.validator_id}: {skipped.reason}")

        return result


async def main() -> None:
    """Run the report with configuration from the environment."""
    console = Console()
    try:
        report = YieldReport(load_run_config(), console)
        await report.run()
    except (ChainConnectionError, ValueError) as e:
        console.print(f"[red]✗ {e}[/red]")
        raise SystemExit(1) from e


if __name__ == "__main__":
    run(main())
