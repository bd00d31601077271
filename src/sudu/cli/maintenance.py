"""Maintenance CLI commands."""

import asyncio

import typer
from rich.console import Console

from sudu.tasks import queue
from sudu.tasks.maintenance import MAINTENANCE_TIMEOUT_SECONDS, sweep_pending_registrations

console = Console()
app = typer.Typer(help="Maintenance and cleanup commands")


@app.command("sweep-pending")
def sweep_pending(
    background: bool = typer.Option(False, "--background", "-b", help="Run in background worker"),
):
    """Delete expired pending registrations."""

    async def _sweep():
        if background:
            job = await queue.enqueue(
                "sweep_pending_registrations",
                timeout=MAINTENANCE_TIMEOUT_SECONDS,
            )
            console.print(f"[green]Queued sweep job:[/green] {job.id if job else 'unknown'}")
            return

        result = await sweep_pending_registrations({})
        console.print(f"[green]Deleted expired pending registrations:[/green] {result['deleted']}")

    asyncio.run(_sweep())
