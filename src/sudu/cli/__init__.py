"""CLI commands using Typer."""

import typer

from sudu.cli.db import app as db_app
from sudu.cli.maintenance import app as maintenance_app
from sudu.cli.users import app as users_app

app = typer.Typer(name="sudu", help="СУДУ auth backend CLI")

# Register sub-apps
app.add_typer(db_app, name="db")
app.add_typer(users_app, name="users")
app.add_typer(maintenance_app, name="maintenance")


@app.command()
def version():
    """Show version information."""
    from sudu import __version__

    typer.echo(f"СУДУ v{__version__}")


@app.command()
def serve(
    host: str = typer.Option("0.0.0.0", help="Host to bind to"),
    port: int = typer.Option(5000, help="Port to bind to"),
    reload: bool = typer.Option(False, help="Enable auto-reload"),
):
    """Run the API server."""
    import uvicorn

    from sudu.logging import get_uvicorn_log_config, setup_logging

    setup_logging()
    uvicorn.run(
        "sudu.main:app",
        host=host,
        port=port,
        reload=reload,
        log_config=get_uvicorn_log_config(),
    )


@app.command()
def worker():
    """Run the background task worker (pending registration sweep)."""
    from sudu.worker import main

    main()


@app.command()
def bot():
    """Run the Telegram bot (long polling)."""
    import asyncio

    from sudu.config import settings
    from sudu.database import close_db
    from sudu.logging import setup_logging
    from sudu.services.telegram import get_telegram_client
    from sudu.services.telegram_bot import TelegramBot

    setup_logging()
    if not settings.telegram_enabled:
        typer.echo("TELEGRAM_BOT_TOKEN is not set", err=True)
        raise typer.Exit(1)

    async def run_bot():
        telegram_bot = TelegramBot(
            get_telegram_client(), poll_timeout=settings.telegram_poll_timeout
        )
        try:
            await telegram_bot.run()
        finally:
            await close_db()

    try:
        asyncio.run(run_bot())
    except KeyboardInterrupt:
        typer.echo("Bot stopped")


if __name__ == "__main__":
    app()
