"""User management CLI commands."""

import asyncio

import typer
from rich.console import Console
from rich.table import Table
from sqlmodel import select

from sudu.database import get_session_context
from sudu.models import User
from sudu.services.auth import AuthError
from sudu.services.security import hash_password
from sudu.services.store import CredentialStore

console = Console()
app = typer.Typer(help="User management commands")


@app.command("list")
def list_users():
    """List all users."""

    async def _list():
        async with get_session_context() as session:
            stmt = select(User).order_by(User.email)
            result = await session.execute(stmt)
            users = result.scalars().all()

            table = Table(title="Users")
            table.add_column("ID", style="cyan")
            table.add_column("Email", style="green")
            table.add_column("Name")
            table.add_column("Verified", style="magenta")
            table.add_column("Telegram", style="blue")
            table.add_column("Created", style="dim")

            for user in users:
                verified = "[green]Yes[/green]" if user.email_verified else "No"
                telegram = str(user.telegram_chat_id) if user.telegram_chat_id else "-"
                created = user.created_at.strftime("%Y-%m-%d") if user.created_at else "-"
                table.add_row(user.id, user.email, user.name, verified, telegram, created)

            console.print(table)

    asyncio.run(_list())


@app.command("create")
def create_user(
    email: str = typer.Argument(..., help="User email"),
    name: str = typer.Option(..., "--name", "-n", help="Full name"),
    password: str = typer.Option(
        ..., "--password", "-p", prompt=True, hide_input=True, confirmation_prompt=True
    ),
    verified: bool = typer.Option(False, "--verified", help="Mark the email as verified"),
):
    """Create a user without sending a verification email."""

    async def _create():
        async with get_session_context() as session:
            store = CredentialStore(session)
            try:
                async with store.transaction():
                    user = await store.add_user(
                        name=name, email=email, password_hash=hash_password(password)
                    )
                    user.email_verified = verified
            except AuthError as e:
                console.print(f"[red]Error:[/red] {e.message}")
                raise typer.Exit(1) from e
            console.print(f"[green]Created user:[/green] {email} ({name}) verified={verified}")

    asyncio.run(_create())


@app.command("verify")
def verify_user(email: str = typer.Argument(..., help="User email")):
    """Mark a user's email as verified."""

    async def _verify():
        async with get_session_context() as session:
            user = await CredentialStore(session).get_user_by_email(email)

            if not user:
                console.print(f"[red]Error:[/red] User {email} not found")
                raise typer.Exit(1)

            if user.email_verified:
                console.print(f"[yellow]Warning:[/yellow] User {email} is already verified")
                return

            user.email_verified = True
            user.verification_token = None
            await session.commit()
            console.print(f"[green]Verified:[/green] {email}")

    asyncio.run(_verify())
