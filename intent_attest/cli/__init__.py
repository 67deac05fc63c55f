"""
Command Line Interface for Intent Attest.
"""

from typing import Optional

import typer
import uvicorn
from rich import print as rprint
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from ..config import get_settings
from ..db.base import get_session_local, init_database
from ..errors import IntentAttestError
from ..logging_config import configure_logging


app = typer.Typer(help="Intent Attest - wallet-authenticated campaign artifacts and proofs")
console = Console()


@app.command()
def serve(
    port: Optional[int] = typer.Option(None, help="Port to run the API server on"),
    host: Optional[str] = typer.Option(None, help="Host to bind the server to"),
    reload: bool = typer.Option(False, help="Reload on code changes"),
):
    """Start the API server."""
    settings = get_settings()
    host = host or settings.api_host
    port = port or settings.api_port

    rprint(Panel.fit(f"🚀 Intent Attest on http://{host}:{port}", style="bold blue"))
    uvicorn.run(
        "intent_attest.main:app",
        host=host,
        port=port,
        reload=reload,
        workers=1 if reload else settings.api_workers,
    )


@app.command()
def init_db():
    """Create all database tables."""
    settings = get_settings()
    configure_logging(settings.log_level, settings.log_format)
    init_database()
    console.print("✅ Database initialized")


@app.command()
def nonce(
    address: Optional[str] = typer.Option(
        None, help="Wallet address; prints the message it should sign"
    ),
):
    """Issue a fresh SIWE challenge."""
    from ..auth.siwe import create_message, format_message, generate_nonce

    settings = get_settings()

    if not address:
        console.print(generate_nonce())
        return

    try:
        message = create_message(
            address,
            chain_id=settings.siwe_chain_id,
            expiration_minutes=settings.siwe_expiration_minutes,
        )
    except ValueError as e:
        console.print(f"❌ Invalid address: {e}")
        raise typer.Exit(code=1)

    console.print(Panel(format_message(message), title="Sign this message"))


@app.command()
def stats(
    user: Optional[str] = typer.Option(None, help="Also count proofs for this wallet"),
):
    """Show proof statistics."""
    from ..proofs.services import ProofService

    db = get_session_local()()
    try:
        data = ProofService(db).stats(user)
    except IntentAttestError as e:
        console.print(f"❌ {e.message}")
        raise typer.Exit(code=1)
    finally:
        db.close()

    table = Table(title="Proof Statistics", show_header=True, header_style="bold magenta")
    table.add_column("Metric", style="cyan")
    table.add_column("Value", style="green")

    table.add_row("Total proofs", str(data["totalProofs"]))
    table.add_row("Unique users", str(data["uniqueUsers"]))
    if "userProofs" in data:
        table.add_row(f"Proofs by {user}", str(data["userProofs"]))

    console.print(table)


@app.command()
def verify_artifact(
    campaign_id: str = typer.Argument(..., help="Campaign ID"),
    provided_hash: str = typer.Argument(..., help="Artifact hash to check"),
):
    """Verify a frozen artifact against a provided hash."""
    from ..artifacts.services import ArtifactService

    db = get_session_local()()
    try:
        result = ArtifactService(db).verify(campaign_id, provided_hash)
    except IntentAttestError as e:
        console.print(f"❌ {e.message}")
        raise typer.Exit(code=1)
    finally:
        db.close()

    if result["valid"]:
        console.print(f"✅ Valid ({result['status']})")
    else:
        console.print(f"❌ Invalid ({result['status']})")
        console.print(f"   calculated: {result['calculatedHash']}")
        raise typer.Exit(code=1)


if __name__ == "__main__":
    app()
