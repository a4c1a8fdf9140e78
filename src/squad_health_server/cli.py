"""Command line interface for squad-health-server."""

import asyncio

import typer
import uvicorn
from sqlalchemy.ext.asyncio import AsyncSession

from squad_health_server import __version__
from squad_health_server.core import database
from squad_health_server.core.config import settings
from squad_health_server.models.metric import PlayerMetric
from squad_health_server.services.ai_model import AIModelService

app = typer.Typer(
    name="squad-health-server",
    help="Team health backend: player metrics, assessments, training programs and messaging",
    no_args_is_help=True,
)


@app.command()
def serve(
    host: str = typer.Option(None, help="Host to bind to (overrides config)"),
    port: int = typer.Option(None, help="Port to bind to (overrides config)"),
    reload: bool = typer.Option(False, help="Enable auto-reload for development"),
) -> None:
    """Run the HTTP and websocket API under uvicorn.

    Example:
        squad-health-server serve --port 8080 --reload
    """
    uvicorn.run(
        "squad_health_server.app:app",
        host=host or settings.api_host,
        port=port or settings.api_port,
        reload=reload,
        log_level=settings.log_level.lower(),
    )


@app.command("check-db")
def check_db() -> None:
    """Connect to the configured database and report migration state."""

    async def _check() -> None:
        try:
            await database.init_database()
        finally:
            await database.close_database()

    asyncio.run(_check())
    typer.echo(f"Database reachable: {settings.database_url.split('@')[-1]}")


@app.command()
def classify(
    fatigue: float = typer.Option(None, help="Fatigue score (0-100)"),
    injury_risk: float = typer.Option(None, help="Injury risk (0-100)"),
    readiness: float = typer.Option(None, help="Readiness score (0-100)"),
) -> None:
    """Send scores to the AI classifier and print the resulting program.

    Prints the fallback program when the classifier cannot be reached.
    """
    metric = PlayerMetric(
        player_id=0,
        fatigue_score=fatigue,
        injury_risk=injury_risk,
        readiness_score=readiness,
    )

    async def _classify() -> None:
        async with AsyncSession(database.engine) as session:
            prediction = await AIModelService(session).classify_player(metric)
        typer.echo(prediction.model_dump_json(indent=2))

    asyncio.run(_classify())


@app.command()
def version() -> None:
    """Show version information."""
    typer.echo(f"squad-health-server v{__version__}")


def main() -> None:
    """Main entry point."""
    app()


if __name__ == "__main__":
    main()
