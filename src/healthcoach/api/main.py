"""FastAPI application factory."""
from fastapi import FastAPI

from healthcoach.api.routes import baselines, ingest, insights, patterns, proofs


def create_app() -> FastAPI:
    """Build and return the FastAPI app."""
    app = FastAPI(
        title="Health Coach Analytics API",
        description="Baselines, patterns, insights and proofs over daily wearable data",
        version="0.1.0",
    )

    app.include_router(baselines.router, prefix="/baselines", tags=["baselines"])
    app.include_router(patterns.router, prefix="/patterns", tags=["patterns"])
    app.include_router(insights.router, prefix="/insights", tags=["insights"])
    app.include_router(ingest.router, prefix="/ingest", tags=["ingest"])
    app.include_router(proofs.router, prefix="/proofs", tags=["proofs"])

    return app


# Module-level app instance for uvicorn
app = create_app()
