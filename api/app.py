from dotenv import load_dotenv

# Load environment variables BEFORE any imports that use them
load_dotenv()

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from api.dependencies import get_neo4j_client
from api.routers import agents, repositories, reviews, webhook
from api.services.github_service import GitHubAppAuth, GitHubService
from api.services.webhook_service import WebhookOrchestrator
from db import ReviewSchema, ReviewStore
from reviewer.agent.review_generator import LLMReviewGenerator
from reviewer.config import config as reviewer_config
import uvicorn

logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(name)s - %(levelname)s - %(message)s')
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan context manager.

    Builds the Neo4j client, store and review pipeline once on startup and
    closes the driver on shutdown.
    """
    client = None
    app.state.review_store = None
    app.state.orchestrator = None

    try:
        client = get_neo4j_client()
    except ValueError as e:
        logger.error(f"Neo4j is not configured, reviews are disabled: {e}")

    if client is not None:
        ReviewSchema(client).create_constraints_and_indexes()
        store = ReviewStore(client)
        app.state.review_store = store
        app.state.orchestrator = WebhookOrchestrator(
            store=store,
            github=GitHubService(),
            auth=GitHubAppAuth(),
            generator=LLMReviewGenerator(reviewer_config),
            evaluation_version=reviewer_config.evaluation_version,
        )

    yield

    if client is not None:
        client.close()


# Create FastAPI application
app = FastAPI(
    title="Code Doctor API",
    description="""
    GitHub App that reviews pull requests with configurable LLM review agents.

    ## Features

    * **Webhook reviews** - every opened or updated PR is reviewed file by file
    * **Review agents** - prompt templates scoped by repository and file type
    * **Review history** - scores and statistics for the dashboard
    """,
    version="0.1.0",
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content={"error": exc.detail})


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    first = exc.errors()[0] if exc.errors() else {}
    location = ".".join(str(part) for part in first.get("loc", ()))
    message = f"{location}: {first.get('msg', 'invalid request')}" if location else "Invalid request"
    return JSONResponse(status_code=400, content={"error": message})


@app.get("/")
async def root() -> str:
    return "Running Code Doctor"


# Include routers
app.include_router(
    webhook.router,
    prefix="/api/webhook",
    tags=["Webhook"]
)

app.include_router(
    agents.router,
    prefix="/api/agents",
    tags=["Agents"]
)

app.include_router(
    repositories.router,
    prefix="/api/repositories",
    tags=["Repositories"]
)

app.include_router(
    reviews.router,
    prefix="/api/reviews",
    tags=["Reviews"]
)


def run_server():
    """
    Run the API server.

    This function is used as an entry point for the CLI command.
    """
    uvicorn.run(
        "api.app:app",
        host="0.0.0.0",
        port=5000,
        reload=False
    )


if __name__ == "__main__":
    run_server()
