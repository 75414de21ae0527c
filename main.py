from contextlib import asynccontextmanager
from fastapi import FastAPI
from dotenv import load_dotenv
import os
import sys
import logging
from middleware.jwt_auth import is_jwt_auth_configured
from routers import chat, graph, meetings, queue, webhooks
from services.container import build_container

load_dotenv()

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

# Validate required environment variables
REQUIRED_ENV_VARS = ["DATABASE_URL", "OPENAI_API_KEY"]

def validate_environment():
    """Validate that all required environment variables are set."""
    missing = [var for var in REQUIRED_ENV_VARS if not os.getenv(var)]
    if missing:
        logger.error(f"Missing required environment variables: {missing}")
        sys.exit(1)
    logger.info("Environment validation passed")

def log_integration_status():
    """
    Log which optional integrations are enabled.

    Missing secrets never stop the service; each one puts a single concern
    into degraded mode, announced here once at startup.
    """
    integrations = {
        "Webhook signature verification": bool(os.getenv("MEETINGBAAS_WEBHOOK_SECRET")),
        "Durable queue publishing": bool(os.getenv("QSTASH_TOKEN") and os.getenv("WORKER_URL")),
        "Queue signature verification": bool(
            os.getenv("QSTASH_CURRENT_SIGNING_KEY") or os.getenv("QSTASH_NEXT_SIGNING_KEY")
        ),
        "Summary emails": bool(os.getenv("EMAIL_API_KEY") and os.getenv("FROM_EMAIL")),
        "Owner API authentication": is_jwt_auth_configured(),
    }

    disabled = [name for name, enabled in integrations.items() if not enabled]
    if disabled:
        logger.warning("=" * 60)
        for name in disabled:
            logger.warning(f"{name} DISABLED")
        logger.warning("=" * 60)
    else:
        logger.info("All integrations enabled")

@asynccontextmanager
async def lifespan(app: FastAPI):
    validate_environment()
    log_integration_status()
    app.state.container = await build_container()
    try:
        yield
    finally:
        await app.state.container.close()
        logger.info("Service container closed")

app = FastAPI(title="Meeting Intelligence Pipeline", lifespan=lifespan)

# Include routers
app.include_router(webhooks.router)
app.include_router(queue.router)
app.include_router(meetings.router)
app.include_router(chat.router)
app.include_router(graph.router)

@app.get("/health")
def health():
    return {"status": "ok"}
