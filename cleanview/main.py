import time
import logging
import uvicorn
from fastapi import FastAPI
from contextlib import asynccontextmanager

from .config import LOG_LEVEL, PORT
from .veo import VeoClient
from .auth_middleware import SharedSecretMiddleware
from .pipeline import SessionController, session_router, credential_router
from .pipeline.credentials import CredentialGate, EnvCredentialProvider
from .pipeline.extractor import MediaExtractor
from .pipeline.generation import GenerationClient
from .pipeline.storage import ResultStore
from . import metrics

logging.basicConfig(level=LOG_LEVEL)
# httpx logs full request URLs, and result downloads carry the key in the query
logging.getLogger("httpx").setLevel(logging.WARNING)
logger = logging.getLogger(__name__)


def build_controller(provider: EnvCredentialProvider | None = None) -> SessionController:
    """Wire the production pipeline: env key → Veo REST → local storage."""
    provider = provider or EnvCredentialProvider()
    store = ResultStore()
    client = GenerationClient(VeoClient(api_key=provider.api_key), store)
    return SessionController(
        extractor=MediaExtractor(),
        client=client,
        gate=CredentialGate(provider),
        store=store,
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("CleanView starting up...")
    metrics.set_gauge("start_time", time.time())
    controller = build_controller()
    app.state.controller = controller

    state = await controller.gate.check_credential()
    logger.info(f"Initial credential state: {state.value}")
    yield
    logger.info("CleanView shutting down...")
    await controller.close()


app = FastAPI(lifespan=lifespan)
app.add_middleware(SharedSecretMiddleware)
app.include_router(session_router)
app.include_router(credential_router)


@app.get("/health")
def health_check():
    """Verify the worker is running and a key is configured."""
    provider = EnvCredentialProvider()
    return {
        "status": "ok",
        "api_key_set": bool(provider.api_key()),
    }


@app.get("/metrics")
def metrics_endpoint():
    """Return a snapshot of all worker metrics."""
    return metrics.get_snapshot()


if __name__ == "__main__":
    uvicorn.run("cleanview.main:app", host="0.0.0.0", port=PORT, reload=True)
