import logging
from fastapi import FastAPI
from contextlib import asynccontextmanager

from .lock import LockTable
from .metrics import Metrics
from .handler import StateHandler
from .config import Settings, get_settings
from .storage import StateStorage, GiteaStorage
from .endpoints import router, state_router
from .middleware import TokenAuth, MaxBodySizeMiddleware, log_requests, record_metrics

logger = logging.getLogger(__name__)

def BACKEND_INIT(app: FastAPI, settings: Settings, storage: StateStorage | None = None) -> None:
    # Build the state handler around one storage and one lock table for the whole process
    if storage is None:
        storage = GiteaStorage.from_settings(settings)
    handler = StateHandler(storage, LockTable())

    metrics = Metrics()
    metrics.track_locks(handler.locks)

    app.state.settings = settings
    app.state.handler = handler
    app.state.metrics = metrics

    # Register endpoints, the catch-all state route last
    app.include_router(router)
    if settings.auth_enabled:
        app.state.auth = TokenAuth(settings.AUTH_TOKEN)
        logger.info('Authentication enabled')
    else:
        app.state.auth = None
        logger.warning('Authentication disabled - AUTH_TOKEN not set')
    app.include_router(state_router)

    # Middleware added last runs first: metrics wrap logging wrap the body limit
    app.add_middleware(MaxBodySizeMiddleware, max_body_size=settings.max_body_size)
    app.middleware('http')(log_requests)
    app.middleware('http')(record_metrics)

def BACKEND_TERMINATE(app: FastAPI) -> None:
    """Close the storage client and drop held locks."""
    handler: StateHandler | None = getattr(app.state, 'handler', None)
    if handler is None:
        return

    handler.storage.close()
    handler.locks.clear()

@asynccontextmanager
async def lifespan(app: FastAPI):
    settings: Settings = app.state.settings
    logger.info(f'Gitea: {settings.GITEA_URL}/{settings.GITEA_OWNER}/{settings.GITEA_REPO} (branch: {settings.GITEA_BRANCH})')
    yield
    logger.info('Shutting down state backend...')
    BACKEND_TERMINATE(app)

def create_app(settings: Settings | None = None, storage: StateStorage | None = None) -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = settings if settings is not None else get_settings()
    app = FastAPI(
        title='py-tfstate',
        version='0.1.0',
        lifespan=lifespan,
    )
    BACKEND_INIT(app, settings, storage)
    return app
