from fastapi import APIRouter

from . import state
from . import health
from . import metrics

router = APIRouter()
router.include_router(health.router, prefix='/health', tags=['tfstate/health'])
router.include_router(metrics.router, prefix='/metrics', tags=['tfstate/metrics'])

# The state route matches every path, so it is registered apart and last
state_router = state.router
