from fastapi import APIRouter

from ..schemas.health import HealthInfo

router = APIRouter()

@router.get('', response_model=HealthInfo)
def get_health():
    return HealthInfo()
