from .lock import LockInfo
from .health import HealthInfo
