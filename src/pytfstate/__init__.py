from dotenv import load_dotenv

load_dotenv()

from .lock import LockTable
from .handler import StateHandler
from .schemas import LockInfo
from .config import Settings, get_settings
from .storage import StateStorage, GiteaStorage
from .init import BACKEND_INIT, BACKEND_TERMINATE, create_app
