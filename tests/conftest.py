import httpx
import pytest

from pytfstate.config import Settings, get_settings
from pytfstate.errors import StorageError
from pytfstate.init import create_app
from pytfstate.storage import StateStorage

ENV_VARS = [
    'GITEA_URL', 'GITEA_TOKEN', 'GITEA_OWNER', 'GITEA_REPO', 'GITEA_BRANCH', 'GITEA_TIMEOUT',
    'LISTEN_ADDR', 'AUTH_TOKEN', 'MAX_BODY_SIZE_MB', 'LOG_LEVEL',
]

class MemoryStorage(StateStorage):
    """Storage double keeping files in a dict; the path doubles as revision token."""
    def __init__(self):
        self.files: dict[str, bytes] = {}
        self.messages: list[str] = []
        self.closed = False

    def get_file(self, path: str) -> tuple[bytes, str] | None:
        content = self.files.get(path)
        if content is None:
            return None
        return content, f'sha-{path}'

    def create_or_update_file(self, path: str, content: bytes, message: str) -> None:
        self.files[path] = content
        self.messages.append(message)

    def close(self) -> None:
        self.closed = True

class FailingStorage(StateStorage):
    def get_file(self, path: str) -> tuple[bytes, str] | None:
        raise StorageError(f'Failed to get file {path}: connection refused by gitea-internal:3000')

    def create_or_update_file(self, path: str, content: bytes, message: str) -> None:
        raise StorageError(f'Failed to update file {path}: HTTP 500')

@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    """Keep the runner's environment out of the settings under test."""
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()

def make_settings(**overrides) -> Settings:
    values = {
        'GITEA_URL': 'https://gitea.example.com',
        'GITEA_TOKEN': 'test-token',
        'GITEA_OWNER': 'testowner',
        'GITEA_REPO': 'testrepo',
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)

@pytest.fixture
def settings() -> Settings:
    return make_settings()

@pytest.fixture
def storage() -> MemoryStorage:
    return MemoryStorage()

@pytest.fixture
def app(settings, storage):
    return create_app(settings, storage)

@pytest.fixture
async def client(app):
    async with httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url='http://test') as ac:
        yield ac
