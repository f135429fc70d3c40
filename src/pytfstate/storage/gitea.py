import base64
import httpx
import logging
from urllib.parse import quote

from .base import StateStorage
from ..errors import StorageError, FileAlreadyExistsError

logger = logging.getLogger(__name__)

API_PREFIX = '/api/v1'

class GiteaStorage(StateStorage):
    """
    State storage backed by a Gitea repository, using the repository contents API.

    Each write is a commit on the configured branch, so every saved state stays
    inspectable in the repository history. The blob SHA returned by Gitea is used
    as the revision token.
    """
    def __init__(
        self,
        base_url: str,
        token: str,
        owner: str,
        repo: str,
        branch: str = 'main',
        *,
        timeout: float = 30.0,
        client: httpx.Client | None = None
    ):
        self.owner = owner
        self.repo = repo
        self.branch = branch or 'main'
        self.base_url = base_url.rstrip('/')

        self._owns_client = client is None
        self._client = client or httpx.Client(timeout=timeout)
        self._headers = {
            'Authorization': f'token {token}',
            'Accept': 'application/json',
        }

    @classmethod
    def from_settings(cls, settings) -> 'GiteaStorage':
        return cls(
            settings.GITEA_URL,
            settings.GITEA_TOKEN,
            settings.GITEA_OWNER,
            settings.GITEA_REPO,
            settings.GITEA_BRANCH,
            timeout=settings.GITEA_TIMEOUT,
        )

    def close(self) -> None:
        if self._owns_client:
            self._client.close()

    def __enter__(self) -> 'GiteaStorage':
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def _contents_url(self, path: str) -> str:
        return (
            f'{self.base_url}{API_PREFIX}/repos/'
            f'{quote(self.owner, safe="")}/{quote(self.repo, safe="")}/contents/{quote(path, safe="/")}'
        )

    def _request(self, method: str, path: str, **kwargs) -> httpx.Response:
        try:
            return self._client.request(method, self._contents_url(path), headers=self._headers, **kwargs)
        except httpx.HTTPError as e:
            raise StorageError(f'Failed to reach Gitea for {path}: {e}') from e

    @staticmethod
    def _raise_for_status(response: httpx.Response, action: str, path: str) -> None:
        try:
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise StorageError(f'Failed to {action} file {path}: HTTP {response.status_code}') from e

    def get_file(self, path: str) -> tuple[bytes, str] | None:
        response = self._request('GET', path, params={'ref': self.branch})
        if response.status_code == 404:
            return None
        self._raise_for_status(response, 'get', path)

        try:
            data = response.json()
        except ValueError as e:
            raise StorageError(f'Invalid contents response for {path}') from e

        # A directory listing comes back as a JSON array
        if not isinstance(data, dict) or data.get('type', 'file') != 'file':
            return None

        try:
            content = base64.b64decode(data.get('content') or '')
        except ValueError as e:
            raise StorageError(f'Failed to decode file content of {path}') from e
        return content, data.get('sha', '')

    def file_exists(self, path: str) -> tuple[bool, str]:
        """Check whether a file exists, returning its SHA if it does."""
        found = self.get_file(path)
        if found is None:
            return False, ''
        return True, found[1]

    def create_file(self, path: str, content: bytes, message: str) -> None:
        """
        Create a new file in the repository.

        Raises FileAlreadyExistsError if Gitea rejects the create because the file exists (HTTP 422).
        """
        response = self._request('POST', path, json={
            'content': base64.b64encode(content).decode('ascii'),
            'message': message,
            'branch': self.branch,
        })
        if response.status_code == 422:
            raise FileAlreadyExistsError(path)
        self._raise_for_status(response, 'create', path)
        logger.debug(f'Created {path} on {self.owner}/{self.repo}@{self.branch}')

    def update_file(self, path: str, content: bytes, sha: str, message: str) -> None:
        """Replace the content of an existing file whose current blob SHA is `sha`."""
        response = self._request('PUT', path, json={
            'content': base64.b64encode(content).decode('ascii'),
            'message': message,
            'branch': self.branch,
            'sha': sha,
        })
        self._raise_for_status(response, 'update', path)
        logger.debug(f'Updated {path} on {self.owner}/{self.repo}@{self.branch}')

    def create_or_update_file(self, path: str, content: bytes, message: str) -> None:
        exists, sha = self.file_exists(path)
        if exists:
            self.update_file(path, content, sha, message)
            return

        try:
            self.create_file(path, content, message)
        except FileAlreadyExistsError:
            # Created concurrently between the existence check and the create
            logger.info(f'{path} appeared while creating it, updating instead')
            exists, sha = self.file_exists(path)
            if not exists:
                raise
            self.update_file(path, content, sha, message)
