import logging
from pydantic import ValidationError
from starlette import status
from starlette.requests import ClientDisconnect
from starlette.concurrency import run_in_threadpool
from fastapi import HTTPException, Request, Response
from fastapi.responses import JSONResponse

from .lock import LockTable, LockOutcome
from .schemas.lock import LockInfo
from .storage import StateStorage
from .utils import extract_state_name, state_path
from .errors import StorageError, BodyTooLargeError

logger = logging.getLogger(__name__)

LOCK_ID_HEADER = 'Lock-Id'
LOCK_ID_QUERY = 'ID'

class StateHandler:
    """
    Serves the Terraform HTTP backend protocol for one state per request path.

    GET and POST read and write the state through the storage, LOCK and UNLOCK
    claim and release the state in the lock table. Lock table mutations never
    share a critical section with a storage call.
    """
    def __init__(self, storage: StateStorage, locks: LockTable | None = None):
        self.storage = storage
        self.locks = locks if locks is not None else LockTable()
        self._operations = {
            'GET': self.retrieve,
            'POST': self.save,
            'LOCK': self.claim,
            'UNLOCK': self.release,
        }

    @property
    def methods(self) -> list[str]:
        return list(self._operations)

    async def handle(self, request: Request) -> Response:
        name = extract_state_name(request.path_params.get('name', ''))
        if not name:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail='state name required')

        operation = self._operations.get(request.method)
        if operation is None:
            raise HTTPException(
                status_code=status.HTTP_405_METHOD_NOT_ALLOWED,
                detail='method not allowed',
                headers={'Allow': ', '.join(self.methods)},
            )
        return await operation(request, name)

    async def retrieve(self, request: Request, name: str) -> Response:
        """Return the stored state verbatim, or 404 if it was never saved."""
        try:
            found = await run_in_threadpool(self.storage.get_file, state_path(name))
        except StorageError as e:
            logger.error(f'Error getting state {name}: {e}')
            raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail='internal server error')

        if found is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail='state not found')

        content, _ = found
        return Response(content, media_type='application/json')

    async def save(self, request: Request, name: str) -> Response:
        """Store the request body as the new state, unless another claim holds the lock."""
        held = self.locks.peek(name)
        if held is not None:
            lock_id = request.headers.get(LOCK_ID_HEADER) or request.query_params.get(LOCK_ID_QUERY, '')
            if lock_id != held.ID:
                logger.warning(f'Rejected save of state {name}: locked by {held.ID}, caller sent "{lock_id}"')
                return self._lock_response(status.HTTP_423_LOCKED, held)

        body = await self._read_body(request, name)
        try:
            await run_in_threadpool(
                self.storage.create_or_update_file, state_path(name), body, f'Update state: {name}'
            )
        except StorageError as e:
            logger.error(f'Error saving state {name}: {e}')
            raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail='failed to save state')

        return Response(status_code=status.HTTP_200_OK)

    async def claim(self, request: Request, name: str) -> Response:
        claim = await self._read_lock_info(request, name)

        result = self.locks.acquire(name, claim)
        if not result.ok:
            logger.warning(f'State {name} is locked by {result.lock.ID}, rejected claim {claim.ID}')
            return self._lock_response(status.HTTP_423_LOCKED, result.lock)

        logger.info(f'State {name} locked by {result.lock.ID} ({result.lock.Operation or "unknown operation"})')
        return self._lock_response(status.HTTP_200_OK, result.lock)

    async def release(self, request: Request, name: str) -> Response:
        info = await self._read_lock_info(request, name)

        result = self.locks.release(name, info.ID)
        if not result.ok:
            logger.warning(f'State {name} is locked by {result.lock.ID}, rejected unlock by {info.ID}')
            return self._lock_response(status.HTTP_409_CONFLICT, result.lock)

        if result.outcome is LockOutcome.RELEASED:
            if info.ID:
                logger.info(f'State {name} unlocked by {info.ID}')
            else:
                logger.info(f'State {name} force-unlocked, lock {result.lock.ID} dropped')
        return Response(status_code=status.HTTP_200_OK)

    async def _read_body(self, request: Request, name: str) -> bytes:
        try:
            return await request.body()
        except (BodyTooLargeError, ClientDisconnect) as e:
            logger.error(f'Error reading body for {name}: {e!r}')
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail='failed to read request body')

    async def _read_lock_info(self, request: Request, name: str) -> LockInfo:
        body = await self._read_body(request, name)
        try:
            return LockInfo.model_validate_json(body)
        except ValidationError as e:
            logger.error(f'Error parsing lock body for {name}: {e.error_count()} validation error(s)')
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail='invalid lock info')

    @staticmethod
    def _lock_response(status_code: int, lock: LockInfo) -> JSONResponse:
        return JSONResponse(status_code=status_code, content=lock.model_dump())
