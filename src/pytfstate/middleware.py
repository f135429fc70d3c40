import time
import base64
import logging
import secrets
from fastapi import HTTPException, Request
from starlette import status
from starlette.responses import PlainTextResponse
from starlette.types import ASGIApp, Message, Receive, Scope, Send

from .errors import BodyTooLargeError

logger = logging.getLogger(__name__)

AUTH_REALM = 'Bearer realm="terraform-state"'
METRICS_PATH = '/metrics'

class TokenAuth:
    """
    Check requiring the shared token on a state request.

    Accepts `Authorization: Bearer <token>`, or HTTP basic auth carrying the token as
    password, which is how Terraform's http backend sends its `password` setting.
    """
    def __init__(self, token: str):
        self._token = token.encode('utf-8')

    @staticmethod
    def provided_token(authorization: str) -> str:
        scheme, _, credentials = authorization.partition(' ')
        if scheme == 'Bearer':
            return credentials
        if scheme == 'Basic':
            try:
                decoded = base64.b64decode(credentials, validate=True).decode('utf-8')
            except ValueError:
                return ''
            _, sep, password = decoded.partition(':')
            return password if sep else ''
        return ''

    def __call__(self, request: Request) -> None:
        provided = self.provided_token(request.headers.get('Authorization', ''))
        if not secrets.compare_digest(provided.encode('utf-8'), self._token):
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail='unauthorized',
                headers={'WWW-Authenticate': AUTH_REALM},
            )

class MaxBodySizeMiddleware:
    """Bound request bodies: oversized declared lengths get 413, oversized streams fail the body read."""
    def __init__(self, app: ASGIApp, max_body_size: int):
        self.app = app
        self.max_body_size = max_body_size

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope['type'] != 'http':
            await self.app(scope, receive, send)
            return

        content_length = dict(scope['headers']).get(b'content-length')
        if content_length is not None and content_length.isdigit() and int(content_length) > self.max_body_size:
            response = PlainTextResponse('request body too large', status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE)
            await response(scope, receive, send)
            return

        received = 0

        async def limited_receive() -> Message:
            nonlocal received
            message = await receive()
            if message['type'] == 'http.request':
                received += len(message.get('body', b''))
                if received > self.max_body_size:
                    raise BodyTooLargeError(self.max_body_size)
            return message

        await self.app(scope, limited_receive, send)

async def log_requests(request: Request, call_next):
    logger.info(f'{request.method} {request.url.path}')
    return await call_next(request)

async def record_metrics(request: Request, call_next):
    if request.url.path == METRICS_PATH:
        return await call_next(request)

    start = time.perf_counter()
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    try:
        response = await call_next(request)
        status_code = response.status_code
        return response
    finally:
        request.app.state.metrics.observe_request(request.method, status_code, time.perf_counter() - start)
