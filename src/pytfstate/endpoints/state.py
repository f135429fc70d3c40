from fastapi import APIRouter, Request, Response

router = APIRouter()

async def serve_state(request: Request) -> Response:
    """
    Terraform HTTP backend endpoint, the path being the state name.
    """
    auth = getattr(request.app.state, 'auth', None)
    if auth is not None:
        auth(request)
    return await request.app.state.handler.handle(request)

# An empty method set matches every method (None would default a function endpoint to GET),
# so the handler owns the 400/405 decisions
router.add_route('/{name:path}', serve_state, methods=[], include_in_schema=False)
