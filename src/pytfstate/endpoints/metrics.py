from fastapi import APIRouter, Request, Response

router = APIRouter()

@router.get('', include_in_schema=False)
def get_metrics(request: Request):
    content, media_type = request.app.state.metrics.render()
    return Response(content, media_type=media_type)
