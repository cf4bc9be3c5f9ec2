# collagify/routers/collage_router.py
from fastapi import APIRouter, HTTPException, Request
from collagify import schemas
from collagify.config import settings
from collagify.controllers import collage_controller
from collagify.errors import CollagifyError

router = APIRouter()

@router.post("/collage", response_model=schemas.CollageRunResponse)
async def run_collage(request: Request):
    state = request.app.state
    try:
        report = await collage_controller.run_exclusive(
            state.run_lock,
            state.store,
            state.telegram,
            state.http,
            max_columns=settings.max_columns,
            allow_partial=settings.allow_partial_collage,
        )
    except CollagifyError as e:
        raise HTTPException(status_code=500, detail=str(e))

    return schemas.CollageRunResponse(
        status="success" if not report.failures else "partial",
        channels_processed=report.channels,
        collages_sent=report.collages_sent,
        failures=[str(failure) for failure in report.failures],
    )
