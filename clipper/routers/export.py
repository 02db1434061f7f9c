"""Export endpoints: topic selection, archive generation and progress polling."""

import io
import logging

from fastapi import APIRouter, HTTPException, Request
from fastapi.responses import StreamingResponse

from clipper.limiter import limiter
from clipper.models.board_response import SelectionResponse
from clipper.models.export_request import ExportMode, ExportRequest, SelectionRequest
from clipper.models.export_response import ExportStatus
from clipper.services.exporter import EmptySelectionError, ExportInProgressError
from clipper.state import get_state

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/export", tags=["export"])


@router.put("/selection", response_model=SelectionResponse, summary="Select topics for export")
async def update_selection(request: Request, body: SelectionRequest) -> SelectionResponse:
    board = get_state(request).board
    if body.topic_ids is None:
        board.select_all(body.selected)
    else:
        missing = [tid for tid in body.topic_ids if not board.set_selected(tid, body.selected)]
        if missing:
            raise HTTPException(status_code=404, detail=f"Unknown topic(s): {', '.join(missing)}")
    return SelectionResponse(selection=dict(board.selection))


@router.get("/status", response_model=ExportStatus, summary="Export progress and console log")
async def export_status(request: Request) -> ExportStatus:
    return get_state(request).observer.status


@router.post(
    "",
    summary="Build a ZIP archive of the selected topics",
    description=(
        "`extracted` removes every image background with the image model before "
        "packaging; `originals` packages the source files untouched.  Images that "
        "cannot be downloaded are left out and reported in the export log."
    ),
    response_class=StreamingResponse,
)
@limiter.limit("3/minute")
async def run_export(request: Request, body: ExportRequest) -> StreamingResponse:
    state = get_state(request)
    if not state.board.all_loaded:
        raise HTTPException(status_code=409, detail="Searches are still running.")

    topics = state.board.selected_topics()
    logger.info("Export request received", extra={"mode": body.mode.value, "topics": len(topics)})

    try:
        if body.mode is ExportMode.EXTRACTED:
            result = await state.exporter.run_extracted(topics)
        else:
            result = await state.exporter.run_originals(topics)
    except ExportInProgressError as exc:
        raise HTTPException(status_code=409, detail=str(exc))
    except EmptySelectionError as exc:
        raise HTTPException(status_code=400, detail=str(exc))

    return StreamingResponse(
        io.BytesIO(result.content),
        media_type="application/zip",
        headers={
            "Content-Disposition": f'attachment; filename="{result.filename}"',
            "X-Files-Written": str(result.files_written),
            "X-Files-Skipped": str(result.files_skipped),
        },
    )
