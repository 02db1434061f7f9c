"""Topic board endpoints: search, list, remove and single-image cleanup."""

import logging

from fastapi import APIRouter, BackgroundTasks, HTTPException, Request

from clipper.limiter import limiter
from clipper.models.board_response import BoardResponse, TopicResponse
from clipper.models.export_request import CleanImageRequest
from clipper.models.image import ImageRecord
from clipper.models.search_request import SearchRequest
from clipper.models.topic import Topic
from clipper.services.aggregator import ALL_SOURCES
from clipper.services.background import ExtractionError
from clipper.state import ClipperState, ImageBusyError, get_state

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/topics", tags=["topics"])


def _topic_response(state: ClipperState, topic: Topic) -> TopicResponse:
    return TopicResponse(
        id=topic.id,
        display_name=topic.display_name,
        description_label=topic.description_label,
        status=topic.status,
        images=topic.images,
        selected=state.board.selection.get(topic.id, False),
    )


@router.get("", response_model=BoardResponse, summary="List the topic board")
async def list_topics(request: Request) -> BoardResponse:
    state = get_state(request)
    board = state.board
    return BoardResponse(
        topics=[_topic_response(state, t) for t in board.topics],
        all_loaded=board.all_loaded,
        total_image_count=board.total_image_count,
        extracted_count=board.extracted_count,
    )


@router.post(
    "",
    response_model=TopicResponse,
    status_code=202,
    summary="Search the archives for a new topic",
    description=(
        "Adds a topic in `loading` state and returns immediately.  The archives "
        "are searched in the background; poll `GET /topics` for the result."
    ),
)
@limiter.limit("20/minute")
async def create_topic(
    request: Request, body: SearchRequest, background_tasks: BackgroundTasks
) -> TopicResponse:
    state = get_state(request)
    name = body.topic.strip()
    if not name:
        logger.warning("Rejected search with an empty topic")
        raise HTTPException(status_code=400, detail="Topic must not be empty.")

    sources = frozenset(body.sources) if body.sources is not None else ALL_SOURCES
    topic_id = state.board.add_topic(name)
    logger.info(
        "Search request received",
        extra={"topic": name, "sources": sorted(s.value for s in sources), "limit": body.per_source_limit},
    )
    background_tasks.add_task(state.populate_topic, topic_id, name, sources, body.per_source_limit)
    return _topic_response(state, state.board.get_topic(topic_id))


@router.delete("/{topic_id}", status_code=204, summary="Remove a topic from the board")
async def remove_topic(request: Request, topic_id: str) -> None:
    if not get_state(request).board.remove_topic(topic_id):
        raise HTTPException(status_code=404, detail="Topic not found.")


@router.post(
    "/{topic_id}/images/clean",
    response_model=ImageRecord,
    summary="Remove the background of one image",
)
@limiter.limit("30/minute")
async def clean_image(request: Request, topic_id: str, body: CleanImageRequest) -> ImageRecord:
    state = get_state(request)
    try:
        await state.clean_image(topic_id, body.title)
    except KeyError:
        raise HTTPException(status_code=404, detail="Image not found.")
    except ImageBusyError as exc:
        raise HTTPException(status_code=409, detail=str(exc))
    except ExtractionError as exc:
        logger.error("Background removal failed for %r: %s", body.title, exc)
        raise HTTPException(
            status_code=502, detail="AI Processing Error: Could not extract object from this image."
        )

    # The topic may have been removed while the model was working
    topic = state.board.get_topic(topic_id)
    image = next((img for img in topic.images if img.title == body.title), None) if topic else None
    if image is None:
        raise HTTPException(status_code=404, detail="Topic was removed during processing.")
    return image
