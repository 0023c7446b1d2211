"""
Label lookup endpoint used by the option picker.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query

from field_label_sync.api.query_server import MAX_RESULTS, LabelQueryServer
from field_label_sync.core.logging_config import get_logger
from field_label_sync.schemas.api_schemas import LabelsResponse

router = APIRouter()
logger = get_logger(__name__)


def get_query_server() -> LabelQueryServer:
    return LabelQueryServer()


@router.get(
    "/labels",
    response_model=LabelsResponse,
    summary="Search Labels",
    description="Return cached labels containing the query text, case-insensitively"
)
async def search_labels(
    query: Optional[str] = Query(default=None, description="Substring to search for"),
    limit: int = Query(default=MAX_RESULTS, ge=0, description="Maximum labels to return (capped at 20)"),
    server: LabelQueryServer = Depends(get_query_server)
):
    labels = await server.query(query, limit=limit)
    return LabelsResponse(labels=labels, count=len(labels))
