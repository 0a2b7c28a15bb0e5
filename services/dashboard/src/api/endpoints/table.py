from fastapi import APIRouter
from src.domain.models import ViewportRequest, ViewportWindow
from src.services.virtual_table import VirtualTable

router = APIRouter(prefix="/table")


@router.post("/viewport", response_model=ViewportWindow)
async def table_viewport(body: ViewportRequest):
    table = VirtualTable(
        body.records,
        body.columns,
        row_height=body.row_height,
        height=body.container_height,
        overscan=body.overscan,
    )
    return table.viewport(body.scroll_top)
