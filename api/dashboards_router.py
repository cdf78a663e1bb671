"""
Dashboards Router - CRUD des dashboards, charts et zones de texte
"""
import logging
from typing import Literal, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from api.deps import get_dashboard_store
from api.utils import success_response
from services.dashboards import DashboardStore

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/dashboards", tags=["dashboards"])


class DashboardCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = None


class DashboardUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = None


class ChartAdd(BaseModel):
    chart_id: str = Field(..., min_length=1)
    title: Optional[str] = None


class TextboxCreate(BaseModel):
    content: str = ""
    width: Literal["half", "full"] = "half"


class TextboxUpdate(BaseModel):
    content: Optional[str] = None
    width: Optional[Literal["half", "full"]] = None


@router.get("")
async def list_dashboards(store: DashboardStore = Depends(get_dashboard_store)):
    dashboards = store.list()
    return success_response([d.model_dump() for d in dashboards], meta={"count": len(dashboards)})


@router.post("")
async def create_dashboard(payload: DashboardCreate, store: DashboardStore = Depends(get_dashboard_store)):
    dashboard = store.create(payload.name, payload.description)
    return success_response(dashboard.model_dump(), status_code=201)


@router.get("/{dashboard_id}")
async def get_dashboard(dashboard_id: str, store: DashboardStore = Depends(get_dashboard_store)):
    return success_response(store.get(dashboard_id).model_dump())


@router.put("/{dashboard_id}")
async def update_dashboard(
    dashboard_id: str,
    payload: DashboardUpdate,
    store: DashboardStore = Depends(get_dashboard_store),
):
    dashboard = store.update(dashboard_id, name=payload.name, description=payload.description)
    return success_response(dashboard.model_dump())


@router.delete("/{dashboard_id}")
async def delete_dashboard(dashboard_id: str, store: DashboardStore = Depends(get_dashboard_store)):
    store.delete(dashboard_id)
    return success_response({"deleted": dashboard_id})


# ── Charts ────────────────────────────────────────────────────────────

@router.post("/{dashboard_id}/charts")
async def add_chart(dashboard_id: str, payload: ChartAdd, store: DashboardStore = Depends(get_dashboard_store)):
    chart = store.add_chart(dashboard_id, payload.chart_id, payload.title)
    return success_response(chart.model_dump(), status_code=201)


@router.delete("/{dashboard_id}/charts/{item_id}")
async def remove_chart(dashboard_id: str, item_id: str, store: DashboardStore = Depends(get_dashboard_store)):
    store.remove_chart(dashboard_id, item_id)
    return success_response({"deleted": item_id})


# ── Textboxes ─────────────────────────────────────────────────────────

@router.post("/{dashboard_id}/textboxes")
async def add_textbox(
    dashboard_id: str,
    payload: TextboxCreate,
    store: DashboardStore = Depends(get_dashboard_store),
):
    textbox = store.add_textbox(dashboard_id, payload.content, payload.width)
    return success_response(textbox.model_dump(), status_code=201)


@router.put("/{dashboard_id}/textboxes/{textbox_id}")
async def update_textbox(
    dashboard_id: str,
    textbox_id: str,
    payload: TextboxUpdate,
    store: DashboardStore = Depends(get_dashboard_store),
):
    textbox = store.update_textbox(dashboard_id, textbox_id, content=payload.content, width=payload.width)
    return success_response(textbox.model_dump())


@router.delete("/{dashboard_id}/textboxes/{textbox_id}")
async def remove_textbox(dashboard_id: str, textbox_id: str, store: DashboardStore = Depends(get_dashboard_store)):
    store.remove_textbox(dashboard_id, textbox_id)
    return success_response({"deleted": textbox_id})
