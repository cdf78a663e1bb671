"""
Dashboards utilisateur (charts + zones de texte), persistés dans un fichier JSON.
"""
from __future__ import annotations

import json
import logging
import threading
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, Dict, List, Literal, Optional

from pydantic import BaseModel, Field

from api.exceptions import DataException
from shared.json_store import atomic_json_dump, read_json

logger = logging.getLogger(__name__)


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _new_id() -> str:
    return uuid.uuid4().hex[:12]


class DashboardChart(BaseModel):
    id: str = Field(default_factory=_new_id)
    chart_id: str
    title: Optional[str] = None
    position: int = 0


class Textbox(BaseModel):
    id: str = Field(default_factory=_new_id)
    content: str = ""
    width: Literal["half", "full"] = "half"
    position: int = 0


class Dashboard(BaseModel):
    id: str = Field(default_factory=_new_id)
    name: str
    description: Optional[str] = None
    charts: List[DashboardChart] = Field(default_factory=list)
    textboxes: List[Textbox] = Field(default_factory=list)
    created_at: str = Field(default_factory=_now)
    last_modified: str = Field(default_factory=_now)

    def next_position(self) -> int:
        positions = [c.position for c in self.charts] + [t.position for t in self.textboxes]
        return max(positions) + 1 if positions else 0


class DashboardStore:
    """CRUD dashboards; chaque mutation relit puis réécrit le fichier (écriture atomique)."""

    def __init__(self, path: Path):
        self.path = Path(path)
        self._lock = threading.RLock()

    def _load(self) -> Dict[str, Dashboard]:
        if not self.path.exists():
            return {}
        try:
            raw = read_json(self.path)
        except json.JSONDecodeError as e:
            logger.error(f"Dashboards file {self.path} is corrupt: {e}")
            raise DataException("dashboards", "dashboards file is corrupt")
        items = raw.get("dashboards", []) if isinstance(raw, dict) else raw
        dashboards = {}
        for item in items:
            dashboard = Dashboard.model_validate(item)
            dashboards[dashboard.id] = dashboard
        return dashboards

    def _save(self, dashboards: Dict[str, Dashboard]):
        atomic_json_dump({"dashboards": [d.model_dump() for d in dashboards.values()]}, self.path)

    def _mutate(self, dashboard_id: str, change: Callable[[Dashboard], object]):
        with self._lock:
            dashboards = self._load()
            dashboard = dashboards.get(dashboard_id)
            if dashboard is None:
                raise DataException("dashboards", f"Dashboard '{dashboard_id}' not found")
            result = change(dashboard)
            dashboard.last_modified = _now()
            self._save(dashboards)
            return result

    def list(self) -> List[Dashboard]:
        return sorted(self._load().values(), key=lambda d: d.last_modified, reverse=True)

    def get(self, dashboard_id: str) -> Dashboard:
        dashboard = self._load().get(dashboard_id)
        if dashboard is None:
            raise DataException("dashboards", f"Dashboard '{dashboard_id}' not found")
        return dashboard

    def create(self, name: str, description: Optional[str] = None) -> Dashboard:
        dashboard = Dashboard(name=name, description=description)
        with self._lock:
            dashboards = self._load()
            dashboards[dashboard.id] = dashboard
            self._save(dashboards)
        logger.info(f"Dashboard created: {dashboard.id} ({name})")
        return dashboard

    def update(self, dashboard_id: str, name: Optional[str] = None, description: Optional[str] = None) -> Dashboard:
        def change(d: Dashboard):
            if name is not None:
                d.name = name
            if description is not None:
                d.description = description
            return d
        return self._mutate(dashboard_id, change)

    def delete(self, dashboard_id: str):
        with self._lock:
            dashboards = self._load()
            if dashboards.pop(dashboard_id, None) is None:
                raise DataException("dashboards", f"Dashboard '{dashboard_id}' not found")
            self._save(dashboards)
        logger.info(f"Dashboard deleted: {dashboard_id}")

    def add_chart(self, dashboard_id: str, chart_id: str, title: Optional[str] = None) -> DashboardChart:
        def change(d: Dashboard):
            chart = DashboardChart(chart_id=chart_id, title=title, position=d.next_position())
            d.charts.append(chart)
            return chart
        return self._mutate(dashboard_id, change)

    def remove_chart(self, dashboard_id: str, item_id: str):
        def change(d: Dashboard):
            before = len(d.charts)
            d.charts = [c for c in d.charts if c.id != item_id]
            if len(d.charts) == before:
                raise DataException("dashboards", f"Chart '{item_id}' not found in dashboard '{dashboard_id}'")
        self._mutate(dashboard_id, change)

    def add_textbox(self, dashboard_id: str, content: str, width: str = "half") -> Textbox:
        def change(d: Dashboard):
            textbox = Textbox(content=content, width=width, position=d.next_position())
            d.textboxes.append(textbox)
            return textbox
        return self._mutate(dashboard_id, change)

    def update_textbox(
        self,
        dashboard_id: str,
        textbox_id: str,
        content: Optional[str] = None,
        width: Optional[str] = None,
    ) -> Textbox:
        def change(d: Dashboard):
            for i, textbox in enumerate(d.textboxes):
                if textbox.id == textbox_id:
                    data = textbox.model_dump()
                    if content is not None:
                        data["content"] = content
                    if width is not None:
                        data["width"] = width
                    d.textboxes[i] = Textbox.model_validate(data)
                    return d.textboxes[i]
            raise DataException("dashboards", f"Textbox '{textbox_id}' not found in dashboard '{dashboard_id}'")
        return self._mutate(dashboard_id, change)

    def remove_textbox(self, dashboard_id: str, textbox_id: str):
        def change(d: Dashboard):
            before = len(d.textboxes)
            d.textboxes = [t for t in d.textboxes if t.id != textbox_id]
            if len(d.textboxes) == before:
                raise DataException("dashboards", f"Textbox '{textbox_id}' not found in dashboard '{dashboard_id}'")
        self._mutate(dashboard_id, change)
