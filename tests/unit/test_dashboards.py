"""Tests unitaires pour services/dashboards.py"""
import json

import pytest

from api.exceptions import DataException
from services.dashboards import DashboardStore


@pytest.fixture
def store(tmp_path):
    return DashboardStore(tmp_path / "dashboards.json")


class TestDashboards:
    def test_empty(self, store):
        assert store.list() == []

    def test_create_and_get(self, store, tmp_path):
        created = store.create("Solana DEX", description="Weekly review")
        fetched = store.get(created.id)
        assert fetched.name == "Solana DEX"
        assert fetched.description == "Weekly review"
        raw = json.loads((tmp_path / "dashboards.json").read_text(encoding="utf-8"))
        assert raw["dashboards"][0]["id"] == created.id

    def test_list(self, store):
        a = store.create("A")
        b = store.create("B")
        assert {d.id for d in store.list()} == {a.id, b.id}

    def test_update(self, store):
        created = store.create("Old")
        updated = store.update(created.id, name="New")
        assert updated.name == "New"
        assert store.get(created.id).name == "New"
        assert updated.last_modified >= created.last_modified

    def test_delete(self, store):
        created = store.create("Tmp")
        store.delete(created.id)
        with pytest.raises(DataException):
            store.get(created.id)
        with pytest.raises(DataException):
            store.delete(created.id)

    def test_unknown_dashboard(self, store):
        with pytest.raises(DataException):
            store.update("missing", name="x")

    def test_corrupt_file(self, tmp_path):
        path = tmp_path / "dashboards.json"
        path.write_text("{oops", encoding="utf-8")
        with pytest.raises(DataException):
            DashboardStore(path).list()


class TestItems:
    def test_positions_shared_between_charts_and_textboxes(self, store):
        d = store.create("Mixed")
        chart = store.add_chart(d.id, "chart-1", title="Volume")
        textbox = store.add_textbox(d.id, "Notes", width="full")
        chart2 = store.add_chart(d.id, "chart-2")
        assert (chart.position, textbox.position, chart2.position) == (0, 1, 2)
        saved = store.get(d.id)
        assert [c.chart_id for c in saved.charts] == ["chart-1", "chart-2"]
        assert saved.textboxes[0].width == "full"

    def test_remove_chart(self, store):
        d = store.create("Charts")
        chart = store.add_chart(d.id, "chart-1")
        store.remove_chart(d.id, chart.id)
        assert store.get(d.id).charts == []
        with pytest.raises(DataException):
            store.remove_chart(d.id, chart.id)

    def test_update_textbox(self, store):
        d = store.create("Text")
        textbox = store.add_textbox(d.id, "draft")
        updated = store.update_textbox(d.id, textbox.id, content="final")
        assert updated.content == "final"
        assert updated.width == "half"
        assert store.get(d.id).textboxes[0].content == "final"

    def test_update_textbox_invalid_width(self, store):
        d = store.create("Text")
        textbox = store.add_textbox(d.id, "draft")
        with pytest.raises(ValueError):
            store.update_textbox(d.id, textbox.id, width="quarter")

    def test_remove_textbox(self, store):
        d = store.create("Text")
        textbox = store.add_textbox(d.id, "x")
        store.remove_textbox(d.id, textbox.id)
        assert store.get(d.id).textboxes == []
        with pytest.raises(DataException):
            store.update_textbox(d.id, textbox.id, content="y")
