from __future__ import annotations

import os
import tempfile
from pathlib import Path

from fastapi.testclient import TestClient


def _client(db_path: Path) -> TestClient:
    os.environ["DATABASE_URL"] = f"sqlite:///{db_path.as_posix()}"
    from app.main import create_app

    return TestClient(create_app())


def test_assessment_api_flow() -> None:
    with tempfile.TemporaryDirectory(prefix="hls-api-") as temp_dir:
        client = _client(Path(temp_dir) / "api.db")

        created = client.post("/api/assessments", json={"organisation": "General Hospital", "supplier": "Acme"})
        assert created.status_code == 201
        assessment_id = created.json()["id"]

        listed = client.get("/api/assessments").json()["items"]
        assert [item["id"] for item in listed] == [assessment_id]

        updated = client.put(
            f"/api/assessments/{assessment_id}/modules/dpia",
            json={"answers": [{"code": "Q2", "value": "yes"}, {"code": "Q3", "value": True}, {"code": "Q99", "value": "yes"}]},
        )
        assert updated.status_code == 200
        assert updated.json()["dpia_required"] is None

        mdr = client.put(
            f"/api/assessments/{assessment_id}/modules/mdr",
            json={"answers": [{"code": "E", "value": "fatal_or_irreversible"}]},
        ).json()
        assert mdr["classification"] == "Class III"

        connections = client.post(
            f"/api/assessments/{assessment_id}/connections",
            json={"name": "Lab system", "data_sensitivity": "aggregated"},
        ).json()
        assert connections["overall_risk_level"] == "Medium"
        connection_id = connections["connections"][0]["id"]

        detail = client.get(f"/api/assessments/{assessment_id}").json()
        assert detail["mdr_class"] == "Class III"
        assert set(detail["modules"]) == {
            "dpia",
            "mdr",
            "security_profile",
            "connections",
            "ai_act",
            "pre_assessment",
            "overall",
        }

        removed = client.delete(f"/api/assessments/{assessment_id}/connections/{connection_id}")
        assert removed.status_code == 200
        assert removed.json()["connections"] == []


def test_not_found_responses() -> None:
    with tempfile.TemporaryDirectory(prefix="hls-api-") as temp_dir:
        client = _client(Path(temp_dir) / "api.db")
        assessment_id = client.post("/api/assessments", json={}).json()["id"]

        assert client.get("/api/assessments/9999").status_code == 404
        missing_module = client.get(f"/api/assessments/{assessment_id}/modules/gdpr")
        assert missing_module.status_code == 404
        assert missing_module.json() == {"error": "not_found"}
        assert client.delete(f"/api/assessments/{assessment_id}/connections/42").status_code == 404
        assert client.put("/api/assessments/9999/modules/dpia", json={"answers": []}).status_code == 404
