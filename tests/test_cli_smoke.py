from __future__ import annotations

import json
import os
from pathlib import Path
from uuid import uuid4

from fastapi.testclient import TestClient

from hls_compliance.cli.main import main


LOCAL_TMP_ROOT = Path(__file__).resolve().parent / ".tmp_local"


def _make_local_tmp(prefix: str) -> Path:
    LOCAL_TMP_ROOT.mkdir(parents=True, exist_ok=True)
    path = LOCAL_TMP_ROOT / f"{prefix}_{uuid4().hex[:8]}"
    path.mkdir(parents=True, exist_ok=True)
    return path


def test_hls_classify_cli_smoke() -> None:
    tmp = _make_local_tmp("hls_classify")
    input_path = tmp / "input.json"
    output_path = tmp / "result.json"

    input_payload = {
        "answers": {
            "dpia": {f"Q{i}": "no" for i in range(1, 15)} | {"Q1": "ja", "Q2": "yes", "Q3": "yes", "Q6": True},
            "mdr": {"E": "serious"},
            "ai_act": {"E": "no", "F": "no"},
        },
        "connections": [
            {"name": "EHR", "data_sensitivity": "identifiable medical/personal"},
            {"name": "Planning", "data_sensitivity": "low"},
        ],
    }
    input_path.write_text(json.dumps(input_payload), encoding="utf-8")

    code = main([str(input_path), "--out", str(output_path)])

    assert code == 0
    result = json.loads(output_path.read_text(encoding="utf-8"))
    assert result["dpia"]["dpia_required"] is True
    assert result["mdr"]["classification"] == "Class IIb"
    assert result["ai_act"]["risk_level"] == "High risk"
    assert result["connections"]["overall_risk_level"] == "High"
    assert isinstance(result["overall"]["risk_class"], int)


def test_hls_classify_single_module_and_bad_input() -> None:
    tmp = _make_local_tmp("hls_module")
    input_path = tmp / "input.json"
    output_path = tmp / "mdr.json"
    input_path.write_text(json.dumps({"answers": {"mdr": {"A": "no"}}}), encoding="utf-8")

    assert main([str(input_path), "--out", str(output_path), "--module", "mdr"]) == 0
    result = json.loads(output_path.read_text(encoding="utf-8"))
    assert result["module"] == "mdr"
    assert result["classification"] == "Not a medical device"

    input_path.write_text(json.dumps(["not", "an", "object"]), encoding="utf-8")
    assert main([str(input_path)]) == 2
    assert main([str(tmp / "missing.json")]) == 2


def test_app_health_smoke() -> None:
    tmp = _make_local_tmp("health")
    db_path = tmp / "health.db"
    os.environ["DATABASE_URL"] = f"sqlite:///{db_path.as_posix()}"

    from app.main import create_app

    client = TestClient(create_app())
    response = client.get("/healthz")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}
    assert client.get("/api/health").json()["status"] == "ok"
