from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path

from app.services.connections_engine import ConnectionInput


@dataclass(slots=True)
class AssessmentInput:
    answers: dict[str, dict[str, str | None]] = field(default_factory=dict)
    connections: list[ConnectionInput] = field(default_factory=list)


def _raw_value(value: object) -> str | None:
    if value is None:
        return None
    if isinstance(value, bool):
        return "yes" if value else "no"
    return str(value)


def load_assessment_file(path: Path) -> AssessmentInput:
    raw = json.loads(path.read_text(encoding="utf-8"))
    if not isinstance(raw, dict):
        raise ValueError("Input JSON must be an object with 'answers' and 'connections'.")

    answers_raw = raw.get("answers") or {}
    if not isinstance(answers_raw, dict):
        raise ValueError("'answers' must map module keys to {code: value} objects.")
    answers: dict[str, dict[str, str | None]] = {}
    for module_key, entries in answers_raw.items():
        if not isinstance(entries, dict):
            raise ValueError(f"Answers for module '{module_key}' must be an object.")
        answers[str(module_key).strip().lower()] = {str(code): _raw_value(value) for code, value in entries.items()}

    connections_raw = raw.get("connections") or []
    if not isinstance(connections_raw, list):
        raise ValueError("'connections' must be a list.")
    connections: list[ConnectionInput] = []
    for index, item in enumerate(connections_raw, start=1):
        if not isinstance(item, dict) or not str(item.get("name") or "").strip():
            raise ValueError(f"Connection #{index} must be an object with a name.")
        connections.append(
            ConnectionInput(
                id=str(item.get("id") or index),
                name=str(item["name"]).strip(),
                type=str(item.get("type") or ""),
                direction=str(item.get("direction") or ""),
                data_sensitivity=str(item.get("data_sensitivity") or ""),
            )
        )
    return AssessmentInput(answers=answers, connections=connections)


def dump_result_file(path: Path, payload: dict[str, object]) -> None:
    path.write_text(json.dumps(payload, indent=2) + "\n", encoding="utf-8")
