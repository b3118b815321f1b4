from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path

from app.services.evaluation import MODULE_KEYS, evaluate_assessment

from ..io import dump_result_file, load_assessment_file


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="hls-classify",
        description="Classify a healthcare procurement assessment (DPIA, MDR, AI Act, connections, security, overall risk).",
    )
    parser.add_argument("input", help="JSON file with {'answers': {module: {code: value}}, 'connections': [...]}")
    parser.add_argument("--out", default="", help="Output JSON file path (default: print to stdout)")
    parser.add_argument(
        "--module",
        default="",
        choices=("",) + MODULE_KEYS,
        help="Only emit the result of one module",
    )
    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    input_path = Path(args.input).resolve()

    if not input_path.exists() or not input_path.is_file():
        print(f"error: input file not found: {input_path}", file=sys.stderr)
        return 2

    try:
        data = load_assessment_file(input_path)
    except (ValueError, json.JSONDecodeError) as exc:
        print(f"error: invalid input: {exc}", file=sys.stderr)
        return 2

    evaluation = evaluate_assessment(data.answers, data.connections)
    payload = evaluation.module(args.module).to_dict() if args.module else evaluation.to_dict()

    overall = evaluation.overall
    print(f"dpia={evaluation.dpia.status}")
    print(f"mdr={evaluation.mdr.classification.value}")
    print(f"ai_act={evaluation.ai_act.level.value}")
    print(f"overall={overall.label if overall.label is not None else 'unknown'}")

    if args.out:
        output_path = Path(args.out).resolve()
        output_path.parent.mkdir(parents=True, exist_ok=True)
        dump_result_file(output_path, payload)
        print(f"wrote={output_path}")
    else:
        print(json.dumps(payload, indent=2))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
