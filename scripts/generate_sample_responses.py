"""Generate synthetic generation-service responses for local testing.

Each file is a JSON body in the shape the generation service returns
(`{transcript?, response, metadata?}`), covering the response forms the normalizer accepts:
labeled text, section objects in mixed casing, and nested `response` envelopes.

Content is synthetic and free of PHI. Every sample is normalized before it is written,
so a broken sample fails here instead of in a manual test.

Files are written to data/sampleResponses.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from soapscribe.notes.normalizer import normalize
from soapscribe.notes.raw_response import decode_raw_response


def _samples() -> list[tuple[str, dict[str, Any]]]:
    return [
        (
            "labeled_text",
            {
                "transcript": "Patient here for cough, four days, no fever.",
                "response": (
                    "SUBJECTIVE: Cough x4 days. Denies fever or dyspnea. "
                    "OBJECTIVE: Temp 98.9F, lungs clear. "
                    "ASSESSMENT: Viral URI. "
                    "PLAN: Supportive care, return if worse."
                ),
            },
        ),
        (
            "section_object_upper",
            {
                "response": {
                    "SUBJECTIVE": "Elevated home BP readings, occasional headache.",
                    "OBJECTIVE": "BP 146/92, HR 76.",
                    "ASSESSMENT": "Hypertension, uncontrolled.",
                    "PLAN": "Start amlodipine 5 mg daily. Recheck in 4 weeks.",
                },
                "metadata": {"model": "synthetic"},
            },
        ),
        (
            "section_object_lower_partial",
            {
                "response": {
                    "subjective": "Low back pain after lifting, one week.",
                    "plan": "NSAIDs, activity as tolerated, PT referral if persistent.",
                }
            },
        ),
        (
            "double_wrapped",
            {
                "response": {
                    "response": "ASSESSMENT: Type 2 diabetes above goal. PLAN: Increase metformin.",
                }
            },
        ),
        (
            "single_section_text",
            {"response": "Lungs clear to auscultation bilaterally. No wheezes or crackles."},
        ),
    ]


def _check(name: str, body: dict[str, Any]) -> None:
    raw = decode_raw_response(body["response"])
    # Unlabeled samples are meant for single-section suggestions.
    default_section = "objective" if name == "single_section_text" else None
    normalize(raw, default_section=default_section)


def main() -> None:
    root = Path(__file__).resolve().parents[1]
    out_dir = root / "data" / "sampleResponses"
    out_dir.mkdir(parents=True, exist_ok=True)

    samples = _samples()
    for name, body in samples:
        _check(name, body)
        path = out_dir / f"{name}.json"
        path.write_text(json.dumps(body, indent=2) + "\n", encoding="utf-8")

    print(f"Wrote {len(samples)} sample responses to {out_dir}")


if __name__ == "__main__":
    main()
