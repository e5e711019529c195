"""Strategic commentary for selected hub blocks, generated by an external LLM."""

from __future__ import annotations

import json
import logging
import os
from typing import Dict, Iterable, List, Optional, Protocol, Sequence, Tuple

from openai import OpenAI, OpenAIError

from hubbank.schedule.domain_types import Direction
from hubbank.schedule.simulation_config import SimulationParameters

from .synergy import Summary

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "gpt-4o-mini"
FALLBACK_TEXT = "Simulation failed. Check API connectivity."
EMPTY_TEXT = "No strategic insight generated."


class CommentaryGenerator(Protocol):
    def generate(self, prompt: str) -> str:
        ...


def _format_frequency(value: float, daily: bool) -> str:
    if daily:
        return f"{value / 7:.1f}"
    return f"{value:g}"


def build_comparison_payload(
    entries: Iterable[Tuple[Direction, Optional[Summary]]], *, daily: bool = False
) -> List[Dict[str, object]]:
    """Reduce each selected block's summary to plain fields for the prompt."""
    payload: List[Dict[str, object]] = []
    for direction, summary in entries:
        direction = Direction.parse(direction)
        if summary is None:
            payload.append({"type": direction.long_name.title(), "metrics": None})
            continue
        flight = summary.focal_flight
        payload.append(
            {
                "code": flight.label,
                "airline": flight.airline,
                "flightNo": flight.flight_number,
                "type": direction.long_name.title(),
                "bankTime": summary.focus_time,
                "metrics": {
                    "totalOps": _format_frequency(summary.total_frequency, daily),
                    "intlOps": _format_frequency(summary.international_frequency, daily),
                    "efficiency": f"{summary.international_share:.1f}%",
                },
            }
        )
    return payload


def build_commentary_prompt(
    hub_code: str, parameters: SimulationParameters, payload: Sequence[Dict[str, object]]
) -> str:
    return (
        f"Strategic analysis of these hub blocks for {hub_code}.\n"
        f"MCT: {parameters.mct_hours:g}h, Connection Window: {parameters.window_hours:g}h.\n"
        f"Context: {json.dumps(list(payload), indent=2)}.\n"
        "Task: Suggest tactical HH:mm retimings to optimize feeds from International "
        "markets into the domestic network."
    )


class OpenAICommentaryGenerator:
    """Sends the prompt to an OpenAI chat model and returns the reply text."""

    def __init__(self, client: OpenAI | None = None, model: str | None = None):
        self._client = client or OpenAI()
        self.model = model or os.getenv("HUBBANK_COMMENTARY_MODEL", DEFAULT_MODEL)

    def generate(self, prompt: str) -> str:
        response = self._client.chat.completions.create(
            model=self.model,
            messages=[{"role": "user", "content": prompt}],
        )
        if not response.choices:
            return ""
        return response.choices[0].message.content or ""


def generate_commentary(generator: CommentaryGenerator, prompt: str) -> str:
    """Ask the collaborator for commentary; transport failures yield a fixed fallback."""
    try:
        text = generator.generate(prompt)
    except OpenAIError:
        logger.exception("Commentary generation failed")
        return FALLBACK_TEXT
    return text or EMPTY_TEXT


__all__ = [
    "CommentaryGenerator",
    "OpenAICommentaryGenerator",
    "build_commentary_prompt",
    "build_comparison_payload",
    "generate_commentary",
]
