"""
AI fallback interpreter — asks an LLM what an unrecognized notation means.

Only consulted by the pipeline after alias, parser and library matching all
fail, and only for organizations with ``use_ai_fallback`` enabled. Its answer
is a candidate payload in the snake_case producer shape; the pipeline runs it
through the producer adapter and marks the result unverified.
"""
from __future__ import annotations

import json
import logging
from abc import ABC, abstractmethod
from typing import Optional

from panelops.config import LLM_INTERPRETER_MAX_TOKENS
from panelops.models.operations import CNC_OP_TYPES, HOLE_PATTERN_KINDS, OperationCategory
from panelops.services.llm_client import LLMClient

logger = logging.getLogger("panelops-ai")


class OperationInterpreter(ABC):
    """Unreliable collaborator: returns a candidate payload dict or None."""

    @abstractmethod
    async def interpret(self, category: OperationCategory, raw_notation: str) -> Optional[dict]:
        ...


_SYSTEM_PROMPT = (
    "You are a production engineer in a cabinet and panel manufacturing shop. "
    "You translate shorthand machining notation written by customers and vendors "
    "into structured operations. If the notation is ambiguous or meaningless, "
    'answer {"unknown": true}. Never guess dimensions that are not implied.'
)

_SHAPE_HINTS: dict[OperationCategory, str] = {
    OperationCategory.EDGEBAND: (
        '{"code": str, "edges": [subset of "L1","L2","W1","W2"], "thickness_mm": number|null}'
    ),
    OperationCategory.GROOVE: (
        '{"code": str, "name": str, "width_mm": number, "depth_mm": number, '
        '"offset_mm": number, "edge": "L1"|"L2"|"W1"|"W2"|null}'
    ),
    OperationCategory.DRILLING: (
        '{"code": str, "name": str, "kind": one of ' + ", ".join(HOLE_PATTERN_KINDS) + ', '
        '"holes": [{"x_mm": number, "y_mm": number, "dia_mm": number, "depth_mm": number|null, "through": bool}], '
        '"ref_edge": "L1"|"L2"|"W1"|"W2"|null}'
    ),
    OperationCategory.CNC: (
        '{"code": str, "name": str, "op_type": one of ' + ", ".join(CNC_OP_TYPES) + ', "params": object}'
    ),
}


class LLMOperationInterpreter(OperationInterpreter):
    """
    Interpreter backed by LLMClient (configured model chain).

    Usage:
        interpreter = LLMOperationInterpreter()
        candidate = await interpreter.interpret(OperationCategory.GROOVE, "NUT 4 TIEF 8")
    """

    def __init__(self, client: Optional[LLMClient] = None):
        self._client = client or LLMClient()

    async def interpret(self, category: OperationCategory, raw_notation: str) -> Optional[dict]:
        category = OperationCategory(category)
        messages = [
            {"role": "system", "content": _SYSTEM_PROMPT},
            {
                "role": "user",
                "content": (
                    f"Operation category: {category.value}\n"
                    f"Notation: {raw_notation}\n"
                    f"Answer with a JSON object of this shape: {_SHAPE_HINTS[category]}"
                ),
            },
        ]
        try:
            content = await self._client.complete(
                messages, temperature=0.0, json_mode=True, max_tokens=LLM_INTERPRETER_MAX_TOKENS,
            )
        except RuntimeError as e:
            logger.warning(f"AI interpretation unavailable for '{raw_notation}': {e}")
            return None

        try:
            candidate = json.loads(content or "")
        except json.JSONDecodeError:
            logger.warning(f"AI returned non-JSON for '{raw_notation}'")
            return None
        if not isinstance(candidate, dict) or candidate.get("unknown"):
            return None
        return candidate
