"""
Pulls a single structured action command out of free-form assistant text.

Two tiers, first match wins:

1. A fenced code block (optionally labelled ``json``) whose content holds an
   ``"action"`` key.
2. The first ``{..."action": "<name>"`` span without nested braces before the
   key, widened to its balanced closing brace by a depth scan.

The result is plain data. Nothing here is ever evaluated, and every command
still has to pass catalog authorization before reaching the host.
"""
from __future__ import annotations

import json
import logging
import re
from typing import Any, Optional

from pydantic import ValidationError

from src.aeai.models.action import ActionCommand
from src.aeai.models.exceptions import CommandExtractionError

logger = logging.getLogger(__name__)

FENCED_BLOCK_PATTERN = re.compile(r"```(?:json)?\s*(\{[\s\S]*?\})\s*```")
INLINE_COMMAND_PATTERN = re.compile(r'\{[^{}]*"action"\s*:\s*"[^"]+"')


class CommandExtractor:
    """Recognizes at most one action command per assistant reply."""

    def extract(self, text: Optional[str]) -> Optional[ActionCommand]:
        """
        Return the command embedded in ``text``, or None for a conversational reply.

        A candidate that fails to parse, is not a JSON object, or lacks a
        string ``action`` field yields None; the other tier is not consulted.
        """
        if not text:
            return None

        candidate = self.find_candidate(text)
        if candidate is None:
            return None

        try:
            return self._parse_candidate(candidate)
        except CommandExtractionError as exc:
            logger.debug("Discarding command candidate: %s", exc)
            return None

    def find_candidate(self, text: str) -> Optional[str]:
        for fenced in FENCED_BLOCK_PATTERN.finditer(text):
            if '"action"' in fenced.group(1):
                return fenced.group(1)

        inline = INLINE_COMMAND_PATTERN.search(text)
        if inline:
            return self._balanced_span(text, inline.start())
        return None

    @staticmethod
    def _balanced_span(text: str, start: int) -> Optional[str]:
        # Braces inside string values are counted too; see DESIGN.md.
        depth = 0
        for index in range(start, len(text)):
            char = text[index]
            if char == "{":
                depth += 1
            elif char == "}":
                depth -= 1
                if depth == 0:
                    return text[start:index + 1]
        return None

    @staticmethod
    def _parse_candidate(candidate: str) -> ActionCommand:
        try:
            payload: Any = json.loads(candidate)
        except json.JSONDecodeError as exc:
            raise CommandExtractionError(f"candidate is not valid JSON: {exc}") from exc

        if not isinstance(payload, dict):
            raise CommandExtractionError("candidate is not a JSON object")
        if not isinstance(payload.get("action"), str) or not payload["action"]:
            raise CommandExtractionError("candidate has no string 'action' field")

        try:
            return ActionCommand.model_validate(payload)
        except ValidationError as exc:
            raise CommandExtractionError(f"candidate does not match the command envelope: {exc}") from exc
