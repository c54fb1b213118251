"""Recover a JSON object from free-form model output.

Model responses often wrap the payload in prose or markdown, get cut off
mid-object, or carry small syntax slips. ``JSONExtractor`` locates the
outermost ``{...}`` span and, when a direct parse fails, walks a recovery
ladder:

1. balance unmatched brackets and braces in nesting order
2. drop trailing commas
3. shorten the span from the end until a closed prefix parses

The last step is bounded by an attempt count and a time budget. Each
failure and each successful recovery is logged with the caller's
``extraction_type`` so call sites can be told apart.
"""

import json
import re
import time
from typing import Any, Dict, Optional

import structlog

from .constants import (
    DEFAULT_MAX_SALVAGE_ATTEMPTS,
    DEFAULT_PREVIEW_CHARS,
    DEFAULT_SALVAGE_TIME_BUDGET,
)
from .error_handling import ExtractionError

logger = structlog.get_logger(__name__)

_JSON_SPAN = re.compile(r"\{[\s\S]*\}")
_TRAILING_COMMA = re.compile(r",\s*([}\]])")
_CLOSERS = {"{": "}", "[": "]"}


def balance_brackets(text: str) -> str:
    """Close every unmatched ``{`` and ``[`` in ``text``.

    Characters inside string literals are ignored. A closer that skips over
    an open structure (``[1, 2}``) gets the missing closers inserted in
    front of it; structures still open at the end are closed in reverse
    order, after terminating an unfinished string.
    """
    stack = []
    out = []
    in_string = False
    escaped = False

    for ch in text:
        if in_string:
            out.append(ch)
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_string = False
            continue

        if ch == '"':
            in_string = True
        elif ch in _CLOSERS:
            stack.append(ch)
        elif ch in ("}", "]"):
            opener = "{" if ch == "}" else "["
            if opener in stack:
                while stack[-1] != opener:
                    out.append(_CLOSERS[stack.pop()])
                stack.pop()
        out.append(ch)

    if in_string:
        out.append('"')
    out.extend(_CLOSERS[opener] for opener in reversed(stack))
    return "".join(out)


def strip_trailing_commas(text: str) -> str:
    """Remove commas directly before a closing brace or bracket."""
    return _TRAILING_COMMA.sub(r"\1", text)


def _loads_object(text: str) -> Optional[Dict[str, Any]]:
    """Parse ``text`` and return it only if it is a JSON object."""
    try:
        parsed = json.loads(text)
    except (json.JSONDecodeError, RecursionError):
        return None
    return parsed if isinstance(parsed, dict) else None


class JSONExtractor:
    """Extract a single JSON object from arbitrary text."""

    def __init__(
        self,
        allow_partial_recovery: bool = True,
        throw_on_error: bool = False,
        max_salvage_attempts: int = DEFAULT_MAX_SALVAGE_ATTEMPTS,
        salvage_time_budget: float = DEFAULT_SALVAGE_TIME_BUDGET,
        preview_chars: int = DEFAULT_PREVIEW_CHARS,
    ):
        """Initialize the extractor.

        Args:
            allow_partial_recovery: Run the recovery ladder after a failed parse
            throw_on_error: Raise ExtractionError instead of returning None
            max_salvage_attempts: Cap on parse attempts during truncation salvage
            salvage_time_budget: Seconds allowed for truncation salvage
            preview_chars: Characters of input kept in logs and errors
        """
        self.allow_partial_recovery = allow_partial_recovery
        self.throw_on_error = throw_on_error
        self.max_salvage_attempts = max_salvage_attempts
        self.salvage_time_budget = salvage_time_budget
        self.preview_chars = preview_chars

    @classmethod
    def from_config(cls, config) -> "JSONExtractor":
        """Build an extractor from an ``ExtractionConfig``."""
        return cls(
            allow_partial_recovery=config.allow_partial_recovery,
            throw_on_error=config.throw_on_error,
            max_salvage_attempts=config.max_salvage_attempts,
            salvage_time_budget=config.salvage_time_budget,
            preview_chars=config.preview_chars,
        )

    def extract(self, text: str, extraction_type: str = "unknown") -> Optional[Dict[str, Any]]:
        """Return the JSON object embedded in ``text``.

        Args:
            text: Raw model output
            extraction_type: Purpose tag attached to every log entry

        Returns:
            The parsed object, or None on failure when ``throw_on_error`` is off

        Raises:
            ExtractionError: On failure when ``throw_on_error`` is on
        """
        if not isinstance(text, str):
            text = "" if text is None else str(text)

        match = _JSON_SPAN.search(text)
        if not match:
            logger.error(
                "json_not_found",
                extraction_type=extraction_type,
                response_preview=self._preview(text),
            )
            return self._fail("No JSON object found in response", "locate", text, extraction_type)

        span = match.group(0)
        try:
            parsed = json.loads(span)
        except (json.JSONDecodeError, RecursionError) as e:
            logger.warning(
                "json_parse_failed",
                extraction_type=extraction_type,
                error=str(e),
                json_preview=self._preview(span),
            )
        else:
            if isinstance(parsed, dict):
                return parsed

        if not self.allow_partial_recovery:
            return self._fail("JSON parse failed", "direct_parse", text, extraction_type)

        recovered = self.recover(span, extraction_type)
        if recovered is not None:
            return recovered

        return self._fail("JSON recovery failed", "recovery", text, extraction_type)

    def recover(self, span: str, extraction_type: str = "unknown") -> Optional[Dict[str, Any]]:
        """Run the recovery ladder over a malformed JSON span."""
        balanced = balance_brackets(span)
        if balanced != span:
            recovered = _loads_object(balanced)
            if recovered is not None:
                logger.info("json_recovered", extraction_type=extraction_type, strategy="balance")
                return recovered
            logger.warning("json_recovery_failed", extraction_type=extraction_type, strategy="balance")

        normalized = strip_trailing_commas(span)
        recovered = _loads_object(normalized)
        if recovered is None and balanced != span:
            recovered = _loads_object(strip_trailing_commas(balanced))
        if recovered is not None:
            logger.info("json_recovered", extraction_type=extraction_type, strategy="normalize")
            return recovered
        logger.warning("json_recovery_failed", extraction_type=extraction_type, strategy="normalize")

        return self._salvage(span, extraction_type)

    def _salvage(self, span: str, extraction_type: str) -> Optional[Dict[str, Any]]:
        """Find the longest prefix of ``span`` that parses once closed to a non-empty object."""
        started = time.monotonic()
        attempts = 0

        for end in range(len(span), 0, -1):
            if attempts >= self.max_salvage_attempts:
                logger.warning(
                    "json_salvage_budget_exhausted",
                    extraction_type=extraction_type,
                    limit="attempts",
                    attempts=attempts,
                )
                break
            if time.monotonic() - started > self.salvage_time_budget:
                logger.warning(
                    "json_salvage_budget_exhausted",
                    extraction_type=extraction_type,
                    limit="time",
                    attempts=attempts,
                )
                break

            attempts += 1
            candidate = strip_trailing_commas(balance_brackets(span[:end]))
            recovered = _loads_object(candidate)
            # A bare "{}" prefix always parses and carries nothing
            if recovered:
                logger.info(
                    "json_recovered",
                    extraction_type=extraction_type,
                    strategy="salvage",
                    attempts=attempts,
                    kept_chars=end,
                    dropped_chars=len(span) - end,
                )
                return recovered

        logger.warning(
            "json_recovery_failed",
            extraction_type=extraction_type,
            strategy="salvage",
            attempts=attempts,
        )
        return None

    def _fail(self, message: str, stage: str, text: str, extraction_type: str) -> None:
        logger.error("json_extraction_failed", extraction_type=extraction_type, stage=stage)
        if self.throw_on_error:
            raise ExtractionError(
                message,
                stage=stage,
                excerpt=self._preview(text),
                extraction_type=extraction_type,
            )
        return None

    def _preview(self, text: str) -> str:
        if len(text) <= self.preview_chars:
            return text
        return text[: self.preview_chars] + "..."


def extract_json(
    text: str,
    extraction_type: str = "unknown",
    **options,
) -> Optional[Dict[str, Any]]:
    """Extract a JSON object from ``text`` with a one-off extractor.

    Keyword options are passed to ``JSONExtractor``.
    """
    return JSONExtractor(**options).extract(text, extraction_type=extraction_type)
