"""AI-assisted reframe suggestions for journal entries.

The suggestion is supplementary: the user edits it before saving, so
this module always hands back a usable string and never raises.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable

from sakina.journal.models import ThinkingTrap
from sakina.shared.llm import EmptyResponseError, LLMError, call_llm

logger = logging.getLogger(__name__)

EMPTY_REFRAME_FALLBACK = "حاول التفكير في الأمر من منظور أكثر واقعية وهدوءاً."
ERROR_REFRAME_FALLBACK = "القبول هو المفتاح. لا بأس بالشعور بالقلق الآن."

SYSTEM_PROMPT = (
    "You are a compassionate CBT therapist trained in the DARE method for "
    "anxiety. Reply in Arabic only, in under 50 words, with a realistic and "
    "kind reframe of the user's thought. Emphasize acceptance of the anxious "
    "feeling rather than fighting it. Do not add headings or quotation marks."
)


def build_reframe_prompt(thought: str, traps: Iterable[ThinkingTrap]) -> str:
    """Render the user prompt sent to the model."""
    trap_list = ", ".join(t.value for t in traps)
    return f'User thought: "{thought.strip()}". Identified traps: {trap_list}.'


def suggest_reframe(
    thought: str,
    traps: Iterable[ThinkingTrap],
    *,
    model: str | None = None,
    timeout: int = 60,
) -> str:
    """Return a short reframe for ``thought``.

    Returns an empty string, without calling the model, when the thought is
    blank or no trap is selected.  Model failures are logged and replaced
    by a fixed fallback sentence.
    """
    traps = list(dict.fromkeys(traps))
    if not thought.strip() or not traps:
        return ""

    try:
        text = call_llm(
            SYSTEM_PROMPT,
            build_reframe_prompt(thought, traps),
            model=model,
            timeout=timeout,
            temperature=0.7,
            label="reframe",
        )
    except EmptyResponseError:
        logger.warning("Reframe came back empty, using fallback")
        return EMPTY_REFRAME_FALLBACK
    except LLMError as exc:
        logger.warning("Reframe generation failed: %s", exc)
        return ERROR_REFRAME_FALLBACK
    return text
