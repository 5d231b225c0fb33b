from __future__ import annotations

import json
import re
from collections.abc import Sequence

from app.chat.schemas import SUMMARY_KEYS, Turn

_CODE_FENCE = re.compile(r"```(?:json)?[ \t]*\r?\n?", re.IGNORECASE)


def build_summary_prompt(*, history: Sequence[Turn]) -> str:
    """
    Create the single-shot prompt for summary extraction.

    The history is embedded verbatim as compact JSON. The model is asked for a JSON
    object only, with exactly the four summary keys, addressing the user as "you".
    """

    keys = ", ".join(f'"{k}"' for k in SUMMARY_KEYS[:-1]) + f', and "{SUMMARY_KEYS[-1]}"'
    conversation = json.dumps(
        [turn.to_content() for turn in history], ensure_ascii=False, separators=(",", ":")
    )
    return (
        "Based on the following chat conversation, generate a response as a single, valid "
        f"JSON object with ONLY these four keys: {keys}. "
        'IMPORTANT: Address the user directly using second-person pronouns like "you" and '
        '"your". Do not use third-person language like "the user".\n\n'
        'Example: "You seemed to be feeling..." instead of "The user seemed to be feeling...".'
        f"\n\nConversation:\n{conversation}"
    )


def strip_code_fences(text: str) -> str:
    """Remove markdown code-fence markers (```json / ```) and surrounding whitespace."""
    return _CODE_FENCE.sub("", text).strip()
