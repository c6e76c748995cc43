"""Prompt templates for suggestion requests and expansions."""

from __future__ import annotations

from pathlib import PurePath
from typing import Dict, List

from ..context.models import ContextSnapshot
from ..orchestration.models import Suggestion

__all__ = ["SYSTEM_PROMPT", "build_expansion_prompt", "build_messages", "build_user_prompt"]

SYSTEM_PROMPT = (
    "You are a pair programmer watching code in real-time.\n\n"
    "CRITICAL: Respond with ONLY a JSON object. No markdown code blocks. No explanation.\n\n"
    'PRIORITY: If you see "RECENT CHANGES", focus your comment on those specific changes.\n'
    "Look for: bugs, typos, missing imports, syntax errors, obvious issues in the changed lines.\n\n"
    "Guidelines:\n"
    "- Only whisper if you notice something genuinely useful\n"
    '- Max 1-2 sentences, casual tone ("hmm", "maybe", "looks like...")\n'
    '- If nothing worth saying, return {"whisper": null, "can_apply": false, "patch": null}'
)

_RESPONSE_SHAPE = """Respond with JSON only (no markdown, no explanation):
{
  "whisper": "Your casual observation" | null,
  "can_apply": true | false,
  "patch": {
    "file": "/full/path/to/file",
    "old": "exact original code",
    "new": "suggested replacement"
  } | null
}"""


def build_user_prompt(snapshot: ContextSnapshot, *, max_change_chars: int = 12_000) -> str:
    parts: List[str] = ["CONTEXT:"]
    if snapshot.current_file_name:
        parts.append(f"Current file: {snapshot.current_file_name}")
    if snapshot.current_file:
        parts.append(f"Current file path: {snapshot.current_file}")
    if snapshot.recent_file_names:
        parts.append(f"Recent files: {', '.join(snapshot.recent_file_names)}")
    if snapshot.build_status is not None:
        parts.append(f"Build status: {snapshot.build_status.description}")

    change = snapshot.change_description
    if change:
        if len(change) > max_change_chars:
            change = f"{change[:max_change_chars].rstrip()}\n... [truncated]"
        parts.append(f"\nCODE CHANGE:\n```{snapshot.language}\n{change}\n```")

    parts.append("")
    parts.append(_RESPONSE_SHAPE)
    return "\n".join(parts)


def build_messages(snapshot: ContextSnapshot, *, max_change_chars: int = 12_000) -> List[Dict[str, str]]:
    return [
        {"role": "system", "content": SYSTEM_PROMPT},
        {"role": "user", "content": build_user_prompt(snapshot, max_change_chars=max_change_chars)},
    ]


def build_expansion_prompt(suggestion: Suggestion, *, current_file: str | None = None) -> str:
    """Prompt handed to an external consumer asking for a fuller explanation."""

    prompt = f'"{suggestion.message}"'
    patch = suggestion.patch
    if patch is not None:
        prompt += f"\n\nFile: {PurePath(patch.file_path).name}"
        if patch.old_text:
            prompt += f"\n\nCode:\n{patch.old_text}"
    elif current_file:
        prompt += f"\n\nFile: {PurePath(current_file).name}"
    prompt += "\n\nExplain this and suggest how to fix it."
    return prompt
