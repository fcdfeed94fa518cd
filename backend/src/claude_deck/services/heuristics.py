"""Text heuristics used by the parsers and the insights service.

Each function is a pure function over plain text so the rules can be tuned
without touching stream handling.
"""

import re

# Blocks the harness injects into user turns; none of them were typed by the user.
_INJECTED_TAGS = (
    "local-command-caveat",
    "system-reminder",
    "command-name",
    "command-message",
    "command-args",
    "local-command-stdout",
)
_INJECTED_BLOCK_PATTERN = re.compile(
    "|".join(rf"<{tag}>[\s\S]*?</{tag}>" for tag in _INJECTED_TAGS)
)

TOOL_CATEGORIES: dict[str, str] = {
    "Read": "explore",
    "Glob": "explore",
    "Grep": "explore",
    "WebFetch": "research",
    "WebSearch": "research",
    "Write": "write",
    "Edit": "write",
    "NotebookEdit": "write",
    "Bash": "execute",
}

CATEGORY_LABELS: dict[str, str] = {
    "explore": "Exploration",
    "research": "Research",
    "write": "Writing",
    "execute": "Execution",
    "other": "Other",
}

WEB_TOOLS = ("WebFetch", "WebSearch")

ERROR_KEYWORDS = ("error", "failed", "timeout")
SHORT_RESPONSE_LIMIT = 200


def clean_prompt(text: str) -> str:
    """Strip harness-injected markup from a user turn."""
    return _INJECTED_BLOCK_PATTERN.sub("", text).strip()


def classify_agent_type(prompt: str | None) -> str | None:
    """Infer a sub-agent type from the prompt it was spawned with."""
    if not prompt:
        return None
    lower = prompt.lower()
    if "explore" in lower or "search" in lower:
        return "Explore"
    if "plan" in lower:
        return "Plan"
    return "general-purpose"


def tool_category(tool_name: str) -> str:
    """Activity category of a tool; unknown tools fall under "other"."""
    return TOOL_CATEGORIES.get(tool_name, "other")


def looks_like_error(text: str) -> bool:
    """Whether an unstructured tool response reads like an error message.

    Only short responses are considered: long bodies routinely mention
    errors without being one.
    """
    if len(text) >= SHORT_RESPONSE_LIMIT:
        return False
    lower = text.lower()
    return any(keyword in lower for keyword in ERROR_KEYWORDS)


def short_model_name(model: str) -> str:
    """Family name of a model id (opus, sonnet, haiku), or the id itself."""
    for family in ("opus", "sonnet", "haiku"):
        if family in model:
            return family
    return model
