"""内置快捷操作。

每个操作有两段文本：会话里显示的简短 label，以及真正发给模型的 prompt。
"""

from dataclasses import dataclass
from typing import Dict


@dataclass(frozen=True)
class QuickAction:
    key: str
    label: str
    prompt: str


QUICK_ACTIONS: Dict[str, QuickAction] = {
    action.key: action
    for action in (
        QuickAction(
            key="cultural_insight",
            label="Give me a fascinating and unique cultural insight or fact about any African tradition or history.",
            prompt="Provide a random, interesting cultural insight or historical fact about Africa. Keep it concise and engaging.",
        ),
        QuickAction(
            key="proverb_wisdom",
            label="Tell me an African proverb and explain its meaning.",
            prompt=(
                "Generate a well-known African proverb and then provide a clear explanation "
                "of its meaning and cultural context."
            ),
        ),
        QuickAction(
            key="dish_recipe",
            label=(
                "Suggest a traditional African dish recipe (e.g., Jollof Rice, Egusi Soup, injera) and provide "
                "a simplified list of main ingredients and very brief preparation steps."
            ),
            prompt=(
                "Suggest a traditional African dish recipe and provide a simplified list of main ingredients "
                "and very brief preparation steps."
            ),
        ),
        QuickAction(
            key="name_origin",
            label="Provide an interesting African name and explain its meaning and cultural origin.",
            prompt=(
                "Provide an interesting African name (could be male, female, or gender-neutral) and explain "
                "its meaning and cultural origin. Make it concise."
            ),
        ),
    )
}


def get_quick_action(key: str) -> QuickAction:
    try:
        return QUICK_ACTIONS[key]
    except KeyError:
        raise KeyError(f"Unknown quick action: {key!r}") from None
