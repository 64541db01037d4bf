"""JSON file persistence for the visible chat history.

Only user and model texts are persisted, as an ordered list of
``{"text", "isUser"}`` records:

    {
        "messages": [{"text": "...", "isUser": true}, ...]
    }
"""

import json
import logging
from pathlib import Path

from toolbridge.conversation.types import ChatMessage

logger = logging.getLogger(__name__)


class HistoryStore:
    """Loads and saves the chat history file.

    Attributes:
        path: Location of the JSON history file
    """

    def __init__(self, path: Path) -> None:
        self.path = Path(path)

    def save(self, messages: list[ChatMessage]) -> None:
        """Write the given messages, skipping loading placeholders.

        Args:
            messages: Visible messages in display order
        """
        self.path.parent.mkdir(parents=True, exist_ok=True)
        data = {
            "messages": [m.to_record() for m in messages if not m.is_loading],
        }

        with open(self.path, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2, ensure_ascii=False)

        logger.debug(f"Saved {len(data['messages'])} messages to {self.path}")

    def load(self) -> list[ChatMessage]:
        """Read the persisted messages.

        Returns:
            list[ChatMessage]: The stored messages, or an empty list when the
            file is missing or cannot be read
        """
        if not self.path.exists():
            logger.debug(f"No history file at {self.path}")
            return []

        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
            messages = [ChatMessage.from_record(record) for record in data["messages"]]
        except (OSError, ValueError, KeyError, TypeError) as e:
            logger.warning(f"Ignoring unreadable history file {self.path}: {e}")
            return []

        logger.debug(f"Loaded {len(messages)} messages from {self.path}")
        return messages
