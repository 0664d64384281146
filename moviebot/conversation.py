from typing import Dict, List, Tuple
from structlog import get_logger
from .models import Message, Role
from .prompt import SYSTEM_PROMPT

logger = get_logger("conversation")


class ConversationStore:
    """Append-only, model-facing message log for one session.

    ``update`` appends optimistically and leaves the turn open, ``done``
    appends and closes it. The system instruction is never stored here.
    """

    def __init__(self):
        self._messages: List[Message] = []
        self._pending = False

    def get(self) -> Tuple[Message, ...]:
        return tuple(self._messages)

    @property
    def pending(self) -> bool:
        return self._pending

    def update(self, message: Message) -> None:
        self._append(message)
        self._pending = True

    def done(self, message: Message) -> None:
        self._append(message)
        self._pending = False

    def _append(self, message: Message) -> None:
        if message.role == Role.SYSTEM:
            raise ValueError("system messages are prepended at call time")
        self._messages.append(message)
        logger.debug(
            "AppendedMessage",
            role=message.role.value,
            name=message.name.value if message.name else None,
            length=len(self._messages),
        )

    def __len__(self) -> int:
        return len(self._messages)


def oracle_messages(store: ConversationStore) -> List[Dict[str, str]]:
    messages = [{"role": Role.SYSTEM.value, "content": SYSTEM_PROMPT}]
    messages += [message.to_oracle() for message in store.get()]
    return messages
