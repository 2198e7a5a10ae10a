"""Chat transport protocol — outbound rendering abstraction."""
from typing import Any, Protocol


class ChatTransport(Protocol):
    """Send and edit messages in a chat session."""

    async def send_message(
        self, chat_id: str, text: str, keyboard: list[list[dict[str, str]]] | None = None
    ) -> Any: ...

    async def edit_message(
        self,
        chat_id: str,
        message_id: Any,
        text: str,
        keyboard: list[list[dict[str, str]]] | None = None,
    ) -> bool: ...
