"""Conversation assembler.

Pure mapping from the in-memory message list to the transcript sent to the
completion client. No network or storage access.
"""

from collections.abc import Sequence

from ..completion.models import Role, Transcript, Turn
from ..store.models import Message, Sender
from .config import WELCOME_MESSAGE_ID

_ROLES = {
    Sender.USER: Role.USER,
    Sender.BOT: Role.MODEL,
}


def build_transcript(messages: Sequence[Message], new_text: str) -> Transcript:
    """Build the transcript for a new user input.

    Args:
        messages: Current ordered message list (as rendered)
        new_text: The text being sent

    Returns:
        Transcript of the history (bot -> model, user -> user) followed by
        ``new_text`` as the final user turn

    Raises:
        ValueError: If new_text is empty
    """
    if not new_text:
        raise ValueError("new_text must not be empty")

    turns = [
        Turn(role=_ROLES[message.sender], text=message.text)
        for message in messages
        if message.id != WELCOME_MESSAGE_ID
    ]
    turns.append(Turn(role=Role.USER, text=new_text))
    return Transcript(turns=tuple(turns))
