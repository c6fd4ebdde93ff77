"""Chat configuration constants.

Centralizes user-facing strings and defaults for the chat module.
"""

from enum import IntEnum


class LogLevel(IntEnum):
    """Severity of a debug callback message; higher is more severe."""

    DEBUG = 10
    INFO = 20
    WARNING = 30
    ERROR = 40

    @classmethod
    def parse(cls, value: str) -> "LogLevel":
        """Level for a name such as "warning". Unknown names mean DEBUG."""
        return cls.__members__.get(value.upper(), cls.DEBUG)


DEFAULT_APP_ID = "simple-gemini-chatbot"

# Shown in place of an empty conversation; never sent to the model
WELCOME_MESSAGE_ID = "welcome-1"
WELCOME_TEXT = (
    "Hello! I'm a general-purpose AI assistant. "
    "You can ask me anything. How can I help you today?"
)

# Bot-authored error bubble after a failed completion
ERROR_REPLY_TEMPLATE = "An error occurred: {reason}"

# Banner texts (not persisted)
AUTH_ERROR_BANNER = "Could not authenticate. Sending is disabled."
SUBSCRIPTION_ERROR_BANNER = "Could not fetch messages. Check your database rules."
USER_WRITE_ERROR_BANNER = "Could not save your message: {reason}"
REPLY_WRITE_ERROR_BANNER = "Could not save the reply: {reason}"

STARTER_PROMPTS = [
    ("Write a Python script", "Write a Python script that fetches weather data from an API"),
    ("Explain a concept", "Explain recursion in programming like I'm five"),
    ("Brainstorm ideas", "Brainstorm ideas for a personal portfolio website for a software developer"),
    ("Refactor this code", "How can I refactor this javascript code to be more efficient?"),
]
