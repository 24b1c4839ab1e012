"""Widget exports for the Deep Probe UI."""

from .conversation import ConversationView
from .input_box import InputBox
from .message import MessageBubble
from .session_list import SessionList
from .status_bar import StatusBar

__all__ = ["ConversationView", "InputBox", "MessageBubble", "SessionList", "StatusBar"]
