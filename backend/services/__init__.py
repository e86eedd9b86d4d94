"""Services for the Gemini chat backend."""
from .gemini_client import GeminiClient, GeminiError, GeminiClientError
from .conversation_store import ConversationStore
from .chat_service import ChatService

__all__ = ['GeminiClient', 'GeminiError', 'GeminiClientError', 'ConversationStore', 'ChatService']
