"""Configuration management for the Gemini chat backend."""
import os
import logging
from dotenv import load_dotenv

# Load environment variables
load_dotenv()

# API Keys
GEMINI_API_KEY = os.getenv("GEMINI_API_KEY")
SUPABASE_URL = os.getenv("SUPABASE_URL")
SUPABASE_KEY = os.getenv("SUPABASE_KEY")

# Gemini Configuration
GEMINI_API_URL = os.getenv(
    "GEMINI_API_URL",
    "https://generativelanguage.googleapis.com/v1beta/models/gemini-1.5-flash:generateContent"
)
GENERATION_TEMPERATURE = 0.7
GENERATION_TOP_K = 40
GENERATION_TOP_P = 0.95
GENERATION_MAX_OUTPUT_TOKENS = 1024

# Storage Configuration
CHAT_TABLE_NAME = os.getenv("CHAT_TABLE_NAME", "chat_messages")

# Server Configuration
PORT = int(os.getenv("PORT", "8000"))
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
LOG_FORMAT = os.getenv("LOG_FORMAT", "text")  # "text" or "json"

# CORS Configuration
CORS_ORIGINS = os.getenv("CORS_ORIGINS", "*").split(",")

# Chat Limits
MAX_MESSAGE_LENGTH = 1000  # characters
MAX_SESSION_ID_LENGTH = 100
MAX_USER_IP_LENGTH = 45
DEFAULT_RECENT_LIMIT = 50
SESSION_ID_PREFIX = "session_"

# Logging Configuration
logging.basicConfig(
    level=getattr(logging, LOG_LEVEL),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
