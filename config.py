"""Global configuration values."""

import os

# Supabase project (PostgREST + GoTrue)
SUPABASE_URL = os.environ.get("SUPABASE_URL", "http://localhost:54321").rstrip("/")
SUPABASE_ANON_KEY = os.environ.get("SUPABASE_ANON_KEY", "")
SUPABASE_TIMEOUT = float(os.environ.get("SUPABASE_TIMEOUT", "15"))

# AI companion (Gemini by default, OpenAI optional)
GOOGLE_AI_API_KEY = os.environ.get("GOOGLE_AI_API_KEY", "")
COMPANION_MODEL = os.environ.get("COMPANION_MODEL", "gemini-2.0-flash")
OPENAI_MODEL = os.environ.get("OPENAI_MODEL", "gpt-4o")
LLM_PROVIDER = os.environ.get("LLM_PROVIDER", "gemini").lower()

# Number of earlier chat turns sent along with the latest message
COMPANION_HISTORY_TURNS = int(os.environ.get("COMPANION_HISTORY_TURNS", "6"))

# Flask session cookie signing
SECRET_KEY = os.environ.get("SECRET_KEY", "mindbridge-dev-secret")

LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO").upper()

# A peer counts as active when seen within this window
ACTIVE_WINDOW_SECONDS = int(os.environ.get("ACTIVE_WINDOW_SECONDS", "3600"))

# Base URL used by the API client / CLI
MINDBRIDGE_API_URL = os.environ.get("MINDBRIDGE_API_URL", "http://localhost:5000").rstrip("/")
