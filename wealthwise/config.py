# wealthwise/config.py
"""
Configuration settings for the WealthWise API.
All values can be overridden through environment variables.
"""
import os

# Database
DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./wealthwise.db")

# External categorizer (OpenAI). Without a key the rule-based fallbacks are used.
OPENAI_API_KEY = os.getenv("OPENAI_API_KEY", "")
OPENAI_MODEL = os.getenv("OPENAI_MODEL", "gpt-4o")
AI_TIMEOUT_SECONDS = float(os.getenv("AI_TIMEOUT_SECONDS", "5"))

# CORS
CORS_ORIGINS = [
    o.strip()
    for o in os.getenv("CORS_ORIGINS", "http://localhost:3000,http://127.0.0.1:3000").split(",")
    if o.strip()
]

# Logging
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
