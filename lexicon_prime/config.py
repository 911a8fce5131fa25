"""Configuration and runtime constants."""

import os
from dotenv import load_dotenv

load_dotenv()

# API Keys
OPENAI_API_KEY = os.getenv("OPENAI_API_KEY")
PEXELS_API_KEY = os.getenv("PEXELS_API_KEY")

# Model Configuration
MODEL_NAME = os.getenv("MODEL_NAME", "gpt-4o")
TEMPERATURE = float(os.getenv("TEMPERATURE", "0.9"))  # Session generation temperature

# Image Configuration
IMAGE_PROVIDER = os.getenv("IMAGE_PROVIDER", "gpt-image-1")  # "gpt-image-1", "dall-e-3" or "pexels"
IMAGE_SIZE = os.getenv("IMAGE_SIZE", "1024x1024")  # "1024x1024", "1792x1024", "1024x1792"

# Navigation Configuration
PAGE_LOCK_MS = int(os.getenv("PAGE_LOCK_MS", "400"))  # Input lock after each page turn

# User-facing messages
CONNECTIVITY_ERROR_MESSAGE = "Connection failure. Check Neural Link."
IMPORT_ERROR_MESSAGE = "Invalid JSON. Paste exactly what the AI gave you."

# Testing Configuration
LIVE_TESTING = os.getenv("LEXICON_LIVE", "0") == "1"
