"""
Configuration settings for Roomdrop
"""
import os

# Server Configuration
RELAY_HOST = os.environ.get("RELAY_HOST", "0.0.0.0")
RELAY_PORT = int(os.environ.get("PORT", 5000))

# Client Configuration
RELAY_URL = os.environ.get("RELAY_URL", f"http://localhost:{RELAY_PORT}")

# Storage Configuration
UPLOAD_DIR = os.environ.get("UPLOAD_DIR", "uploads")

# Transfer Configuration
CHUNK_SIZE = 64 * 1024                # 64KB chunks
FILE_CLEANUP_DELAY = float(os.environ.get("FILE_CLEANUP_DELAY", 60))  # seconds after completion
OUTBOUND_QUEUE_SIZE = int(os.environ.get("OUTBOUND_QUEUE_SIZE", 32))  # pending events per connection

# CORS Configuration
CORS_ORIGINS = os.environ.get("CORS_ORIGINS", "*").split(",")

# Logging Configuration
LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")
