"""
Configuration utilities for the PlanHaus application.
"""
import os
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()


class Config:
    """Configuration class for application-wide settings."""

    # MongoDB settings
    MONGODB_URI = os.getenv('MONGODB_URI', 'mongodb://localhost:27017')
    MONGODB_DB = os.getenv('MONGODB_DB', 'planhaus')

    # Session tokens (sent by clients as "Authorization: Bearer <sessionId>")
    JWT_SECRET_KEY = os.getenv('JWT_SECRET_KEY', 'planhaus-dev-secret-change-me-0123456789')
    JWT_ALGORITHM = os.getenv('JWT_ALGORITHM', 'HS256')
    JWT_ACCESS_TOKEN_EXPIRE_MINUTES = int(os.getenv('JWT_ACCESS_TOKEN_EXPIRE_MINUTES', 60 * 24))

    # Demo account used by /api/auth/demo-login and the client's 401 refresh
    DEMO_USER_EMAIL = os.getenv('DEMO_USER_EMAIL', 'demo@planhaus.app')
    DEMO_USER_NAME = os.getenv('DEMO_USER_NAME', 'Demo Planner')

    # API client
    API_BASE_URL = os.getenv('PLANHAUS_API_URL', 'http://localhost:8000')
    API_TIMEOUT_SECONDS = float(os.getenv('PLANHAUS_API_TIMEOUT', 15))

    CORS_ORIGINS = [o.strip() for o in os.getenv('CORS_ORIGINS', '*').split(',') if o.strip()]

    # Rate limiting: (window seconds, max requests)
    RATE_LIMITS = {
        'general': {'window': 15 * 60, 'max': int(os.getenv('RATE_LIMIT_GENERAL_MAX', 100))},
        'auth': {'window': 15 * 60, 'max': int(os.getenv('RATE_LIMIT_AUTH_MAX', 5))},
    }
    RATE_LIMIT_CLEANUP_SECONDS = 10 * 60

    # Autosave
    AUTOSAVE_DEBOUNCE_MS = int(os.getenv('AUTOSAVE_DEBOUNCE_MS', 2000))
    AUTOSAVE_MAX_RETRIES = int(os.getenv('AUTOSAVE_MAX_RETRIES', 2))
    SUCCESS_TOAST_SECONDS = 2.0

    # Query cache housekeeping
    CACHE_CLEANUP_INTERVAL_SECONDS = 15 * 60
    CACHE_MAX_AGE_SECONDS = 30 * 60
    QUERY_RETRIES = int(os.getenv('QUERY_RETRIES', 2))
    QUERY_RETRY_DELAY_SECONDS = 1.0

    # Prefetch delays after a project is selected
    PREFETCH_DEBOUNCE_SECONDS = 1.0
    PREFETCH_NAVIGATION_DELAY_SECONDS = 2.5

    # Real-time client
    WS_MAX_RECONNECT_ATTEMPTS = 5
    WS_RECONNECT_DELAY_SECONDS = 1.0
