"""
Supabase client initialization and configuration.
"""

import logging
from typing import Optional

from supabase import Client, create_client

from launchpad.config import get_settings
from launchpad.exceptions import ConfigurationError

logger = logging.getLogger(__name__)

supabase: Optional[Client] = None


def initialize_supabase() -> Optional[Client]:
    """
    Build the global client from SUPABASE_URL / SUPABASE_SERVICE_KEY.
    Returns None if credentials are missing.
    """
    global supabase
    settings = get_settings()
    if not settings.supabase_url or not settings.supabase_service_key:
        logger.warning("Supabase URL or Service Role Key is not set. Supabase operations will fail.")
        return None

    supabase = create_client(settings.supabase_url, settings.supabase_service_key)
    logger.info("Supabase client initialized successfully")
    return supabase


def get_supabase() -> Client:
    client = supabase or initialize_supabase()
    if client is None:
        raise ConfigurationError("Supabase credentials not configured")
    return client
