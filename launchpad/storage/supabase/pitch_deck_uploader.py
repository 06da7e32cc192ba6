import logging
import time
from typing import Optional

from launchpad.config import get_settings
from launchpad.exceptions import ProviderError

from .client import get_supabase

logger = logging.getLogger(__name__)

MAX_RETRIES = 3
RETRY_DELAY = 2.0


def pitch_deck_key(filename: str, now_ms: Optional[int] = None) -> str:
    """Object key ``pitch-deck-<ms timestamp>-<filename>``."""
    now_ms = now_ms if now_ms is not None else int(time.time() * 1000)
    safe_name = filename.replace("/", "_").replace("\\", "_")
    return f"pitch-deck-{now_ms}-{safe_name}"


def upload_pitch_deck(
    pdf_bytes: bytes,
    filename: str,
    bucket_name: Optional[str] = None,
    max_retries: int = MAX_RETRIES,
    retry_delay: float = RETRY_DELAY,
) -> dict:
    """
    Upload a pitch deck PDF to the pitch-deck bucket and return its
    storage path and public URL.
    """
    client = get_supabase()
    bucket_name = bucket_name or get_settings().pitch_deck_bucket
    storage_path = pitch_deck_key(filename)

    attempt = 0
    while attempt < max_retries:
        try:
            client.storage.from_(bucket_name).upload(
                path=storage_path,
                file=pdf_bytes,
                file_options={"content-type": "application/pdf"},
            )
            break
        except Exception as e:
            attempt += 1
            logger.error(
                "Attempt %s: Failed to upload pitch deck %s: %s",
                attempt, storage_path, str(e),
                exc_info=True,
            )
            if attempt < max_retries:
                time.sleep(retry_delay)
            else:
                raise ProviderError("supabase", f"upload failed: {e}") from e

    public_url = client.storage.from_(bucket_name).get_public_url(storage_path)
    logger.info("Pitch deck uploaded: %s", public_url)
    return {"storage_path": storage_path, "public_url": public_url}
