# Cloudflare Gateway Sync
# Author: SeriousHoax
# GitHub: https://github.com/SeriousHoax
# License: MIT

import logging
from typing import Optional

import requests

logger = logging.getLogger(__name__)

REQUEST_TIMEOUT = 30


def notify_webhook(url: Optional[str], message: str) -> bool:
    """Post message to a Discord-style webhook. Never raises."""
    if not url:
        logger.debug("No webhook configured, skipping notification")
        return False

    try:
        response = requests.post(url, json={"content": message}, timeout=REQUEST_TIMEOUT)
        response.raise_for_status()
    except requests.exceptions.RequestException as e:
        logger.warning(f"⚠️ Could not send webhook notification: {e}")
        return False

    logger.info("📣 Sent webhook notification")
    return True
