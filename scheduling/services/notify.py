import logging
from typing import Any, Dict

from asgiref.sync import async_to_sync
from channels.layers import get_channel_layer
from django.utils import timezone

logger = logging.getLogger(__name__)

UPDATES_GROUP = "updates"
REMINDERS_GROUP = "reminders"


def broadcast(group: str, event_type: str, payload: Dict[str, Any]) -> bool:
    """Send an event to a channel group.

    Returns False when no layer is configured or the layer fails; the
    caller's writes are already committed and must not be reported as failed.
    """
    channel_layer = get_channel_layer()
    if channel_layer is None:
        logger.debug("No channel layer configured, dropping %s", event_type)
        return False
    event = {"type": event_type, "ts": timezone.now().isoformat(), **payload}
    try:
        async_to_sync(channel_layer.group_send)(group, event)
    except Exception:
        logger.exception("Failed to broadcast %s to group %s", event_type, group)
        return False
    return True
