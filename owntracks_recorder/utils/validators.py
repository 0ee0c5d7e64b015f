# owntracks_recorder/utils/validators.py
from typing import Optional, Tuple

from ..exceptions import InvalidPayload, InvalidTopic

TOPIC_PREFIX = "owntracks"
TOPIC_FORMAT_ERROR = "Invalid topic format. Expected: owntracks/<username>/<devicename>"


def split_topic(topic) -> Optional[Tuple[str, str]]:
    """Return (user, device) for ``owntracks/<user>/<device>``, else None."""
    if not isinstance(topic, str):
        return None
    parts = topic.split("/")
    if len(parts) != 3 or parts[0] != TOPIC_PREFIX:
        return None
    return parts[1], parts[2]


def is_location(payload: dict) -> bool:
    return payload.get("_type") == "location"


def require_coordinates(payload: dict) -> None:
    # falsy check on purpose: 0/""/null are all rejected
    if not payload.get("lat") or not payload.get("lon"):
        raise InvalidPayload("Invalid location payload")


def parse_topic(payload: dict) -> Tuple[str, str]:
    topic = payload.get("topic")
    if not topic:
        raise InvalidTopic("Missing topic")
    parsed = split_topic(topic)
    if parsed is None:
        raise InvalidTopic(TOPIC_FORMAT_ERROR)
    return parsed
