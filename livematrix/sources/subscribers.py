from __future__ import annotations
import logging
import time
from typing import Callable
from urllib.parse import quote

from livematrix.core.snapshot import DataSnapshot
from livematrix.errors import ConfigurationError, ParseError
from livematrix.net import JsonClient
from livematrix.settings import DeviceSettings

log = logging.getLogger(__name__)

SOURCE_ID = "subscribers"


def _count(value: float) -> int:
    if value < 0 or value != int(value):
        raise ParseError(f"not a count: {value!r}")
    return int(value)


class SubscriberSource:
    """Channel statistics (subscribers, views) for the configured channel GUID."""

    def __init__(self, client: JsonClient, settings: Callable[[], DeviceSettings], clock: Callable[[], float] = time.time):
        self.client = client
        self.settings = settings
        self._clock = clock

    def fetch(self) -> DataSnapshot:
        s = self.settings()
        guid = s.youtube_channel_guid
        if not guid:
            raise ConfigurationError("no channel GUID configured")
        url = s.subscriber_url.format(guid=quote(guid, safe=""))
        doc = self.client.fetch_json(url)
        values = {
            "channel_guid": guid,
            "subscribers": _count(doc.number("channelStats.subscribers_count")),
            "views": _count(doc.number("channelStats.views")),
        }
        log.info("Channel %s has %d subscribers", guid, values["subscribers"])
        return DataSnapshot.build(SOURCE_ID, self._clock(), values, required=("subscribers", "views"))
