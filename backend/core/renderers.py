"""
DRF renderer for server-sent-event endpoints.

Stream views return a ``StreamingHttpResponse`` directly, so this renderer
exists for content negotiation (``Accept: text/event-stream``) and for
rendering error bodies raised before the stream starts.
"""

from __future__ import annotations

import json

from django.core.serializers.json import DjangoJSONEncoder
from rest_framework.renderers import BaseRenderer


class EventStreamRenderer(BaseRenderer):
    media_type = "text/event-stream"
    format = "sse"
    charset = "utf-8"

    def render(self, data, accepted_media_type=None, renderer_context=None):
        if data is None:
            return b""
        return json.dumps(data, cls=DjangoJSONEncoder).encode(self.charset)
