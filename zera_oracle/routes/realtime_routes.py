import logging
from flask import Blueprint, Response

from zera_oracle.systems.broadcaster import broadcaster, format_heartbeat, format_sse

logger = logging.getLogger(__name__)

realtime_bp = Blueprint("realtime", __name__)


@realtime_bp.route("/sse", methods=["GET"])
def stream_events():
    """
    Server-sent events feed of committed changes.

    The subscription is registered before the response starts, so any write
    committed after this request is accepted shows up on the stream.
    """
    subscription = broadcaster.subscribe()
    heartbeat_secs = broadcaster.heartbeat_secs

    def generate():
        try:
            yield format_heartbeat()
            for event in subscription.events(heartbeat_secs):
                yield format_heartbeat() if event is None else format_sse(event)
        finally:
            broadcaster.unsubscribe(subscription.handle)

    headers = {"Cache-Control": "no-cache", "X-Accel-Buffering": "no"}
    return Response(generate(), mimetype="text/event-stream", headers=headers)
