# Overview: Server-Sent Events stream carrying TRANSACTION_UPDATE signals to the browser.

import json
import queue

from flask import Blueprint, Response, current_app, g, stream_with_context

from ..decorators import require_stream_auth
from ..services.notification_service import hub


notifications_bp = Blueprint("notifications", __name__, url_prefix="/api/notifications")


def _format_event(event: dict) -> str:
    return f"data: {json.dumps(event)}\n\n"


@notifications_bp.get("/stream")
@require_stream_auth
def stream():
    """
    Open a text/event-stream for the current user.

    Each event is {"type": "TRANSACTION_UPDATE"}; the client refetches on
    receipt. A comment line is sent every NOTIFICATION_KEEPALIVE_SECONDS so
    proxies keep the connection open.
    """
    user_id = g.current_user.id
    keepalive = current_app.config.get("NOTIFICATION_KEEPALIVE_SECONDS", 25)
    subscription = hub.subscribe(user_id)

    def generate():
        try:
            yield ": connected\n\n"
            while True:
                try:
                    event = subscription.get(timeout=keepalive)
                except queue.Empty:
                    yield ": keepalive\n\n"
                    continue
                yield _format_event(event)
        finally:
            hub.unsubscribe(user_id, subscription)

    response = Response(stream_with_context(generate()), mimetype="text/event-stream")
    response.headers["Cache-Control"] = "no-cache"
    response.headers["X-Accel-Buffering"] = "no"
    return response
