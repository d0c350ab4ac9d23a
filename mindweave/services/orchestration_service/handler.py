"""Orchestration Service HTTP handler.

Thin Flask surface over OrchestrationEngine.process. Each request runs
the async engine to completion on its own event loop.

Failure Handling:
    - Malformed requests (PlannerError) -> 400
    - Anything else fails toward caution: 200 with the system-error
      reply, still re-checked for crisis language
"""
import asyncio
import logging
import os

from flask import Flask, jsonify, request

from mindweave.shared.utils import configure_pii_salt
from .engine import OrchestrationEngine
from .errors import PlannerError

logger = logging.getLogger(__name__)

app = Flask(__name__)

pii_salt = os.getenv("PII_HASH_SALT", "default_dev_salt_change_in_production_32chars")
configure_pii_salt(pii_salt)

engine = OrchestrationEngine.from_env()


def _field(data: dict, snake: str, camel: str, default=None):
    value = data.get(snake, data.get(camel))
    return default if value is None else value


@app.route("/health", methods=["GET"])
def health():
    """Health check endpoint."""
    return jsonify({
        "status": "healthy",
        "service": "orchestration-service",
        "engine_version": engine.config.engine_version,
    }), 200


@app.route("/ready", methods=["GET"])
def ready():
    """Readiness check."""
    if engine is None or not engine.agents:
        return jsonify({"status": "not_ready"}), 503
    return jsonify({"status": "ready"}), 200


@app.route("/process", methods=["POST"])
def process_message():
    """Process one user message.

    Request Body:
        {
            "message": "I've been feeling anxious about work",
            "user_id": "user_123",
            "urgency_level": "normal",
            "preferences": {"processing_speed": "fast"},
            "conversation_id": "conv_abc",
            "message_id": "msg_001"
        }

    camelCase keys (userMessage, userId, urgencyLevel) are accepted too.

    Response:
        {
            "content": "...",
            "orchestration_log": [...],
            "transparency": {...},
            "metadata": {...}
        }
    """
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        return jsonify({"error": "Request body required"}), 400

    message = data.get("message", data.get("userMessage"))
    message_id = _field(data, "message_id", "messageId")
    conversation_id = _field(data, "conversation_id", "conversationId")

    try:
        response = asyncio.run(engine.process(
            user_message=message,
            user_id=_field(data, "user_id", "userId"),
            urgency_level=_field(data, "urgency_level", "urgencyLevel", "normal"),
            preferences=data.get("preferences"),
            conversation_id=conversation_id,
            message_id=message_id,
        ))
        return jsonify(response.to_dict()), 200

    except PlannerError as e:
        logger.warning("PROCESS_REQUEST_REJECTED", extra={"reason": str(e)})
        return jsonify({"error": str(e)}), 400

    except Exception as e:
        logger.error(
            "PROCESS_REQUEST_FAILED",
            extra={"error": str(e), "error_type": type(e).__name__}
        )
        fallback = engine.error_response(message, message_id, conversation_id)
        return jsonify(fallback.to_dict()), 200


if __name__ == "__main__":
    port = int(os.getenv("PORT", "8080"))
    app.run(host="0.0.0.0", port=port)
