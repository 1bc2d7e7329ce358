"""Bytes-in/bytes-out plumbing shared by the JSON request/reply services."""

import json
import logging

import zmq

logger = logging.getLogger(__name__)


def error_response(message):
    return {"status": "error", "error": message}


def encode(payload) -> bytes:
    """Compact JSON with sorted keys, so equal payloads give equal bytes."""
    return json.dumps(payload, sort_keys=True, separators=(",", ":")).encode("utf-8")


def decode_request(raw: bytes):
    """(request_dict, None) or (None, error_response)."""
    try:
        request = json.loads(raw.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError):
        return None, error_response("Invalid JSON in request body.")
    if not isinstance(request, dict):
        return None, error_response("Request must be a JSON object.")
    return request, None


def is_quit_signal(raw: bytes) -> bool:
    """Raw b"q" or the JSON string "q", any case."""
    trimmed = raw.strip().lower()
    if trimmed == b"q":
        return True
    try:
        decoded = json.loads(trimmed.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError):
        return False
    return isinstance(decoded, str) and decoded.strip().lower() == "q"


def bind(port):
    context = zmq.Context()
    socket = context.socket(zmq.REP)
    socket.bind(f"tcp://*:{port}")
    return context, socket


def serve(port, handler, name):
    """
    Answer requests with ``handler(raw_bytes) -> bytes`` until a quit message
    or Ctrl-C. A handler crash is answered with an error payload and the loop
    keeps going.
    """
    context, socket = bind(port)
    logger.info("[%s] Listening on port %s", name, port)
    try:
        while True:
            raw = socket.recv()
            if is_quit_signal(raw):
                socket.send(encode({"status": "ok", "message": f"{name} shutting down."}))
                logger.info("[%s] Received quit signal. Exiting.", name)
                break
            try:
                reply = handler(raw)
            except Exception as exc:
                logger.exception("[%s] Request failed", name)
                reply = encode(error_response(f"Internal error: {exc}"))
            socket.send(reply)
    except KeyboardInterrupt:
        logger.info("[%s] Interrupted via keyboard.", name)
    finally:
        socket.close()
        context.term()
