"""
Helpers partagés par les routes d'ingestion (vision, bras).

Ordre garanti : mutation du StateStore puis publication, sous un même verrou,
pour que les observateurs reçoivent les événements dans l'ordre des mutations.
"""

import json
import logging
import os
import threading
from typing import Any, Dict

from fastapi import Request

from errors import BadRequestBody, InvalidPayloadEncoding
from state_store import StateStore
from status_hub import BroadcastHub

log = logging.getLogger("trashbot-hub.ingest")

ingest_lock = threading.Lock()

MAX_JSON_DEPTH = int(os.getenv("MAX_JSON_DEPTH", "32"))


def get_store(request: Request) -> StateStore:
    return request.app.state.stateStore

def get_hub(request: Request) -> BroadcastHub:
    return request.app.state.statusHub

async def read_json_object(request: Request, max_bytes: int) -> Dict[str, Any]:
    # Content-Length d'abord : inutile de lire un corps trop gros
    clen = request.headers.get("content-length")
    if clen is not None:
        try:
            declared = int(clen)
        except ValueError:
            raise BadRequestBody(f"content-length invalide: {clen!r}")
        if declared <= 0 or declared > max_bytes:
            raise BadRequestBody(f"content-length={declared} (max {max_bytes})")

    # Sans Content-Length (chunked) : on coupe dès que la limite est dépassée
    body = bytearray()
    async for chunk in request.stream():
        body.extend(chunk)
        if len(body) > max_bytes:
            raise BadRequestBody(f"> {max_bytes} bytes")
    if not body:
        raise BadRequestBody("corps vide")

    try:
        data = json.loads(bytes(body))
    except (ValueError, RecursionError) as e:
        raise InvalidPayloadEncoding(f"{type(e).__name__}: {e}")
    if not isinstance(data, dict):
        raise InvalidPayloadEncoding(f"objet JSON attendu, reçu {type(data).__name__}")

    depth = _nesting_depth(data)
    if depth > MAX_JSON_DEPTH:
        raise InvalidPayloadEncoding(f"imbrication trop profonde ({depth} > {MAX_JSON_DEPTH})")
    # JSON valide mais non ré-encodable en UTF-8 (surrogates isolés, "\ud800")
    try:
        json.dumps(data, ensure_ascii=False).encode("utf-8")
    except UnicodeEncodeError as e:
        raise InvalidPayloadEncoding(str(e))
    return data

def _nesting_depth(value: Any) -> int:
    deepest = 0
    stack = [(value, 1)]
    while stack:
        node, depth = stack.pop()
        if isinstance(node, dict):
            deepest = max(deepest, depth)
            stack.extend((v, depth + 1) for v in node.values())
        elif isinstance(node, list):
            deepest = max(deepest, depth)
            stack.extend((v, depth + 1) for v in node)
    return deepest
