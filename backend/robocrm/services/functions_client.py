# Overview: HTTP client for the serverless functions collaborator (email sending, map token).

from __future__ import annotations

import logging
from typing import Any

import httpx
from flask import current_app


logger = logging.getLogger(__name__)

SEND_CONTRACT_EMAIL = "send-contract-email"
SEND_OFFER_EMAIL = "send-offer-email"
GET_MAP_TOKEN = "get-map-token"


class FunctionInvocationError(Exception):
    """Raised when a function call fails or answers with a non-2xx status."""
    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


def _client() -> httpx.Client:
    cfg = current_app.config
    headers = {"Content-Type": "application/json"}
    api_key = cfg.get("FUNCTIONS_API_KEY")
    if api_key:
        headers["Authorization"] = f"Bearer {api_key}"
    return httpx.Client(
        base_url=cfg["FUNCTIONS_BASE_URL"].rstrip("/"),
        headers=headers,
        timeout=cfg.get("FUNCTIONS_TIMEOUT_SECONDS", 30.0),
        # Tests plug an httpx.MockTransport in here
        transport=cfg.get("FUNCTIONS_TRANSPORT"),
    )


def invoke(name: str, payload: dict[str, Any] | None = None) -> dict[str, Any]:
    """
    POST payload to <FUNCTIONS_BASE_URL>/<name>. Single attempt, no retries.
    Returns the decoded JSON body ({} for an empty body).
    """
    try:
        with _client() as client:
            resp = client.post(f"/{name}", json=payload or {})
    except httpx.TimeoutException as e:
        logger.warning("Function %s timed out", name)
        raise FunctionInvocationError(f"{name} timed out", {"function": name}) from e
    except httpx.HTTPError as e:
        logger.warning("Function %s unreachable: %s", name, e)
        raise FunctionInvocationError(f"{name} is unreachable: {e}", {"function": name}) from e

    if resp.status_code >= 400:
        try:
            body = resp.json()
            message = body.get("error") or body.get("message") or resp.text
        except ValueError:
            message = resp.text
        logger.warning("Function %s failed with %s: %s", name, resp.status_code, message)
        raise FunctionInvocationError(
            message or f"{name} failed",
            {"function": name, "status_code": resp.status_code},
        )

    if not resp.content:
        return {}
    try:
        return resp.json()
    except ValueError:
        return {"raw": resp.text}


def send_contract_email(*, contract_number: str, version_id: int, client_email: str, client_name: str, file_path: str) -> dict:
    return invoke(
        SEND_CONTRACT_EMAIL,
        {
            "contractNumber": contract_number,
            "versionId": version_id,
            "clientEmail": client_email,
            "clientName": client_name or "Client",
            "filePath": file_path,
        },
    )


def send_offer_email(*, offer_number: str, version_id: int, client_email: str, client_name: str, file_path: str) -> dict:
    return invoke(
        SEND_OFFER_EMAIL,
        {
            "offerNumber": offer_number,
            "versionId": version_id,
            "clientEmail": client_email,
            "clientName": client_name or "Client",
            "filePath": file_path,
        },
    )


def get_map_token() -> str:
    data = invoke(GET_MAP_TOKEN)
    token = data.get("token") or data.get("apiKey")
    if not token:
        raise FunctionInvocationError("get-map-token returned no token", {"function": GET_MAP_TOKEN})
    return token
