"""
Identity provider webhook.

Events are signed with svix; the raw request body is verified before any
user document is touched.
"""
import json
import logging

from fastapi import APIRouter, HTTPException, Request
from fastapi.responses import JSONResponse
from pydantic import ValidationError
from pymongo.errors import PyMongoError
from svix.webhooks import Webhook, WebhookVerificationError

import config
from actions.users import create_user, delete_user, find_by_clerk_id, generate_unique_username, update_user
from database import serialize

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["webhook"])

SVIX_HEADERS = ("svix-id", "svix-timestamp", "svix-signature")


def full_name(first_name, last_name) -> str:
    return f"{first_name or ''} {last_name or ''}".strip()


def primary_email(data: dict):
    addresses = data.get("email_addresses") or []
    return addresses[0].get("email_address") if addresses else None


def handle_user_created(data: dict) -> dict:
    username = generate_unique_username(data.get("first_name"), data.get("last_name"))
    user = create_user(
        clerk_id=data["id"],
        name=full_name(data.get("first_name"), data.get("last_name")),
        username=username,
        email=primary_email(data),
        picture=data.get("image_url"),
    )
    return {"message": "User created successfully", "user": serialize(user)}


def handle_user_updated(data: dict) -> dict:
    current = find_by_clerk_id(data["id"])
    name = full_name(data.get("first_name"), data.get("last_name"))
    update = {"name": name, "email": primary_email(data), "picture": data.get("image_url")}
    if name != current.get("name"):
        update["username"] = generate_unique_username(
            data.get("first_name"), data.get("last_name"), exclude_clerk_id=data["id"]
        )
    user = update_user(data["id"], update)
    return {"message": "User updated successfully", "user": serialize(user)}


def handle_user_deleted(data: dict) -> dict:
    user = delete_user(data["id"])
    return {"message": "User deleted successfully", "user": serialize(user)}


HANDLERS = {
    "user.created": (handle_user_created, "Failed to create user"),
    "user.updated": (handle_user_updated, "Failed to update user"),
    "user.deleted": (handle_user_deleted, "Failed to delete user"),
}


@router.post("/webhook")
async def identity_webhook(request: Request):
    if not config.WEBHOOK_SECRET:
        logger.error("Missing WEBHOOK_SECRET")
        raise HTTPException(status_code=500, detail="Missing WEBHOOK_SECRET")

    headers = {name: request.headers.get(name) for name in SVIX_HEADERS}
    if not all(headers.values()):
        logger.warning("Webhook call without svix headers")
        raise HTTPException(status_code=400, detail="Missing svix headers")

    body = await request.body()
    try:
        Webhook(config.WEBHOOK_SECRET).verify(body, headers)
    except WebhookVerificationError as e:
        logger.warning("Webhook verification failed: %s", e)
        raise HTTPException(status_code=400, detail="Error processing webhook")
    event = json.loads(body)

    event_type = event.get("type")
    if event_type not in HANDLERS:
        return {"message": "Webhook processed successfully"}

    handler, failure = HANDLERS[event_type]
    try:
        result = handler(event.get("data") or {})
    except (HTTPException, PyMongoError, KeyError, ValidationError):
        logger.exception("Webhook %s failed", event_type)
        return JSONResponse(status_code=500, content={"error": failure})
    logger.info("Webhook %s handled for %s", event_type, event["data"].get("id"))
    return result
