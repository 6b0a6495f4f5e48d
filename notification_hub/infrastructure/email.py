"""Transactional emails sent through SendGrid when contract access changes."""

from __future__ import annotations

import json
import logging
from html import escape
from typing import Any

from sendgrid import SendGridAPIClient
from sendgrid.helpers.mail import Mail

from notification_hub.config import get_settings

logger = logging.getLogger(__name__)

ROLE_LABELS = {"owner": "Propietario", "editor": "Editor", "viewer": "Lector"}


def email_enabled() -> bool:
    """Return ``True`` when both SendGrid settings are present."""

    settings = get_settings()
    return bool(settings.sendgrid_api_key and settings.sendgrid_sender)


def _describe_error_body(body: Any) -> str | None:
    if isinstance(body, bytes):
        body = body.decode("utf-8", errors="replace")
    if isinstance(body, str):
        body = body.strip()
        if not body:
            return None
        try:
            body = json.loads(body)
        except json.JSONDecodeError:
            return body
    if isinstance(body, dict):
        errors = [
            str(item["message"])
            for item in body.get("errors") or []
            if isinstance(item, dict) and item.get("message")
        ]
        return "; ".join(errors) if errors else json.dumps(body)
    return None


def send_email(subject: str, html_content: str, recipient: str) -> bool:
    """Send an email using the configured SendGrid credentials."""

    settings = get_settings()
    if not email_enabled():
        logger.info("SendGrid configuration incomplete; skipping email delivery")
        return False

    message = Mail(
        from_email=settings.sendgrid_sender,
        to_emails=recipient,
        subject=subject,
        html_content=html_content,
    )

    try:
        response = SendGridAPIClient(settings.sendgrid_api_key).send(message)
    except Exception as exc:
        details = _describe_error_body(getattr(exc, "body", None))
        logger.error(
            "SendGrid API request failed with status %s: %s",
            getattr(exc, "status_code", None),
            details or exc,
        )
        return False

    status_code = getattr(response, "status_code", None)
    if not isinstance(status_code, int) or not 200 <= status_code < 300:
        logger.error(
            "SendGrid API responded with status %s: %s",
            status_code,
            _describe_error_body(getattr(response, "body", None)),
        )
        return False
    return True


def contract_url(contract_id: int) -> str:
    base = get_settings().frontend_url.rstrip("/")
    return f"{base}/home/contracts/view/{contract_id}"


def send_contract_assignment_email(
    email: str,
    name: str,
    *,
    contract_id: int,
    contract_number: str,
    client_name: str | None,
    assigned_by: str,
) -> bool:
    """Tell ``email`` that they were assigned to a contract."""

    subject = f"Has sido asignado a un nuevo contrato: {contract_number}"
    html_content = "".join(
        (
            f"<h2>Hola {escape(name)},</h2>",
            f"<p>Fuiste asignado al contrato <strong>{escape(contract_number)}</strong>",
            f" del cliente <strong>{escape(client_name or 'N/A')}</strong>",
            f" por {escape(assigned_by)}.</p>",
            f'<p><a href="{contract_url(contract_id)}">Ver contrato</a></p>',
        )
    )
    return send_email(subject, html_content, email)


def send_role_change_email(
    email: str,
    name: str,
    *,
    contract_number: str,
    new_role: str,
    changed_by: str,
) -> bool:
    """Tell ``email`` that their permission on a contract changed."""

    subject = f"Tu permiso en el contrato {contract_number} fue modificado"
    role_label = ROLE_LABELS.get(new_role, new_role)
    html_content = "".join(
        (
            f"<h2>Hola {escape(name)},</h2>",
            f"<p>Tu permiso en el contrato <strong>{escape(contract_number)}</strong>",
            f" cambió a <strong>{escape(role_label)}</strong> por {escape(changed_by)}.</p>",
        )
    )
    return send_email(subject, html_content, email)


__all__ = [
    "ROLE_LABELS",
    "contract_url",
    "email_enabled",
    "send_contract_assignment_email",
    "send_email",
    "send_role_change_email",
]
