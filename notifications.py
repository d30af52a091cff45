"""Transactional e-mail through the Resend HTTP API."""

from __future__ import annotations

from typing import Iterable, Optional

import requests
from flask import current_app, render_template

RESEND_API_URL = "https://api.resend.com/emails"
RESEND_TIMEOUT_SECONDS = 8
DEFAULT_SENDER = "La Crêperie <noreply@resend.dev>"


class EmailDeliveryError(Exception):
    """Raised when Resend is unreachable or rejects the message."""


def send_email(
    api_key: str,
    *,
    to: Iterable[str],
    subject: str,
    html: str,
    sender: Optional[str] = None,
) -> Optional[str]:
    """POST one message to Resend and return its id."""
    payload = {
        "from": sender or DEFAULT_SENDER,
        "to": list(to),
        "subject": subject,
        "html": html,
    }
    headers = {
        "Authorization": f"Bearer {api_key}",
        "Content-Type": "application/json",
    }
    try:
        resp = requests.post(RESEND_API_URL, json=payload, headers=headers, timeout=RESEND_TIMEOUT_SECONDS)
    except requests.RequestException as exc:
        raise EmailDeliveryError(f"Resend request failed: {exc}") from exc

    if resp.status_code >= 400:
        raise EmailDeliveryError(f"Resend returned {resp.status_code}: {resp.text[:200]}")

    try:
        return (resp.json() or {}).get("id")
    except ValueError:
        return None


def send_prize_email(
    api_key: str,
    *,
    email: str,
    first_name: str,
    prize: str,
    prize_code: str,
    verify_url: str,
    secret_code: Optional[str] = None,
) -> Optional[str]:
    html = render_template(
        "emails/prize.html",
        first_name=first_name,
        prize=prize,
        prize_code=prize_code,
        verify_url=verify_url,
        secret_code=secret_code,
    )
    return send_email(
        api_key,
        to=[email],
        subject=f"🎉 {first_name}, tu as gagné au Quiz !",
        html=html,
        sender=current_app.config.get("EMAIL_FROM"),
    )


STATUS_LABELS = {
    "ok": ("✅", "Tout fonctionne"),
    "warning": ("⚠️", "Avertissements"),
    "error": ("❌", "Erreurs détectées"),
}


def send_health_report(api_key: str, report: dict, recipient: str) -> Optional[str]:
    emoji, label = STATUS_LABELS.get(report.get("overall_status"), STATUS_LABELS["error"])
    html = render_template(
        "emails/health_report.html",
        report=report,
        status_emoji=emoji,
        status_label=label,
        check_emojis={key: value[0] for key, value in STATUS_LABELS.items()},
    )
    return send_email(
        api_key,
        to=[recipient],
        subject=f"{emoji} Rapport hebdomadaire - {label}",
        html=html,
        sender=current_app.config.get("EMAIL_FROM"),
    )
