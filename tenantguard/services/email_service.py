"""Outbound email: message builders plus the sender boundary.

Builders turn domain facts into an ``EmailMessage``; senders deliver it.
``ResendEmailSender`` posts to the Resend HTTP API with httpx.
``InMemoryEmailSender`` keeps an outbox list for dev and tests.

Senders raise ``EmailDeliveryError`` on failure.  Callers decide whether
that matters; every current caller treats email as best effort.
"""

from __future__ import annotations

import html
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Protocol

import httpx

from tenantguard.core.config import SETTINGS

logger = logging.getLogger(__name__)

RESEND_API_URL = "https://api.resend.com/emails"
APP_NAME = "TenantGuard"


class EmailDeliveryError(Exception):
    pass


@dataclass(frozen=True, slots=True)
class EmailMessage:
    to: str
    subject: str
    html: str
    text: str


class EmailSender(Protocol):
    async def send(self, message: EmailMessage) -> str | None: ...


class ResendEmailSender:
    def __init__(
        self,
        api_key: str,
        sender: str,
        *,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._api_key = api_key
        self._sender = sender
        self._timeout = timeout
        self._transport = transport

    async def send(self, message: EmailMessage) -> str | None:
        payload = {
            "from": self._sender,
            "to": [message.to],
            "subject": message.subject,
            "html": message.html,
            "text": message.text,
        }
        try:
            async with httpx.AsyncClient(
                timeout=self._timeout, transport=self._transport
            ) as client:
                resp = await client.post(
                    RESEND_API_URL,
                    json=payload,
                    headers={"Authorization": f"Bearer {self._api_key}"},
                )
                resp.raise_for_status()
                return resp.json().get("id")
        except httpx.HTTPError as e:
            raise EmailDeliveryError(f"send to {message.to} failed: {e}") from e
        except ValueError as e:
            raise EmailDeliveryError(f"send to {message.to}: unreadable response: {e}") from e


class InMemoryEmailSender:
    def __init__(self) -> None:
        self.outbox: list[EmailMessage] = []
        self.fail = False

    async def send(self, message: EmailMessage) -> str | None:
        if self.fail:
            raise EmailDeliveryError(f"send to {message.to} failed")
        self.outbox.append(message)
        logger.debug("Email queued in memory: to=%s subject=%r", message.to, message.subject)
        return f"mem-{len(self.outbox)}"

    def reset(self) -> None:
        self.outbox.clear()
        self.fail = False


# ---------------------------------------------------------------------------
# Message builders
# ---------------------------------------------------------------------------


def _wrap(body_html: str) -> str:
    return (
        '<div style="font-family:sans-serif;max-width:600px;margin:0 auto">'
        f'<h2 style="margin:0 0 16px 0">{APP_NAME}</h2>{body_html}</div>'
    )


def invite_email(
    *, to: str, org_name: str, inviter_name: str, token: str, expires_at: datetime
) -> EmailMessage:
    url = f"{SETTINGS.site_url}/invite/{token}"
    expires = expires_at.strftime("%B %d, %Y")
    org = html.escape(org_name)
    inviter = html.escape(inviter_name or "A teammate")
    return EmailMessage(
        to=to,
        subject=f"You've been invited to join {org_name}",
        html=_wrap(
            f"<p>{inviter} invited you to join <strong>{org}</strong>.</p>"
            f'<p><a href="{url}">Accept invitation</a></p>'
            f"<p>This invitation expires on {expires}.</p>"
        ),
        text=(
            f"{inviter_name or 'A teammate'} invited you to join {org_name}.\n"
            f"Accept: {url}\nExpires on {expires}."
        ),
    )


def low_credits_email(
    *, to: str, name: str | None, org_name: str, credits_remaining: int
) -> EmailMessage:
    billing_url = f"{SETTINGS.site_url}/dashboard/billing"
    greeting = html.escape(name or "there")
    return EmailMessage(
        to=to,
        subject=f"Low credits - {org_name}",
        html=_wrap(
            f"<p>Hi {greeting},</p>"
            f"<p><strong>{html.escape(org_name)}</strong> has "
            f"{credits_remaining} credits left.</p>"
            f'<p><a href="{billing_url}">Top up or upgrade</a></p>'
        ),
        text=(
            f"Hi {name or 'there'},\n{org_name} has {credits_remaining} credits left.\n"
            f"Manage billing: {billing_url}"
        ),
    )


def renewal_reminder_email(
    *,
    to: str,
    name: str | None,
    org_name: str,
    plan_title: str | None,
    period_end: datetime,
    credits_remaining: int | None,
) -> EmailMessage:
    billing_url = f"{SETTINGS.site_url}/dashboard/billing"
    when = period_end.strftime("%B %d, %Y")
    plan = plan_title or "subscription"
    credits_line = (
        f" You have {credits_remaining} credits remaining."
        if credits_remaining is not None
        else ""
    )
    return EmailMessage(
        to=to,
        subject=f"Your {plan} renews soon - {org_name}",
        html=_wrap(
            f"<p>Hi {html.escape(name or 'there')},</p>"
            f"<p>The {html.escape(plan)} plan for <strong>{html.escape(org_name)}</strong> "
            f"renews on {when}.{credits_line}</p>"
            f'<p><a href="{billing_url}">Manage subscription</a></p>'
        ),
        text=(
            f"Hi {name or 'there'},\nThe {plan} plan for {org_name} renews on {when}."
            f"{credits_line}\nManage: {billing_url}"
        ),
    )


if SETTINGS.resend_api_key:
    email_sender: EmailSender = ResendEmailSender(SETTINGS.resend_api_key, SETTINGS.email_from)
else:
    email_sender = InMemoryEmailSender()
