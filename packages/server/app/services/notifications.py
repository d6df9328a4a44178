"""
Invitation notifier.

``LoggingInvitationNotifier`` (default) only logs the message;
``HttpInvitationNotifier`` posts it to a Resend-style email API.
Delivery is fire-and-forget: ``dispatch`` schedules the send and failures
are logged, never raised to the inviting request.
"""

from __future__ import annotations

import asyncio
from html import escape
from urllib.parse import quote

import httpx
import structlog
from fastapi import Request

from app.core.config import Settings

log = structlog.get_logger()

EMAIL_TIMEOUT_SECONDS = 10.0


def accept_link(public_base_url: str, token: str) -> str:
    return f"{public_base_url.rstrip('/')}/api/memberships/invitations/accept?token={quote(token, safe='')}"


class InvitationNotifier:
    """Base notifier; subclasses implement ``notify_invitation``."""

    def __init__(self, public_base_url: str):
        self.public_base_url = public_base_url
        self._pending: set[asyncio.Task] = set()

    async def notify_invitation(self, email: str, organization_name: str, token: str) -> None:
        raise NotImplementedError

    def dispatch(self, email: str, organization_name: str, token: str) -> None:
        """Schedule ``notify_invitation`` without waiting for it."""
        task = asyncio.create_task(self._run(email, organization_name, token))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _run(self, email: str, organization_name: str, token: str) -> None:
        try:
            await self.notify_invitation(email, organization_name, token)
        except Exception:
            log.exception("invitation.notify_failed", email=email, org_name=organization_name)

    async def drain(self) -> None:
        if self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    async def aclose(self) -> None:
        await self.drain()


class LoggingInvitationNotifier(InvitationNotifier):
    async def notify_invitation(self, email: str, organization_name: str, token: str) -> None:
        log.info(
            "invitation.email",
            to=email,
            org_name=organization_name,
            link=accept_link(self.public_base_url, token),
        )


class HttpInvitationNotifier(InvitationNotifier):
    def __init__(
        self,
        public_base_url: str,
        api_url: str,
        api_key: str,
        sender: str,
        client: httpx.AsyncClient | None = None,
    ):
        super().__init__(public_base_url)
        self.api_url = api_url
        self.api_key = api_key
        self.sender = sender
        self._client = client or httpx.AsyncClient(timeout=EMAIL_TIMEOUT_SECONDS)

    def build_message(self, email: str, organization_name: str, token: str) -> dict:
        link = accept_link(self.public_base_url, token)
        text = (
            f"You've been invited to join {organization_name}.\n\n"
            f"Accept the invitation: {link}\n\n"
            f"Or paste this token into the app: {token}\n\n"
            "This invitation expires in 7 days."
        )
        html = f"""
        <!DOCTYPE html>
        <html>
        <head><meta charset="utf-8"></head>
        <body style="font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, sans-serif; line-height: 1.6; color: #333; max-width: 600px; margin: 0 auto; padding: 20px;">
            <h2>You've been invited to join {escape(organization_name)}</h2>
            <p><a href="{escape(link)}">Accept invitation</a></p>
            <p>Or use this token: <code>{escape(token)}</code></p>
            <p>This invitation expires in 7 days.</p>
        </body>
        </html>
        """
        return {
            "from": self.sender,
            "to": [email],
            "subject": f"You've been invited to join {organization_name}",
            "html": html,
            "text": text,
        }

    async def notify_invitation(self, email: str, organization_name: str, token: str) -> None:
        response = await self._client.post(
            self.api_url,
            headers={"Authorization": f"Bearer {self.api_key}"},
            json=self.build_message(email, organization_name, token),
        )
        response.raise_for_status()
        log.info("invitation.email_sent", to=email, org_name=organization_name)

    async def aclose(self) -> None:
        await super().aclose()
        await self._client.aclose()


def build_notifier(settings: Settings) -> InvitationNotifier:
    if settings.email_provider == "http":
        return HttpInvitationNotifier(
            settings.public_base_url,
            api_url=settings.email_api_url,
            api_key=settings.email_api_key,
            sender=settings.email_from,
        )
    return LoggingInvitationNotifier(settings.public_base_url)


def get_invitation_notifier(request: Request) -> InvitationNotifier:
    """FastAPI dependency returning the application's notifier."""
    return request.app.state.notifier
