from __future__ import annotations
import html
import logging
from typing import Any, Dict, Optional

import httpx
from fastapi import Request

from .settings import Settings

logger = logging.getLogger(__name__)


class MailError(Exception):
	pass


class ResendMailer:
	def __init__(
		self,
		api_key: Optional[str],
		sender: Optional[str],
		*,
		base_url: str = "https://api.resend.com/emails",
		client: Optional[httpx.AsyncClient] = None,
	) -> None:
		self.api_key = api_key
		self.sender = sender
		self.base_url = base_url
		# Shared client when given; otherwise one per send
		self._client = client

	@classmethod
	def from_settings(cls, settings: Settings) -> "ResendMailer":
		return cls(settings.resend_api_key, settings.auth_email_from, base_url=settings.resend_base_url)

	@property
	def configured(self) -> bool:
		return bool(self.api_key and self.sender)

	async def send(self, to: str, subject: str, html_body: str) -> None:
		if not self.configured:
			raise MailError("RESEND_API_KEY and AUTH_EMAIL_FROM must be configured")
		payload: Dict[str, Any] = {"from": self.sender, "to": to, "subject": subject, "html": html_body}
		headers = {"Authorization": f"Bearer {self.api_key}", "Content-Type": "application/json"}
		try:
			if self._client is not None:
				resp = await self._client.post(self.base_url, json=payload, headers=headers)
			else:
				async with httpx.AsyncClient(timeout=30) as client:
					resp = await client.post(self.base_url, json=payload, headers=headers)
		except httpx.HTTPError as e:
			raise MailError(f"mail request failed: {e}") from e
		if not 200 <= resp.status_code < 300:
			raise MailError(f"mail API returned {resp.status_code}: {resp.text[:200]}")
		logger.info("Sent %r to %s", subject, to)


def verification_email(name: Optional[str], url: str, ttl_hours: int = 24) -> str:
	safe_url = html.escape(url, quote=True)
	return (
		'<div style="max-width:600px;margin:0 auto;padding:20px;font-family:Arial,sans-serif;">'
		'<h2 style="color:#333;text-align:center;">Verify your e-mail address</h2>'
		f"<p>Hi {html.escape(name or 'there')},</p>"
		"<p>Thanks for signing up for Listen Master. Click the link below to verify your e-mail address:</p>"
		f'<p style="text-align:center;margin:30px 0;"><a href="{safe_url}">Verify e-mail</a></p>'
		"<p>Or paste this link into your browser:</p>"
		f'<p style="word-break:break-all;">{safe_url}</p>'
		f'<p style="color:#666;font-size:14px;">The link expires in {ttl_hours} hours. If you did not sign up, ignore this message.</p>'
		"</div>"
	)


def get_mailer(request: Request) -> ResendMailer:
	return request.app.state.mailer
