from __future__ import annotations
import logging
from urllib.parse import urlsplit

from fastapi import Request

logger = logging.getLogger(__name__)


def origin_from_request(request: Request, public_base_url: str | None = None) -> str:
	"""Best guess of the origin the client used to reach us."""
	if public_base_url:
		return public_base_url.rstrip("/")
	origin = request.headers.get("origin")
	if origin:
		return origin.rstrip("/")
	referer = request.headers.get("referer")
	if referer:
		parts = urlsplit(referer)
		if parts.scheme and parts.netloc:
			return f"{parts.scheme}://{parts.netloc}"
	host = request.headers.get("host")
	if host:
		proto = request.headers.get("x-forwarded-proto") or "http"
		return f"{proto}://{host}"
	url = request.url
	logger.debug("Falling back to request URL for origin: %s", url)
	return f"{url.scheme}://{url.netloc}"
