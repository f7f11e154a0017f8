"""Request handlers run by `MiddlewareChain`.

Every handler has the signature ``handler(ctx, settings) -> Optional[Response]``.
Returning a response ends the chain; returning ``None`` hands the request on.
"""
import logging
import re
from typing import Callable, Optional, Sequence

from starlette.responses import PlainTextResponse, RedirectResponse, Response

from config import MODE_PRODUCTION, MODE_REVIEW, MODE_STAGING, Settings
from .context import RequestContext

logger = logging.getLogger(__name__)

Handler = Callable[[RequestContext, Settings], Optional[Response]]

SOURCEMAP_RE = re.compile(r"\.map$", re.IGNORECASE)
FORBIDDEN_MESSAGE = "Forbidden: Access is denied."


def is_app_domain_on_production(ctx: RequestContext, settings: Settings) -> bool:
	"""True if the platform's default app domain was requested."""
	return bool(settings.app_domain) and bool(settings.public_domain) and ctx.host == settings.app_domain


def is_non_secure_public_domain_on_production(ctx: RequestContext, settings: Settings) -> bool:
	"""True if the public domain was requested over plain HTTP."""
	return bool(settings.public_domain) and ctx.host == settings.public_domain and not ctx.is_secure


def _redirect(host: Optional[str], ctx: RequestContext) -> RedirectResponse:
	return RedirectResponse(f"https://{host}{ctx.original_url}", status_code=302)


def force_domain_ssl(ctx: RequestContext, settings: Settings) -> Optional[Response]:
	"""Force HTTPS on review, staging and production."""
	mode = settings.runtime_mode

	if mode in (MODE_REVIEW, MODE_STAGING):
		if not ctx.is_secure and ctx.host:
			return _redirect(ctx.host, ctx)
		return None

	if mode == MODE_PRODUCTION:
		if is_app_domain_on_production(ctx, settings):
			return _redirect(settings.public_domain, ctx)
		if is_non_secure_public_domain_on_production(ctx, settings):
			logger.info("Insecure request to %s", settings.public_domain)
			return _redirect(ctx.host, ctx)
		return None

	# local and unrecognized modes
	return None


def unless(handler: Handler, *paths: str) -> Handler:
	"""Skip `handler` for requests whose path is exactly one of `paths`.

		chain = [unless(force_domain_ssl, "/health", "/user/login")]
	"""
	excluded = frozenset(paths)

	def wrapper(ctx: RequestContext, settings: Settings) -> Optional[Response]:
		if ctx.path in excluded:
			return None
		return handler(ctx, settings)

	wrapper.__name__ = f"unless_{getattr(handler, '__name__', 'handler')}"
	return wrapper


def security_headers(ctx: RequestContext, settings: Settings) -> Optional[Response]:
	ctx.response_headers["X-XSS-Protection"] = "1; mode=block"
	return None


def skip_map(ctx: RequestContext, settings: Settings) -> Optional[Response]:
	"""Answer requests for `.map` files with an empty body.

	Don't use this if the app actually serves sourcemaps for its bundles.
	"""
	if SOURCEMAP_RE.search(ctx.path):
		return Response(content=b"", status_code=200)
	return None


def whitelist_ip(ctx: RequestContext, settings: Settings) -> Optional[Response]:
	"""Restrict access to the comma-separated IPs in `WHITELIST_IP`."""
	allowed = settings.whitelist
	if not allowed:
		return None
	request_ip = ctx.ip
	if request_ip in allowed:
		return None
	logger.warning("Rejected request from %s to %s", request_ip, ctx.path)
	return PlainTextResponse(FORBIDDEN_MESSAGE, status_code=403)


def default_handlers(exclude: Sequence[str] = ()) -> list[Handler]:
	"""Standard handler order used by the application.

	Paths in `exclude` skip the HTTPS redirect and the IP whitelist.
	"""
	redirect, whitelist = force_domain_ssl, whitelist_ip
	if exclude:
		redirect, whitelist = unless(redirect, *exclude), unless(whitelist, *exclude)
	return [security_headers, skip_map, redirect, whitelist]


__all__ = [
	"Handler",
	"is_app_domain_on_production",
	"is_non_secure_public_domain_on_production",
	"force_domain_ssl",
	"unless",
	"security_headers",
	"skip_map",
	"whitelist_ip",
	"default_handlers",
]
