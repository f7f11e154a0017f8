"""HTTP middleware for the FastAPI app.

Handlers are plain functions of ``(RequestContext, Settings)``; the
`MiddlewareChain` runs them in order:

	from middleware import MiddlewareChain, default_handlers
	app.add_middleware(MiddlewareChain, settings=settings, handlers=default_handlers())
"""

from .chain import MiddlewareChain
from .context import RequestContext
from .handlers import (
	Handler,
	default_handlers,
	force_domain_ssl,
	is_app_domain_on_production,
	is_non_secure_public_domain_on_production,
	security_headers,
	skip_map,
	unless,
	whitelist_ip,
)

__all__ = [
	"MiddlewareChain",
	"RequestContext",
	"Handler",
	"default_handlers",
	"force_domain_ssl",
	"is_app_domain_on_production",
	"is_non_secure_public_domain_on_production",
	"security_headers",
	"skip_map",
	"unless",
	"whitelist_ip",
]
