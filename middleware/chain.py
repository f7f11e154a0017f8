from typing import Optional, Sequence

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response
from starlette.types import ASGIApp

from config import Settings
from .context import RequestContext
from .handlers import Handler, default_handlers


class MiddlewareChain(BaseHTTPMiddleware):
	"""Run `handlers` in order in front of the app.

	The first handler to return a response ends the request. Headers queued
	on the context are applied to the response that goes out, whether it
	came from a handler or from the app.

		app.add_middleware(MiddlewareChain, settings=settings)
	"""

	def __init__(self, app: ASGIApp, settings: Settings, handlers: Optional[Sequence[Handler]] = None):
		super().__init__(app)
		self.settings = settings
		self.handlers = list(handlers) if handlers is not None else default_handlers()

	def run_handlers(self, ctx: RequestContext) -> Optional[Response]:
		for handler in self.handlers:
			response = handler(ctx, self.settings)
			if response is not None:
				return response
		return None

	async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
		ctx = RequestContext.from_request(request)
		response = self.run_handlers(ctx)
		if response is None:
			response = await call_next(request)
		for key, value in ctx.response_headers.items():
			response.headers[key] = value
		return response
