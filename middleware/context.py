"""Request snapshot handed to each middleware handler.

Handlers only read from the request; anything they want on the outgoing
response goes into `response_headers`, which the chain applies to whichever
response ends up being returned.
"""
from dataclasses import dataclass, field
from typing import Dict, Optional

from starlette.requests import Request

FORWARDED_PROTO_HEADER = "x-forwarded-proto"
FORWARDED_IP_HEADER = "x-forwarded-for"


@dataclass
class RequestContext:
	path: str
	original_url: str
	host: Optional[str] = None
	scheme: str = "http"
	forwarded_proto: Optional[str] = None
	forwarded_for: Optional[str] = None
	client_ip: Optional[str] = None
	response_headers: Dict[str, str] = field(default_factory=dict)

	@classmethod
	def from_request(cls, request: Request) -> "RequestContext":
		url = request.url
		original_url = url.path + (f"?{url.query}" if url.query else "")
		return cls(
			path=url.path,
			original_url=original_url,
			host=request.headers.get("host"),
			scheme=url.scheme,
			forwarded_proto=request.headers.get(FORWARDED_PROTO_HEADER),
			forwarded_for=request.headers.get(FORWARDED_IP_HEADER),
			client_ip=request.client.host if request.client else None,
		)

	@property
	def is_secure(self) -> bool:
		"""HTTPS as seen by the client: the proxy's header wins over our own scheme."""
		if self.forwarded_proto:
			return self.forwarded_proto.split(",")[0].strip().lower() == "https"
		return self.scheme == "https"

	@property
	def ip(self) -> Optional[str]:
		"""Right-most forwarded address (added by the platform router), else the peer."""
		if self.forwarded_for:
			hops = [hop.strip() for hop in self.forwarded_for.split(",") if hop.strip()]
			if hops:
				return hops[-1]
		return self.client_ip
