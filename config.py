"""Runtime configuration.

Settings are read once at startup by `load_settings()` and passed explicitly
to the Redis factory and the middleware chain. Values come from the process
environment, optionally seeded from a `.env` file next to the project.
"""
import os
from pathlib import Path
from typing import Mapping, Optional

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict

ENV_PATH = Path(__file__).parent / ".env"

DEFAULT_REDIS_URL = "redis://localhost:6379/0"

# Runtime modes understood by the HTTPS middleware. Anything else passes through.
MODE_LOCAL = "local"
MODE_REVIEW = "review"
MODE_STAGING = "staging"
MODE_PRODUCTION = "production"


class Settings(BaseModel):
	model_config = ConfigDict(frozen=True)

	redis_url: str = DEFAULT_REDIS_URL
	redis_password: Optional[str] = None
	redis_ca: Optional[str] = None  # PEM data, not a path
	redis_certfile: Optional[str] = None
	redis_keyfile: Optional[str] = None

	app_domain: Optional[str] = None
	public_domain: Optional[str] = None
	runtime_mode: str = MODE_LOCAL
	whitelist_ip: Optional[str] = None

	log_level: str = "INFO"

	@property
	def tls_enabled(self) -> bool:
		return bool(self.redis_ca)

	@property
	def whitelist(self) -> list[str]:
		"""Whitelisted IPs, empty when access is unrestricted."""
		if not self.whitelist_ip:
			return []
		return [ip.strip() for ip in self.whitelist_ip.split(",") if ip.strip()]


def _clean(value: Optional[str]) -> Optional[str]:
	if value is None:
		return None
	value = value.strip()
	return value or None


def load_settings(env: Optional[Mapping[str, str]] = None, dotenv_path: Optional[Path] = None) -> Settings:
	"""Build `Settings` from `env` (defaults to `os.environ`).

	When reading the real environment, a `.env` file is loaded first without
	overriding variables that are already set.
	"""
	if env is None:
		load_dotenv(dotenv_path or ENV_PATH, override=False)
		env = os.environ

	mode = _clean(env.get("APP_ENV")) or _clean(env.get("NODE_ENV")) or MODE_LOCAL

	return Settings(
		redis_url=_clean(env.get("REDIS_URL")) or DEFAULT_REDIS_URL,
		redis_password=_clean(env.get("REDIS_PASSWORD")),
		redis_ca=_clean(env.get("REDIS_CA")),
		redis_certfile=_clean(env.get("REDIS_CERTFILE")),
		redis_keyfile=_clean(env.get("REDIS_KEYFILE")),
		app_domain=_clean(env.get("APP_DOMAIN")),
		public_domain=_clean(env.get("PUBLIC_DOMAIN")),
		runtime_mode=mode.lower(),
		whitelist_ip=_clean(env.get("WHITELIST_IP")),
		log_level=(_clean(env.get("LOG_LEVEL")) or "INFO").upper(),
	)
