"""
Configuration Module for the Pod Access Service

This module defines the configuration system for the pod, using Pydantic settings for
validation and typed aiohttp AppKeys for dependency injection.

The Settings class is loaded from environment variables with defaults suitable for
development. Application components reach settings and shared resources (database
session factory, HTTP client session, metrics client, media store, federation handshake)
through the AppKeys declared at the bottom of this module.

Key configuration areas include:
- Service identification and networking
- Database connection
- Token lifetimes and password hashing cost
- Listing defaults
- Federation with peer pods
- Monitoring and error reporting
"""

import asyncio
import logging
from typing import Annotated, Final, List, Optional

from aiohttp import ClientSession, web
from pydantic import AliasChoices, Field, field_validator
from pydantic_settings import BaseSettings, NoDecode
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from social.tube.pod.app.health import HealthGauge
from social.tube.pod.app.metrics import MetricsClient
from social.tube.pod.federation.handshake import PeerHandshake
from social.tube.pod.library.media import MediaStore

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    """
    Application settings for the pod.

    Environment variables are mapped to fields automatically; aliases are provided where
    deployments commonly use a different name (for example DATABASE_URL).
    """

    # Environment and debugging settings
    debug: bool = False
    """
    Enable debug mode. Internal error responses include the exception type.
    Set with DEBUG=true environment variable.
    """

    # Network and service identification settings
    http_port: int = Field(alias="port", default=9000)
    """
    HTTP port for the service to listen on.
    Set with PORT environment variable.
    """

    external_hostname: str = "http://localhost:9000"
    """
    Public address of this pod, announced to peers and embedded in video listings.
    Set with EXTERNAL_HOSTNAME environment variable.
    """

    # Database settings
    database_dsn: str = Field(
        "postgresql+asyncpg://postgres:password@db/pod",
        validation_alias=AliasChoices("database_dsn", "database_url"),
    )
    """
    SQLAlchemy async connection string.
    Set with DATABASE_DSN or DATABASE_URL environment variables.
    """

    create_schema: bool = False
    """
    Create missing tables on startup. Intended for development and tests; production
    schemas are managed with Alembic.
    """

    # Monitoring and error reporting
    sentry_dsn: Optional[str] = None
    """
    Sentry DSN for error reporting. No error reporting if not set.
    Set with SENTRY_DSN environment variable.
    """

    metrics_backend: str = "telegraf"
    """
    Metrics backend, either "telegraf" or "none".
    Set with METRICS_BACKEND environment variable.
    """

    statsd_host: str = Field(alias="TELEGRAF_HOST", default="telegraf")
    statsd_port: int = Field(alias="TELEGRAF_PORT", default=8125)
    statsd_prefix: str = "pod"

    # Token settings
    access_token_expiry: int = 3600  # 1 hour
    """
    Lifetime in seconds of access tokens.
    Set with ACCESS_TOKEN_EXPIRY environment variable.
    """

    refresh_token_expiry: int = 1209600  # 14 days
    """
    Lifetime in seconds of refresh tokens.
    Set with REFRESH_TOKEN_EXPIRY environment variable.
    """

    token_sweep_interval: int = 300
    """
    Seconds between purges of expired and revoked tokens.
    """

    password_hash_iterations: int = 260000
    """
    PBKDF2 iteration count for newly hashed passwords. Existing hashes keep the count
    they were created with.
    """

    # Listing settings
    default_page_size: int = 15
    max_page_size: int = 100

    # Media settings
    uploads_dir: str = "uploads"
    """
    Directory the default media store writes uploaded video files to.
    """

    # Federation settings
    known_pods: Annotated[List[str], NoDecode] = list()
    """
    Comma-separated peer addresses used by make-friends when no addresses are given.
    Set with KNOWN_PODS environment variable.
    """

    federation_requires_admin: bool = False
    """
    Require the admin role (not just a valid token) to make or quit friends.
    """

    federation_handshake_timeout: float = 10.0

    @field_validator("known_pods", mode="before")
    @classmethod
    def decode_known_pods(cls, v) -> List[str]:
        """
        Accept either a list of addresses or a comma-separated string.
        """
        if isinstance(v, list):
            return v
        if isinstance(v, str):
            return [item.strip() for item in v.split(",") if item.strip()]
        raise ValueError("known_pods must be a list or a comma-separated string")

    @field_validator("metrics_backend")
    @classmethod
    def check_metrics_backend(cls, v: str) -> str:
        v = v.lower()
        if v not in ("telegraf", "none"):
            raise ValueError("metrics_backend must be 'telegraf' or 'none'")
        return v


# Application context keys for dependency injection
SettingsAppKey: Final = web.AppKey("settings", Settings)
"""AppKey for accessing the application settings"""

DatabaseAppKey: Final = web.AppKey("database", AsyncEngine)
"""AppKey for accessing the SQLAlchemy async database engine"""

DatabaseSessionMakerAppKey: Final = web.AppKey(
    "database_session_maker", async_sessionmaker[AsyncSession]
)
"""AppKey for accessing the SQLAlchemy async session factory"""

SessionAppKey: Final = web.AppKey("http_session", ClientSession)
"""AppKey for accessing the shared aiohttp client session"""

HealthGaugeAppKey: Final = web.AppKey("health_gauge", HealthGauge)
"""AppKey for accessing the health monitoring gauge"""

MetricsClientAppKey: Final = web.AppKey("metrics_client", MetricsClient)
"""AppKey for accessing the metrics client"""

MediaStoreAppKey: Final = web.AppKey("media_store", MediaStore)
"""AppKey for accessing the store that holds uploaded video files"""

PeerHandshakeAppKey: Final = web.AppKey("peer_handshake", PeerHandshake)
"""AppKey for accessing the transport used to contact peer pods"""

TickHealthTaskAppKey: Final = web.AppKey("tick_health_task", asyncio.Task[None])
"""AppKey for the background task that decays the health gauge"""

TokenSweepTaskAppKey: Final = web.AppKey("token_sweep_task", asyncio.Task[None])
"""AppKey for the background task that purges expired tokens"""
