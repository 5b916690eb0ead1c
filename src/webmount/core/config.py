from typing import Literal

from pydantic import ConfigDict
from pydantic_settings import BaseSettings


class Env(BaseSettings):
    # Listener
    HOST: str = "0.0.0.0"
    PORT: int = 13337
    # One port per process when several instances share a host
    INSTANCE_PORT_OFFSET: bool = False
    APP_INSTANCE: int | None = None
    TRUST_PROXY: bool = True

    # Request handling
    MAX_BODY_SIZE_BYTES: int = 10 * 1024 * 1024  # 10 MiB
    COMPRESSION_ENABLED: bool = True
    COMPRESSION_MINIMUM_SIZE: int = 500
    RESPONSE_TIME_ENABLED: bool = True
    METHOD_OVERRIDE_ENABLED: bool = True

    # Cookies
    COOKIE_SECRET: str = "webmount-secret"
    COOKIE_DOMAIN: str = ""

    # Sessions
    SESSION_ENABLED: bool = True
    SESSION_NAME: str = "webmount"
    SESSION_SECRET: str = "webmount-secret"
    SESSION_RESAVE: bool = True
    SESSION_SAVE_UNINITIALIZED: bool = True
    SESSION_COOKIE_DOMAIN: str = ""
    SESSION_COOKIE_SECURE: bool = False
    SESSION_TTL_SECONDS: int = 86400

    # Session store (redis)
    SESSION_STORE_PREFIX: str = "webmount-session_"
    SESSION_STORE_HOST: str = "localhost"
    SESSION_STORE_PORT: int = 6379
    SESSION_STORE_PASSWORD: str | None = None
    SESSION_STORE_DB: int = 0
    SESSION_STORE_RETRY_DELAY_SECONDS: float = 1.0
    # Upper bound for a single store command, reconnect attempts included
    SESSION_STORE_TIMEOUT_SECONDS: float = 2.0

    # CORS, None allows any origin without credentials
    CORS_ORIGINS: list[str] | None = None
    CORS_METHODS: list[str] = ["GET", "POST", "OPTIONS"]
    CORS_ALLOWED_HEADERS: list[str] = [
        "Cookie",
        "Language",
        "Filter",
        "Accept",
        "Content-Type",
        "Authorization",
        "Content-Length",
        "X-Auth-Token",
    ]
    CORS_EXPOSED_HEADERS: list[str] = ["Set-Cookie", "X-Response-Time"]

    # "reapply" mounts the whole middleware queue on every mount cycle,
    # "once" consumes it like the route queue
    MIDDLEWARE_MOUNT_POLICY: Literal["reapply", "once"] = "reapply"

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_FILE: str | None = None
    LOG_ROTATION: str = "500 MB"
    LOG_COMPRESSION: str = "zip"

    model_config = ConfigDict(env_file=".env", extra="ignore")

    @property
    def listen_port(self) -> int:
        """
        Port the listener binds to.
        With INSTANCE_PORT_OFFSET set, each instance listens on PORT + APP_INSTANCE.
        """
        if self.INSTANCE_PORT_OFFSET and self.APP_INSTANCE is not None:
            return self.PORT + self.APP_INSTANCE
        return self.PORT

    @property
    def session_store_options(self) -> dict:
        """
        Connection parameters for the session store.
        An empty password is left out so the client does not send AUTH.
        """
        options = {
            "host": self.SESSION_STORE_HOST,
            "port": self.SESSION_STORE_PORT,
            "db": self.SESSION_STORE_DB,
        }
        if self.SESSION_STORE_PASSWORD:
            options["password"] = self.SESSION_STORE_PASSWORD
        return options


env = Env()
