"""Application settings and configuration.

This module defines all configuration options for the comments add-on.
Settings are loaded from environment variables with sensible defaults.
"""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    Settings can be overridden via environment variables or .env files.
    """

    # Application metadata
    app_name: str = Field(default="Distributor Comments", alias="APP_NAME")
    app_version: str = Field(default="1.0.0", alias="APP_VERSION")
    debug: bool = Field(default=False, alias="DEBUG")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    # Database configuration
    database_url: str = Field(
        default="sqlite:///./distributor_comments.db",
        alias="DATABASE_URL",
    )
    test_database_url: str | None = Field(default=None, alias="TEST_DATABASE_URL")
    use_testing_database: bool = Field(default=False, alias="USE_TEST_DATABASE")
    sql_debug: bool = Field(default=False, alias="SQL_DEBUG")

    # Routing of the destination endpoints
    api_prefix: str = Field(default="/wp/v2", alias="API_PREFIX")
    comments_route: str = Field(default="/distributor/comments", alias="COMMENTS_ROUTE")

    # Hub side pushes
    push_timeout_seconds: float = Field(default=60.0, alias="PUSH_TIMEOUT_SECONDS")
    dispatch_max_concurrency: int = Field(default=4, ge=1, alias="DISPATCH_MAX_CONCURRENCY")

    # Destination side apply
    comment_meta_denylist: list[str] = Field(default=[], alias="COMMENT_META_DENYLIST")

    model_config = SettingsConfigDict(
        env_file=".env",
        validate_assignment=True,
        extra="ignore",
    )

    @property
    def effective_database_url(self) -> str:
        """Return the database URL respecting testing overrides."""
        if self.use_testing_database and self.test_database_url:
            return self.test_database_url
        return self.database_url

    @property
    def database_url_sync(self) -> str:
        """Return a sync-compatible database URL for tooling such as Alembic."""
        url = self.effective_database_url
        if url.startswith("postgresql+asyncpg"):
            return url.replace("postgresql+asyncpg", "postgresql+psycopg", 1)
        return url

    @property
    def comments_path(self) -> str:
        """Path of the comments endpoints relative to a site's API root.

        Returns:
            The joined prefix without leading or trailing slashes, e.g.
            ``wp/v2/distributor/comments``.
        """
        return "/".join(
            part.strip("/") for part in (self.api_prefix, self.comments_route) if part.strip("/")
        )


settings = Settings()
