"""
Configuration management for Intent Attest.
"""

from functools import lru_cache
from typing import Dict, List, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


def parse_csv(raw: Optional[str]) -> List[str]:
    """
    Parse a comma-separated settings value into a list.

    - Strips whitespace from each item
    - Filters out empty strings
    - Returns empty list if input is empty/whitespace

    Examples:
        "moon,100x" -> ["moon", "100x"]
        "  a , b  " -> ["a", "b"]
        "" -> []
    """
    if not raw or not raw.strip():
        return []

    items = [item.strip() for item in raw.split(",")]
    return [i for i in items if i]


DEFAULT_FORBIDDEN_CLAIMS = (
    "guaranteed returns,guaranteed profit,airdrop guaranteed,price will,"
    "100x,moon,financial advice,investment advice"
)

DEFAULT_DAPP_LINKS: Dict[str, str] = {
    "arcflow": "https://arcflow.finance",
    "arc_network": "https://arc.io",
    "arc_bridge": "https://bridge.arc.io",
    "arc_swap": "https://swap.arc.io",
}


class Settings(BaseSettings):
    """Application settings."""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")

    # Application
    app_name: str = Field(default="Intent Attest")
    debug: bool = Field(default=False)
    environment: str = Field(default="development")

    # API
    api_host: str = Field(default="0.0.0.0")
    api_port: int = Field(default=8000)
    api_workers: int = Field(default=1)
    cors_allow_origins: str = Field(default="*")

    # Database
    database_url: str = Field(default="sqlite:///./intent_attest.db")
    store_timeout_seconds: int = Field(default=10, ge=1, le=300)

    # Logging
    log_level: str = Field(default="INFO")
    log_format: str = Field(default="json")

    # Sign-In With Ethereum
    siwe_domain: str = Field(default="intent.arc.io")
    siwe_uri: str = Field(default="https://intent.arc.io")
    siwe_chain_id: int = Field(default=5042002)
    siwe_statement: str = Field(
        default="Sign this message to authenticate with INTENT."
    )
    siwe_expiration_minutes: int = Field(default=60, ge=1)

    # Sharing
    public_base_url: str = Field(default="https://intent.arc.io")

    # Content policy
    content_forbidden_claims: str = Field(
        default=DEFAULT_FORBIDDEN_CLAIMS,
        description="Comma-separated forbidden claims, scanned in order.",
    )
    content_mandatory_mentions: str = Field(default="@ArcFlowFinance")
    content_mandatory_hashtags: str = Field(default="#ArcNetwork")
    content_max_caption_length: int = Field(default=280, ge=1)


@lru_cache
def get_settings() -> Settings:
    """Get application settings."""
    return Settings()
