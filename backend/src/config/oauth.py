"""
OAuth application settings for the ad platforms.

Values are read from the environment each time a config is built so that
tests and deployments can change them without reloading modules.
"""

import os
from dataclasses import dataclass, field
from typing import List

DEFAULT_APP_URL = "http://localhost:3000"

GOOGLE_AUTHORIZE_URL = "https://accounts.google.com/o/oauth2/v2/auth"
GOOGLE_TOKEN_URL = "https://oauth2.googleapis.com/token"
GOOGLE_ADS_API_VERSION = "v16"
GOOGLE_ADS_CUSTOMERS_URL = (
    f"https://googleads.googleapis.com/{GOOGLE_ADS_API_VERSION}/customers:listAccessibleCustomers"
)

META_GRAPH_VERSION = "v18.0"
META_AUTHORIZE_URL = f"https://www.facebook.com/{META_GRAPH_VERSION}/dialog/oauth"
META_TOKEN_URL = f"https://graph.facebook.com/{META_GRAPH_VERSION}/oauth/access_token"
META_AD_ACCOUNTS_URL = f"https://graph.facebook.com/{META_GRAPH_VERSION}/me/adaccounts"

# Cookie lifetime for the pending OAuth flow (seconds)
OAUTH_COOKIE_MAX_AGE = 60 * 5


def get_app_url() -> str:
    return os.getenv("APP_URL", DEFAULT_APP_URL).rstrip("/")


def is_production() -> bool:
    return os.getenv("ENV", "development").lower() == "production"


@dataclass
class OAuthProviderConfig:
    """Client credentials and endpoints of one OAuth provider."""
    name: str
    client_id: str
    client_secret: str
    redirect_uri: str
    authorize_url: str
    token_url: str
    scopes: List[str] = field(default_factory=list)

    @property
    def is_configured(self) -> bool:
        return bool(self.client_id and self.client_secret)


def google_ads_oauth_config() -> OAuthProviderConfig:
    return OAuthProviderConfig(
        name="google",
        client_id=os.getenv("GOOGLE_ADS_CLIENT_ID", ""),
        client_secret=os.getenv("GOOGLE_ADS_CLIENT_SECRET", ""),
        redirect_uri=f"{get_app_url()}/api/auth/google/callback",
        authorize_url=GOOGLE_AUTHORIZE_URL,
        token_url=GOOGLE_TOKEN_URL,
        scopes=[
            "https://www.googleapis.com/auth/adwords",
            "https://www.googleapis.com/auth/userinfo.email",
        ],
    )


def meta_ads_oauth_config() -> OAuthProviderConfig:
    return OAuthProviderConfig(
        name="meta",
        client_id=os.getenv("META_ADS_CLIENT_ID", ""),
        client_secret=os.getenv("META_ADS_CLIENT_SECRET", ""),
        redirect_uri=f"{get_app_url()}/api/auth/meta/callback",
        authorize_url=META_AUTHORIZE_URL,
        token_url=META_TOKEN_URL,
        scopes=["ads_management", "ads_read", "email"],
    )
