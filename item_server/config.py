"""
Item server configuration. Values come from the environment; no secrets in this file.
"""
import os

# Identity provider (GitHub by default): code exchange host and REST API host
OAUTH_PROVIDER_URL = os.environ.get("OAUTH_PROVIDER_URL", "https://github.com").rstrip("/")
OAUTH_API_URL = os.environ.get("OAUTH_API_URL", "https://api.github.com").rstrip("/")

# OAuth application credentials registered with the provider
OAUTH_CLIENT_ID = os.environ.get("OAUTH_CLIENT_ID", "")
OAUTH_CLIENT_SECRET = os.environ.get("OAUTH_CLIENT_SECRET", "")

# Seconds allowed for each outbound call to the provider
OAUTH_HTTP_TIMEOUT = float(os.environ.get("OAUTH_HTTP_TIMEOUT", "10"))

# HS256 secret for signing local tokens. Required at startup.
JWT_SECRET = os.environ.get("ITEMS_JWT_SECRET", "")

# Local token lifetime (seconds). 0 = tokens carry no exp claim.
JWT_EXPIRES = int(os.environ.get("ITEMS_JWT_EXPIRES", "0"))

# Subjects allowed to update and delete items (comma-separated provider user ids)
ADMIN_SUBJECTS = frozenset(
    s.strip() for s in os.environ.get("ITEMS_ADMIN_SUBJECTS", "7690509").split(",") if s.strip()
)

# Document store (SQLite acceptable for development)
DATABASE_URL = os.environ.get("ITEMS_DATABASE_URL", "sqlite:///./items.db")

# Browser origins allowed to call the RPC surface
CORS_ORIGINS = [o.strip() for o in os.environ.get("ITEMS_CORS_ORIGINS", "*").split(",") if o.strip()]
