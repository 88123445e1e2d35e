"""
Pytest configuration for item_server. In-memory SQLite and fixed secrets, set before the app is imported.
"""
import os

# In-memory SQLite; database.py uses StaticPool so all connections share the same DB
os.environ["ITEMS_DATABASE_URL"] = "sqlite:///:memory:"
os.environ["ITEMS_JWT_SECRET"] = "test-signing-secret-that-is-long-enough-for-hs256"
os.environ["ITEMS_JWT_EXPIRES"] = "0"
os.environ["ITEMS_ADMIN_SUBJECTS"] = "7690509"
os.environ["OAUTH_CLIENT_ID"] = "test-client-id"
os.environ["OAUTH_CLIENT_SECRET"] = "test-client-secret"
