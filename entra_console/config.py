import os
from dotenv import load_dotenv

load_dotenv()


class Config:
    # Azure AD app registration used by the console
    CLIENT_ID = os.getenv("AZ_CLIENT_ID", "your-client-id-here")
    CLIENT_SECRET = os.getenv("AZ_CLIENT_SECRET", "your-client-secret-here")
    TENANT_ID = os.getenv("AZ_TENANT_ID", "your-tenant-id-here")
    REDIRECT_URI = os.getenv("REDIRECT_URI", "http://localhost:8000/callback")
    POST_LOGOUT_REDIRECT_URI = os.getenv(
        "POST_LOGOUT_REDIRECT_URI", "http://localhost:8000/"
    )

    # Delegated scopes the administrator signs in with
    SCOPES = [
        "https://graph.microsoft.com/Application.ReadWrite.All",
        "https://graph.microsoft.com/Directory.ReadWrite.All",
        "https://graph.microsoft.com/User.Read.All",
        "https://graph.microsoft.com/AppRoleAssignment.ReadWrite.All",
        "https://graph.microsoft.com/DelegatedPermissionGrant.ReadWrite.All",
    ]

    AUTHORITY = f"https://login.microsoftonline.com/{TENANT_ID}"

    GRAPH_BASE = os.getenv("GRAPH_BASE", "https://graph.microsoft.com/v1.0")
    REQUEST_TIMEOUT = int(os.getenv("GRAPH_TIMEOUT", "120"))

    # Token storage
    TOKEN_FILE = os.getenv("TOKEN_FILE", "tokens.json")

    # Server configuration
    SESSION_SECRET = os.getenv("SESSION_SECRET", "change-me")
    HOST = os.getenv("HOST", "localhost")
    PORT = int(os.getenv("PORT", "8000"))

    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")


config = Config()
