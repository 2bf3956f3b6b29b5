import re
import secrets

# 32 random bytes -> 43 url-safe characters
SHARE_TOKEN_BYTES = 32

TOKEN_RE = re.compile(r"^[A-Za-z0-9_-]{16,80}$")


def generate_share_token() -> str:
    return secrets.token_urlsafe(SHARE_TOKEN_BYTES)


def looks_like_token(token: str) -> bool:
    return bool(TOKEN_RE.match(token or ""))
