from urllib.parse import urlsplit


ALLOWED_REDIRECT_SCHEMES = {"http", "https"}


def is_safe_origin(url: str | None) -> bool:
    """Allow only absolute HTTP(S) origins without embedded user credentials."""
    if not url:
        return False
    parts = urlsplit(url.strip())
    if parts.scheme not in ALLOWED_REDIRECT_SCHEMES or not parts.netloc:
        return False
    if parts.username or parts.password:
        return False
    return True


def join_url(base: str, path: str) -> str:
    return f"{base.strip().rstrip('/')}/{path.lstrip('/')}"


def resolve_redirect_base(origin: str | None, fallback: str) -> str:
    """Pick the request origin for post-payment redirects, or the configured frontend."""
    if is_safe_origin(origin):
        return origin.strip()
    return fallback
