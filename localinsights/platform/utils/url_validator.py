import time
from typing import Any, Dict, Optional, Tuple
from urllib.parse import urlparse, urlunparse

import httpx


def normalize_url(url: str) -> Tuple[str, bool]:
    """Add a scheme when missing and drop the trailing slash of the path."""
    url = url.strip()
    was_modified = False

    parsed = urlparse(url)
    if not parsed.scheme:
        url = f"https://{url}"
        parsed = urlparse(url)
        was_modified = True

    path = parsed.path.rstrip("/")
    if path != parsed.path:
        was_modified = True

    normalized = urlunparse((parsed.scheme.lower(), parsed.netloc.lower(), path, parsed.params, parsed.query, parsed.fragment))
    if normalized != url:
        was_modified = True

    return normalized, was_modified


def validate_url(url: str) -> Tuple[bool, str, str]:
    if not url or not url.strip():
        return False, "", "URL cannot be empty"

    normalized_url, _ = normalize_url(url)

    try:
        parsed = urlparse(normalized_url)

        if parsed.scheme not in ['http', 'https']:
            return False, normalized_url, f"Invalid URL scheme: {parsed.scheme} (must be http or https)"

        if not parsed.netloc or "." not in parsed.netloc.split(":")[0]:
            return False, normalized_url, "Invalid URL format: missing domain"

        return True, normalized_url, ""

    except ValueError as e:
        return False, normalized_url, f"URL parsing error: {str(e)}"


def extract_domain(url: str) -> str:
    return urlparse(normalize_url(url)[0]).hostname or ""


def check_url_reachability(
    url: str,
    timeout: float = 10.0,
    client: Optional[httpx.Client] = None,
) -> Dict[str, Any]:
    """HEAD the url and report whether it answers with a non-5xx status."""
    start = time.monotonic()
    owns_client = client is None
    client = client or httpx.Client(follow_redirects=True, max_redirects=5)

    try:
        response = client.head(url, timeout=timeout)
        final_url = str(response.url)
        return {
            "is_reachable": 200 <= response.status_code < 500,
            "status_code": response.status_code,
            "redirect_url": final_url if final_url.rstrip("/") != url.rstrip("/") else None,
            "response_time_ms": int((time.monotonic() - start) * 1000),
            "error": None,
        }
    except httpx.TimeoutException:
        error = "Request timed out"
    except httpx.ConnectError as e:
        error = f"Connection failed: {e}"
    except httpx.HTTPError as e:
        error = str(e)
    finally:
        if owns_client:
            client.close()

    return {
        "is_reachable": False,
        "status_code": None,
        "redirect_url": None,
        "response_time_ms": int((time.monotonic() - start) * 1000),
        "error": error,
    }
