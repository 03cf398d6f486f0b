import os
import tempfile
from pathlib import Path

import requests

# The lookup pages reject obvious non-browser clients.
HEADERS = {
    "User-Agent": (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/91.0.4472.124 Safari/537.36"
    )
}

LOOKUP_BASE_URL = "https://finance.yahoo.com/lookup/"
PAGE_SIZE = 5000


class FetchError(requests.RequestException):
    """A listing or snapshot could not be retrieved (transport error or non-2xx status)."""


def build_listing_url(sector: str, prefix: str) -> str:
    """
    Builds the lookup URL for one (sector, prefix) page.
    """
    return f"{LOOKUP_BASE_URL}{sector}?s={prefix}&t=A&b=0&c={PAGE_SIZE}"


def fetch_listing(sector: str, prefix: str, session=None, timeout=None) -> str:
    """
    Downloads one page of the symbol lookup listing.

    A single large page is requested per prefix instead of following the
    offset-based pagination.

    Args:
        sector: Lookup sector path segment (e.g. "equity", "etf").
        prefix: Search prefix, usually one alphanumeric character.
        session: Optional requests.Session to reuse connections.
        timeout: Optional request timeout in seconds, passed to requests.

    Returns:
        The raw HTML document.

    Raises:
        FetchError: On any transport failure or non-2xx response.
    """
    http = session or requests
    url = build_listing_url(sector, prefix)
    try:
        response = http.get(url, headers=HEADERS, timeout=timeout)
        response.raise_for_status()
    except requests.RequestException as exc:
        raise FetchError(f"Failed to fetch {sector}/{prefix} listing: {exc}") from exc
    return response.text


def download_file(url: str, path, session=None, timeout=None) -> Path:
    """
    Streams a remote file to ``path`` byte-for-byte.

    The body is written to a temporary file next to the target and renamed into
    place, so a failed download never leaves a truncated file at ``path``.

    Raises:
        FetchError: On any transport failure or non-2xx response.
    """
    path = Path(path)
    http = session or requests
    path.parent.mkdir(parents=True, exist_ok=True)

    fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", dir=path.parent)
    try:
        with os.fdopen(fd, "wb") as tmp_file:
            try:
                response = http.get(url, headers=HEADERS, stream=True, timeout=timeout)
                try:
                    response.raise_for_status()
                    for chunk in response.iter_content(chunk_size=1 << 16):
                        if chunk:
                            tmp_file.write(chunk)
                finally:
                    response.close()
            except requests.RequestException as exc:
                raise FetchError(f"Failed to download {url}: {exc}") from exc
        os.replace(tmp_name, path)
    except BaseException:
        if os.path.exists(tmp_name):
            os.remove(tmp_name)
        raise

    return path


if __name__ == "__main__":
    print("--- Testing listing_downloader.py ---")

    print("\n[Test 1] Fetching equity listing for prefix 'A'...")
    html = fetch_listing("equity", "A")
    print(f"Received {len(html)} characters of markup.")
    print("[Test 1] Passed.")

    print("\n--- All tests complete. ---")
