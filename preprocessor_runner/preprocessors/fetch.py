import httpx

from preprocessor_runner.preprocessors.exceptions import CollaboratorLoadError


def fetch_text(url: str, *, timeout_seconds: float, client: httpx.Client | None = None) -> str:
    """GET url and return the body as text.

    Raises:
        CollaboratorLoadError: on network failure or a non-2xx response.
    """
    try:
        if client is not None:
            response = client.get(url, timeout=timeout_seconds)
        else:
            response = httpx.get(url, timeout=timeout_seconds, follow_redirects=True)
    except httpx.HTTPError as exc:
        raise CollaboratorLoadError(f"Failed to fetch: {url} ({exc})") from exc

    if not response.is_success:
        raise CollaboratorLoadError(
            f"Failed to fetch: {url} ({response.status_code} {response.reason_phrase})"
        )
    return response.text
