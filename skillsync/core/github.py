"""GitHub naming utilities."""


def split_full_name(full_name: str) -> tuple[str, str]:
    """Split ``owner/name`` into ``(owner, name)``.

    Raises ValueError if *full_name* is not of that form.
    """
    parts = full_name.strip().strip("/").split("/")
    if len(parts) != 2 or not all(parts):
        raise ValueError(f"cannot parse repository full name: {full_name!r}")
    return parts[0], parts[1]


def full_name_from_api_url(repository_url: str) -> str | None:
    """Extract ``owner/name`` from an API URL like ``.../repos/owner/name``.

    Search results reference repositories only by API URL.
    """
    marker = "/repos/"
    idx = repository_url.find(marker)
    if idx == -1:
        return None
    path = repository_url[idx + len(marker) :].strip("/")
    parts = path.split("/")
    if len(parts) < 2 or not all(parts[:2]):
        return None
    return f"{parts[0]}/{parts[1]}"
