"""Version information for meshnotify."""

from importlib.metadata import PackageNotFoundError, version


def get_version() -> str:
    """Installed distribution version, or "unknown" when running from a checkout."""
    try:
        return version("meshnotify")
    except PackageNotFoundError:
        return "unknown"
