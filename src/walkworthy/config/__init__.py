from .settings import DEFAULT_EXCLUDED_REFS, Settings, get_settings, parse_excluded_refs

__all__ = ["DEFAULT_EXCLUDED_REFS", "Settings", "get_settings", "parse_excluded_refs"]
