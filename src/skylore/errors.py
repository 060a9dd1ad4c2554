"""Error taxonomy shared by the loading and resolution layers."""


class SkyLoreError(Exception):
    """Base class for all SkyLore failures."""


class DataLoadError(SkyLoreError):
    """A bundled dataset could not be fetched or parsed. Fatal to initialization."""


class CatalogResolutionError(SkyLoreError):
    """Remote catalog lookup failed: transport, table schema, or unresolved ids."""

    def __init__(self, message: str, missing: frozenset[str] = frozenset()) -> None:
        super().__init__(message)
        self.missing = missing


class ConfigurationError(SkyLoreError):
    """Setup defect, e.g. the fallback locality has no coordinates."""
