"""Exception hierarchy shared by the data-refresh layer."""


class TradewatchError(Exception):
    """Base class for all tradewatch errors."""


class UpstreamError(TradewatchError):
    """The upstream price API failed (transport error or non-success status)."""


class MalformedPayloadError(UpstreamError):
    """The upstream responded, but the payload is missing or has bad fields."""


class RecommendationServiceError(TradewatchError):
    """The external decision service could not produce an answer."""


class UnknownAssetError(TradewatchError, ValueError):
    """An asset id outside the configured enumeration was requested."""
