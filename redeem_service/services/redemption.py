"""
Redemption service that orchestrates assets, the code ledger and tokens.

Main entry point for the redeem and download flows.
"""
from dataclasses import dataclass
from typing import Optional

from .assets import Asset, AssetStore, get_asset_store
from .ledger import CodeLedger, get_code_ledger
from .tokens import AccessToken, TokenStore, get_token_store


class MissingParameterError(Exception):
    """Raised when a required request parameter is empty."""
    error_code = "BAD_REQUEST"


@dataclass
class RedeemResult:
    """Result of a successful redemption."""
    token: AccessToken
    asset: Asset
    ttl_seconds: int


class RedemptionService:
    """
    Service for exchanging redemption codes for download tokens.

    Orchestrates:
    - Asset resolution (basename only)
    - Code consumption (ledger)
    - Token issuance and consumption

    Both flows are synchronous; the ledger does blocking file I/O, so async
    callers should run them in a worker thread.
    """

    def __init__(
        self,
        ledger: CodeLedger = None,
        tokens: TokenStore = None,
        assets: AssetStore = None,
    ):
        self._ledger = ledger if ledger is not None else get_code_ledger()
        self._tokens = tokens if tokens is not None else get_token_store()
        self._assets = assets if assets is not None else get_asset_store()

    def redeem(self, code: Optional[str], asset_name: Optional[str]) -> RedeemResult:
        """
        Exchange a redemption code for a token bound to an asset.

        The asset is checked before the ledger is consulted, and a token is
        only issued once the ledger has durably recorded the redemption.

        Raises:
            MissingParameterError: code or asset empty
            InvalidAssetNameError / AssetNotFoundError: asset unusable
            CodeNotFoundError / CodeAlreadyUsedError: code rejected
            LedgerPersistenceError: ledger could not be written
        """
        if not code or not asset_name:
            raise MissingParameterError("Both code and asset are required")

        asset = self._assets.resolve(asset_name)
        self._ledger.redeem(code, asset.name)
        token = self._tokens.issue(asset.name)

        return RedeemResult(token=token, asset=asset, ttl_seconds=self._tokens.default_ttl)

    def authorize_download(self, token: Optional[str], asset_name: Optional[str]) -> Asset:
        """
        Consume a token for an asset and return the asset to stream.

        A missing asset is reported before the token is touched, so it never
        burns a valid token.

        Raises:
            MissingParameterError: token or asset empty
            InvalidAssetNameError / AssetNotFoundError: asset unusable
            TokenNotFoundError / TokenExpiredError / TokenAlreadyUsedError /
            AssetMismatchError: token rejected
        """
        if not token or not asset_name:
            raise MissingParameterError("Both token and asset are required")

        asset = self._assets.resolve(asset_name)
        self._tokens.consume(token, asset.name)
        return asset


# Singleton instance
_redemption_service: Optional[RedemptionService] = None


def get_redemption_service() -> RedemptionService:
    """Get the redemption service singleton."""
    global _redemption_service
    if _redemption_service is None:
        _redemption_service = RedemptionService()
    return _redemption_service


def reset_redemption_service():
    """Reset the redemption service singleton (for testing)."""
    global _redemption_service
    _redemption_service = None
