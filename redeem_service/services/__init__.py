"""Service layer: assets, code ledger, access tokens and redemption flow."""
from .assets import Asset, AssetStore, get_asset_store
from .ledger import CodeLedger, JsonFileLedgerStore, RedemptionCode, get_code_ledger
from .redemption import RedemptionService, get_redemption_service
from .tokens import AccessToken, TokenStore, get_token_store

__all__ = [
    "Asset",
    "AssetStore",
    "get_asset_store",
    "CodeLedger",
    "JsonFileLedgerStore",
    "RedemptionCode",
    "get_code_ledger",
    "RedemptionService",
    "get_redemption_service",
    "AccessToken",
    "TokenStore",
    "get_token_store",
]
