"""Client-side state synchronization over the change feed."""

from liveboard.sync.gateway import LocalStoreGateway, StoreGateway
from liveboard.sync.hub import SyncHub
from liveboard.sync.scope import ScopeSync

__all__ = ["LocalStoreGateway", "StoreGateway", "SyncHub", "ScopeSync"]
