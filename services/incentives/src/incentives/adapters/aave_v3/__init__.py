from services.incentives.src.incentives.adapters.aave_v3.config import (
    IncentivesConfig,
    get_default_config,
)
from services.incentives.src.incentives.adapters.aave_v3.events_fetcher import PoolEventsFetcher
from services.incentives.src.incentives.adapters.aave_v3.rpc import (
    BlockTimeResolver,
    RpcClient,
    RpcError,
)

__all__ = [
    "BlockTimeResolver",
    "IncentivesConfig",
    "PoolEventsFetcher",
    "RpcClient",
    "RpcError",
    "get_default_config",
]
