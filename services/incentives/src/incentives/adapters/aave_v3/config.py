from pydantic import BaseModel, Field

from services.incentives.src.incentives.config import settings

# keccak256 of the Aave V3 Pool event signatures
SUPPLY_TOPIC = "0x2b627736bca15cd5381dcf80b0bf11fd197d01a037c52b927a881a10fb73ba61"
WITHDRAW_TOPIC = "0x3115d1449a7b732c986cba18244e897a450f61e1bb8d589cd2e69e6c8924f9f7"
BORROW_TOPIC = "0xb3d084820fb1a9decffb176436bd02558d15fac9b0ddfed8c465bc7359d7dce0"
REPAY_TOPIC = "0xa534c8dbe71f871f9f3530e97a74601fea17b426cae02e1c5aee42c96c784051"


def require_rpc_url() -> None:
    """Validate an RPC endpoint is configured. Call at job startup."""
    if not settings.rpc_url:
        raise RuntimeError(
            "RPC_URL environment variable is required "
            "(optionally with RPC_API_KEY appended to it)."
        )


class AssetConfig(BaseModel):
    symbol: str
    address: str = Field(..., description="Lowercase reserve (underlying token) address")
    decimals: int


class ChainRpcConfig(BaseModel):
    chain_id: str
    name: str
    pool_address: str  # Aave V3 Pool contract emitting Supply/Withdraw/Borrow/Repay
    assets: list[AssetConfig]

    def get_asset(self, symbol: str) -> AssetConfig | None:
        for asset in self.assets:
            if asset.symbol == symbol:
                return asset
        return None


class IncentivesConfig(BaseModel):
    chains: list[ChainRpcConfig]
    # Reserve whose positions are tracked
    target_symbol: str = "USDC"

    def get_chain(self, chain_id: str) -> ChainRpcConfig | None:
        for chain in self.chains:
            if chain.chain_id == chain_id:
                return chain
        return None


def get_default_config() -> IncentivesConfig:
    """Default configuration: Aave V3 on Base, tracking USDC."""
    return IncentivesConfig(
        chains=[
            ChainRpcConfig(
                chain_id="base",
                name="Base",
                pool_address="0xa238dd80c259a72e81d7e4664a9801593f98d1c5",
                assets=[
                    AssetConfig(
                        symbol="USDC",
                        address="0x833589fcd6edb6e08f4c7c32d4f71b54bda02913",
                        decimals=6,
                    ),
                    AssetConfig(
                        symbol="WETH",
                        address="0x4200000000000000000000000000000000000006",
                        decimals=18,
                    ),
                ],
            ),
        ],
    )


def default_target_token() -> str:
    """Address of the reserve whose positions are indexed on the configured chain."""
    config = get_default_config()
    chain = config.get_chain(settings.chain_id)
    if chain is None:
        raise ValueError(f"Unknown chain: {settings.chain_id}")
    asset = chain.get_asset(config.target_symbol)
    if asset is None:
        raise ValueError(f"Unknown asset: {config.target_symbol}")
    return asset.address
