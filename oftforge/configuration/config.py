from __future__ import annotations

import os


def _as_bool(value: str | None, default: bool = False) -> bool:
    """Parse a truthy/falsey string into a boolean."""
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "y", "on"}


def _as_optional_float(value: str | None, default: float | None) -> float | None:
    """Parse a float where an empty string or a non-positive value disables the setting."""
    if value is None:
        return default
    if not value.strip():
        return None
    parsed = float(value)
    return parsed if parsed > 0 else None


class Settings:
    # API
    API_HOST: str = os.getenv("API_HOST", "0.0.0.0")
    API_PORT: int = int(os.getenv("API_PORT", "3000"))
    CORS_ORIGINS: str = os.getenv("CORS_ORIGINS", "http://localhost:4200,http://127.0.0.1:4200")

    # Debug / logging
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "WARNING").upper()
    LOG_LEVEL_OFTFORGE: str = os.getenv("LOG_LEVEL_OFTFORGE", "DEBUG").upper()
    LOG_LEVEL_LIB_HTTPX: str = os.getenv("LOG_LEVEL_LIB_HTTPX", "WARNING").upper()
    LOG_LEVEL_LIB_HTTPCORE: str = os.getenv("LOG_LEVEL_LIB_HTTPCORE", "WARNING").upper()
    LOG_LEVEL_LIB_URLLIB3: str = os.getenv("LOG_LEVEL_LIB_URLLIB3", "WARNING").upper()
    LOG_LEVEL_LIB_WEB3: str = os.getenv("LOG_LEVEL_LIB_WEB3", "WARNING").upper()
    LOG_LEVEL_LIB_ASYNCIO: str = os.getenv("LOG_LEVEL_LIB_ASYNCIO", "WARNING").upper()
    LOG_LEVEL_LIB_ANYIO: str = os.getenv("LOG_LEVEL_LIB_ANYIO", "WARNING").upper()
    NO_COLOR: bool = _as_bool(os.getenv("NO_COLOR"), False)

    # LI.FI
    LIFI_BASE_URL: str = os.getenv("LIFI_BASE_URL", "https://li.quest/v1")
    LIFI_API_KEY: str = os.getenv("LIFI_API_KEY", "")
    LIFI_HTTP_TIMEOUT_SECONDS: float = float(os.getenv("LIFI_HTTP_TIMEOUT_SECONDS", "12"))
    LIFI_STATUS_POLL_INTERVAL_SECONDS: float = float(os.getenv("LIFI_STATUS_POLL_INTERVAL_SECONDS", "5"))
    LIFI_STATUS_TIMEOUT_SECONDS: float | None = _as_optional_float(os.getenv("LIFI_STATUS_TIMEOUT_SECONDS"), 1800.0)

    # Wallets
    EVM_PRIVATE_KEY: str = os.getenv("EVM_PRIVATE_KEY", os.getenv("PRIVATE_KEY", ""))
    EVM_MNEMONIC: str = os.getenv("EVM_MNEMONIC", "")
    EVM_DERIVATION_INDEX: int = int(os.getenv("EVM_DERIVATION_INDEX", "0"))
    SOLANA_SECRET_KEY_BASE58: str = os.getenv("SOLANA_SECRET_KEY_BASE58", "")

    # RPC endpoints
    SOLANA_RPC_URL: str = os.getenv("SOLANA_RPC_URL", "https://api.mainnet-beta.solana.com")
    SOLANA_TESTNET_RPC_URL: str = os.getenv("SOLANA_TESTNET_RPC_URL", "https://api.devnet.solana.com")
    ARBITRUM_RPC_URL: str = os.getenv("ARBITRUM_RPC_URL", "https://arb1.arbitrum.io/rpc")
    BASE_RPC_URL: str = os.getenv("BASE_RPC_URL", "https://mainnet.base.org")
    ARBITRUM_SEPOLIA_RPC_URL: str = os.getenv("ARBITRUM_SEPOLIA_RPC_URL", "https://sepolia-rollup.arbitrum.io/rpc")
    SEPOLIA_RPC_URL: str = os.getenv("SEPOLIA_RPC_URL", "https://rpc.sepolia.org")
    BASE_SEPOLIA_RPC_URL: str = os.getenv("BASE_SEPOLIA_RPC_URL", "https://sepolia.base.org")
    OPTIMISM_SEPOLIA_RPC_URL: str = os.getenv("OPTIMISM_SEPOLIA_RPC_URL", "https://sepolia.optimism.io")
    BLAST_SEPOLIA_RPC_URL: str = os.getenv("BLAST_SEPOLIA_RPC_URL", "https://sepolia.blast.io")
    SCROLL_SEPOLIA_RPC_URL: str = os.getenv("SCROLL_SEPOLIA_RPC_URL", "https://sepolia-rpc.scroll.io")
    UNICHAIN_SEPOLIA_RPC_URL: str = os.getenv("UNICHAIN_SEPOLIA_RPC_URL", "https://sepolia.unichain.org")
    BSC_TESTNET_RPC_URL: str = os.getenv("BSC_TESTNET_RPC_URL", "https://bsc-testnet.publicnode.com")
    MUMBAI_RPC_URL: str = os.getenv("MUMBAI_RPC_URL", "https://rpc-mumbai.maticvigil.com")

    # LayerZero tooling
    LAYERZERO_PROJECT_DIR: str = os.getenv("LAYERZERO_PROJECT_DIR", os.getcwd())
    LAYERZERO_PACKAGE_RUNNER: str = os.getenv("LAYERZERO_PACKAGE_RUNNER", "pnpm")
    LAYERZERO_DEPLOY_RUNNER: str = os.getenv("LAYERZERO_DEPLOY_RUNNER", "npx")
    SOLANA_OFT_PROGRAM_ID: str = os.getenv("SOLANA_OFT_PROGRAM_ID", "HmN84fc4YAhvxF2WnP891XxZb3hoTL1PpjYHyiRXDCc9")
    SOLANA_OFT_EID: int = int(os.getenv("SOLANA_OFT_EID", "40168"))
    COMPUTE_UNIT_PRICE_SCALE_FACTOR: str = os.getenv("COMPUTE_UNIT_PRICE_SCALE_FACTOR", "200")
    OAPP_CONFIG_TMP_DIR: str = os.getenv("OAPP_CONFIG_TMP_DIR", ".tmp")

    # Command execution
    COMMAND_MAX_RETRIES: int = int(os.getenv("COMMAND_MAX_RETRIES", "3"))
    COMMAND_RETRY_BASE_DELAY_SECONDS: float = float(os.getenv("COMMAND_RETRY_BASE_DELAY_SECONDS", "5"))


settings = Settings()
