"""Configuration constants for hermes-deployments library."""

# Network configuration based on ethereum-lists/chains
# Explorer API is the unified Etherscan v2 endpoint, selected per chain by `chainid`
NETWORK_CONFIG = {
    "opSepolia": {
        "chain_id": 11155420,
        "rpc_url": "https://sepolia.optimism.io/",
        "rpc_env": "OP_SEPOLIA_RPC_URL",
        "explorer_api_url": "https://api.etherscan.io/v2/api",
        "api_key_env": "OP_SEPOLIA_ETHERSCAN_API_KEY",
        "browser_url": "https://sepolia-optimism.etherscan.io/",
    },
    "optimism": {
        "chain_id": 10,
        "rpc_url": "https://mainnet.optimism.io/",
        "rpc_env": "OPTIMISM_RPC_URL",
        "explorer_api_url": "https://api.etherscan.io/v2/api",
        "api_key_env": "OPTIMISM_ETHERSCAN_API_KEY",
        "browser_url": "https://optimistic.etherscan.io/",
    },
    "sepolia": {
        "chain_id": 11155111,
        "rpc_url": "https://rpc.sepolia.org/",
        "rpc_env": "SEP_RPC_URL",
        "explorer_api_url": "https://api.etherscan.io/v2/api",
        "api_key_env": "SEPOLIA_ETHERSCAN_API_KEY",
        "browser_url": "https://sepolia.etherscan.io/",
    },
    "mainnet": {
        "chain_id": 1,
        "rpc_url": "https://eth.llamarpc.com/",
        "rpc_env": "ETH_RPC_URL",
        "explorer_api_url": "https://api.etherscan.io/v2/api",
        "api_key_env": "MAINNET_ETHERSCAN_API_KEY",
        "browser_url": "https://etherscan.io/",
    },
    # Local hardhat node, nothing to verify against
    "hardhat": {
        "chain_id": 31337,
        "rpc_url": "http://127.0.0.1:8545/",
        "rpc_env": "HARDHAT_RPC_URL",
        "explorer_api_url": "",
        "api_key_env": None,
        "browser_url": "",
    },
}

# Shared fallback for every network whose api_key_env is unset
DEFAULT_API_KEY_ENV = "ETHERSCAN_API_KEY"

# Signing key, optionally overridden per network as PRIVATE_KEY_<NETWORK>
DEFAULT_PRIVATE_KEY_ENV = "PRIVATE_KEY"

# Arachnid deterministic deployment proxy, used for CREATE2 placement
DETERMINISTIC_DEPLOYER = "0x4e59b44847b379578588920cA78FbF26c0B4956C"

# Retry defaults (RPC submission, explorer submission)
DEFAULT_MAX_ATTEMPTS = 5
DEFAULT_INITIAL_BACKOFF = 1.0  # seconds
DEFAULT_MAX_BACKOFF = 30.0  # seconds

# Receipt polling defaults
DEFAULT_RECEIPT_POLL_INTERVAL = 2.0  # seconds
DEFAULT_RECEIPT_TIMEOUT = 300.0  # seconds
DEFAULT_RECEIPT_MAX_POLLS = 200

# Verification status polling defaults
DEFAULT_VERIFY_POLL_INTERVAL = 5.0  # seconds
DEFAULT_VERIFY_TIMEOUT = 180.0  # seconds
DEFAULT_VERIFY_MAX_POLLS = 36

# Gas policy defaults
DEFAULT_GAS_MARGIN_PERCENT = 20
DEFAULT_GAS_PRICE_MULTIPLIER_PERCENT = 100

# HTTP timeout for RPC and explorer calls
DEFAULT_HTTP_TIMEOUT = 30  # seconds
