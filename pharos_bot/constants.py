CHAIN_ID = 688688
RPC_URL = "https://testnet.dplabs-internal.com"
BASE_API = "https://api.pharosnetwork.xyz"
SITE_URL = "https://testnet.pharosnetwork.xyz"

WPHRS_CONTRACT_ADDRESS = "0x76aaaDA469D23216bE5f7C596fA25F282Ff9b364"
USDT_CONTRACT_ADDRESS = "0xD4071393f8716661958F766DF660033b3d35fD29"
SWAP_ROUTER_ADDRESS = "0x1A4DE519154Ae51200b0Ad7c90F7faC75547888a"
POSITION_MANAGER_ADDRESS = "0xF8a1D4FF0f9b9Af7CE58E1fc1833688F3BFd6115"
USDC_CONTRACT_ADDRESS = "0x72df0bcd7276f2dFbAc900D1CE63c272C4BCcCED"
MUSD_CONTRACT_ADDRESS = "0x7F5e05460F927Ee351005534423917976F92495e"

# AutoStaking
AUTOSTAKING_API = "https://api.autostaking.pro"
AUTOSTAKING_SITE_URL = "https://autostaking.pro"
STAKING_ROUTER_ADDRESS = "0x11cD3700B310339003641Fdce57c1f9BD21aE015"
MVMUSD_CONTRACT_ADDRESS = "0xF1CF5D79bE4682D50f7A60A047eACa9bD351fF8e"

# AquaFlux
AQUAFLUX_API = "https://api.aquaflux.pro/api/v1"
AQUAFLUX_CONTRACT_ADDRESS = "0xcc8cf44e196cab28dba2d514dc7353af0efb370e"
AQUAFLUX_COMBINE_AMOUNT = 100 * 10 ** 18

# PrimusLabs tipping
PRIMUS_TIP_CONTRACT_ADDRESS = "0xd17512b7ec12880bd94eca9d774089ff89805f02"
TIP_USERNAMES = [
    "CryptoLad", "NFTKing", "Web3Fan", "PharosTester", "TokenMaster",
    "BlockchainBuddy", "DeFiDreamer", "MoonCoiner", "EthExplorer", "WalletWizard",
]

# .phrs name service
DOMAIN_CONTROLLER_ADDRESS = "0x51be1ef20a1fd5179419738fc71d95a8b6f8a175"
DOMAIN_RESOLVER_ADDRESS = "0x9a43dcA1C3BB268546b98eb2AB1401bFc5b58505"
DOMAIN_DURATION = 31536000

TOKEN_DECIMALS = {
    "PHRS": 18,
    "WPHRS": 18,
    "USDT": 6,
    "USDC": 6,
    "MockUSD": 6,
}

TOKEN_ADDRESSES = {
    "WPHRS": WPHRS_CONTRACT_ADDRESS,
    "USDT": USDT_CONTRACT_ADDRESS,
    "USDC": USDC_CONTRACT_ADDRESS,
    "MockUSD": MUSD_CONTRACT_ADDRESS,
}

POOL_FEE = 500
FULL_RANGE_TICK = 887270
EXACT_INPUT_SINGLE_SELECTOR = "04e45aaf"

TASK_SWAP = 101
TASK_LIQUIDITY = 102
TASK_SELF_TRANSFER = 103

TRANSFER_GAS_LIMIT = 21000
WRAP_GAS_LIMIT = 100000
APPROVE_GAS_LIMIT = 100000
SWAP_GAS_LIMIT = 300000
LIQUIDITY_GAS_LIMIT = 600000
TIP_GAS_LIMIT = 300000
DOMAIN_COMMIT_GAS_LIMIT = 200000
DOMAIN_REGISTER_GAS_LIMIT = 300000
AQUAFLUX_CLAIM_GAS_LIMIT = 200000
AQUAFLUX_NFT_GAS_LIMIT = 300000
STAKING_FAUCET_GAS_LIMIT = 200000
STAKING_GAS_LIMIT = 500000

MAX_UINT256 = 2 ** 256 - 1

ERC20_ABI = [
    {"type": "function", "name": "balanceOf", "stateMutability": "view", "inputs": [{"name": "owner", "type": "address"}], "outputs": [{"name": "", "type": "uint256"}]},
    {"type": "function", "name": "allowance", "stateMutability": "view", "inputs": [{"name": "owner", "type": "address"}, {"name": "spender", "type": "address"}], "outputs": [{"name": "", "type": "uint256"}]},
    {"type": "function", "name": "decimals", "stateMutability": "view", "inputs": [], "outputs": [{"name": "", "type": "uint8"}]},
    {"type": "function", "name": "approve", "stateMutability": "nonpayable", "inputs": [{"name": "spender", "type": "address"}, {"name": "amount", "type": "uint256"}], "outputs": [{"name": "", "type": "bool"}]},
    {"type": "function", "name": "transfer", "stateMutability": "nonpayable", "inputs": [{"name": "to", "type": "address"}, {"name": "amount", "type": "uint256"}], "outputs": [{"name": "", "type": "bool"}]},
    {"type": "function", "name": "deposit", "stateMutability": "payable", "inputs": [], "outputs": []},
    {"type": "function", "name": "withdraw", "stateMutability": "nonpayable", "inputs": [{"name": "wad", "type": "uint256"}], "outputs": []},
]

DOMAIN_CONTROLLER_ABI = [
    {"type": "function", "name": "makeCommitment", "stateMutability": "pure", "inputs": [{"name": "name", "type": "string"}, {"name": "owner", "type": "address"}, {"name": "duration", "type": "uint256"}, {"name": "secret", "type": "bytes32"}, {"name": "resolver", "type": "address"}, {"name": "data", "type": "bytes[]"}, {"name": "reverseRecord", "type": "bool"}, {"name": "ownerControlledFuses", "type": "uint16"}], "outputs": [{"name": "", "type": "bytes32"}]},
    {"type": "function", "name": "rentPrice", "stateMutability": "view", "inputs": [{"name": "name", "type": "string"}, {"name": "duration", "type": "uint256"}], "outputs": [{"name": "", "type": "tuple", "components": [{"name": "base", "type": "uint256"}, {"name": "premium", "type": "uint256"}]}]},
]

MVMUSD_FAUCET_ABI = [
    {"type": "function", "name": "getNextFaucetClaimTime", "stateMutability": "view", "inputs": [{"name": "user", "type": "address"}], "outputs": [{"name": "", "type": "uint256"}]},
]
