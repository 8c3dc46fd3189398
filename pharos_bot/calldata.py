from decimal import Decimal
from typing import Tuple, Union

from eth_abi.abi import encode
from eth_utils import function_signature_to_4byte_selector, to_bytes, to_checksum_address

from pharos_bot.constants import EXACT_INPUT_SINGLE_SELECTOR, FULL_RANGE_TICK, POOL_FEE

DEPOSIT_SELECTOR = bytes.fromhex("d0e30db0")
WITHDRAW_SELECTOR = bytes.fromhex("2e1a7d4d")
APPROVE_SELECTOR = bytes.fromhex("095ea7b3")
MULTICALL_SELECTOR = bytes.fromhex("5ae401dc")
MINT_SELECTOR = bytes.fromhex("88316456")
TIP_SELECTOR = function_signature_to_4byte_selector("tip((uint32,address),(string,string,uint256,uint256[]))")
COMMIT_SELECTOR = function_signature_to_4byte_selector("commit(bytes32)")
REGISTER_SELECTOR = function_signature_to_4byte_selector(
    "register(string,address,uint256,bytes32,address,bytes[],bool,uint16)"
)
CLAIM_TOKENS_SELECTOR = function_signature_to_4byte_selector("claimTokens()")
CLAIM_FAUCET_SELECTOR = function_signature_to_4byte_selector("claimFaucet()")
AQUAFLUX_COMBINE_SELECTOR = bytes.fromhex("7905642a")
AQUAFLUX_CLAIM_NFT_SELECTOR = bytes.fromhex("75e7e053")

ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"

MINT_PARAMS_TYPE = "(address,address,uint24,int24,int24,uint256,uint256,uint256,uint256,address,uint256)"


def to_units(amount: Union[int, float, str, Decimal], decimals: int) -> int:
    """Convert a human amount into integer token units without float rounding."""
    return int(Decimal(str(amount)) * (Decimal(10) ** decimals))


def build_deposit_calldata() -> bytes:
    return DEPOSIT_SELECTOR


def build_withdraw_calldata(amount_wei: int) -> bytes:
    return WITHDRAW_SELECTOR + encode(["uint256"], [amount_wei])


def build_approve_calldata(spender: str, amount: int) -> bytes:
    return APPROVE_SELECTOR + encode(["address", "uint256"], [to_checksum_address(spender), amount])


def build_exact_input_single(token_in: str, token_out: str, recipient: str, amount_in: int,
                             fee: int = POOL_FEE) -> bytes:
    params = encode(
        ["address", "address", "uint256", "address", "uint256", "uint256", "uint256"],
        [to_checksum_address(token_in), to_checksum_address(token_out), fee,
         to_checksum_address(recipient), amount_in, 0, 0]
    )
    return bytes.fromhex(EXACT_INPUT_SINGLE_SELECTOR) + params


def build_swap_calldata(token_in: str, token_out: str, recipient: str, amount_in: int, deadline: int) -> bytes:
    """Router ``multicall(deadline, [exactInputSingle(...)])`` with no slippage bound."""
    try:
        inner = build_exact_input_single(token_in, token_out, recipient, amount_in)
        return MULTICALL_SELECTOR + encode(["uint256", "bytes[]"], [deadline, [inner]])
    except Exception as e:
        raise Exception(f"Build Calldata Failed: {str(e)}")


def sort_pair(token_a: str, amount_a: int, token_b: str, amount_b: int) -> Tuple[str, int, str, int]:
    """Order a pool pair by address the way the position manager expects."""
    if int(token_a, 16) > int(token_b, 16):
        return token_b, amount_b, token_a, amount_a
    return token_a, amount_a, token_b, amount_b


def build_mint_calldata(token0: str, token1: str, amount0: int, amount1: int, recipient: str, deadline: int,
                        fee: int = POOL_FEE, tick_range: int = FULL_RANGE_TICK) -> bytes:
    try:
        params = (
            to_checksum_address(token0),
            to_checksum_address(token1),
            fee,
            -tick_range,
            tick_range,
            amount0,
            amount1,
            0,
            0,
            to_checksum_address(recipient),
            deadline,
        )
        return MINT_SELECTOR + encode([MINT_PARAMS_TYPE], [params])
    except Exception as e:
        raise Exception(f"Build Calldata Failed: {str(e)}")


def build_tip_calldata(username: str, amount: int, platform: str = "x", token_type: int = 1) -> bytes:
    """PrimusLabs ``tip((tokenType, token), (platform, user, amount, nftIds))`` paid in native PHRS."""
    token = (token_type, ZERO_ADDRESS)
    recipient = (platform, username, amount, [])
    return TIP_SELECTOR + encode(["(uint32,address)", "(string,string,uint256,uint256[])"], [token, recipient])


def build_commit_calldata(commitment: bytes) -> bytes:
    return COMMIT_SELECTOR + encode(["bytes32"], [commitment])


def build_register_calldata(name: str, owner: str, duration: int, secret: bytes, resolver: str,
                            reverse_record: bool = True, owner_controlled_fuses: int = 0) -> bytes:
    return REGISTER_SELECTOR + encode(
        ["string", "address", "uint256", "bytes32", "address", "bytes[]", "bool", "uint16"],
        [name, to_checksum_address(owner), duration, secret, to_checksum_address(resolver), [],
         reverse_record, owner_controlled_fuses]
    )


def build_claim_tokens_calldata() -> bytes:
    return CLAIM_TOKENS_SELECTOR


def build_claim_faucet_calldata() -> bytes:
    return CLAIM_FAUCET_SELECTOR


def build_combine_calldata(amount: int) -> bytes:
    """AquaFlux step two: combine the claimed P and C tokens into PC tokens."""
    return AQUAFLUX_COMBINE_SELECTOR + encode(["uint256"], [amount])


def build_claim_nft_calldata(signature: str, expires_at: int, nft_type: int = 0) -> bytes:
    return AQUAFLUX_CLAIM_NFT_SELECTOR + encode(
        ["uint256", "uint256", "bytes"], [nft_type, int(expires_at), to_bytes(hexstr=signature)]
    )
