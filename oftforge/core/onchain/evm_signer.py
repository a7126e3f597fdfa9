from __future__ import annotations

"""
EVM signer built on eth-account and web3.py.

- Key from a raw private key, or derived from a mnemonic at m/44'/60'/0'/0/{index}.
- Builds and signs EIP-1559 transactions with dynamic fees and a node-filled nonce.
- Never logs secrets or raw calldata.
"""

from dataclasses import dataclass
from typing import Optional

from eth_account import Account
from eth_account.signers.local import LocalAccount
from web3 import Web3
from web3.exceptions import Web3Exception
from web3.types import TxParams

from oftforge.configuration.config import settings
from oftforge.logging.logger import get_logger

log = get_logger(__name__)

ERC20_ALLOWANCE_ABI = [
    {
        "constant": True,
        "inputs": [{"name": "owner", "type": "address"}, {"name": "spender", "type": "address"}],
        "name": "allowance",
        "outputs": [{"name": "", "type": "uint256"}],
        "stateMutability": "view",
        "type": "function",
    },
    {
        "constant": False,
        "inputs": [{"name": "spender", "type": "address"}, {"name": "amount", "type": "uint256"}],
        "name": "approve",
        "outputs": [{"name": "", "type": "bool"}],
        "stateMutability": "nonpayable",
        "type": "function",
    },
]

_FALLBACK_GAS_LIMIT = 400_000


@dataclass(frozen=True)
class EvmSignerConfig:
    rpc_url: str
    private_key: str = ""
    mnemonic: str = ""
    derivation_index: int = 0
    receipt_timeout_seconds: int = 180


class EvmSigner:
    """Sign and broadcast EVM transactions for one RPC endpoint."""

    def __init__(self, config: EvmSignerConfig) -> None:
        if not config.rpc_url or not (config.private_key or config.mnemonic):
            raise ValueError("EVM signer requires an RPC URL and a private key or mnemonic (set via environment variables).")

        self.web3 = Web3(Web3.HTTPProvider(config.rpc_url, request_kwargs={"timeout": 30}))
        self.receipt_timeout_seconds = config.receipt_timeout_seconds

        if config.private_key:
            self.account: LocalAccount = Account.from_key(config.private_key)
        else:
            Account.enable_unaudited_hdwallet_features()
            account_path = f"m/44'/60'/0'/0/{config.derivation_index}"
            self.account = Account.from_mnemonic(config.mnemonic, account_path=account_path)
        self.address: str = self.account.address

        log.info("[EVM][SIGNER] Initialized signer. Address=%s", self.address)

    def _build_eip1559(self, to: str, data: bytes | str, value_wei: int | None, gas_limit: Optional[int]) -> TxParams:
        """Construct a typed EIP-1559 transaction with dynamic fees and filled nonce."""
        latest = self.web3.eth.get_block("latest")
        base_fee = int(latest.get("baseFeePerGas") or 0)
        try:
            max_priority = int(self.web3.eth.max_priority_fee)  # node suggestion
        except (Web3Exception, ValueError):
            max_priority = int(Web3.to_wei(1, "gwei"))
        max_fee = base_fee * 2 + max_priority

        nonce = self.web3.eth.get_transaction_count(self.address, "pending")
        tx: TxParams = {
            "chainId": self.web3.eth.chain_id,
            "type": 2,
            "nonce": nonce,
            "to": Web3.to_checksum_address(to),
            "data": data,
            "value": int(value_wei or 0),
            "maxPriorityFeePerGas": max_priority,
            "maxFeePerGas": int(max_fee),
        }
        if gas_limit is not None:
            tx["gas"] = int(gas_limit)
        else:
            try:
                estimated = self.web3.eth.estimate_gas(
                    {"from": self.address, "to": tx["to"], "data": tx["data"], "value": tx["value"]})
                tx["gas"] = int(estimated)
            except (Web3Exception, ValueError) as exc:
                log.warning("[EVM][SIGNER] Gas estimation failed (%s). Falling back to static headroom.", exc)
                tx["gas"] = _FALLBACK_GAS_LIMIT
        log.debug("[EVM][SIGNER] Tx skeleton built: nonce=%s gas=%s maxFeePerGas=%s", tx.get("nonce"), tx.get("gas"),
                  tx.get("maxFeePerGas"))
        return tx

    def send_transaction(self, to: str, data: str, value_wei: int | None, gas_limit: Optional[int] = None) -> str:
        """
        Sign and broadcast a transaction. Returns the hex transaction hash.
        """
        log.info("[EVM][SIGNER] Preparing transaction to %s", to)
        tx = self._build_eip1559(to=to, data=data, value_wei=value_wei, gas_limit=gas_limit)
        signed = self.account.sign_transaction(tx)
        tx_hash = self.web3.eth.send_raw_transaction(signed.raw_transaction)
        hex_hash = self.web3.to_hex(tx_hash)
        log.info("[EVM][SIGNER] Broadcasted transaction %s", hex_hash)
        return hex_hash

    def send_raw_transaction(self, raw_transaction: str) -> str:
        """Broadcast an already signed RLP payload as-is."""
        tx_hash = self.web3.eth.send_raw_transaction(bytes.fromhex(raw_transaction.removeprefix("0x")))
        return self.web3.to_hex(tx_hash)

    def wait_for_receipt(self, tx_hash: str) -> str:
        """
        Block until the transaction is included.

        Raises:
            RuntimeError if the transaction reverted.
        """
        receipt = self.web3.eth.wait_for_transaction_receipt(tx_hash, timeout=self.receipt_timeout_seconds)
        if int(receipt["status"]) != 1:
            raise RuntimeError(f"EVM transaction {tx_hash} reverted")
        confirmed = self.web3.to_hex(receipt["transactionHash"])
        log.info("[EVM][SIGNER] Transaction confirmed %s (block=%s)", confirmed, receipt["blockNumber"])
        return confirmed

    def erc20_allowance(self, token_address: str, spender: str) -> int:
        contract = self.web3.eth.contract(address=Web3.to_checksum_address(token_address), abi=ERC20_ALLOWANCE_ABI)
        return int(contract.functions.allowance(self.address, Web3.to_checksum_address(spender)).call())

    def erc20_approve(self, token_address: str, spender: str, amount: int) -> str:
        contract = self.web3.eth.contract(address=Web3.to_checksum_address(token_address), abi=ERC20_ALLOWANCE_ABI)
        calldata = contract.encode_abi("approve", args=[Web3.to_checksum_address(spender), int(amount)])
        log.info("[EVM][SIGNER] Approving spender %s on token %s", spender, token_address)
        return self.send_transaction(to=token_address, data=calldata, value_wei=0)


def build_default_evm_signer(rpc_url: Optional[str] = None) -> EvmSigner:
    """Factory using Settings for convenience."""
    cfg = EvmSignerConfig(
        rpc_url=rpc_url or settings.ARBITRUM_RPC_URL,
        private_key=settings.EVM_PRIVATE_KEY,
        mnemonic=settings.EVM_MNEMONIC,
        derivation_index=settings.EVM_DERIVATION_INDEX,
    )
    return EvmSigner(cfg)
