"""
Transaction Tracer for EVM Debugging

Fetches everything the analyzer needs about a mined transaction from a
node that exposes debug_traceTransaction (Anvil, Hardhat, geth --dev):
the transaction and receipt, the step-level trace, and the runtime code
that executed.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Optional

import requests
from web3 import Web3
from web3.exceptions import TransactionNotFound

from dogtrace.config import DEFAULT_RPC_URL
from dogtrace.core.trace_normalizer import RawTrace
from dogtrace.utils.colors import bullet_point, error
from dogtrace.utils.exceptions import (
    DebugTraceUnavailableError,
    RPCConnectionError,
    TransactionError,
    TransactionNotFoundError,
    format_exception_message,
)
from dogtrace.utils.logging import get_logger

logger = get_logger('tracer')

TRACE_OPTIONS = {
    "disableStorage": False,
    "disableMemory": False,
    "disableStack": False,
    "enableMemory": True,
    "enableReturnData": True,
}

SIGNATURE_LOOKUP_TIMEOUT = 5


def _to_plain(value: Any) -> Any:
    """Convert web3 AttributeDicts/HexBytes into plain JSON-compatible values."""
    if isinstance(value, (bytes, bytearray)):
        return "0x" + bytes(value).hex()
    if hasattr(value, 'items'):
        return {k: _to_plain(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_to_plain(v) for v in value]
    return value


@dataclass
class TransactionInfo:
    """Summary of a mined transaction."""
    tx_hash: str
    from_addr: str
    to_addr: Optional[str]
    value: int
    input_data: str
    block_number: int
    gas_limit: int
    gas_used: int
    success: bool
    contract_address: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "hash": self.tx_hash,
            "from": self.from_addr,
            "to": self.to_addr,
            "value": str(self.value),
            "input": self.input_data,
            "blockNumber": self.block_number,
            "gasLimit": self.gas_limit,
            "gasUsed": self.gas_used,
            "status": "success" if self.success else "reverted",
            "contractAddress": self.contract_address,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TransactionInfo":
        """Read the `transaction` object of an offline trace file."""
        status = data.get("status")
        if isinstance(status, str):
            success = status.lower() in ("success", "0x1", "1")
        else:
            success = bool(status) if status is not None else True
        return cls(
            tx_hash=data.get("hash", ""),
            from_addr=data.get("from", ""),
            to_addr=data.get("to"),
            value=int(data.get("value", 0) or 0),
            input_data=data.get("input", "0x"),
            block_number=int(data.get("blockNumber", 0) or 0),
            gas_limit=int(data.get("gasLimit", 0) or 0),
            gas_used=int(data.get("gasUsed", 0) or 0),
            success=success,
            contract_address=data.get("contractAddress"),
        )


@dataclass
class TracedTransaction:
    """Everything fetched for one transaction."""
    info: TransactionInfo
    trace: RawTrace = field(repr=False)
    deployed_code: Optional[str] = field(default=None, repr=False)


class TransactionTracer:
    """
    Fetches transactions, traces and code over JSON-RPC.
    """

    def __init__(self, rpc_url: str = DEFAULT_RPC_URL, timeout: int = 30):
        self.rpc_url = rpc_url
        self.w3 = Web3(Web3.HTTPProvider(rpc_url, request_kwargs={"timeout": timeout}))

        try:
            # Use a direct RPC call instead of is_connected() for more reliable connection check
            self.w3.eth.block_number
        except Exception as e:
            if rpc_url == DEFAULT_RPC_URL:
                raise RPCConnectionError(
                    f"{error('Failed to connect to')} {error(rpc_url)}\n"
                    f"This is the default Anvil RPC URL. Make sure Anvil is running:\n"
                    f"{bullet_point('anvil --steps-tracing')}",
                    rpc_url=rpc_url,
                )
            raise RPCConnectionError(
                f"{error('Failed to connect to')} {error(rpc_url)}\n"
                f"{error('Please check if the RPC endpoint is running and accessible')}\n"
                f"{error(f'Error: {format_exception_message(e)}')}",
                rpc_url=rpc_url,
            )
        logger.debug(f"Connected to {rpc_url}")

    def get_transaction(self, tx_hash: str) -> TransactionInfo:
        """Fetch transaction and receipt."""
        try:
            tx = self.w3.eth.get_transaction(tx_hash)
        except TransactionNotFound:
            raise TransactionNotFoundError(tx_hash, rpc_url=self.rpc_url)
        except Exception as e:
            if "not found" in format_exception_message(e).lower():
                raise TransactionNotFoundError(tx_hash, rpc_url=self.rpc_url)
            raise TransactionError(f"Failed to fetch transaction {tx_hash}: {format_exception_message(e)}",
                                   tx_hash=tx_hash, rpc_url=self.rpc_url)

        try:
            receipt = self.w3.eth.get_transaction_receipt(tx_hash)
        except Exception as e:
            raise TransactionError(
                f"Transaction found but receipt not available: {tx_hash} ({format_exception_message(e)})",
                tx_hash=tx_hash, rpc_url=self.rpc_url,
            )
        # Some RPC nodes return None instead of raising an exception
        if receipt is None:
            raise TransactionError(
                f"Transaction found but receipt not available: {tx_hash}",
                tx_hash=tx_hash, rpc_url=self.rpc_url,
            )

        input_data = tx.get('input', '0x')
        if isinstance(input_data, (bytes, bytearray)):
            input_data = '0x' + bytes(input_data).hex()

        return TransactionInfo(
            tx_hash=tx_hash,
            from_addr=tx['from'],
            to_addr=tx.get('to'),
            value=tx.get('value', 0),
            input_data=input_data,
            block_number=receipt['blockNumber'],
            gas_limit=tx.get('gas', 0),
            gas_used=receipt['gasUsed'],
            success=receipt['status'] == 1,
            contract_address=receipt.get('contractAddress'),
        )

    def get_trace(self, tx_hash: str) -> RawTrace:
        """
        Call debug_traceTransaction with the default struct logger.

        Some nodes only return structLogs when memory and return data are
        requested explicitly, so a second call with options follows an
        empty first result.
        """
        try:
            result = self.w3.manager.request_blocking("debug_traceTransaction", [tx_hash])
            if not result or not result.get('structLogs'):
                logger.debug("Default trace returned no structLogs, retrying with options")
                result = self.w3.manager.request_blocking(
                    "debug_traceTransaction", [tx_hash, TRACE_OPTIONS]
                )
        except Exception as e:
            raise DebugTraceUnavailableError(tx_hash, reason=format_exception_message(e), rpc_url=self.rpc_url)

        trace = RawTrace.from_dict(_to_plain(result))
        logger.debug(f"Fetched {len(trace.struct_logs)} structLogs for {tx_hash}")
        return trace

    def get_code(self, address: str, block_number: Optional[int] = None) -> Optional[str]:
        """Runtime code at address (hex, 0x-prefixed), None if there is none."""
        block = block_number if block_number is not None else 'latest'
        try:
            code = self.w3.eth.get_code(Web3.to_checksum_address(address), block_identifier=block)
        except Exception as e:
            logger.warning(f"Could not fetch code of {address} at block {block}: {e}")
            return None
        if not code:
            return None
        return '0x' + bytes(code).hex()

    def trace_transaction(self, tx_hash: str) -> TracedTransaction:
        """Fetch the transaction, its trace and the code it executed."""
        info = self.get_transaction(tx_hash)
        trace = self.get_trace(tx_hash)

        deployed_code = None
        target = info.to_addr or info.contract_address
        if target:
            # Code as it was when the transaction ran
            previous_block = max(info.block_number - 1, 0)
            deployed_code = self.get_code(target, previous_block)
            if deployed_code is None and info.to_addr is None:
                deployed_code = self.get_code(target, info.block_number)

        return TracedTransaction(info=info, trace=trace, deployed_code=deployed_code)


def lookup_function_signature(selector: str) -> Optional[str]:
    """Look up function signature from OpenChain, then 4byte.directory."""
    # Clean up selector format
    if selector.startswith('0x'):
        selector = selector[2:]

    # Try OpenChain (Sourcify) first - filters junk data
    signature = _lookup_openchain(selector)
    if signature:
        return signature

    return _lookup_4byte(selector)


def _lookup_4byte(selector: str) -> Optional[str]:
    """Look up function signature from 4byte.directory."""
    url = f"https://www.4byte.directory/api/v1/signatures/?hex_signature=0x{selector}"
    try:
        response = requests.get(url, timeout=SIGNATURE_LOOKUP_TIMEOUT)
        if response.status_code == 200:
            results = response.json().get('results')
            if results:
                # Lower id = older entry
                return sorted(results, key=lambda x: x.get('id', 0))[0]['text_signature']
    except (requests.RequestException, ValueError, KeyError) as e:
        logger.debug(f"4byte lookup failed for 0x{selector}: {e}")
    return None


def _lookup_openchain(selector: str) -> Optional[str]:
    """Look up function signature from OpenChain (Sourcify)."""
    url = f"https://api.openchain.xyz/signature-database/v1/lookup?function=0x{selector}"
    try:
        response = requests.get(url, timeout=SIGNATURE_LOOKUP_TIMEOUT)
        if response.status_code == 200:
            data = response.json()
            if data.get('result') and data['result'].get('function'):
                signatures = data['result']['function'].get('0x' + selector) or []
                if signatures:
                    return signatures[0]['name']
    except (requests.RequestException, ValueError, KeyError) as e:
        logger.debug(f"OpenChain lookup failed for 0x{selector}: {e}")
    return None
