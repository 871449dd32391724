"""Two-party meta-transaction flow.

The sender signs the forward request off-chain; a separate gas payer wraps
the resulting ``execute`` calldata in an EIP-1559 transaction to the
forwarder and pays for it. Nonce and fee values are the caller's to supply.
"""

import logging
from dataclasses import dataclass

from keyrelay.keys.signature import Signature
from keyrelay.relay.forwarder import ExecuteCall, RelayTx, SignedRelayTx
from keyrelay.signing.base import Signer
from keyrelay.signing.transactions import DynamicFeeTransaction

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RelayedTransaction:
    """Outcome of the two-party flow, ready for ``eth_sendRawTransaction``."""

    signed_request: SignedRelayTx
    execute_call: ExecuteCall
    transaction: DynamicFeeTransaction
    raw_transaction: bytes
    tx_hash: bytes
    gas_payer_signature: Signature

    @property
    def sender_signature(self) -> Signature:
        return self.signed_request.signature

    @property
    def raw_hex(self) -> str:
        return "0x" + self.raw_transaction.hex()

    @property
    def tx_hash_hex(self) -> str:
        return "0x" + self.tx_hash.hex()


async def relay_via_gas_payer(
    relay_tx: RelayTx,
    sender: Signer,
    gas_payer: Signer,
    *,
    nonce: int,
    gas_limit: int,
    max_fee_per_gas: int,
    max_priority_fee_per_gas: int,
) -> RelayedTransaction:
    """Sign ``relay_tx`` with ``sender`` and submit-encode it with ``gas_payer``.

    The outer transaction targets the forwarder with no value and exactly
    ``gas_limit`` gas, on the gas payer's chain.

    Raises:
        SigningError: If either signer fails
        EncodingError: If the execute call cannot be encoded
    """
    if sender.address == gas_payer.address:
        logger.warning(f"Sender and gas payer are the same account {sender.address}")

    signed_request = await relay_tx.sign(sender)
    execute_call = signed_request.encode_execute_call()

    tx = DynamicFeeTransaction(
        nonce=nonce,
        max_fee_per_gas=max_fee_per_gas,
        max_priority_fee_per_gas=max_priority_fee_per_gas,
        gas=gas_limit,
        to=execute_call.to,
        value=0,
        data=execute_call.data,
        chain_id=gas_payer.chain_id,
    )
    signed_tx = await gas_payer.sign_and_encode_transaction(tx)

    logger.info(
        f"Relayed request from {sender.address} via gas payer {gas_payer.address}: "
        f"tx 0x{signed_tx.hash.hex()}"
    )
    return RelayedTransaction(
        signed_request=signed_request,
        execute_call=execute_call,
        transaction=tx,
        raw_transaction=signed_tx.raw_transaction,
        tx_hash=signed_tx.hash,
        gas_payer_signature=signed_tx.signature,
    )
