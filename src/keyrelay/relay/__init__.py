"""EIP-712 relay requests for GSN-style trusted forwarders."""

from keyrelay.relay.flow import RelayedTransaction, relay_via_gas_payer
from keyrelay.relay.forwarder import (
    EXECUTE_SELECTOR,
    MAX_UINT256,
    ExecuteCall,
    ForwardRequest,
    RelayDomain,
    RelayTx,
    RelayTxBuilder,
    SignedRelayTx,
)

__all__ = [
    "EXECUTE_SELECTOR",
    "MAX_UINT256",
    "ExecuteCall",
    "ForwardRequest",
    "RelayDomain",
    "RelayTx",
    "RelayTxBuilder",
    "RelayedTransaction",
    "SignedRelayTx",
    "relay_via_gas_payer",
]
