#!/usr/bin/env python3
"""Sign a forward request and print the forwarder ``execute`` calldata.

Uses the signer configured in the environment (PRIVATE_KEY or
AWS_KMS_KEY_ID, see keyrelay.config) as the gasless sender.

Usage:
    python scripts/forwarder_calldata.py --forwarder 0x... --to 0x... \\
        --data 0xd09de08a --nonce 0 --valid-until 1735689600

Options:
    --no-expiry   Sign a request that never expires (instead of --valid-until)
    --json        Print the full relay-server payload instead of calldata
"""

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from keyrelay.config import get_settings, setup_logging
from keyrelay.errors import KeyRelayError
from keyrelay.relay import RelayTxBuilder
from keyrelay.signing import get_signer

logger = logging.getLogger(__name__)


async def main() -> int:
    parser = argparse.ArgumentParser(description="Forwarder execute calldata")
    parser.add_argument("--forwarder", required=True, help="Forwarder contract address")
    parser.add_argument("--to", required=True, help="Recipient contract address")
    parser.add_argument("--data", default="0x", help="Hex calldata for the recipient")
    parser.add_argument("--nonce", type=int, required=True, help="Forwarder nonce of the sender")
    parser.add_argument("--gas", type=int, default=30000, help="Gas for the inner call")
    parser.add_argument("--value", type=int, default=0, help="Wei forwarded with the call")
    parser.add_argument("--valid-until", type=int, help="Unix timestamp the request expires at")
    parser.add_argument("--no-expiry", action="store_true", help="Request never expires")
    parser.add_argument("--domain-name", default="my name", help="EIP-712 domain name")
    parser.add_argument("--domain-version", default="1", help="EIP-712 domain version")
    parser.add_argument("--type-name", default="my name", help="Registered request type name")
    parser.add_argument("--type-suffix", default="", help="Registered request type suffix")
    parser.add_argument("--chain-id", type=int, help="Chain id (defaults to CHAIN_ID)")
    parser.add_argument("--json", action="store_true", help="Print the relay-server payload")

    args = parser.parse_args()

    settings = get_settings()
    setup_logging(settings)

    try:
        signer = await get_signer(settings)
        chain_id = args.chain_id or signer.chain_id

        builder = (
            RelayTxBuilder()
            .domain_name(args.domain_name)
            .domain_version(args.domain_version)
            .domain_chain_id(chain_id)
            .domain_verifying_contract(args.forwarder)
            .from_(signer.address)
            .to(args.to)
            .value(args.value)
            .gas(args.gas)
            .nonce(args.nonce)
            .data(args.data)
            .type_name(args.type_name)
            .type_suffix_data(args.type_suffix)
        )
        if args.no_expiry:
            builder.no_expiry()
        elif args.valid_until is not None:
            builder.valid_until_time(args.valid_until)

        signed = await builder.build().sign(signer)
        call = signed.encode_execute_call()
    except KeyRelayError as e:
        logger.error(f"Failed to build execute call: {e}")
        return 1

    if args.json:
        print(json.dumps(signed.to_dict(), indent=2))
    else:
        print(call.data_hex)
    return 0


if __name__ == "__main__":
    sys.exit(asyncio.run(main()))
