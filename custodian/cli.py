#!/usr/bin/env python3
"""
Custodian CLI

Backend-side commands, stamped with the API key from the config file:
  custodian gen-api-key - Print a fresh P-256 API key pair
  custodian whoami - Resolve the organization the API key belongs to
  custodian create-key - Create a secp256k1 private key
  custodian address - Print a key's Ethereum address
  custodian sign-tx - Sign an unsigned transaction
  custodian create-sub-org - Register a passkey attestation as a sub-organization

Usage:
  custodian -c config.yaml whoami
  custodian -c config.yaml create-key <name> [--org <id>]
  custodian -c config.yaml address [--key-id <id>] [--org <id>]
  custodian -c config.yaml sign-tx <tx.json> [--key-id <id>] [--org <id>]
  custodian -c config.yaml create-sub-org <name> --attestation <file> --challenge <b64url>
"""

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path

from .ceremony import AttestationBundle
from .client import CustodianClient
from .config import ClientConfig
from .encoding import base64url_decode
from .errors import ConfigError, SigningError
from .identity import ParentProvisioner
from .stamper import ApiKeyStamper


def read_json(path: str):
    """Load a JSON input file."""
    try:
        with open(path, "r") as f:
            return json.load(f)
    except (OSError, ValueError) as e:
        raise ConfigError(f"Cannot read {path}: {e}", cause=e) from e


def load_client(args) -> CustodianClient:
    config = ClientConfig.from_file(Path(args.config))
    client = CustodianClient(config)
    if getattr(args, "org", None):
        client.organization_id = args.org
    return client


async def ensure_organization(client: CustodianClient) -> str:
    """Use --org if given, otherwise ask the service who the key belongs to."""
    if client.organization_id:
        return client.organization_id
    return await client.login()


def cmd_gen_api_key(args):
    """Generate an API key pair."""
    stamper = ApiKeyStamper.generate()
    print(f"public_key: {stamper.public_key}")
    print(f"private_key: {stamper.private_key_hex}")


async def cmd_whoami(args):
    client = load_client(args)
    print(await client.login())


async def cmd_create_key(args):
    client = load_client(args)
    organization_id = await ensure_organization(client)
    key_id = await client.create_private_key(args.name)
    print(f"Created key {args.name} in {organization_id}")
    print(key_id)


async def cmd_address(args):
    client = load_client(args)
    await ensure_organization(client)
    signer = client.signer(args.key_id)
    print(await signer.resolve_address())


async def cmd_sign_tx(args):
    """Sign the unsigned transaction in a JSON file."""
    transaction = read_json(args.transaction)
    client = load_client(args)
    await ensure_organization(client)

    signer = client.signer(args.key_id)
    print(await signer.sign_transaction(transaction))


async def cmd_create_sub_org(args):
    """Create a sub-organization under the configured parent."""
    data = read_json(args.attestation)
    try:
        attestation = AttestationBundle.from_dict(data)
        attestation.challenge = base64url_decode(args.challenge)
    except (KeyError, TypeError, ValueError) as e:
        raise ConfigError(f"Invalid attestation or challenge: {e}", cause=e) from e

    client = load_client(args)
    provisioner = ParentProvisioner(client.submitter, client.config.organization_id)
    print(await provisioner.provision(args.name, attestation))


def main():
    parser = argparse.ArgumentParser(
        prog="custodian",
        description="Custodial key management with passkey-bound sub-organizations",
    )
    parser.add_argument("-c", "--config", default="custodian.yaml", help="Config YAML file")
    parser.add_argument("--verbose", "-v", action="store_true", help="Verbose logging")
    subparsers = parser.add_subparsers(dest="command", help="Commands")

    subparsers.add_parser("gen-api-key", help="Print a fresh API key pair")
    subparsers.add_parser("whoami", help="Resolve the API key's organization")

    create_key_parser = subparsers.add_parser("create-key", help="Create a private key")
    create_key_parser.add_argument("name", help="Private key name")
    create_key_parser.add_argument("--org", help="Organization ID (default: whoami)")

    address_parser = subparsers.add_parser("address", help="Print a key's Ethereum address")
    address_parser.add_argument("--key-id", help="Private key ID (default: from config)")
    address_parser.add_argument("--org", help="Organization ID (default: whoami)")

    sign_parser = subparsers.add_parser("sign-tx", help="Sign an unsigned transaction")
    sign_parser.add_argument("transaction", help="Transaction JSON file")
    sign_parser.add_argument("--key-id", help="Private key ID (default: from config)")
    sign_parser.add_argument("--org", help="Organization ID (default: whoami)")

    sub_org_parser = subparsers.add_parser("create-sub-org", help="Create a sub-organization")
    sub_org_parser.add_argument("name", help="Sub-organization name")
    sub_org_parser.add_argument("--attestation", required=True, help="Attestation JSON file")
    sub_org_parser.add_argument("--challenge", required=True, help="Base64url challenge")

    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )

    commands = {
        "whoami": cmd_whoami,
        "create-key": cmd_create_key,
        "address": cmd_address,
        "sign-tx": cmd_sign_tx,
        "create-sub-org": cmd_create_sub_org,
    }

    if args.command == "gen-api-key":
        cmd_gen_api_key(args)
    elif args.command in commands:
        try:
            asyncio.run(commands[args.command](args))
        except SigningError as e:
            print(f"Error: {e}", file=sys.stderr)
            sys.exit(1)
    else:
        parser.print_help()
        sys.exit(1)


if __name__ == "__main__":
    main()
