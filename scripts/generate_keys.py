#!/usr/bin/env python3
"""
Generate Ethereum keys for the bundler.

This script generates:
- Executor key (PRIVATE_KEY_EXECUTOR)
- Sponsor key (PRIVATE_KEY_SPONSOR)
- Relay signing key (FLASHBOTS_RELAY_SIGNING_KEY)

and writes them as a .env fragment.
"""

import argparse
import json
from pathlib import Path

from eth_account import Account
from eth_utils import encode_hex


ROLES = {
    "executor": "PRIVATE_KEY_EXECUTOR",
    "sponsor": "PRIVATE_KEY_SPONSOR",
    "relay": "FLASHBOTS_RELAY_SIGNING_KEY",
}


def generate_keys(output_dir: str = "./keys") -> dict:
    """
    Generate one key per bundler role.

    Args:
        output_dir: Directory to save keys

    Returns:
        Dictionary with role addresses
    """
    output_path = Path(output_dir)
    output_path.mkdir(parents=True, exist_ok=True)

    env_lines = []
    info = {"addresses": {}}
    for role, env_name in ROLES.items():
        account = Account.create()
        env_lines.append(f"{env_name}={encode_hex(account.key)}")
        info["addresses"][role] = account.address

    env_path = output_path / "bundler.env"
    env_path.write_text("\n".join(env_lines) + "\n")
    env_path.chmod(0o600)
    info["env_path"] = str(env_path)

    info_path = output_path / "key_info.json"
    with open(info_path, "w") as f:
        json.dump(info, f, indent=2)

    return info


def main():
    parser = argparse.ArgumentParser(description="Generate bundler keys")
    parser.add_argument(
        "--output-dir", "-o",
        default="./keys",
        help="Output directory for keys (default: ./keys)"
    )
    parser.add_argument(
        "--force", "-f",
        action="store_true",
        help="Overwrite existing keys"
    )

    args = parser.parse_args()

    output_path = Path(args.output_dir)
    env_path = output_path / "bundler.env"

    if env_path.exists() and not args.force:
        print(f"Keys already exist at {args.output_dir}")
        print("   Use --force to overwrite")

        info_path = output_path / "key_info.json"
        if info_path.exists():
            with open(info_path) as f:
                info = json.load(f)
            print("\nExisting addresses:")
            for role, address in info["addresses"].items():
                print(f"   {role:<9} {address}")
        return

    print("Generating new keys...")
    info = generate_keys(args.output_dir)

    print(f"\nKeys saved to: {info['env_path']} (KEEP SECRET!)")
    print("\nAddresses:")
    for role, address in info["addresses"].items():
        print(f"   {role:<9} {address}")

    print("\nThe sponsor account needs ETH for gas; the relay key holds no funds.")
    print("Append the env file to your .env to use these keys.")


if __name__ == "__main__":
    main()
