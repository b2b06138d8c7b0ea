#!/usr/bin/env python3
"""Deploy and verify HermesProxyFactory on Optimism Sepolia."""

import logging
import sys

from hermes_deployments import DeploymentError, run_deployment

OWNER = "0xd44390C5f4e3558Be11BbDEb9c3193b6f4DFf8c4"
SALT = "0x0000000000000000000000000000000000000000000000000000000000000001"


def main() -> int:
    logging.basicConfig(
        level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s"
    )

    try:
        result = run_deployment(
            "HermesProxyFactory",
            [OWNER, OWNER, OWNER, SALT],
            "opSepolia",
            gas_limit=10_000_000,
        )
    except DeploymentError as e:
        logging.getLogger("deploy").error("Deployment failed: %s", e)
        return 1

    print(f"Contract address: {result.address}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
