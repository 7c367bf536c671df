"""Submit a deployment and wait for it to finish.

This script:
1. POSTs the deployment to the tracker API
2. Polls until it is successful or failed (or the timeout hits)
3. Prints the progress log

Exit codes: 0 successful, 1 failed, 2 timed out, 3 rejected by the API.

Run: python scripts/deploy_and_wait.py user-api v1.0.0 staging --strategy canary
"""

import argparse
import asyncio
import logging
import sys
from pathlib import Path

# Add project root to path so we can import our modules
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from apps.tracker.client import DeploymentAPIError, DeploymentClient, PollingTimeoutError

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s | %(levelname)-8s | %(message)s",
)
logger = logging.getLogger(__name__)

EXIT_SUCCESS = 0
EXIT_FAILED = 1
EXIT_TIMEOUT = 2
EXIT_REJECTED = 3


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Deploy a service and wait for the result.")
    parser.add_argument("service_name")
    parser.add_argument("version")
    parser.add_argument("environment", choices=["development", "staging", "production"])
    parser.add_argument("--strategy", choices=["rolling", "blue-green", "canary"], default=None)
    parser.add_argument("--replicas", type=int, default=None)
    parser.add_argument("--api-url", default="http://localhost:8000")
    parser.add_argument("--poll-interval", type=float, default=2.0)
    parser.add_argument("--timeout", type=float, default=300.0)
    parser.add_argument("--backoff", type=float, default=1.0, help="Multiply the poll interval by this after each poll")
    return parser.parse_args(argv)


async def deploy_and_wait(args: argparse.Namespace, client: DeploymentClient | None = None) -> int:
    client = client or DeploymentClient(args.api_url)
    async with client:
        try:
            deployment = await client.create_deployment(
                args.service_name,
                args.version,
                args.environment,
                strategy=args.strategy,
                replicas=args.replicas,
            )
        except DeploymentAPIError as e:
            logger.error("Deployment rejected: %s", e.message)
            for detail in e.details:
                logger.error("  %s: %s", detail.get("field"), detail.get("message"))
            return EXIT_REJECTED

        logger.info("Deployment %s accepted, waiting for completion...", deployment["id"])
        try:
            final = await client.wait_for_completion(
                deployment["id"],
                poll_interval=args.poll_interval,
                timeout=args.timeout,
                backoff=args.backoff,
            )
        except PollingTimeoutError as e:
            logger.error("Gave up: %s", e)
            return EXIT_TIMEOUT

    for entry in final["logs"]:
        logger.info("[%s] %s", entry["level"], entry["message"])

    if final["status"] == "successful":
        logger.info("✅ %s %s deployed to %s", final["service_name"], final["version"], final["environment"])
        return EXIT_SUCCESS
    logger.error("❌ Deployment %s failed", final["id"])
    return EXIT_FAILED


if __name__ == "__main__":
    sys.exit(asyncio.run(deploy_and_wait(parse_args())))
