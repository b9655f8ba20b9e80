#!/usr/bin/env python3
"""dyndns-update - keep Cloudflare DNS records on the current public IP

Resolves the machine's public IPv4/IPv6 addresses, lists the records selected
by each zone's search rules and patches every A/AAAA record whose content
differs from the matching address. Records that already match are left alone.

Environment variables:

    DYNDNS_CONFIG_PATH     Path to the YAML config file (default: config.yaml)
                           Example config file:
                             ipv4_service: "https://api.ipify.org"
                             ipv6_service: "https://api6.ipify.org"
                             zones:
                               - identifier: "023e105f4ecef8ad9ca31a8372d0c353"
                                 auth:
                                   bearer_auth: "<api token>"
                                 search:
                                   - name: "home.example.com"
                                     type: "A"
                                   - comment:
                                       contains: "dyndns"

                           Legacy API keys are configured as
                             auth:
                               api_key:
                                 email: "user@example.com"   # or key / user_service_key

    Runtime:
        SYNC_MODE              "once" or "watch" (polling loop) (default: once)
        POLL_INTERVAL_SECONDS  Poll interval in watch mode (default: 300)
        MAX_WORKERS            Concurrent requests per pass (default: 8)
        LOG_LEVEL              DEBUG, INFO, WARNING, ERROR (default: INFO)
"""

from __future__ import annotations

import logging
import os
import sys
import time
from concurrent.futures import ThreadPoolExecutor

import requests

from .config import Config, get_config_file_mtime, load_config
from .errors import AddressResolutionError, ConfigError
from .sync import DynDNSSyncer

# =============================================================================
# Configuration
# =============================================================================

CONFIG_PATH = os.getenv("DYNDNS_CONFIG_PATH", "config.yaml")

# Runtime configuration
SYNC_MODE = os.getenv("SYNC_MODE", "once").lower().strip()
POLL_INTERVAL_SECONDS = int(os.getenv("POLL_INTERVAL_SECONDS", "300"))
MAX_WORKERS = int(os.getenv("MAX_WORKERS", "8"))
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

USER_AGENT = "dyndns-update"

# =============================================================================
# Logging Setup
# =============================================================================

logging.basicConfig(
    level=getattr(logging, LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s [%(levelname)s] %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger(__name__)

# =============================================================================
# Main
# =============================================================================


def create_session() -> requests.Session:
    """One session per process so connections are reused across all requests."""
    session = requests.Session()
    session.headers["User-Agent"] = USER_AGENT
    return session


def describe_config(config: Config) -> None:
    logger.info(
        f"Found configurations for {len(config.zones)} zones "
        f"with {config.total_search_rules} total search rules"
    )
    if not config.ipv4_service and not config.ipv6_service:
        logger.warning("Neither ipv4_service nor ipv6_service is configured")


def run_once(syncer: DynDNSSyncer) -> bool:
    """Run a single pass. Returns False if no address could be resolved."""
    try:
        syncer.sync_once()
    except AddressResolutionError as e:
        logger.error(f"Could not get ip addresses: {e}")
        return False
    return True


def watch(syncer: DynDNSSyncer, config_path: str) -> None:
    """Run a pass every POLL_INTERVAL_SECONDS, reloading the config when it changes."""
    logger.info(f"Poll interval: {POLL_INTERVAL_SECONDS}s")
    last_mtime = get_config_file_mtime(config_path)

    while True:
        run_once(syncer)
        time.sleep(max(5, POLL_INTERVAL_SECONDS))

        current_mtime = get_config_file_mtime(config_path)
        if current_mtime == last_mtime:
            continue
        last_mtime = current_mtime

        logger.info(f"Config change detected in: {config_path}")
        try:
            syncer = DynDNSSyncer(
                config=load_config(config_path),
                session=syncer.session,
                executor=syncer.executor,
            )
            describe_config(syncer.config)
        except ConfigError as e:
            logger.error(f"Failed to reload configuration: {e}")
            logger.warning("Continuing with previous configuration")
        except Exception as e:
            logger.error(f"Failed to reload configuration: {e}", exc_info=True)
            logger.warning("Continuing with previous configuration")


def main():
    """Main entry point."""
    logger.info(f"Opening config file at {CONFIG_PATH}")
    try:
        config = load_config(CONFIG_PATH)
    except ConfigError as e:
        logger.error(f"Configuration validation failed: {e}")
        sys.exit(1)

    describe_config(config)
    logger.info(f"Sync mode: {SYNC_MODE}")

    if SYNC_MODE not in ("once", "watch"):
        logger.error(f"Invalid SYNC_MODE: {SYNC_MODE}. Use 'once' or 'watch'")
        sys.exit(1)

    session = create_session()
    try:
        with ThreadPoolExecutor(max_workers=max(1, MAX_WORKERS), thread_name_prefix="dyndns") as executor:
            syncer = DynDNSSyncer(config=config, session=session, executor=executor)

            if SYNC_MODE == "once":
                if not run_once(syncer):
                    sys.exit(1)
                return

            watch(syncer, CONFIG_PATH)

    except KeyboardInterrupt:
        logger.info("Shutting down gracefully...")
    except Exception as e:
        logger.error(f"Fatal error: {e}", exc_info=True)
        sys.exit(1)
    finally:
        session.close()


if __name__ == "__main__":
    main()
