#!/usr/bin/env python3
"""
velohub - Hub worker

Runs one hub against Redis: drains its inbox in order, answers queries and
fans owner events out to followers.

Configuration comes from config/config.json (or VELOHUB_CONFIG_DIR) with
environment overrides, see velohub.config.
"""

import argparse
import logging
import signal
import sys
import threading

import redis

from velohub.config import get_hub_config
from velohub.log import setup_logging
from velohub.protocol.hub import Hub
from velohub.transport.redis_transport import HubWorker, RedisTransport

logger = logging.getLogger('velohub.run_hub')


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Run a velohub hub worker")
    parser.add_argument('--hub-id', help="hub identity (overrides config)")
    parser.add_argument('--owner', help="owner identity (overrides config)")
    parser.add_argument('--log-level', help="DEBUG, INFO, WARNING ...")
    args = parser.parse_args(argv)

    config = get_hub_config()
    if args.log_level:
        config['logging']['level'] = args.log_level
    setup_logging(config['logging'])

    hub_id = args.hub_id or config['hub']['id']
    owner = args.owner or config['hub']['owner']
    if not owner:
        logger.error("hub.owner is not set; use --owner or VELOHUB_OWNER")
        return 1

    transport = RedisTransport.from_config(
        config['redis'], request_timeout=config['hub']['request_timeout'])
    try:
        transport.sync_client.ping()
    except redis.RedisError as e:
        logger.error("Redis unreachable: %s", e)
        return 1

    hub = Hub(hub_id, owner, transport=transport)
    worker = HubWorker(hub, transport.sync_client,
                       poll_timeout=config['hub']['poll_timeout'],
                       reply_ttl=config['hub']['reply_ttl'])

    stop = threading.Event()
    signal.signal(signal.SIGINT, lambda *_: stop.set())
    signal.signal(signal.SIGTERM, lambda *_: stop.set())

    logger.info("Hub %s owned by %s", hub_id, owner)
    worker.start()
    stop.wait()
    worker.stop()
    transport.sync_client.close()
    return 0


if __name__ == '__main__':
    sys.exit(main())
