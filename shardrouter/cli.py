#!/usr/bin/env python3
"""
Shardrouter Command Line Entry Point

Usage:
    python -m shardrouter.cli partition user_1 user_2     # Show key -> partition
    python -m shardrouter.cli distribution --keys 1000    # Key spread over partitions
    python -m shardrouter.cli demo                        # CRUD + replication walkthrough
    python -m shardrouter.cli counts                      # Users per partition
    python -m shardrouter.cli --sqlite-dir /tmp/shards demo   # Run without PostgreSQL

Environment Variables:
    SHARDROUTER_TOPOLOGY_FILE       - JSON topology (default: 3 local partitions)
    SHARDROUTER_REPLICA_SELECTION   - random, round_robin or first
    SHARDROUTER_QUERY_TIMEOUT       - Per-operation timeout in seconds (0 = none)
    SHARDROUTER_DEBUG               - Enable debug logging (true/false)
"""

import argparse
import logging
import sys
import time
from collections import Counter
from typing import List, Optional

from .cluster.hashing import partition_for_key
from .cluster.router import TopologyRouter
from .cluster.selection import get_selector
from .config.settings import settings
from .config.topology import TopologyConfig, default_topology, load_topology
from .context import OperationContext
from .errors import NotFoundError, ShardRouterError
from .repository.models import User
from .repository.schema import ensure_schema
from .repository.user_repository import UserRepository
from .storage.sqlite import SQLiteConnector

logger = logging.getLogger(__name__)

REPLICATION_WAIT = 0.2  # Seconds to let replicas catch up in the demo


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        prog="shardrouter",
        description="Shardrouter: key-based routing over partitioned PostgreSQL clusters",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )

    parser.add_argument(
        "--topology",
        type=str,
        default=settings.TOPOLOGY_FILE,
        help="Path to a JSON topology file (empty = built-in 3-partition layout)",
    )

    parser.add_argument(
        "--selection",
        type=str,
        default=settings.REPLICA_SELECTION,
        choices=["random", "round_robin", "first"],
        help="Replica selection strategy",
    )

    parser.add_argument(
        "--sqlite-dir",
        type=str,
        default="",
        help="Store partitions as SQLite files in this directory instead of PostgreSQL",
    )

    parser.add_argument(
        "--timeout",
        type=float,
        default=settings.QUERY_TIMEOUT,
        help="Per-operation timeout in seconds (0 = none)",
    )

    parser.add_argument(
        "--debug",
        action="store_true",
        default=settings.DEBUG,
        help="Enable debug logging",
    )

    sub = parser.add_subparsers(dest="command", required=True)

    part = sub.add_parser("partition", help="Show which partition each key maps to")
    part.add_argument("keys", nargs="+", help="Shard keys")
    part.add_argument("--partitions", type=int, default=None,
                      help="Partition count (default: from topology)")

    dist = sub.add_parser("distribution", help="Show how generated keys spread over partitions")
    dist.add_argument("--keys", type=int, default=1000, help="Number of keys to hash")
    dist.add_argument("--prefix", type=str, default="user_", help="Key prefix")
    dist.add_argument("--partitions", type=int, default=None,
                      help="Partition count (default: from topology)")

    sub.add_parser("demo", help="Walk through CRUD, replication lag and distribution")
    sub.add_parser("counts", help="Print the number of users on each partition")

    return parser.parse_args(argv)


def setup_logging(debug: bool = False) -> None:
    """Configure logging based on debug flag."""
    level = logging.DEBUG if debug else getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO)

    logging.basicConfig(
        level=level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=[
            logging.StreamHandler(sys.stdout),
        ]
    )


def resolve_topology(path: str) -> TopologyConfig:
    if path:
        return load_topology(path)
    return default_topology()


def build_router(args: argparse.Namespace) -> TopologyRouter:
    topology = resolve_topology(args.topology)
    connector = SQLiteConnector(args.sqlite_dir) if args.sqlite_dir else None
    return TopologyRouter(topology, connector=connector, selector=get_selector(args.selection))


def make_context(args: argparse.Namespace) -> Optional[OperationContext]:
    return OperationContext(timeout=args.timeout) if args.timeout > 0 else None


# ============================================================================
# Commands
# ============================================================================

def cmd_partition(args: argparse.Namespace) -> int:
    n = args.partitions or resolve_topology(args.topology).num_partitions
    for key in args.keys:
        print(f"  {key} -> Partition {partition_for_key(key, n)}")
    return 0


def cmd_distribution(args: argparse.Namespace) -> int:
    n = args.partitions or resolve_topology(args.topology).num_partitions
    counts = Counter(partition_for_key(f"{args.prefix}{i}", n) for i in range(args.keys))
    for partition_id in range(n):
        count = counts.get(partition_id, 0)
        share = count / args.keys * 100 if args.keys else 0.0
        print(f"  Partition {partition_id}: {count} keys ({share:.2f}%)")
    return 0


def cmd_counts(args: argparse.Namespace) -> int:
    with build_router(args) as router:
        counts = UserRepository(router).count_per_partition(ctx=make_context(args))
    total = 0
    for partition_id, count in sorted(counts.items()):
        print(f"  Partition {partition_id}: {count} users")
        total += count
    print(f"  Total: {total} users")
    return 0


def cmd_demo(args: argparse.Namespace) -> int:
    print("=== Database Sharding and Replication Demo ===")
    with build_router(args) as router:
        print(f"Connected to {router.num_partitions} partitions")
        ensure_schema(router)
        repo = UserRepository(router)

        demonstrate_sharding(router)
        demonstrate_crud(repo, router, args)
        demonstrate_replication(repo, router, args)
        demonstrate_distribution(repo, args)
    print("=== Demo Complete ===")
    return 0


def demonstrate_sharding(router: TopologyRouter) -> None:
    print("--- Sharding ---")
    for user_id in ("user_alice", "user_bob", "user_charlie", "user_diana", "user_eve"):
        print(f"  {user_id} -> Partition {router.partition_for(user_id)}")
    print()


def demonstrate_crud(repo: UserRepository, router: TopologyRouter, args: argparse.Namespace) -> None:
    print("--- CRUD Operations ---")
    user = User(user_id="demo_user_123", name="Alice Johnson", email="alice@example.com")

    print(f"Creating user '{user.user_id}' in Partition {router.partition_for(user.user_id)}...")
    repo.create(user, ctx=make_context(args))
    print(f"  Created with ID {user.id}")

    found = repo.get_strong(user.user_id, ctx=make_context(args))
    print(f"  Primary read: {found.name} ({found.email})")

    time.sleep(REPLICATION_WAIT)
    try:
        found = repo.get(user.user_id, ctx=make_context(args))
        print(f"  Replica read: {found.name} ({found.email})")
    except NotFoundError:
        print("  Replica read: not replicated yet")

    user.name, user.email = "Alice Smith", "alice.smith@example.com"
    repo.update(user, ctx=make_context(args))
    print("  Updated")

    repo.delete(user.user_id, ctx=make_context(args))
    print("  Deleted")
    print()


def demonstrate_replication(repo: UserRepository, router: TopologyRouter, args: argparse.Namespace) -> None:
    print("--- Replication ---")
    user = User(user_id="replication_demo_user", name="Bob Wilson", email="bob@example.com")
    print(f"Creating user in Partition {router.partition_for(user.user_id)}...")
    repo.create(user, ctx=make_context(args))

    primary_user = repo.get_strong(user.user_id, ctx=make_context(args))
    print(f"  Immediate primary read: {primary_user.name}")

    try:
        repo.get(user.user_id, ctx=make_context(args))
        print("  Immediate replica read: found (replication was fast)")
    except NotFoundError:
        print("  Immediate replica read: not yet available (replication lag)")

    time.sleep(REPLICATION_WAIT)
    try:
        replica_user = repo.get(user.user_id, ctx=make_context(args))
        print(f"  Replica read after {REPLICATION_WAIT}s: {replica_user.name}")
    except NotFoundError:
        print(f"  Replica read after {REPLICATION_WAIT}s: still not available")

    repo.delete(user.user_id, ctx=make_context(args))
    print()


def demonstrate_distribution(repo: UserRepository, args: argparse.Namespace) -> None:
    print("--- Partition Distribution ---")
    user_ids = [f"dist_user_{i}" for i in range(1, 6)]
    for user_id in user_ids:
        repo.create(User(user_id=user_id, name=f"User {user_id[-1]}", email=f"{user_id}@example.com"),
                    ctx=make_context(args))

    counts = repo.count_per_partition(ctx=make_context(args))
    for partition_id, count in sorted(counts.items()):
        print(f"  Partition {partition_id}: {count} users")
    print(f"  Total: {sum(counts.values())} users")

    for user_id in user_ids:
        repo.delete(user_id, ctx=make_context(args))
    print()


COMMANDS = {
    "partition": cmd_partition,
    "distribution": cmd_distribution,
    "demo": cmd_demo,
    "counts": cmd_counts,
}


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    args = parse_args(argv)
    setup_logging(debug=args.debug)

    try:
        return COMMANDS[args.command](args)
    except ShardRouterError as e:
        logger.error(f"{args.command} failed: {e}")
        return 1
    except KeyboardInterrupt:
        logger.info("Keyboard interrupt received")
        return 130


if __name__ == "__main__":
    sys.exit(main())
