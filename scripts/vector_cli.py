#!/usr/bin/env python3
"""
Command line surface for the similarity store.

Commands:
  load     write the sample cats into the configured store
  query    rank stored records against a literal vector
  scan     print the distance from a vector to every record, in scan order
  rebuild  reload records from persistence and rebuild the similarity index

Exit codes: 0 on success, 2 on malformed input, 1 on other failures.
"""

import argparse
import logging
import sys
from pathlib import Path

# Allow running as a plain script from a source checkout
sys.path.insert(0, str(Path(__file__).parent.parent))

from simstore.core.config import (
    debug_enabled,
    get_query_engine,
    get_query_options,
    get_record_store,
    validate_index_config,
)
from simstore.core.errors import InvalidArgumentError, MalformedEncodingError, SimStoreError
from simstore.samples import SAMPLE_CATS, load_sample_cats
from simstore.vector.codec import TextVectorCodec
from util.logging import logger

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_BAD_INPUT = 2


def parse_vector(text: str, dimension: int):
    """Parse a comma-separated vector literal such as "0.15,0.75,0.35,0.55"."""
    try:
        return TextVectorCodec().decode(text, dimension)
    except MalformedEncodingError as e:
        raise InvalidArgumentError(f"Malformed vector {text!r}: {e}") from e


def load_command(args) -> int:
    store = get_record_store()
    if args.reset:
        store.clear()
        print("✓ Cleared existing records")

    codec = TextVectorCodec()
    for record in load_sample_cats(store):
        print(f"Added cat: {record.name} with vector: {codec.encode(record.vector)}")

    print(f"✓ Store holds {len(store)} records")
    return EXIT_OK


def query_command(args) -> int:
    store = get_record_store()
    if args.samples:
        load_sample_cats(store)

    vector = parse_vector(args.vector, store.dimension)
    options = get_query_options(
        k=args.k,
        metric=args.metric,
        approximate=True if args.approximate else None,
        probe_count=args.probe_count,
    )
    engine = get_query_engine(store)
    results = engine.find_nearest(vector, options=options)

    if not results:
        print("No records found.")
    for result in results:
        print(f"{result.key}, {result.name}, {result.score:.4f}")
    return EXIT_OK


def scan_command(args) -> int:
    store = get_record_store()
    if args.samples:
        load_sample_cats(store)

    vector = parse_vector(args.vector, store.dimension)
    engine = get_query_engine(store)

    print("Searching for similar cats...")
    for record, distance in engine.distances_from(vector, metric=args.metric):
        print(f"Cat: {record.name}, Distance: {distance:.4f}")
    return EXIT_OK


def rebuild_command(args) -> int:
    print("Starting similarity index rebuild...")
    store = get_record_store(load=False)

    count = store.load()
    print(f"Found {count} records in canonical store")

    stats = store.index.stats()
    print(f"✓ Successfully rebuilt index with {stats['entries']} vectors")
    print(f"  mode={stats['mode']} state={stats['state']} partitions={stats['partitions']}")

    # Verify index
    if count:
        engine = get_query_engine(store)
        probe = store.get(store.keys()[0]).vector
        results = engine.find_nearest(probe, k=min(3, count))
        print(f"✓ Verification search returned {len(results)} results")
    else:
        print("✓ No entries to verify (empty index)")

    print("Index rebuild complete!")
    return EXIT_OK


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Vector similarity store")
    subparsers = parser.add_subparsers(dest="command", required=True)

    load_parser = subparsers.add_parser("load", help=f"Load the {len(SAMPLE_CATS)} sample cats")
    load_parser.add_argument("--reset", action="store_true", help="Clear existing records first")
    load_parser.set_defaults(handler=load_command)

    query_parser = subparsers.add_parser("query", help="Find the k nearest records to a vector")
    query_parser.add_argument("--vector", required=True, help="Comma-separated query vector")
    query_parser.add_argument("-k", "--k", type=int, default=None, help="Number of results")
    query_parser.add_argument("--metric", choices=["euclidean", "cosine", "dot"], default=None)
    query_parser.add_argument("--approximate", action="store_true", help="Probe only the nearest partitions")
    query_parser.add_argument("--probe-count", type=int, default=None, help="Partitions to probe")
    query_parser.add_argument("--samples", action="store_true", help="Load the sample cats before querying")
    query_parser.set_defaults(handler=query_command)

    scan_parser = subparsers.add_parser("scan", help="Print the distance to every stored record")
    scan_parser.add_argument("--vector", required=True, help="Comma-separated query vector")
    scan_parser.add_argument("--metric", choices=["euclidean", "cosine", "dot"], default=None)
    scan_parser.add_argument("--samples", action="store_true", help="Load the sample cats before scanning")
    scan_parser.set_defaults(handler=scan_command)

    rebuild_parser = subparsers.add_parser("rebuild", help="Rebuild the index from persistence")
    rebuild_parser.set_defaults(handler=rebuild_command)

    return parser


def main(argv=None) -> int:
    """Run the CLI and return its exit code."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if debug_enabled():
        logger.set_level(logging.DEBUG)

    issues = validate_index_config()
    if issues:
        for issue in issues:
            print(f"❌ ERROR: {issue}")
        return EXIT_BAD_INPUT

    try:
        return args.handler(args)
    except InvalidArgumentError as e:
        print(f"❌ ERROR: {e}")
        return EXIT_BAD_INPUT
    except SimStoreError as e:
        logger.error(f"{args.command} failed: {e}")
        print(f"❌ ERROR: {e}")
        return EXIT_FAILURE


if __name__ == "__main__":
    sys.exit(main())
