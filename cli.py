#!/usr/bin/env python3
"""
Bluesky Posts Crawler CLI

Crawls posts matching a search query over a historical date range and
saves them as zipped CSV shards.
"""

import argparse
import os
import sys
from typing import List, Optional

from config import CrawlConfig, load_config
from crawler import crawl
from utils import RunLogger, setup_logging


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Crawl Bluesky search results into zipped CSV files",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Everything from config.json
  python cli.py

  # Another config file, overriding the query
  python cli.py -c elections.json -q "eleições"

  # One week in 30 minute windows, 5000 posts per file
  python cli.py --since 2024-01-01 --until 2024-01-07 --minute-interval 30 --posts-per-file 5000
        """
    )

    parser.add_argument('-c', '--config', default='config.json',
                        help='Path to the JSON config file (default: config.json)')
    parser.add_argument('-q', '--query', help='Search query')
    parser.add_argument('--since', help='First day to crawl (YYYY-MM-DD)')
    parser.add_argument('--until', help='Last day to crawl, inclusive (YYYY-MM-DD)')
    parser.add_argument('--lang', dest='language', help='Language filter (e.g. pt, en)')
    parser.add_argument('--limit', type=int, help='Posts per API page (max: 100)')
    parser.add_argument('--posts-per-file', type=int, help='Posts per CSV file before rotating')
    parser.add_argument('-o', '--output-dir', dest='base_files_dir', help='Directory for the zipped CSV files')
    parser.add_argument('--minute-interval', type=int, help='Length of each search window in minutes')
    parser.add_argument('--utc-offset', help='Fixed UTC offset of the search windows (default: -03:00)')
    parser.add_argument('--log-file', help='Run log file (default: runtime.log)')
    parser.add_argument('-v', '--verbose', action='store_true', help='Enable verbose logging')
    return parser


def create_config_from_args(argv: Optional[List[str]] = None):
    """Create configuration from the config file and command line overrides."""
    args = build_parser().parse_args(argv)

    overrides = {
        'query': args.query,
        'since': args.since,
        'until': args.until,
        'language': args.language,
        'limit': args.limit,
        'posts_per_file': args.posts_per_file,
        'base_files_dir': args.base_files_dir,
        'minute_interval': args.minute_interval,
        'utc_offset': args.utc_offset,
        'log_file': args.log_file,
    }

    if os.path.exists(args.config):
        config = load_config(args.config).replace(**overrides)
    else:
        config = CrawlConfig(**{k: v for k, v in overrides.items() if v is not None})
    return config, args.verbose


def print_banner(title: str):
    print("=" * 60)
    print(title)
    print("=" * 60)


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    try:
        config, verbose = create_config_from_args(argv)
    except (ValueError, TypeError, OSError) as e:
        print(f"❌ Invalid configuration: {e}")
        return 2

    setup_logging(config.log_file, verbose)
    run_logger = RunLogger("PostsCrawler")

    print_banner("🦋 BLUESKY POSTS CRAWLER")
    print(f"📝 Query: {config.query}")
    print(f"📅 Range: {config.start_day} to {config.end_day} (UTC{config.utc_offset})")
    print(f"⏱️  Window: {config.minute_interval} minutes")
    print(f"🌐 Language: {config.language}")
    print(f"📄 Page size: {config.limit}")
    print(f"🗂️  Posts per file: {config.posts_per_file:,}")
    print(f"📁 Output dir: {config.base_files_dir}")
    print(f"🧾 Log file: {config.log_file}")
    print("=" * 60)

    try:
        state = crawl(config, run_logger=run_logger)
    except KeyboardInterrupt:
        run_logger.error("Run cancelled by user")
        print()
        print_banner("⛔ OPERATION CANCELLED BY USER")
        return 130
    except Exception as e:
        run_logger.error(f"Something went wrong: {e}", exc_info=True)
        print()
        print_banner("💥 ERROR OCCURRED")
        print(f"❌ {e}")
        print("=" * 60)
        return 1

    print()
    print_banner("📈 FINAL SUMMARY")
    print(f"✅ Saved {state.total_posts_processed:,} posts in {len(state.finalized_shards)} zip files")
    for shard in state.finalized_shards:
        print(f"   📦 {shard.archive_path}")
    print_banner("🎉 COMPLETED SUCCESSFULLY!")
    return 0


if __name__ == '__main__':
    sys.exit(main())
