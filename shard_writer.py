#!/usr/bin/env python3
"""
Rotating CSV Shard Writer

Streams posts into CSV shards of a fixed record count. A full shard is
renamed after the time span it holds, zipped, and the plain CSV removed.
"""

import os
import zipfile
from dataclasses import dataclass, field
from enum import Enum
from typing import IO, List, Optional

from bsky_client import Post
from errors import FilesystemError, ShardStateError
from utils import RunLogger, compact_timestamp

CSV_HEADER = "author.handle,record.createdAt,record.text,replyCount,repostCount,likeCount,quoteCount"

_NEEDS_QUOTING = (',', '"', '\n')


def escape_csv(value: str) -> str:
    """Quote a field if it holds a comma, quote or newline."""
    if any(ch in value for ch in _NEEDS_QUOTING):
        return '"' + value.replace('"', '""') + '"'
    return value


def normalize_text(text: str) -> str:
    """Collapse each line break into a single space."""
    return text.replace('\r\n', ' ').replace('\n', ' ').replace('\r', ' ')


def encode_record(post: Post) -> str:
    """Encode a post as one CSV line, without the line terminator."""
    return ','.join([
        escape_csv(post.handle),
        escape_csv(post.created_at),
        escape_csv(normalize_text(post.text)),
        str(post.reply_count),
        str(post.repost_count),
        str(post.like_count),
        str(post.quote_count),
    ])


class ShardState(Enum):
    OPEN = "open"
    FINALIZED = "finalized"


@dataclass
class Shard:
    index: int
    temp_path: str
    record_count: int = 0
    first_created_at: Optional[str] = None
    last_created_at: Optional[str] = None
    state: ShardState = ShardState.OPEN
    csv_path: Optional[str] = None
    archive_path: Optional[str] = None
    stream: Optional[IO[str]] = field(default=None, repr=False)

    def final_csv_name(self, suffix: str = "") -> str:
        first = compact_timestamp(self.first_created_at, "start")
        last = compact_timestamp(self.last_created_at, "end")
        return f"posts_{first}_{last}{suffix}.csv"

    @property
    def path(self) -> str:
        """Where the uncompressed CSV currently lives."""
        return self.csv_path or self.temp_path


@dataclass
class RunState:
    """Everything a single run mutates. Not persisted between runs."""
    total_posts_processed: int = 0
    current_shard: Optional[Shard] = None
    next_index: int = 1
    finalized_shards: List[Shard] = field(default_factory=list)


class ShardWriter:
    """Appends posts to the open shard and rotates it at posts_per_file."""

    def __init__(self, base_dir: str, posts_per_file: int, state: Optional[RunState] = None,
                 run_logger: Optional[RunLogger] = None):
        if posts_per_file <= 0:
            raise ValueError(f"posts_per_file must be positive, got {posts_per_file}")

        self.base_dir = base_dir
        self.posts_per_file = posts_per_file
        self.state = state or RunState()
        self.logger = run_logger or RunLogger()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if exc_type is None:
            self.close()
        else:
            self.abort()
        return False

    @property
    def current_shard(self) -> Optional[Shard]:
        return self.state.current_shard

    def open_shard(self) -> Shard:
        """Start a new temp CSV and write its header."""
        if self.state.current_shard is not None:
            raise ShardStateError(f"Shard {self.state.current_shard.index} is still open")

        index = self.state.next_index
        temp_path = os.path.join(self.base_dir, f"posts_temp_{index}.csv")
        try:
            stream = open(temp_path, 'w', encoding='utf-8', newline='')
            stream.write(CSV_HEADER + '\n')
        except OSError as e:
            raise FilesystemError(f"Could not create {temp_path}: {e}", temp_path) from e

        shard = Shard(index=index, temp_path=temp_path, stream=stream)
        self.state.next_index += 1
        self.state.current_shard = shard
        self.logger.shard_event("Creating new CSV file", temp_path)
        return shard

    def append(self, post: Post):
        """Write one post; finalize and rotate once the shard is full."""
        shard = self.state.current_shard or self.open_shard()

        try:
            shard.stream.write(encode_record(post) + '\n')
        except (OSError, UnicodeError) as e:
            raise FilesystemError(f"Could not write to {shard.path}: {e}", shard.path) from e

        if shard.first_created_at is None:
            shard.first_created_at = post.created_at
        shard.last_created_at = post.created_at
        shard.record_count += 1
        self.state.total_posts_processed += 1

        if shard.record_count >= self.posts_per_file:
            self.finalize(shard)
            self.open_shard()

    def append_all(self, posts: List[Post]):
        for post in posts:
            self.append(post)

    def _close_stream(self, shard: Shard):
        if shard.stream is None:
            return
        try:
            shard.stream.close()
        except OSError as e:
            raise FilesystemError(f"Could not close {shard.path}: {e}", shard.path) from e
        finally:
            shard.stream = None

    def _final_csv_path(self, shard: Shard) -> str:
        """Name the CSV after its time span; add the shard index on a clash."""
        final_path = os.path.join(self.base_dir, shard.final_csv_name())
        if os.path.exists(final_path) or os.path.exists(final_path + '.zip'):
            unique_path = os.path.join(self.base_dir, shard.final_csv_name(f"_{shard.index}"))
            self.logger.warning(f"{os.path.basename(final_path)} already exists, using {unique_path} instead")
            return unique_path
        return final_path

    def finalize(self, shard: Shard) -> str:
        """Rename the shard after its time span, zip it, then drop the CSV.

        Returns the archive path. The CSV is kept if compression fails, and
        no archive appears under the final name unless it verified.
        """
        if shard.state is not ShardState.OPEN:
            raise ShardStateError(f"Shard {shard.index} is already {shard.state.value}")

        # Phase 1: close and rename
        self._close_stream(shard)
        if shard.csv_path is None:
            final_path = self._final_csv_path(shard)
            try:
                os.replace(shard.temp_path, final_path)
            except OSError as e:
                raise FilesystemError(f"Could not rename {shard.temp_path}: {e}", shard.temp_path) from e
            shard.csv_path = final_path
            self.logger.shard_event("CSV file finished", final_path)
        final_path = shard.csv_path

        # Phase 2: compress to a .part file, verify, move into place, delete
        zip_path = final_path + '.zip'
        part_path = zip_path + '.part'
        try:
            with zipfile.ZipFile(part_path, 'w', compression=zipfile.ZIP_DEFLATED, compresslevel=9) as archive:
                archive.write(final_path, arcname=os.path.basename(final_path))
            with zipfile.ZipFile(part_path) as archive:
                bad_member = archive.testzip()
            if bad_member is not None:
                raise zipfile.BadZipFile(f"Corrupt member {bad_member}")
            os.replace(part_path, zip_path)
            archive_size = os.path.getsize(zip_path)
        except (OSError, zipfile.BadZipFile) as e:
            if os.path.exists(part_path):
                os.remove(part_path)
            raise FilesystemError(f"Could not compress {final_path}: {e}", final_path) from e
        self.logger.info(f"ZIP file created: {zip_path} ({archive_size} bytes)")

        try:
            os.remove(final_path)
        except OSError as e:
            raise FilesystemError(f"Could not remove {final_path}: {e}", final_path) from e
        self.logger.shard_event("CSV file removed after compression", final_path)

        shard.state = ShardState.FINALIZED
        shard.archive_path = zip_path
        self.state.finalized_shards.append(shard)
        if self.state.current_shard is shard:
            self.state.current_shard = None
        return zip_path

    def close(self):
        """End of run: finalize the open shard, or discard it if it is empty."""
        shard = self.state.current_shard
        if shard is None:
            return

        if shard.record_count > 0:
            self.finalize(shard)
            return

        self._close_stream(shard)
        try:
            os.remove(shard.temp_path)
        except OSError as e:
            raise FilesystemError(f"Could not remove {shard.temp_path}: {e}", shard.temp_path) from e
        self.state.current_shard = None
        self.logger.shard_event("Empty CSV file discarded", shard.temp_path)

    def abort(self):
        """Failure path: flush the open shard to disk and leave it unfinalized."""
        shard = self.state.current_shard
        if shard is None:
            return

        try:
            self._close_stream(shard)
        except FilesystemError as e:
            self.logger.error(f"Could not flush {shard.path} after failure: {e}")
            return
        self.logger.warning(
            f"Run aborted, CSV file left unfinalized with {shard.record_count} posts: {shard.path}"
        )
