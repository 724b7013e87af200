#!/usr/bin/env python3
"""
resonance - operator CLI against a SQLite catalog.

Examples:
  # Similar tracks (combined, custom weights)
  resonance similar track-42 --limit 20 --weights 0.6,0.2,0.2

  # Taste clusters for a user
  resonance cluster user-1

  # Stage the next tracks (queue mode with an explicit queue)
  resonance prefetch user-1 track-42 --mode queue --next track-7 track-9

  # Load tracks from a JSON-lines file
  resonance load tracks.jsonl
"""

import argparse
import asyncio
import json
import sys
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv

from resonance.common.logging import get_logger, request_context, setup_logging
from resonance.core.config import get_settings
from resonance.core.errors import ResonanceError
from resonance.core.models import TrackFeatureRecord, TrackMetadata

logger = get_logger(__name__)


def _parse_weights(raw: str):
    from resonance.modules.similarity import SimilarityWeights

    try:
        return SimilarityWeights.from_sequence([float(part) for part in raw.split(",")]).validate()
    except (ValueError, ResonanceError) as e:
        raise argparse.ArgumentTypeError(f"invalid weights: {raw}") from e


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="resonance",
        description="Track similarity, taste clustering and prefetch",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__.split("Examples:", 1)[1],
    )
    parser.add_argument("--db", metavar="PATH", help="Catalog database (default: CATALOG_DB_PATH)")
    parser.add_argument("--log-level", help="DEBUG, INFO, WARNING, ERROR")
    sub = parser.add_subparsers(dest="command", required=True)

    similar = sub.add_parser("similar", help="Rank tracks similar to a reference track")
    similar.add_argument("track_id")
    similar.add_argument("--method", default="combined",
                         choices=["semantic", "acoustic", "categorical", "combined"])
    similar.add_argument("--limit", "-n", type=int, default=10)
    similar.add_argument("--weights", type=_parse_weights,
                         help="semantic,acoustic,categorical (combined only)")

    cluster = sub.add_parser("cluster", help="Cluster a user's listening history")
    cluster.add_argument("user_id")

    prefetch = sub.add_parser("prefetch", help="Predict and stage the next tracks")
    prefetch.add_argument("user_id")
    prefetch.add_argument("track_id", help="Currently playing track")
    prefetch.add_argument("--count", "-n", type=int)
    prefetch.add_argument("--mode", default="autoplay", choices=["autoplay", "queue"])
    prefetch.add_argument("--next", nargs="+", dest="next_track_ids", metavar="TRACK_ID",
                          help="Explicit upcoming queue (queue mode)")

    load = sub.add_parser("load", help="Upsert tracks from a JSON-lines file")
    load.add_argument("file", type=Path)

    return parser


def load_tracks(db_path: str, file: Path) -> int:
    """Upsert one track per line: {"track_id", "embedding", "acoustic", "genres", "moods", "tags", "metadata"}."""
    from resonance.core.connectors import SQLiteCatalog

    catalog = SQLiteCatalog(db_path)
    count = 0
    with open(file, encoding="utf-8") as f:
        for line in f:
            line = line.strip()
            if not line:
                continue
            row = json.loads(line)
            record = TrackFeatureRecord.build(
                row["track_id"],
                embedding=row.get("embedding"),
                acoustic=row.get("acoustic"),
                genres=row.get("genres", ()),
                moods=row.get("moods", ()),
                tags=row.get("tags", ()),
            )
            metadata = None
            if row.get("metadata"):
                metadata = TrackMetadata.from_dict({"track_id": row["track_id"], **row["metadata"]})
            catalog.upsert_track(record, metadata)
            count += 1
    logger.info("Tracks loaded", data={"db_path": db_path, "count": count})
    return count


async def run(args: argparse.Namespace) -> dict:
    from resonance.modules.prefetch import PrefetchMode
    from resonance.modules.similarity import SimilarityMethod
    from resonance.services import RecommendationService

    settings = get_settings()
    if args.db:
        settings.catalog_db_path = args.db

    if args.command == "load":
        return {"loaded": load_tracks(settings.catalog_db_path, args.file)}

    service = RecommendationService.from_settings(settings)
    try:
        if args.command == "similar":
            result = await service.similar(
                args.track_id, SimilarityMethod(args.method), args.limit, args.weights
            )
            return result.to_dict()

        if args.command == "cluster":
            with request_context(user_id=args.user_id):
                clusters = await service.cluster_user_taste(args.user_id)
            return {"user_id": args.user_id, "clusters": [c.to_dict() for c in clusters]}

        with request_context(user_id=args.user_id):
            entry = await service.predict_next(
                args.user_id, args.track_id, args.count, PrefetchMode(args.mode), args.next_track_ids
            )
        return entry.to_dict()
    finally:
        await service.close()


def main(argv: Optional[List[str]] = None) -> int:
    load_dotenv()
    args = build_parser().parse_args(argv)
    settings = get_settings()
    level = args.log_level or (settings.log_level.value if settings.log_level else None)
    setup_logging(level=level, json_format=settings.log_json, component="cli")

    try:
        output = asyncio.run(run(args))
    except ResonanceError as e:
        print(json.dumps(e.to_dict(), indent=2), file=sys.stderr)
        return 1

    print(json.dumps(output, indent=2, ensure_ascii=False))
    return 0


if __name__ == "__main__":
    sys.exit(main())
