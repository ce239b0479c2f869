"""
Command line backfill of category and item embeddings.

    python -m catalog_recommender.backfill categories [--category-id ID]
    python -m catalog_recommender.backfill items --start-id ID --batch-size N [--all]
"""

import argparse
import logging
import sys

from .config import get_settings
from .database import SessionLocal
from .embedding_client import EmbeddingClient
from .recommendation_engine import RecommendationEngine

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Backfill embedding vectors")
    sub = parser.add_subparsers(dest="command", required=True)

    categories = sub.add_parser("categories", help="Fetch missing category embeddings")
    categories.add_argument("--category-id", type=int, default=None,
                            help="Only embed this category")

    items = sub.add_parser("items", help="Compute item average embeddings")
    items.add_argument("--start-id", type=int, default=1)
    items.add_argument("--batch-size", type=int, default=100)
    items.add_argument("--all", action="store_true",
                       help="Keep going batch by batch until the catalog is exhausted")
    return parser


def run(args: argparse.Namespace) -> int:
    settings = get_settings()
    db = SessionLocal()
    try:
        if args.command == "categories":
            with EmbeddingClient(settings) as client:
                engine = RecommendationEngine(db, client=client, settings=settings)
                if args.category_id is not None:
                    return 0 if engine.update_category_embedding(args.category_id) is not None else 1
                report = engine.update_all_category_embeddings()
                print(f"[OK] {len(report.embedded)} embedded, {report.already_present} already present, "
                      f"{len(report.failed)} failed")
                return 1 if report.failed else 0

        engine = RecommendationEngine(db, settings=settings)
        if args.all:
            reports = engine.update_all_item_embeddings(batch_size=args.batch_size, start_id=args.start_id)
        else:
            reports = [engine.update_item_embeddings_in_range(args.start_id, args.batch_size)]
        failed = sum(len(r.failed) for r in reports)
        for r in reports:
            print(f"[OK] from ID {r.start_id}: {len(r.updated)} updated, {len(r.incomplete)} incomplete, "
                  f"{len(r.failed)} failed; next start ID {r.next_start_id}")
        return 1 if failed else 0
    finally:
        db.close()


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(level=get_settings().log_level)
    return run(args)


if __name__ == "__main__":
    sys.exit(main())
