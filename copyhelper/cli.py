"""
copyhelper command line.
"""

import argparse
import json
import sys
from typing import List, Optional

from PIL import Image

from copyhelper.capture.segmentation import RegionSegmenter
from copyhelper.config import get
from copyhelper.errors import CopyHelperError
from copyhelper.logging_config import configure_logging, get_logger
from copyhelper.service import CopyHelperService

logger = get_logger(__name__)

EXAMPLES = """
Examples:
  copyhelper ingest manuals/*.pdf
  copyhelper list
  copyhelper search-image capture.png --top 5
  copyhelper segment capture.png
  copyhelper remove manuals/old.pdf
  copyhelper prune
"""


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="copyhelper",
        description="Index PDFs and search them with screen captures.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=EXAMPLES,
    )
    parser.add_argument("--index", help="Index file (default: <data_dir>/pdf_index.json)")
    parser.add_argument("--lexical", action="store_true",
                        help="Search by text similarity without loading the embedding model")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")

    sub = parser.add_subparsers(dest="command", required=True)

    ingest = sub.add_parser("ingest", help="Index new or changed documents")
    ingest.add_argument("paths", nargs="+")
    ingest.add_argument("--force", action="store_true", help="Rebuild even if unchanged")

    rm = sub.add_parser("remove", help="Remove a document from the index")
    rm.add_argument("path")

    sub.add_parser("prune", help="Drop documents whose files are gone")
    sub.add_parser("list", help="List indexed documents")

    search = sub.add_parser("search-image", help="Search the index with a captured image")
    search.add_argument("image")
    search.add_argument("--top", type=int, default=get("app", "default_top_n"))

    segment = sub.add_parser("segment", help="Print detected photo and text regions")
    segment.add_argument("image")

    return parser.parse_args(argv)


def _open_image(path: str) -> Image.Image:
    try:
        with Image.open(path) as img:
            img.load()
            return img.copy()
    except OSError as e:
        raise CopyHelperError(f"Cannot open image {path}: {e}") from e


def _print_json(payload) -> None:
    print(json.dumps(payload, indent=2))


def run(args: argparse.Namespace) -> int:
    if args.command == "segment":
        regions = RegionSegmenter().segment(_open_image(args.image))
        _print_json([r.to_dict() for r in regions])
        return 0

    # Only commands that embed need the model
    needs_model = args.command in ("ingest", "search-image") and not args.lexical
    service = CopyHelperService.from_config(
        index_path=args.index,
        strategy="embedding" if needs_model else "lexical",
    )
    with service:
        if args.command == "ingest":
            if args.force:
                for path in args.paths:
                    service.reindex(path)
            else:
                service.ingest(args.paths, progress=True)
            index = service.index()
            print(f"{len(index.documents)} documents, {index.page_count} pages indexed")
        elif args.command == "remove":
            service.remove(args.path)
        elif args.command == "prune":
            before = len(service.index().documents)
            after = len(service.prune().documents)
            print(f"Pruned {before - after} documents")
        elif args.command == "list":
            _print_json(service.index().stats())
        elif args.command == "search-image":
            future = service.submit_capture(_open_image(args.image), args.top)
            capture, results = future.result()
            _print_json({
                "text": capture.text,
                "photos": len(capture.photos),
                "results": [r.model_dump() for r in results],
            })
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)
    configure_logging(log_level="DEBUG" if args.verbose else None)
    try:
        return run(args)
    except CopyHelperError as e:
        logger.error(str(e))
        print(f"error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
