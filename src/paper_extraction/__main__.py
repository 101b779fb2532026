"""
Paper Extraction CLI

Runs one extraction attempt and prints the result as JSON.

    python -m paper_extraction paper.pdf --alternative --retry-count 1
"""

import argparse
import asyncio
import json
import logging
import mimetypes
import sys
from pathlib import Path

from dotenv import load_dotenv

from paper_extraction.models import ExtractionCancelled, Outcome, RetryOptions
from paper_extraction.pipeline import build_default_pipeline

logger = logging.getLogger("paper_extraction")


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="paper_extraction",
        description="Extract normalized text from a research paper",
    )
    parser.add_argument("file", type=Path, help="PDF, DOCX, LaTeX or plain-text file")
    parser.add_argument(
        "--alternative",
        action="store_true",
        help="Use alternative extraction method",
    )
    parser.add_argument(
        "--ignore-encryption",
        action="store_true",
        help="Attempt to bypass encryption",
    )
    parser.add_argument(
        "--skip-metadata",
        action="store_true",
        help="Skip metadata extraction",
    )
    parser.add_argument("--retry-count", type=int, default=0)
    parser.add_argument("--document-id")
    parser.add_argument("--project-id")
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    load_dotenv()
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    args = parse_args(argv)
    if not args.file.is_file():
        logger.error("File not found: %s", args.file)
        return 2

    options = RetryOptions(
        use_alternative_method=args.alternative,
        ignore_encryption=args.ignore_encryption,
        skip_metadata=args.skip_metadata,
    )
    mime_type, _ = mimetypes.guess_type(args.file.name)

    pipeline = build_default_pipeline()
    try:
        result = asyncio.run(
            pipeline.process_document(
                args.file.read_bytes(),
                args.file.name,
                mime_type,
                document_id=args.document_id,
                project_id=args.project_id,
                options=options,
                retry_count=args.retry_count,
            )
        )
    except (ExtractionCancelled, KeyboardInterrupt):
        logger.warning("Extraction cancelled")
        return 130

    json.dump(result.to_dict(), sys.stdout, ensure_ascii=False, indent=2)
    sys.stdout.write("\n")
    return 1 if result.outcome is Outcome.FAILED else 0


if __name__ == "__main__":
    sys.exit(main())
