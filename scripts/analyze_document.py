#!/usr/bin/env python3
"""CLI helper that runs one contract analysis against a local file."""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import mimetypes
import sys
from pathlib import Path

from dotenv import load_dotenv

from avvcheck.errors import AnalysisError
from avvcheck.ingest import extract_document
from avvcheck.services.analysis import AnalysisService


def _load_dotenv() -> None:
    project_root = Path(__file__).resolve().parents[1]
    env_file = project_root / ".env"
    if env_file.exists():
        load_dotenv(dotenv_path=env_file)
    else:  # pragma: no cover - fallback path
        load_dotenv()


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(levelname)s: %(message)s",
    )


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("path", type=Path, help="PDF, DOCX or text file to analyse")
    parser.add_argument("-o", "--output", type=Path, help="write the JSON result to this file")
    parser.add_argument("-v", "--verbose", action="store_true", help="enable debug logging")
    return parser.parse_args(argv)


async def _analyze(path: Path) -> dict[str, object]:
    service = AnalysisService()
    mime_type, _ = mimetypes.guess_type(path.name)
    document = extract_document(path.read_bytes(), path.name, mime_type)
    outcome = await service.analyze_document(document, source=path.name)
    return outcome.to_dict()


def main(argv: list[str] | None = None) -> int:
    args = _parse_args(argv)
    _load_dotenv()
    _configure_logging(args.verbose)

    if not args.path.is_file():
        logging.error("File not found: %s", args.path)
        return 2

    try:
        result = asyncio.run(_analyze(args.path))
    except AnalysisError as error:
        logging.error("Analysis failed during %s: %s", error.phase or "input", error)
        return 1

    rendered = json.dumps(result, ensure_ascii=False, indent=2)
    if args.output:
        args.output.write_text(rendered + "\n", encoding="utf-8")
        logging.info("Wrote analysis to %s", args.output)
    else:
        print(rendered)
    return 0


if __name__ == "__main__":
    sys.exit(main())
