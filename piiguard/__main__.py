"""Command-line entry point.

    python -m piiguard detect letter.txt [--language de] [--json]
    python -m piiguard serve [--host 127.0.0.1] [--port 8920]
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path

from piiguard.core.config import config
from piiguard.core.logging_setup import setup_logging

log = logging.getLogger("piiguard")


def _detect(args: argparse.Namespace) -> int:
    from piiguard.core.detection.pipeline import create_default_pipeline

    path = Path(args.file)
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as exc:
        log.error(f"Cannot read {path}: {exc}")
        return 1

    pipeline = create_default_pipeline()
    if args.document_type:
        pipeline.configure(enabled_passes={"document_type": True})
    result = pipeline.process(text, document_id=path.name, language=args.language)

    if args.json:
        print(json.dumps(result.model_dump(mode="json"), indent=2, ensure_ascii=False))
        return 0

    print(f"{path.name}: {len(result.entities)} entities (language={result.language}, "
          f"type={result.document_type.value})")
    for e in result.entities:
        flag = " [review]" if e.flagged_for_review else ""
        print(f"  {e.start:>6}-{e.end:<6} {e.type.value:<16} {e.confidence:.2f}  {e.text!r}{flag}")
    return 0


def _serve(args: argparse.Namespace) -> int:
    import uvicorn

    host = args.host or config.host
    port = args.port if args.port is not None else config.port
    log.info(f"Starting on {host}:{port}")
    uvicorn.run(
        "piiguard.api.server:app",
        host=host,
        port=port,
        log_level=config.log_level.lower(),
        reload=False,
    )
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="piiguard", description="Detect PII in Swiss/EU documents")
    parser.add_argument("--log-format", choices=("text", "json"), default=None)
    parser.add_argument("--log-level", default=None)
    sub = parser.add_subparsers(dest="command", required=True)

    detect = sub.add_parser("detect", help="detect PII in a UTF-8 text file")
    detect.add_argument("file")
    detect.add_argument("--language", choices=("en", "fr", "de"), default=None)
    detect.add_argument("--json", action="store_true", help="print the full result as JSON")
    detect.add_argument("--document-type", action="store_true",
                        help="enable document classification and type-specific rules")
    detect.set_defaults(func=_detect)

    serve = sub.add_parser("serve", help="run the HTTP service")
    serve.add_argument("--host", default=None)
    serve.add_argument("--port", type=int, default=None)
    serve.set_defaults(func=_serve)
    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging(args.log_format or config.log_format, args.log_level or config.log_level)
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
