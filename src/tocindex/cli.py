"""Command line entrypoint for ingestion and search."""

from __future__ import annotations

import argparse
import json
import logging
import sys
from dataclasses import asdict
from pathlib import Path
from typing import Any, List

from pydantic import ValidationError

from .config import ScoringConfig, SearchConfig, SectioningConfig
from .errors import TocIndexError
from .ingest.models import Material, PageText, TocAnalysis
from .ingest.pipeline import SectionIngestionPipeline
from .logging_config import configure_logging
from .repository import get_repository
from .retrieval.combiner import RetrievalCombiner
from .retrieval.subject_search import SubjectSearchRanker, build_ai_context
from .vectorstore import get_vector_store

LOGGER = logging.getLogger(__name__)


def main(argv: list[str] | None = None) -> int:
    """Entrypoint used by the ``tocindex`` script."""

    args = _parse_args(argv)
    configure_logging(args.log_level, audit_path=args.audit_log)
    try:
        return args.handler(args)
    except (TocIndexError, ValidationError, OSError, ValueError) as error:
        LOGGER.error("%s failed: %s", args.command, error)
        return 1


def _read_json(path: Path) -> Any:
    return json.loads(Path(path).read_text(encoding="utf-8"))


def _print(payload: Any) -> None:
    print(json.dumps(payload, ensure_ascii=False, indent=2, default=str))


def _ingest(args: argparse.Namespace) -> int:
    pages: List[PageText] = [PageText.model_validate(item) for item in _read_json(args.pages)]
    analysis = TocAnalysis.model_validate(_read_json(args.toc))
    material = Material.model_validate(_read_json(args.material))
    if analysis.doc_id != material.material_id:
        raise ValueError(
            f"TOC analysis belongs to {analysis.doc_id!r}, material is {material.material_id!r}"
        )

    repository = get_repository()
    repository.save_material(material)
    if args.replace_toc or repository.get_toc_analysis(analysis.doc_id) is None:
        repository.save_toc_analysis(analysis)

    pipeline = SectionIngestionPipeline(
        repository,
        get_vector_store(),
        config=SectioningConfig.from_env(),
    )
    result = pipeline.run(material.material_id, pages)
    _print(
        {
            "doc_id": result.doc_id,
            "processed_sections": result.processed_sections,
            "total_sections": result.total_sections,
            "statistics": asdict(result.statistics),
        }
    )
    return 0


def _search(args: argparse.Namespace) -> int:
    ranker = SubjectSearchRanker(get_repository(), SearchConfig.from_env())
    result = ranker.search_in_subject(args.subject, args.query, max_results=args.max_results)
    if args.ai_context:
        _print(build_ai_context(result))
    else:
        _print(asdict(result))
    return 0


def _relevant(args: argparse.Namespace) -> int:
    repository = get_repository()
    material = repository.get_material(args.material)
    if material is None:
        LOGGER.error("Material %s does not exist", args.material)
        return 1
    combiner = RetrievalCombiner(repository, get_vector_store(), ScoringConfig.from_env())
    candidates = combiner.find_relevant_sections(args.message, [material], top_k=args.top_k)
    _print([candidate.to_dict() for candidate in candidates])
    return 0


def _parse_args(argv: list[str] | None) -> argparse.Namespace:
    """Parse CLI arguments."""

    parser = argparse.ArgumentParser(
        description="Build TOC-aligned sections and chunks from page texts and search them.",
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        help="Python logging level (default: INFO).",
    )
    parser.add_argument(
        "--audit-log",
        type=Path,
        default=None,
        help="Path of the ingestion audit log (default: logs/ingest_audit.log).",
    )
    commands = parser.add_subparsers(dest="command", required=True)

    ingest = commands.add_parser("ingest", help="Extract, split and persist the sections of one material.")
    ingest.add_argument("--pages", type=Path, required=True, help="JSON list of {pageNumber, text}.")
    ingest.add_argument("--toc", type=Path, required=True, help="JSON TOC analysis of the material.")
    ingest.add_argument("--material", type=Path, required=True, help="JSON material record.")
    ingest.add_argument(
        "--replace-toc",
        action="store_true",
        help="Overwrite a stored TOC analysis, resetting its processed flags.",
    )
    ingest.set_defaults(handler=_ingest)

    search = commands.add_parser("search", help="Lexical search across a subject's ready materials.")
    search.add_argument("--subject", required=True)
    search.add_argument("--max-results", type=int, default=None)
    search.add_argument("--ai-context", action="store_true", help="Print the chat-model context block.")
    search.add_argument("query")
    search.set_defaults(handler=_search)

    relevant = commands.add_parser("relevant", help="Rank a material's sections for a chat message.")
    relevant.add_argument("--material", required=True)
    relevant.add_argument("--top-k", type=int, default=None)
    relevant.add_argument("message")
    relevant.set_defaults(handler=_relevant)

    return parser.parse_args(argv)


if __name__ == "__main__":
    sys.exit(main())
