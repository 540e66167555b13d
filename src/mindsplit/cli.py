"""
Command-line demo for MindSplit.

Usage:
    python3 -m mindsplit notes.txt --streams 3 [--format text|json|yaml]
    cat notes.txt | python3 -m mindsplit - --streams 3

Environment Variables:
    MINDSPLIT_* settings (see mindsplit.config) seed the defaults;
    GCP_PROJECT / GCP_REGION / MINDSPLIT_COLLECTION apply to --store firestore
    and --embedding vertex.
"""

import argparse
import json
import logging
import sys
from typing import List, Optional, TextIO

import yaml

from .config import ALGORITHMS, CHUNK_METHODS, SplitConfig
from .exceptions import MindSplitError
from .models import SplitResult
from .splitter import MindSplit

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='mindsplit',
        description='Split unstructured notes into separate workstreams via graph min-cut'
    )
    parser.add_argument('input', nargs='?', default='-', help="Text file to split ('-' for stdin)")
    parser.add_argument('-n', '--streams', type=int, default=3, help='Number of workstreams (default: 3)')
    parser.add_argument('--threshold', type=float, help='Similarity threshold for graph edges')
    parser.add_argument('--seed', type=int, help='Seed for randomized steps')
    parser.add_argument('--method', choices=CHUNK_METHODS, help='Chunking method')
    parser.add_argument('--algorithm', choices=ALGORITHMS, help='Two-way cut algorithm')
    parser.add_argument('--karger-trials', type=int, help='Contraction passes per Karger cut')
    parser.add_argument('--format', choices=('text', 'json', 'yaml'), default='text', help='Output format')
    parser.add_argument('--store', choices=('memory', 'firestore'), default='memory', help='Session store backend')
    parser.add_argument('--embedding', choices=('hashing', 'vertex'), default='hashing', help='Embedding provider')
    parser.add_argument('--report', action='store_true', help='Include the bleeding-edge report')
    parser.add_argument('-v', '--verbose', action='store_true', help='Enable debug logging')
    return parser


def _config_from_args(args: argparse.Namespace) -> SplitConfig:
    overrides = {
        'similarity_threshold': args.threshold,
        'seed': args.seed,
        'chunk_method': args.method,
        'algorithm': args.algorithm,
        'karger_trials': args.karger_trials,
    }
    config = SplitConfig.from_env()
    return config.with_overrides(**{k: v for k, v in overrides.items() if v is not None})


def _build_splitter(args: argparse.Namespace) -> MindSplit:
    store = None
    model = None

    if args.store == 'firestore':
        from .firestore_store import FirestoreStore
        store = FirestoreStore()

    if args.embedding == 'vertex':
        from .vertex_embeddings import VertexEmbeddingProvider
        model = VertexEmbeddingProvider()

    return MindSplit(store=store, model=model, config=_config_from_args(args))


def render_text(result: SplitResult, out: TextIO) -> None:
    stats = result.stats
    out.write(f"Session: {result.session_id}\n")
    out.write(f"  Total chunks:   {stats['total_chunks']}\n")
    out.write(f"  Graph edges:    {stats['total_edges']}\n")
    out.write(f"  Cut edges:      {stats['cut_edges']}\n")
    out.write(f"  Cut weight:     {stats['cut_weight']:.3f}\n")

    for ws in result.workstreams:
        out.write(f"\n{ws.name.upper()} ({ws.id})\n")
        out.write('-' * 60 + '\n')
        for chunk in ws.chunks:
            out.write(f"  * {chunk.text}\n")

        if ws.bleeding_edges:
            out.write(f"\n  Bleeding edges ({len(ws.bleeding_edges)}):\n")
            for be in ws.bleeding_edges[:3]:
                out.write(f"    <-> {be.connected_to} (similarity {be.edge.weight:.2f})\n")
                out.write(f"        \"{be.source_chunk.text[:50]}...\"\n")


def main(argv: Optional[List[str]] = None, out: TextIO = sys.stdout) -> int:
    """Entry point; returns the process exit code."""
    args = build_parser().parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    try:
        if args.input == '-':
            text = sys.stdin.read()
        else:
            with open(args.input, 'r', encoding='utf-8') as f:
                text = f.read()

        splitter = _build_splitter(args)
        result = splitter.split(text, args.streams)
        report = splitter.get_bleeding_report(result.session_id) if args.report else None
    except (MindSplitError, OSError) as e:
        logger.error(f"Split failed: {e}")
        return 1

    if args.format == 'text':
        render_text(result, out)
        if report is not None:
            out.write(f"\nBleeding report: {report.total_bleeding_edges} edges, "
                      f"weight {report.total_cut_weight:.3f}\n")
            for connection in report.connections:
                out.write(f"  workstream-{connection.workstream1} <-> "
                          f"workstream-{connection.workstream2}: {len(connection.edges)} edges\n")
        return 0

    payload = result.to_dict()
    if report is not None:
        payload['bleeding_report'] = report.to_dict()

    if args.format == 'json':
        out.write(json.dumps(payload, indent=2) + '\n')
    else:
        out.write(yaml.safe_dump(payload, sort_keys=False, allow_unicode=True))
    return 0
