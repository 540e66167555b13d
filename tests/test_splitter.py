"""
Tests for the MindSplit orchestrator: split, incremental re-split,
bleeding reports and session management.

Uses a bag-of-words fake embedding so similarities are exact and no
model is needed.
"""

import math
import re
import unittest
from unittest.mock import Mock
import sys
import os

# Add src to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from mindsplit import MindSplit
from mindsplit.config import SplitConfig
from mindsplit.exceptions import NotFoundError, StorageError, ValidationError
from mindsplit.mincut import cut_weight_of
from mindsplit.seeded_random import deterministic_id
from mindsplit.splitter import generate_workstream_name
from mindsplit.models import Chunk
from mindsplit.store import InMemoryStore, chunk_key, embedding_key, session_key


VOCABULARY = [
    'fix', 'login', 'bug', 'auth', 'review', 'dashboard', 'mockups', 'plan',
    'q2', 'roadmap', 'database', 'migration', 'schema', 'deploy', 'budget',
]


class BagOfWordsEmbedding:
    """Unit-length word-count vectors over a fixed vocabulary."""

    dimension = len(VOCABULARY)

    def __init__(self):
        self.calls = []

    def embed(self, text):
        self.calls.append(text)
        tokens = re.findall(r'[a-z0-9]+', text.lower())
        vector = [float(tokens.count(word)) for word in VOCABULARY]
        norm = math.sqrt(sum(x * x for x in vector))
        if norm == 0:
            return vector
        return [x / norm for x in vector]


CONCRETE_TEXT = "Fix the login bug.\n\nReview dashboard mockups.\n\nPlan Q2 roadmap."

BRIDGED_TEXT = "\n\n".join([
    "login auth bug",
    "login auth fix",
    "dashboard mockups review",
    "dashboard mockups plan",
    "login dashboard",
])

NOTES_TEXT = "\n\n".join([
    "Fix the login bug in auth",
    "Auth login tokens expire too early",
    "Review dashboard mockups with design",
    "Dashboard mockups need dark mode",
    "Plan Q2 roadmap with product",
    "Roadmap budget for Q2 planning",
    "Database schema migration for users",
    "Deploy the database migration on Friday",
])


class TestConcreteScenario(unittest.TestCase):
    """Three unrelated sentences split three ways."""

    def setUp(self):
        self.model = BagOfWordsEmbedding()
        self.splitter = MindSplit(store=InMemoryStore(), model=self.model)

    def test_three_isolated_workstreams(self):
        result = self.splitter.split(CONCRETE_TEXT, 3)

        self.assertEqual(result.stats['total_chunks'], 3)
        self.assertEqual(result.stats['total_edges'], 0)
        self.assertEqual(len(result.workstreams), 3)
        for ws in result.workstreams:
            self.assertEqual(len(ws.chunks), 1)
            self.assertEqual(ws.bleeding_edges, [])
        self.assertEqual(result.cut_result.cut_weight, 0.0)

    def test_workstream_ids_and_names(self):
        result = self.splitter.split(CONCRETE_TEXT, 3)

        self.assertEqual(
            [ws.id for ws in result.workstreams],
            ['workstream-0', 'workstream-1', 'workstream-2']
        )
        self.assertEqual(
            {ws.name for ws in result.workstreams},
            {'Login', 'Review Dashboard', 'Plan Roadmap'}
        )

    def test_session_id_derived_from_text(self):
        result = self.splitter.split(CONCRETE_TEXT, 3)
        self.assertEqual(result.session_id, deterministic_id(CONCRETE_TEXT, 'session'))

    def test_incremental_resplit(self):
        first = self.splitter.split("Fix the login bug.\n\nReview dashboard mockups.", 2)
        self.assertEqual(len(self.model.calls), 2)

        result = self.splitter.add_and_resplit(first.session_id, "Plan Q2 roadmap.", 3)

        self.assertEqual(result.stats['new_chunks'], 1)
        self.assertEqual(result.stats['cached_embeddings'], 2)
        self.assertEqual(result.stats['total_chunks'], 3)
        self.assertEqual(self.model.calls[2:], ["Plan Q2 roadmap."])
        self.assertEqual(len(result.workstreams), 3)
        self.assertEqual(result.session_id, first.session_id)


class TestSplitInvariants(unittest.TestCase):
    """Partitions cover every chunk exactly once and stats are consistent."""

    def setUp(self):
        self.splitter = MindSplit(store=InMemoryStore(), model=BagOfWordsEmbedding())

    def test_no_loss_or_duplication(self):
        for n in range(1, 6):
            result = self.splitter.split(NOTES_TEXT, n)

            ids = [cid for ws in result.workstreams for cid in ws.chunk_ids]
            self.assertEqual(len(ids), 8)
            self.assertEqual(len(set(ids)), 8)
            self.assertEqual(set(ids), set(result.graph.nodes))
            self.assertLessEqual(len(result.workstreams), n)
            self.assertTrue(all(ws.chunks for ws in result.workstreams))

    def test_cut_weight_matches_partitions(self):
        result = self.splitter.split(NOTES_TEXT, 4)

        expected = cut_weight_of(result.graph, result.cut_result.partitions)
        self.assertAlmostEqual(result.cut_result.cut_weight, expected)
        self.assertAlmostEqual(result.stats['cut_weight'], expected)
        self.assertEqual(result.stats['cut_edges'], len(result.cut_result.cut_edges))
        self.assertEqual(result.stats['total_edges'], len(result.graph.edges))

    def test_chunks_ordered_within_workstream(self):
        result = self.splitter.split(NOTES_TEXT, 3)
        for ws in result.workstreams:
            indices = [chunk.source_index for chunk in ws.chunks]
            self.assertEqual(indices, sorted(indices))

    def test_single_stream(self):
        result = self.splitter.split(NOTES_TEXT, 1)

        self.assertEqual(len(result.workstreams), 1)
        self.assertEqual(len(result.workstreams[0].chunks), 8)
        self.assertEqual(result.cut_result.cut_edges, [])
        self.assertEqual(result.workstreams[0].bleeding_edges, [])

    def test_more_streams_than_chunks(self):
        result = self.splitter.split(CONCRETE_TEXT, 10)
        self.assertEqual(len(result.workstreams), 3)

    def test_deterministic_across_instances(self):
        a = MindSplit(store=InMemoryStore(), model=BagOfWordsEmbedding()).split(NOTES_TEXT, 3)
        b = MindSplit(store=InMemoryStore(), model=BagOfWordsEmbedding()).split(NOTES_TEXT, 3)

        self.assertEqual(a.cut_result.partitions, b.cut_result.partitions)
        self.assertEqual([ws.name for ws in a.workstreams], [ws.name for ws in b.workstreams])

    def test_karger_is_deterministic_for_seed(self):
        config = SplitConfig(algorithm='karger', karger_trials=10, seed=7)
        a = MindSplit(store=InMemoryStore(), model=BagOfWordsEmbedding(), config=config).split(NOTES_TEXT, 3)
        b = MindSplit(store=InMemoryStore(), model=BagOfWordsEmbedding(), config=config).split(NOTES_TEXT, 3)

        self.assertEqual(
            [frozenset(p) for p in a.cut_result.partitions],
            [frozenset(p) for p in b.cut_result.partitions]
        )
        ids = [cid for ws in a.workstreams for cid in ws.chunk_ids]
        self.assertEqual(sorted(ids), sorted(a.graph.nodes))

    def test_config_mapping_accepted(self):
        splitter = MindSplit(model=BagOfWordsEmbedding(), config={'similarity_threshold': 0.9})
        result = splitter.split(NOTES_TEXT, 2)
        self.assertEqual(result.stats['total_edges'], 0)

    def test_duplicate_paragraphs_collapse(self):
        result = self.splitter.split("login auth bug\n\nlogin auth bug\n\nplan roadmap", 2)
        self.assertEqual(result.stats['total_chunks'], 2)

    def test_empty_input(self):
        for text in ("", "   \n\n   "):
            result = self.splitter.split(text, 3)
            self.assertEqual(result.workstreams, [])
            self.assertEqual(result.stats['total_chunks'], 0)
            self.assertEqual(result.cut_result.partitions, [])

    def test_invalid_stream_count(self):
        for n in (0, -1, 2.5, True):
            with self.assertRaises(ValidationError):
                self.splitter.split(NOTES_TEXT, n)


class TestEmbeddingCacheReuse(unittest.TestCase):

    def test_shared_store_reuses_embeddings(self):
        store = InMemoryStore()
        model = BagOfWordsEmbedding()

        MindSplit(store=store, model=model).split(NOTES_TEXT, 2)
        MindSplit(store=store, model=model).split(NOTES_TEXT, 4)

        self.assertEqual(len(model.calls), 8)

    def test_store_failure_propagates(self):
        class FailingStore(InMemoryStore):
            def batch(self, operations):
                raise StorageError("disk full")

        store = FailingStore()
        with self.assertRaises(StorageError):
            MindSplit(store=store, model=BagOfWordsEmbedding()).split(CONCRETE_TEXT, 2)
        self.assertEqual(len(store), 0)

    def test_model_failure_stores_nothing(self):
        store = InMemoryStore()
        model = Mock()
        model.dimension = 3
        model.embed.side_effect = RuntimeError("provider down")

        with self.assertRaises(RuntimeError):
            MindSplit(store=store, model=model).split(CONCRETE_TEXT, 2)
        self.assertEqual(len(store), 0)


class TestIncrementalResplit(unittest.TestCase):

    def setUp(self):
        self.store = InMemoryStore()
        self.model = BagOfWordsEmbedding()
        self.splitter = MindSplit(store=self.store, model=self.model)
        self.first = self.splitter.split(NOTES_TEXT, 3)

    def test_readding_same_text_is_noop(self):
        calls_before = len(self.model.calls)

        result = self.splitter.add_and_resplit(self.first.session_id, NOTES_TEXT, 3)

        self.assertEqual(result.stats['new_chunks'], 0)
        self.assertEqual(result.stats['total_chunks'], 8)
        self.assertEqual(len(self.model.calls), calls_before)
        self.assertEqual(
            [frozenset(p) for p in result.cut_result.partitions],
            [frozenset(p) for p in self.first.cut_result.partitions]
        )

    def test_new_chunks_appended_after_existing(self):
        result = self.splitter.add_and_resplit(
            self.first.session_id, "Budget review for deploy\n\nFix the login bug in auth", 3
        )

        self.assertEqual(result.stats['new_chunks'], 1)
        self.assertEqual(result.stats['cached_embeddings'], 8)

        session = self.splitter.get_session(self.first.session_id)
        self.assertEqual(len(session.chunks), 9)
        self.assertEqual(session.chunks[-1].text, "Budget review for deploy")
        self.assertEqual(session.chunks[-1].source_index, 8)
        self.assertEqual(len(session.embeddings), 9)

    def test_created_at_preserved(self):
        before = self.splitter.get_session(self.first.session_id).created_at
        self.splitter.add_and_resplit(self.first.session_id, "Deploy budget plan", 2)
        after = self.splitter.get_session(self.first.session_id)

        self.assertEqual(after.created_at, before)
        self.assertEqual(len(after.last_result.partitions), 2)

    def test_unknown_session(self):
        with self.assertRaises(NotFoundError):
            self.splitter.add_and_resplit('session_missing', "text", 2)

    def test_invalid_stream_count(self):
        with self.assertRaises(ValidationError):
            self.splitter.add_and_resplit(self.first.session_id, "text", 0)


class TestBleedingReport(unittest.TestCase):

    def setUp(self):
        self.splitter = MindSplit(store=InMemoryStore(), model=BagOfWordsEmbedding())

    def test_report_for_bridged_clusters(self):
        result = self.splitter.split(BRIDGED_TEXT, 2)
        report = self.splitter.get_bleeding_report(result.session_id)

        # The bridge chunk joins either side with two edges of 1/sqrt(6)
        self.assertEqual(report.total_bleeding_edges, 2)
        self.assertAlmostEqual(report.total_cut_weight, 2 / math.sqrt(6))
        self.assertEqual(len(report.connections), 1)

        connection = report.connections[0]
        self.assertEqual((connection.workstream1, connection.workstream2), (0, 1))
        self.assertEqual(len(connection.edges), 2)
        for entry in connection.edges:
            self.assertEqual(entry['source_chunk'].id, entry['edge'].source)
            self.assertEqual(entry['target_chunk'].id, entry['edge'].target)
            self.assertIn('login dashboard', (entry['source_chunk'].text, entry['target_chunk'].text))

    def test_workstream_bleeding_edges_point_at_other_side(self):
        result = self.splitter.split(BRIDGED_TEXT, 2)

        for ws in result.workstreams:
            self.assertEqual(len(ws.bleeding_edges), 2)
            other = 'workstream-1' if ws.id == 'workstream-0' else 'workstream-0'
            for be in ws.bleeding_edges:
                self.assertEqual(be.connected_to, other)

    def test_report_sorted_by_partition_pair(self):
        result = self.splitter.split(NOTES_TEXT, 4)
        report = self.splitter.get_bleeding_report(result.session_id)

        pairs = [(c.workstream1, c.workstream2) for c in report.connections]
        self.assertEqual(pairs, sorted(pairs))
        self.assertTrue(all(a < b for a, b in pairs))
        self.assertEqual(sum(len(c.edges) for c in report.connections), report.total_bleeding_edges)

    def test_report_without_edges(self):
        result = self.splitter.split(CONCRETE_TEXT, 3)
        report = self.splitter.get_bleeding_report(result.session_id)

        self.assertEqual(report.total_bleeding_edges, 0)
        self.assertEqual(report.connections, [])

    def test_report_to_dict(self):
        result = self.splitter.split(BRIDGED_TEXT, 2)
        data = self.splitter.get_bleeding_report(result.session_id).to_dict()

        self.assertEqual(data['session_id'], result.session_id)
        self.assertEqual(len(data['connections'][0]['edges']), 2)
        self.assertIn('weight', data['connections'][0]['edges'][0]['edge'])

    def test_unknown_session(self):
        with self.assertRaises(NotFoundError):
            self.splitter.get_bleeding_report('session_missing')


class TestSessionManagement(unittest.TestCase):

    def setUp(self):
        self.store = InMemoryStore()
        self.splitter = MindSplit(store=self.store, model=BagOfWordsEmbedding())

    def test_split_persists_session_and_chunks(self):
        result = self.splitter.split(CONCRETE_TEXT, 3)

        self.assertTrue(self.store.has(session_key(result.session_id)))
        for ws in result.workstreams:
            for chunk in ws.chunks:
                self.assertTrue(self.store.has(chunk_key(result.session_id, chunk.id)))
                self.assertTrue(self.store.has(embedding_key(chunk.id)))

        session = self.splitter.get_session(result.session_id)
        self.assertEqual(len(session.chunks), 3)
        self.assertEqual(session.last_result.partitions, result.cut_result.partitions)

    def test_splitting_same_text_keeps_grown_session(self):
        text = "Fix the login bug.\n\nReview dashboard mockups."
        first = self.splitter.split(text, 2)
        created_at = self.splitter.get_session(first.session_id).created_at
        self.splitter.add_and_resplit(first.session_id, "Plan Q2 roadmap.", 3)

        again = self.splitter.split(text, 3)

        session = self.splitter.get_session(first.session_id)
        self.assertEqual(again.session_id, first.session_id)
        self.assertEqual(again.stats['total_chunks'], 3)
        self.assertEqual(len(session.chunks), 3)
        self.assertEqual([c.source_index for c in session.chunks], [0, 1, 2])
        self.assertEqual(session.created_at, created_at)

        self.splitter.delete_session(first.session_id)
        self.assertEqual(self.store.keys('chunk:'), [])
        self.assertEqual(self.store.keys('session:'), [])

    def test_session_document_stores_no_vectors(self):
        result = self.splitter.split(CONCRETE_TEXT, 3)

        document = self.store.get(session_key(result.session_id))
        self.assertNotIn('embeddings', document)
        # Vectors still come back through the embedding cache
        session = self.splitter.get_session(result.session_id)
        self.assertEqual(len(session.embeddings), 3)

    def test_delete_session(self):
        result = self.splitter.split(CONCRETE_TEXT, 3)
        self.splitter.delete_session(result.session_id)

        with self.assertRaises(NotFoundError):
            self.splitter.get_session(result.session_id)
        with self.assertRaises(NotFoundError):
            self.splitter.delete_session(result.session_id)
        # Embeddings stay cached for later sessions
        self.assertEqual(len(self.store.keys('embed:')), 3)


class TestWorkstreamNaming(unittest.TestCase):

    def test_top_two_words(self):
        chunks = [
            Chunk('a', 'Database migration for users', 0),
            Chunk('b', 'Run the database migration tonight', 1),
            Chunk('c', 'Database backups', 2),
        ]
        self.assertEqual(generate_workstream_name(chunks), 'Database Migration')

    def test_fallback_name(self):
        self.assertEqual(generate_workstream_name([Chunk('a', 'Do it now.', 0)]), 'Workstream')
        self.assertEqual(generate_workstream_name([]), 'Workstream')


if __name__ == '__main__':
    unittest.main()
