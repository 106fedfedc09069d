import unittest
from concurrent.futures import ThreadPoolExecutor
from unittest.mock import MagicMock

# Adjust the path to import from the parent directory's 'core' module
import sys
import os
sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from core.database import InMemoryKnowledgeGraph
from core.embeddings import HashingEmbeddings
from core.exceptions import MalformedInputError, NodeNotFoundError
from core.graph_builder import load_sample_graph
from core.models import NodeType, normalize_relationship_type


class TestGraphMutations(unittest.TestCase):

    def setUp(self):
        self.graph = InMemoryKnowledgeGraph(embeddings_model=HashingEmbeddings(dimensions=64))

    def test_add_node_indexes_by_type_and_name(self):
        node = self.graph.add_node("product", "Nestlé Toll House Morsels", {"size": "340g"})

        self.assertEqual(node.type, NodeType.PRODUCT)
        self.assertEqual(self.graph.get_node_id_by_name("nestlé toll house morsels"), node.id)
        self.assertEqual(self.graph.get_node_id_by_name("NESTLÉ TOLL HOUSE MORSELS"), node.id)
        self.assertIn(node.id, self.graph.get_node_ids_by_type("product"))
        self.assertEqual(len(node.embedding), 64)
        self.assertFalse(node.inferred)

    def test_readding_node_id_moves_it_between_indexes(self):
        self.graph.add_node("product", "Old Name", node_id="x")
        self.graph.add_node("recipe", "New Name", node_id="x")

        self.assertIsNone(self.graph.get_node_id_by_name("old name"))
        self.assertEqual(self.graph.get_node_id_by_name("new name"), "x")
        self.assertNotIn("x", self.graph.get_node_ids_by_type("product"))
        self.assertIn("x", self.graph.get_node_ids_by_type("recipe"))
        self.assertEqual(self.graph.get_stats().node_count, 1)

    def test_relationship_is_in_both_incident_sets(self):
        morsels = self.graph.add_node("product", "Morsels", node_id="1")
        cookies = self.graph.add_node("recipe", "Cookies", node_id="2")

        relationship = self.graph.add_relationship(morsels.id, cookies.id, "USED_IN")

        self.assertIn(relationship, self.graph.get_node_relationships("1"))
        self.assertIn(relationship, self.graph.get_node_relationships("2"))
        self.assertEqual(self.graph.get_relationships_by_type("USED_IN"), [relationship])

    def test_missing_endpoint_raises_and_leaves_no_trace(self):
        self.graph.add_node("product", "Morsels", node_id="1")

        with self.assertRaises(NodeNotFoundError) as ctx:
            self.graph.add_relationship("1", "missing", "USED_IN")

        self.assertIn("missing", str(ctx.exception))
        self.assertEqual(self.graph.get_relationships(), [])
        self.assertEqual(self.graph.get_node_relationships("1"), [])
        self.assertEqual(self.graph.get_stats().relationship_types, {})

    def test_not_found_is_also_a_key_error(self):
        with self.assertRaises(KeyError):
            self.graph.add_relationship("a", "b", "USED_IN")

    def test_malformed_input_is_rejected(self):
        with self.assertRaises(MalformedInputError):
            self.graph.add_node("spaceship", "Apollo")
        with self.assertRaises(MalformedInputError):
            self.graph.add_node("product", "   ")

        self.graph.add_node("product", "Morsels", node_id="1")
        self.graph.add_node("recipe", "Cookies", node_id="2")
        with self.assertRaises(MalformedInputError):
            self.graph.add_relationship("1", "2", "not valid!")

        self.assertEqual(self.graph.get_stats().node_count, 2)
        self.assertEqual(self.graph.get_stats().relationship_count, 0)

    def test_relationship_labels_are_normalized(self):
        self.assertEqual(normalize_relationship_type("used in"), "USED_IN")
        self.assertEqual(normalize_relationship_type("made-by"), "MADE_BY")
        with self.assertRaises(ValueError):
            normalize_relationship_type("3rd party")

    def test_embedding_failure_still_stores_node(self):
        failing_model = MagicMock()
        failing_model.embed_query.side_effect = RuntimeError("provider down")
        graph = InMemoryKnowledgeGraph(embeddings_model=failing_model)

        node = graph.add_node("recipe", "Chocolate Chip Cookies")

        self.assertIsNone(node.embedding)
        self.assertEqual(graph.get_node_id_by_name("chocolate chip cookies"), node.id)


class TestGraphTraversal(unittest.TestCase):

    def setUp(self):
        self.graph = load_sample_graph(InMemoryKnowledgeGraph(embeddings_model=HashingEmbeddings()))

    def test_depth_zero_returns_only_start_node(self):
        subgraph = self.graph.query_graph("1", 0)

        self.assertEqual([node.id for node in subgraph.nodes], ["1"])
        self.assertEqual(subgraph.relationships, [])

    def test_unknown_start_node_gives_empty_subgraph(self):
        subgraph = self.graph.query_graph("nope", 2)
        self.assertEqual(subgraph.nodes, [])
        self.assertEqual(subgraph.relationships, [])

    def test_three_node_neighbourhood(self):
        graph = InMemoryKnowledgeGraph()
        graph.add_node("product", "Nestlé Toll House Morsels", node_id="1")
        graph.add_node("recipe", "Chocolate Chip Cookies", node_id="2")
        graph.add_node("category", "Baking", node_id="3")
        graph.add_relationship("1", "2", "USED_IN")
        graph.add_relationship("1", "3", "BELONGS_TO")

        subgraph = graph.query_graph("1", 1)

        self.assertEqual({node.id for node in subgraph.nodes}, {"1", "2", "3"})
        self.assertEqual({rel.type for rel in subgraph.relationships}, {"USED_IN", "BELONGS_TO"})
        self.assertEqual(len(subgraph.relationships), 2)

    def test_relationship_type_filter(self):
        subgraph = self.graph.query_graph("1", 2, ["used in"])

        self.assertEqual({node.id for node in subgraph.nodes}, {"1", "2"})
        self.assertEqual([rel.id for rel in subgraph.relationships], ["r1"])

    def test_cycles_visit_each_node_once(self):
        # 1 -> 2 -> 3 and 1 -> 3 form a cycle
        subgraph = self.graph.query_graph("2", 2)

        node_ids = [node.id for node in subgraph.nodes]
        self.assertEqual(len(node_ids), len(set(node_ids)))
        self.assertEqual(set(node_ids), {"1", "2", "3", "4", "5"})
        self.assertEqual(len(subgraph.relationships), 5)

    def test_negative_depth_is_malformed(self):
        with self.assertRaises(MalformedInputError):
            self.graph.query_graph("1", -1)

    def test_trivial_path(self):
        paths = self.graph.find_paths("1", "1", 3)

        self.assertEqual(len(paths), 1)
        self.assertEqual([node.id for node in paths[0].nodes], ["1"])
        self.assertEqual(paths[0].relationships, [])

    def test_finds_all_simple_paths_shortest_first(self):
        paths = self.graph.find_paths("1", "3", 2)

        self.assertEqual(len(paths), 2)
        self.assertEqual([node.id for node in paths[0].nodes], ["1", "3"])
        self.assertEqual([node.id for node in paths[1].nodes], ["1", "2", "3"])
        self.assertEqual([rel.id for rel in paths[1].relationships], ["r1", "r3"])

    def test_path_depth_and_cap(self):
        self.assertEqual(len(self.graph.find_paths("1", "3", 1)), 1)
        self.assertEqual(len(self.graph.find_paths("1", "3", 3, max_paths=1)), 1)
        self.assertEqual(self.graph.find_paths("1", "unknown", 3), [])

    def test_semantic_search_ranks_best_match_first(self):
        results = self.graph.semantic_node_search("chocolate chip cookies", 3)

        self.assertEqual(len(results), 3)
        self.assertEqual(results[0].id, "2")

    def test_semantic_search_is_idempotent(self):
        first = [node.id for node in self.graph.semantic_node_search("baking with chocolate", 5)]
        second = [node.id for node in self.graph.semantic_node_search("baking with chocolate", 5)]
        self.assertEqual(first, second)

    def test_name_search_fallback_without_embeddings(self):
        graph = load_sample_graph(InMemoryKnowledgeGraph())

        results = graph.semantic_node_search("choc", 1)

        self.assertEqual(len(results), 1)
        self.assertEqual(results[0].id, "2")

    def test_stats(self):
        stats = self.graph.get_stats()

        self.assertEqual(stats.node_count, 5)
        self.assertEqual(stats.relationship_count, 5)
        self.assertEqual(stats.node_types["product"], 1)
        self.assertEqual(stats.relationship_types["BELONGS_TO"], 2)

    def test_sample_graph_is_loaded_once(self):
        load_sample_graph(self.graph)
        self.assertEqual(self.graph.get_stats().node_count, 5)


class TestConcurrentMutations(unittest.TestCase):

    def setUp(self):
        self.graph = InMemoryKnowledgeGraph(embeddings_model=HashingEmbeddings(dimensions=16))
        for i in range(10):
            self.graph.add_node("product", f"Product {i}", node_id=f"p{i}")

    def _insert(self, i):
        # Alternate new nodes with relationships between existing ones
        if i % 2 == 0:
            node = self.graph.add_node("recipe", f"Recipe {i}", node_id=f"r{i}")
            self.graph.add_relationship(f"p{i % 10}", node.id, "USED_IN")
        else:
            self.graph.add_relationship(f"p{i % 10}", f"p{(i + 3) % 10}", "RELATED_TO")

    def test_parallel_inserts_keep_indexes_consistent(self):
        with ThreadPoolExecutor(max_workers=8) as executor:
            list(executor.map(self._insert, range(200)))

        stats = self.graph.get_stats()
        relationships = self.graph.get_relationships()
        nodes = self.graph.get_nodes()

        self.assertEqual(stats.node_count, 110)
        self.assertEqual(stats.relationship_count, 200)
        self.assertEqual(len(relationships), 200)
        self.assertEqual(sum(stats.relationship_types.values()), 200)
        self.assertEqual(stats.relationship_types, {"USED_IN": 100, "RELATED_TO": 100})
        self.assertEqual(sum(stats.node_types.values()), stats.node_count)

        node_ids = {node.id for node in nodes}
        for relationship in relationships:
            self.assertIn(relationship.source_id, node_ids)
            self.assertIn(relationship.target_id, node_ids)
            self.assertIn(relationship, self.graph.get_node_relationships(relationship.source_id))
            self.assertIn(relationship, self.graph.get_node_relationships(relationship.target_id))

        incident_total = sum(len(self.graph.get_node_relationships(node.id)) for node in nodes)
        self.assertEqual(incident_total, 2 * len(relationships))
        for node in nodes:
            self.assertIn(node.id, self.graph.get_node_ids_by_type(node.type.value))


if __name__ == '__main__':
    unittest.main()
