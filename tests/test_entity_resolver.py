import unittest
from concurrent.futures import ThreadPoolExecutor
from unittest.mock import MagicMock

# Adjust the path to import from the parent directory's 'core' module
import sys
import os
sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from core.database import InMemoryKnowledgeGraph
from core.entity_resolver import EntityResolver, guess_node_type
from core.models import EntityRelation, NodeType

class TestGuessNodeType(unittest.TestCase):

    def test_relation_rules_come_first(self):
        self.assertEqual(guess_node_type("Nestlé", "MADE_BY", is_source=False), NodeType.BRAND)
        self.assertEqual(guess_node_type("Cocoa", "CONTAINS", is_source=False), NodeType.INGREDIENT)
        self.assertEqual(guess_node_type("Baking", "BELONGS_TO", is_source=False), NodeType.CATEGORY)
        self.assertEqual(guess_node_type("Butter", "USED_IN", is_source=True), NodeType.INGREDIENT)
        # Relation wins over a recipe-looking name
        self.assertEqual(guess_node_type("Cookie Dough", "CONTAINS", is_source=False), NodeType.INGREDIENT)

    def test_name_rules(self):
        self.assertEqual(guess_node_type("Chocolate Chip Cookies", "REFERENCES"), NodeType.RECIPE)
        self.assertEqual(guess_node_type("Easy Dessert Recipe", "RELATED_TO", is_source=False), NodeType.RECIPE)
        self.assertEqual(guess_node_type("Nestle Canada", "REFERENCES"), NodeType.BRAND)

    def test_default_is_page(self):
        self.assertEqual(guess_node_type("Aero Bar", "MADE_BY", is_source=True), NodeType.PAGE)
        self.assertEqual(guess_node_type("Holiday Gifts", "not a label!"), NodeType.PAGE)


class TestEntityResolver(unittest.TestCase):

    def setUp(self):
        """Set up a fresh graph before each test."""
        self.graph = InMemoryKnowledgeGraph()
        self.resolver = EntityResolver(self.graph)

    def test_existing_name_is_reused(self):
        node = self.graph.add_node("brand", "Nestlé")

        node_id, created = self.resolver.resolve("NESTLÉ", "MADE_BY", is_source=False)

        self.assertEqual(node_id, node.id)
        self.assertFalse(created)

    def test_unknown_name_becomes_inferred_node(self):
        node_id, created = self.resolver.resolve("Cocoa Butter", "CONTAINS", is_source=False)

        self.assertTrue(created)
        node = self.graph.get_node(node_id)
        self.assertEqual(node.type, NodeType.INGREDIENT)
        self.assertTrue(node.inferred)

    def test_resolver_talks_to_graph_interface(self):
        mock_graph = MagicMock()
        mock_graph.get_node_id_by_name.return_value = None
        mock_graph.add_node.return_value.id = "new-id"

        node_id, created = EntityResolver(mock_graph).resolve("Aero Bar", "MADE_BY", is_source=True)

        self.assertEqual((node_id, created), ("new-id", True))
        mock_graph.add_node.assert_called_once_with(NodeType.PAGE, "Aero Bar", inferred=True)


class TestImportEntityRelations(unittest.TestCase):

    def setUp(self):
        self.graph = InMemoryKnowledgeGraph()

    def test_single_triple_creates_two_nodes_and_one_relationship(self):
        count = self.graph.import_entity_relations([
            EntityRelation(source="Aero Bar", relation="MADE_BY", target="Nestlé"),
        ])

        self.assertEqual(count, 3)
        brand_id = self.graph.get_node_id_by_name("nestlé")
        self.assertEqual(self.graph.get_node(brand_id).type, NodeType.BRAND)
        self.assertEqual(self.graph.get_node(self.graph.get_node_id_by_name("aero bar")).type, NodeType.PAGE)
        self.assertEqual(len(self.graph.get_relationships_by_type("MADE_BY")), 1)

    def test_known_nodes_are_not_duplicated(self):
        self.graph.add_node("brand", "Nestlé")

        count = self.graph.import_entity_relations([
            {"source": "Aero Bar", "relation": "MADE_BY", "target": "Nestlé"},
            {"source": "KitKat", "relation": "MADE_BY", "target": "nestlé"},
        ])

        # Two new products and two relationships
        self.assertEqual(count, 4)
        self.assertEqual(len(self.graph.get_nodes_by_type("brand")), 1)

    def test_bad_triple_is_skipped_and_batch_continues(self):
        count = self.graph.import_entity_relations([
            EntityRelation(source="Aero Bar", relation="made by!!", target="Nestlé"),
            {"source": "KitKat"},
            EntityRelation(source="KitKat", relation="CONTAINS", target="Wafer"),
        ])

        self.assertEqual(count, 3)
        self.assertIsNone(self.graph.get_node_id_by_name("aero bar"))
        self.assertEqual(self.graph.get_stats().relationship_count, 1)

    def test_parallel_imports_create_each_name_once(self):
        relations = [
            EntityRelation(source=f"Dish {i}", relation="CONTAINS", target=f"Item {i}")
            for i in range(20)
        ]

        with ThreadPoolExecutor(max_workers=8) as executor:
            counts = list(executor.map(self.graph.import_entity_relations, [relations] * 8))

        stats = self.graph.get_stats()
        self.assertEqual(stats.node_count, 40)
        self.assertEqual(stats.relationship_count, 160)
        # Node creations are counted by whichever import got there first
        self.assertEqual(sum(counts), 40 + 160)
        names = [node.name for node in self.graph.get_nodes()]
        self.assertEqual(len(set(names)), len(names))
        self.assertEqual(len(self.graph.get_nodes_by_type("ingredient")), 20)


if __name__ == '__main__':
    unittest.main()
