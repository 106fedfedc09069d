import unittest
from unittest.mock import MagicMock

# Adjust the path to import from the parent directory's 'core' module
import sys
import os
sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from core.database import InMemoryKnowledgeGraph
from core.graph_builder import load_sample_graph
from core.models import KnowledgeSubgraph, QueryIntent, SearchHit
from core.nutrition import get_nutritional_info
from core.retriever import (
    NO_GRAPH_RESULTS,
    NO_VECTOR_RESULTS,
    build_combined_context,
    extract_knowledge_subgraph,
    format_filtered_context,
    format_graph_context,
    format_nutrition_context,
)


class TestExtractKnowledgeSubgraph(unittest.TestCase):

    def setUp(self):
        # No embeddings model, so seeds come from the name search
        self.graph = load_sample_graph(InMemoryKnowledgeGraph())

    def test_union_of_seed_neighbourhoods(self):
        subgraph = extract_knowledge_subgraph(self.graph, "chocolate", seed_count=3, depth=1)

        # Seeds are "Chocolate Chip Cookies" and "Chocolate"
        self.assertEqual(subgraph.central_node.id, "2")
        node_ids = [node.id for node in subgraph.nodes]
        self.assertEqual(len(node_ids), len(set(node_ids)))
        self.assertEqual(set(node_ids), {"1", "2", "3", "4"})
        self.assertEqual({rel.id for rel in subgraph.relationships}, {"r1", "r3", "r4"})

    def test_no_match_gives_empty_subgraph(self):
        subgraph = extract_knowledge_subgraph(self.graph, "spaceship")

        self.assertEqual(subgraph.nodes, [])
        self.assertIsNone(subgraph.central_node)

    def test_graph_errors_give_empty_subgraph(self):
        broken_graph = MagicMock()
        broken_graph.semantic_node_search.side_effect = RuntimeError("boom")

        subgraph = extract_knowledge_subgraph(broken_graph, "chocolate")

        self.assertEqual(subgraph, KnowledgeSubgraph())


class TestContextFormatting(unittest.TestCase):

    def setUp(self):
        self.graph = load_sample_graph(InMemoryKnowledgeGraph())

    def test_graph_context_sections(self):
        subgraph = extract_knowledge_subgraph(self.graph, "baking", seed_count=1, depth=1)

        context = format_graph_context(subgraph)

        self.assertTrue(context.startswith("NODES:\n"))
        self.assertIn("CATEGORY: Baking\nProperties: description: Baking products and recipes", context)
        self.assertIn("RELATIONSHIPS:\nNestlé Toll House Morsels -[BELONGS_TO]-> Baking", context)
        self.assertTrue(context.endswith("CENTRAL CONCEPT: Baking (category)"))

    def test_empty_graph_context(self):
        self.assertEqual(format_graph_context(KnowledgeSubgraph()), NO_GRAPH_RESULTS)

    def test_combined_context(self):
        hits = [SearchHit(url="https://x/aero", title="Aero", content="Bubbly chocolate")]

        context = build_combined_context(hits, "NODES:\nBRAND: Nestlé", "EXTRA BLOCK")

        self.assertEqual(
            context,
            "VECTOR DATABASE RESULTS:\nTitle: Aero\nURL: https://x/aero\nContent: Bubbly chocolate\n\n"
            "KNOWLEDGE GRAPH CONTEXT:\nNODES:\nBRAND: Nestlé\n\n"
            "EXTRA BLOCK",
        )

    def test_combined_context_placeholders(self):
        context = build_combined_context([], "")

        self.assertIn(NO_VECTOR_RESULTS, context)
        self.assertIn(NO_GRAPH_RESULTS, context)

    def test_nutrition_context(self):
        context = format_nutrition_context("kitkat", get_nutritional_info("KitKat"))

        self.assertTrue(context.startswith('NUTRITIONAL INFORMATION FOR "KITKAT":'))
        self.assertIn("Product Variant 1: KITKAT 4-Finger Wafer Bar, Milk Chocolate", context)
        self.assertIn("Calories: 230 per serving", context)
        self.assertIn("Saturated Fat: 7.5g", context)
        self.assertIn("- KitKat Santa: 29g (1 piece), 160 calories", context)

    def test_filtered_context(self):
        intent = QueryIntent(entity_type="recipe", entity_name="cookies")
        hits = [SearchHit(url="https://x/r", title="Cookies", content="Mix and bake.")]

        context = format_filtered_context(intent, hits)

        self.assertEqual(
            context,
            'SPECIALIZED RESULTS FOR RECIPE "cookies":\nTitle: Cookies\nURL: https://x/r\nExcerpt: Mix and bake....',
        )


class TestNutritionLookup(unittest.TestCase):

    def test_brand_prefix_is_ignored(self):
        self.assertEqual(get_nutritional_info("Nestlé Aero"), get_nutritional_info("aero"))

    def test_partial_names_match(self):
        entries = get_nutritional_info("coffee crisp bar")
        self.assertEqual(entries[0].name, "COFFEE CRISP Chocolate Bar")

    def test_unknown_product(self):
        self.assertIsNone(get_nutritional_info("spaceship"))
        self.assertIsNone(get_nutritional_info("Nestlé"))


if __name__ == '__main__':
    unittest.main()
