from typing import Iterable, Sequence

from core.models import NodeType, RelationshipType, normalize_relationship_type

# Name fragments that mark an entity as a recipe
RECIPE_KEYWORDS = ("recipe", "cookie", "cake", "dish")
DEFAULT_BRAND_NAMES = ("nestlé", "nestle")

# (relation, is_source) -> type of the entity on that end of the relation
RELATION_TYPE_RULES = {
    (RelationshipType.MADE_BY.value, False): NodeType.BRAND,
    (RelationshipType.CONTAINS.value, False): NodeType.INGREDIENT,
    (RelationshipType.BELONGS_TO.value, False): NodeType.CATEGORY,
    (RelationshipType.USED_IN.value, True): NodeType.INGREDIENT,
}


def guess_node_type(
    name: str,
    relation: str,
    is_source: bool = True,
    brand_names: Sequence[str] = DEFAULT_BRAND_NAMES,
) -> NodeType:
    """
    Best-effort guess of a node's type while importing (source, relation, target)
    triples. This is a heuristic, not ground truth: nodes created from its output
    are flagged as inferred.

    Rules are tried in order:
      1. the relation, e.g. the target of MADE_BY is a brand;
      2. the name, e.g. anything mentioning "cookie" is a recipe;
      3. otherwise the entity is treated as a page.
    """
    try:
        label = normalize_relationship_type(relation)
    except ValueError:
        label = None

    guessed = RELATION_TYPE_RULES.get((label, is_source))
    if guessed is not None:
        return guessed

    name_lower = name.lower()
    if any(keyword in name_lower for keyword in RECIPE_KEYWORDS):
        return NodeType.RECIPE
    if any(brand.lower() in name_lower for brand in brand_names):
        return NodeType.BRAND

    return NodeType.PAGE


class EntityResolver:
    """
    Resolves entity names from scraped relation triples to graph node ids,
    creating inferred nodes for names the graph has not seen yet.
    """

    def __init__(self, graph, brand_names: Iterable[str] = DEFAULT_BRAND_NAMES):
        self.graph = graph
        self.brand_names = tuple(brand_names)

    def resolve(self, name: str, relation: str, is_source: bool):
        """
        Returns (node_id, created). Lookup is case-insensitive on the name.
        """
        node_id = self.graph.get_node_id_by_name(name)
        if node_id is not None:
            return node_id, False

        node_type = guess_node_type(name, relation, is_source, self.brand_names)
        node = self.graph.add_node(node_type, name, inferred=True)
        return node.id, True
