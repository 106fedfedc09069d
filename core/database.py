# /core/database.py

import threading
import uuid
from abc import ABC, abstractmethod
from collections import deque
from typing import Any, Dict, Iterable, List, Optional

import numpy as np
from langchain_core.embeddings import Embeddings

from core.entity_resolver import DEFAULT_BRAND_NAMES, EntityResolver
from core.exceptions import MalformedInputError, NodeNotFoundError
from core.logger import get_logger
from core.models import (
    EntityRelation,
    GraphNode,
    GraphRelationship,
    GraphStats,
    NodeType,
    Subgraph,
    normalize_relationship_type,
)

logger = get_logger(__name__)


class GraphStore(ABC):
    """
    An abstract base class defining the standard interface for interacting with the knowledge graph.
    """
    @abstractmethod
    def add_node(self, node_type, name: str, properties: Optional[Dict[str, Any]] = None, node_id: Optional[str] = None, inferred: bool = False) -> GraphNode:
        pass

    @abstractmethod
    def add_relationship(self, source_id: str, target_id: str, type: str, properties: Optional[Dict[str, Any]] = None, weight: float = 1.0) -> GraphRelationship:
        pass

    @abstractmethod
    def get_node_id_by_name(self, name: str) -> Optional[str]:
        pass

    @abstractmethod
    def query_graph(self, start_node_id: str, max_depth: int = 2, relationship_types: Optional[Iterable[str]] = None) -> Subgraph:
        pass

    @abstractmethod
    def find_paths(self, source_id: str, target_id: str, max_depth: int = 3, max_paths: Optional[int] = None) -> List[Subgraph]:
        pass

    @abstractmethod
    def semantic_node_search(self, query: str, limit: int = 5) -> List[GraphNode]:
        pass


def node_text(node_type: NodeType, name: str, properties: Dict[str, Any]) -> str:
    """The textual form of a node that gets embedded."""
    lines = [f"Type: {node_type.value}", f"Name: {name}"]
    lines.extend(f"{key}: {value}" for key, value in properties.items())
    return "\n".join(lines)


def _coerce_node_type(node_type) -> NodeType:
    try:
        return NodeType(node_type)
    except ValueError:
        allowed = ", ".join(t.value for t in NodeType)
        raise MalformedInputError(f"Unknown node type {node_type!r}. Expected one of: {allowed}.")


class InMemoryKnowledgeGraph(GraphStore):
    """
    Concrete, memory-only implementation of the GraphStore.

    Besides the node and relationship maps it maintains four indexes:
    type -> node ids, lowercase name -> node id, relationship type ->
    relationship ids and node id -> incident relationship ids. Index "sets" are
    dicts with None values so iteration follows insertion order.

    Every mutation updates the maps and all indexes under one lock, so other
    threads never observe a half-indexed node or relationship.
    """

    def __init__(self, embeddings_model: Optional[Embeddings] = None, brand_names: Iterable[str] = DEFAULT_BRAND_NAMES):
        self.embeddings_model = embeddings_model
        self.brand_names = tuple(brand_names)
        self._lock = threading.RLock()

        self._nodes: Dict[str, GraphNode] = {}
        self._relationships: Dict[str, GraphRelationship] = {}
        self._nodes_by_type: Dict[str, Dict[str, None]] = {}
        self._nodes_by_name: Dict[str, str] = {}
        self._relationships_by_type: Dict[str, Dict[str, None]] = {}
        self._node_relationships: Dict[str, Dict[str, None]] = {}

    # --- Mutations ---

    def _embed_node(self, node_type: NodeType, name: str, properties: Dict[str, Any]) -> Optional[List[float]]:
        if self.embeddings_model is None:
            return None
        try:
            return self.embeddings_model.embed_query(node_text(node_type, name, properties))
        except Exception as e:
            logger.warning(f"Failed to embed node '{name}', storing it without an embedding. Error: {e}")
            return None

    def add_node(self, node_type, name: str, properties: Optional[Dict[str, Any]] = None, node_id: Optional[str] = None, inferred: bool = False) -> GraphNode:
        """
        Adds a node and indexes it. Names are not unique, so this never fails on
        a duplicate name; the name index simply points at the newest node.
        Passing an existing node_id replaces that node.
        """
        node_type = _coerce_node_type(node_type)
        if not isinstance(name, str) or not name.strip():
            raise MalformedInputError("Node name is required.")
        if properties is None:
            properties = {}
        if not isinstance(properties, dict):
            raise MalformedInputError("Node properties must be a mapping.")

        # Embedding happens outside the lock; it is the slow part.
        embedding = self._embed_node(node_type, name, properties)
        node = GraphNode(
            id=node_id or f"n{uuid.uuid4().hex[:12]}",
            type=node_type,
            name=name,
            properties=dict(properties),
            embedding=embedding,
            inferred=inferred,
        )

        with self._lock:
            previous = self._nodes.get(node.id)
            if previous is not None:
                self._nodes_by_type.get(previous.type.value, {}).pop(previous.id, None)
                if self._nodes_by_name.get(previous.name.lower()) == previous.id:
                    del self._nodes_by_name[previous.name.lower()]

            self._nodes[node.id] = node
            self._nodes_by_type.setdefault(node.type.value, {})[node.id] = None
            self._nodes_by_name[node.name.lower()] = node.id
            self._node_relationships.setdefault(node.id, {})

        logger.info(f"Added node: {node.type.value} - {node.name}")
        return node

    def add_relationship(self, source_id: str, target_id: str, type: str, properties: Optional[Dict[str, Any]] = None, weight: float = 1.0, relationship_id: Optional[str] = None) -> GraphRelationship:
        """
        Adds a directed relationship between two existing nodes.

        Raises:
            MalformedInputError: if the type or properties are invalid.
            NodeNotFoundError: if either endpoint is not in the graph. Nothing is indexed in that case.
        """
        try:
            label = normalize_relationship_type(type)
        except ValueError as e:
            raise MalformedInputError(str(e))
        if properties is None:
            properties = {}
        if not isinstance(properties, dict):
            raise MalformedInputError("Relationship properties must be a mapping.")

        with self._lock:
            if source_id not in self._nodes:
                raise NodeNotFoundError(source_id, role="Source")
            if target_id not in self._nodes:
                raise NodeNotFoundError(target_id, role="Target")

            relationship = GraphRelationship(
                id=relationship_id or f"r{uuid.uuid4().hex[:12]}",
                type=label,
                source_id=source_id,
                target_id=target_id,
                properties=dict(properties),
                weight=weight,
            )
            self._relationships[relationship.id] = relationship
            self._relationships_by_type.setdefault(label, {})[relationship.id] = None
            self._node_relationships.setdefault(source_id, {})[relationship.id] = None
            self._node_relationships.setdefault(target_id, {})[relationship.id] = None

            source_name = self._nodes[source_id].name
            target_name = self._nodes[target_id].name

        logger.info(f"Added relationship: {source_name} -[{label}]-> {target_name}")
        return relationship

    def import_entity_relations(self, relations: Iterable[EntityRelation]) -> int:
        """
        Bulk import of (source, relation, target) triples, usually from scraping.

        Unknown names become new nodes typed by the guess_node_type heuristic.
        Returns the number of nodes and relationships created. A failing triple
        is logged and skipped; the batch always completes.
        """
        resolver = EntityResolver(self, brand_names=self.brand_names)
        added_count = 0

        for relation in relations:
            try:
                if isinstance(relation, dict):
                    relation = EntityRelation(**relation)
                # Reject a bad label before any node gets created for it
                normalize_relationship_type(relation.relation)

                # Lookup and creation must not interleave with another import
                with self._lock:
                    source_id, created = resolver.resolve(relation.source, relation.relation, is_source=True)
                    added_count += int(created)

                    target_id, created = resolver.resolve(relation.target, relation.relation, is_source=False)
                    added_count += int(created)

                    self.add_relationship(source_id, target_id, relation.relation)
                    added_count += 1
            except Exception as e:
                logger.error(f"Failed to import relation {relation!r}: {e}")

        return added_count

    # --- Lookups ---

    def get_node(self, node_id: str) -> Optional[GraphNode]:
        with self._lock:
            return self._nodes.get(node_id)

    def get_nodes(self) -> List[GraphNode]:
        with self._lock:
            return list(self._nodes.values())

    def get_nodes_by_type(self, node_type) -> List[GraphNode]:
        node_type = _coerce_node_type(node_type)
        with self._lock:
            return [self._nodes[node_id] for node_id in self._nodes_by_type.get(node_type.value, {})]

    def get_node_ids_by_type(self, node_type) -> List[str]:
        node_type = _coerce_node_type(node_type)
        with self._lock:
            return list(self._nodes_by_type.get(node_type.value, {}))

    def get_relationships(self) -> List[GraphRelationship]:
        with self._lock:
            return list(self._relationships.values())

    def get_relationships_by_type(self, type: str) -> List[GraphRelationship]:
        label = normalize_relationship_type(type)
        with self._lock:
            return [self._relationships[rel_id] for rel_id in self._relationships_by_type.get(label, {})]

    def get_node_relationships(self, node_id: str) -> List[GraphRelationship]:
        with self._lock:
            return [self._relationships[rel_id] for rel_id in self._node_relationships.get(node_id, {})]

    def get_node_id_by_name(self, name: str) -> Optional[str]:
        """Case-insensitive exact lookup through the name index."""
        with self._lock:
            return self._nodes_by_name.get(name.lower())

    def find_nodes_by_name(self, pattern: str) -> List[GraphNode]:
        """Case-insensitive substring match on node names."""
        pattern = pattern.lower()
        with self._lock:
            return [node for node in self._nodes.values() if pattern in node.name.lower()]

    def get_stats(self) -> GraphStats:
        with self._lock:
            return GraphStats(
                node_count=len(self._nodes),
                relationship_count=len(self._relationships),
                node_types={node_type: len(ids) for node_type, ids in self._nodes_by_type.items()},
                relationship_types={label: len(ids) for label, ids in self._relationships_by_type.items()},
            )

    # --- Traversal ---

    def query_graph(self, start_node_id: str, max_depth: int = 2, relationship_types: Optional[Iterable[str]] = None) -> Subgraph:
        """
        Breadth-first traversal from a start node.

        Nodes up to max_depth edges away are returned, each visited once.
        Relationships are collected while expanding nodes closer than max_depth,
        optionally restricted to the given relationship types. Direction is
        ignored during traversal.
        """
        if max_depth < 0:
            raise MalformedInputError("max_depth must be zero or positive.")
        allowed = None
        if relationship_types:
            try:
                allowed = {normalize_relationship_type(t) for t in relationship_types}
            except ValueError as e:
                raise MalformedInputError(str(e))

        with self._lock:
            if start_node_id not in self._nodes:
                return Subgraph()

            result_nodes: Dict[str, GraphNode] = {}
            result_relationships: Dict[str, GraphRelationship] = {}
            visited = {start_node_id}
            queue = deque([(start_node_id, 0)])

            while queue:
                node_id, depth = queue.popleft()
                result_nodes[node_id] = self._nodes[node_id]
                if depth >= max_depth:
                    continue

                for rel_id in self._node_relationships.get(node_id, {}):
                    relationship = self._relationships[rel_id]
                    if allowed is not None and relationship.type not in allowed:
                        continue

                    result_relationships[rel_id] = relationship
                    connected_id = relationship.target_id if relationship.source_id == node_id else relationship.source_id
                    if connected_id not in visited:
                        visited.add(connected_id)
                        queue.append((connected_id, depth + 1))

            return Subgraph(
                nodes=list(result_nodes.values()),
                relationships=list(result_relationships.values()),
            )

    def find_paths(self, source_id: str, target_id: str, max_depth: int = 3, max_paths: Optional[int] = None) -> List[Subgraph]:
        """
        Enumerates simple paths (no repeated node) of at most max_depth edges,
        shortest first. The search expands partial paths breadth-first and can be
        exponential on dense graphs, so callers should keep max_depth small or
        pass max_paths.
        """
        if max_depth < 0:
            raise MalformedInputError("max_depth must be zero or positive.")

        with self._lock:
            if source_id not in self._nodes or target_id not in self._nodes:
                return []

            if source_id == target_id:
                return [Subgraph(nodes=[self._nodes[source_id]], relationships=[])]

            paths: List[Subgraph] = []
            queue = deque([([source_id], [])])

            while queue:
                node_path, rel_path = queue.popleft()
                current_id = node_path[-1]

                if current_id == target_id:
                    paths.append(Subgraph(
                        nodes=[self._nodes[node_id] for node_id in node_path],
                        relationships=[self._relationships[rel_id] for rel_id in rel_path],
                    ))
                    if max_paths is not None and len(paths) >= max_paths:
                        break
                    continue

                if len(rel_path) >= max_depth:
                    continue

                for rel_id in self._node_relationships.get(current_id, {}):
                    relationship = self._relationships[rel_id]
                    connected_id = relationship.target_id if relationship.source_id == current_id else relationship.source_id
                    if connected_id in node_path:
                        continue
                    queue.append((node_path + [connected_id], rel_path + [rel_id]))

            return paths

    def semantic_node_search(self, query: str, limit: int = 5) -> List[GraphNode]:
        """
        Ranks nodes by the dot product of their normalized embedding with the
        query's. Falls back to a name substring search when no node is embedded
        or the query cannot be embedded.
        """
        with self._lock:
            candidates = [node for node in self._nodes.values() if node.embedding]

        if not candidates or self.embeddings_model is None:
            return self.find_nodes_by_name(query)[:limit]

        try:
            query_vector = np.asarray(self.embeddings_model.embed_query(query), dtype=np.float32)
        except Exception as e:
            logger.error(f"Error in semantic search, falling back to name search: {e}")
            return self.find_nodes_by_name(query)[:limit]

        candidates = [node for node in candidates if len(node.embedding) == query_vector.shape[0]]
        if not candidates:
            return self.find_nodes_by_name(query)[:limit]

        matrix = np.asarray([node.embedding for node in candidates], dtype=np.float32)
        scores = matrix @ query_vector
        # Stable sort keeps insertion order among equal scores
        order = np.argsort(-scores, kind="stable")
        return [candidates[i] for i in order[:limit]]
