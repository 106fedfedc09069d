# /core/exceptions.py

class GraphRAGError(Exception):
    """Base class for every error raised by the retrieval core."""


class NodeNotFoundError(GraphRAGError, KeyError):
    """A relationship referenced a node id that is not in the graph."""

    def __init__(self, node_id: str, role: str = "Node"):
        self.node_id = node_id
        self.role = role
        super().__init__(f"{role} node with ID {node_id} not found")

    def __str__(self):
        # KeyError would otherwise repr() the message
        return self.args[0]


class MalformedInputError(GraphRAGError, ValueError):
    """Required fields are missing or invalid; raised before the store is touched."""


class ProviderError(GraphRAGError):
    """An embedding or generation provider failed or timed out."""
