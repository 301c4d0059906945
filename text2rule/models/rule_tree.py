"""
Rule tree model.

An ordered n-ary tree of typed nodes. The tree is created once by the
decomposition stage and then grown in place by every later stage. Stages
never delete nodes from the middle of the tree; they clear the children of
the node type they own and rebuild them, which keeps retries idempotent.
"""
import uuid
import logging
from dataclasses import dataclass, field
from typing import Any, Iterator, Optional

logger = logging.getLogger(__name__)


class NodeType:
    """Node type tags the pipeline special-cases."""
    ROOT = "Root"
    NORMAL_STATEMENTS = "NormalStatements"
    SEGMENT = "Segment"
    SEGMENTS_GROUP = "segments"
    SCHEDULE = "Schedule"
    SCHEDULE_DETAILS = "ScheduleDetails"
    ACTION = "Action"
    ACTION_DETAILS = "ActionDetails"
    POLICY = "Policy"
    SAMPLING = "Sampling"
    IF_CONDITION = "IfCondition"


class TreeCycleError(ValueError):
    """Raised when an insert would give a node two parents or make it its own ancestor."""
    pass


@dataclass(eq=False)
class RuleNode:
    """A single node of the rule tree."""
    node_type: str
    text: str = ""
    model_tag: str = ""
    similarity_score: Optional[float] = None
    children: list["RuleNode"] = field(default_factory=list)

    # Lookup only, used while restructuring. Parents own children, not the reverse.
    parent: Optional["RuleNode"] = field(default=None, repr=False)

    def is_type(self, node_type: str) -> bool:
        return self.node_type.lower() == node_type.lower()

    def children_of_type(self, node_type: str) -> list["RuleNode"]:
        return [c for c in self.children if c.is_type(node_type)]

    def ancestors(self) -> Iterator["RuleNode"]:
        node = self.parent
        while node is not None:
            yield node
            node = node.parent

    def walk(self) -> Iterator["RuleNode"]:
        """Depth-first, pre-order traversal of this subtree."""
        yield self
        for child in list(self.children):
            yield from child.walk()

    def label(self) -> str:
        text = f"[{self.node_type}] {self.text}"
        if self.similarity_score is not None:
            text += f" (score: {self.similarity_score:.2f})"
        return text

    def to_dict(self) -> dict:
        return {
            "type": self.node_type,
            "text": self.text,
            "model": self.model_tag,
            "similarity_score": self.similarity_score,
            "children": [c.to_dict() for c in self.children],
        }

    @classmethod
    def from_dict(cls, data: dict) -> "RuleNode":
        node = cls(
            node_type=data.get("type", ""),
            text=data.get("text", "") or "",
            model_tag=data.get("model", "") or "",
            similarity_score=data.get("similarity_score"),
        )
        for child_data in data.get("children", []) or []:
            child = cls.from_dict(child_data)
            child.parent = node
            node.children.append(child)
        return node


class RuleTree:
    """
    Wrapper around a single root node.

    Also hands out one opaque address per depth level, generated on first use
    and cached, for the output addressing scheme.
    """

    def __init__(self, root: Optional[RuleNode] = None):
        self.root: Optional[RuleNode] = None
        self._level_addresses: dict[int, str] = {}
        if root is not None:
            self.set_root(root)

    def set_root(self, node: RuleNode) -> None:
        if node.parent is not None:
            raise TreeCycleError(f"Node {node.node_type!r} already has a parent")
        self.root = node

    def add_child(self, parent: RuleNode, node: RuleNode) -> RuleNode:
        """Append ``node`` as the last child of ``parent``."""
        if node.parent is not None or node is self.root:
            raise TreeCycleError(f"Node {node.node_type!r} is already attached to the tree")
        if node is parent or any(a is node for a in parent.ancestors()):
            raise TreeCycleError(f"Node {node.node_type!r} cannot be its own ancestor")
        node.parent = parent
        parent.children.append(node)
        return node

    def clear_children(self, node: RuleNode) -> None:
        for child in node.children:
            child.parent = None
        node.children = []

    def find_first_by_type(self, node_type: str) -> Optional[RuleNode]:
        """Depth-first, pre-order search. Type comparison ignores case."""
        for node in self.walk():
            if node.is_type(node_type):
                return node
        return None

    def find_all_by_type(self, node_type: str) -> list[RuleNode]:
        return [n for n in self.walk() if n.is_type(node_type)]

    def walk(self) -> Iterator[RuleNode]:
        if self.root is None:
            return iter(())
        return self.root.walk()

    def address_for_level(self, level: int) -> str:
        if level not in self._level_addresses:
            address = str(uuid.uuid4())
            self._level_addresses[level] = address
            logger.debug(f"Generated address for level {level}: {address}")
        return self._level_addresses[level]

    def node_count(self) -> int:
        return sum(1 for _ in self.walk())

    def to_dict(self) -> dict[str, Any]:
        return {"root": self.root.to_dict() if self.root else None}

    @classmethod
    def from_dict(cls, data: dict) -> "RuleTree":
        root_data = data.get("root", data) if data else None
        if not root_data:
            return cls()
        return cls(RuleNode.from_dict(root_data))
