"""
Views over the flat member/edge lists of a tree.

Two shapes are produced:

* ``build_tree`` groups members into display buckets (parents, siblings,
  spouse, children) by their stored relation label and resolves one level of
  neighbours for each member. This feeds the text view.
* ``build_hierarchy`` turns the edges into parent -> child links and walks
  them from the root members downwards. This feeds the PDF view.

Members and edges are kept in id-indexed maps and every walk carries a visited
set, so cyclic or multi-parent data never loops and never draws a member twice.
"""
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Tuple
from shajara.models.member import Member, MemberRelation, RelationType, PARENT_TYPES
from shajara.schemas.tree import TreeStats

HORIZONTAL_SPACING = 250
VERTICAL_SPACING = 150
TOP_BAND_Y = 600


@dataclass
class TreeView:
    parents: List[Member] = field(default_factory=list)
    siblings: List[Member] = field(default_factory=list)
    spouse: Optional[Member] = None
    children: List[Member] = field(default_factory=list)
    neighbors: Dict[int, List[Member]] = field(default_factory=dict)

    @property
    def is_empty(self) -> bool:
        return not (self.parents or self.siblings or self.spouse or self.children)

    def sections(self) -> List[Tuple[str, List[Member]]]:
        """Non-empty buckets in display order."""
        ordered = [
            ("parents", self.parents),
            ("siblings", self.siblings),
            ("spouse", [self.spouse] if self.spouse else []),
            ("children", self.children),
        ]
        return [(name, members) for name, members in ordered if members]


@dataclass
class TreeNode:
    member: Member
    level: int
    children: List["TreeNode"] = field(default_factory=list)

    @property
    def id(self) -> int:
        return self.member.id


@dataclass(frozen=True)
class LayoutPosition:
    slot: int
    level: int

    @property
    def x(self) -> int:
        return self.slot * HORIZONTAL_SPACING

    @property
    def y(self) -> int:
        return TOP_BAND_Y - self.level * VERTICAL_SPACING


def neighbor_map(members: Iterable[Member], edges: Iterable[MemberRelation]) -> Dict[int, List[Member]]:
    member_map = {m.id: m for m in members}
    linked = defaultdict(set)
    for edge in edges:
        linked[edge.member_id].add(edge.related_id)
        linked[edge.related_id].add(edge.member_id)

    neighbors = {}
    for member_id in member_map:
        ids = sorted(i for i in linked.get(member_id, ()) if i in member_map)
        neighbors[member_id] = [member_map[i] for i in ids]
    return neighbors


def build_tree(members: Iterable[Member], edges: Iterable[MemberRelation] = ()) -> TreeView:
    members = list(members)
    view = TreeView()
    if not members:
        return view

    for member in members:
        relation = RelationType(member.relation_type)
        if relation in PARENT_TYPES:
            view.parents.append(member)
        elif relation == RelationType.SIBLING:
            view.siblings.append(member)
        elif relation == RelationType.SPOUSE:
            if view.spouse is None:
                view.spouse = member
        elif relation == RelationType.CHILD:
            view.children.append(member)

    view.neighbors = neighbor_map(members, edges)
    return view


def parent_links(edges: Iterable[MemberRelation]) -> List[Tuple[int, int]]:
    """
    (parent_id, child_id) pairs read from each edge's attachment role.
    Sibling and spouse edges carry no generation step.
    """
    links = []
    for edge in edges:
        role = RelationType(edge.role)
        if role in PARENT_TYPES:
            links.append((edge.member_id, edge.related_id))
        elif role == RelationType.CHILD:
            links.append((edge.related_id, edge.member_id))
    return links


def _birth_order(member: Member):
    return (member.birth_year is None, member.birth_year or 0, member.id)


def build_hierarchy(members: Iterable[Member], edges: Iterable[MemberRelation]) -> List[TreeNode]:
    member_map = {m.id: m for m in members}
    if not member_map:
        return []

    children_map = defaultdict(list)
    has_parent = set()
    for parent_id, child_id in parent_links(edges):
        if parent_id not in member_map or child_id not in member_map or parent_id == child_id:
            continue
        if child_id not in children_map[parent_id]:
            children_map[parent_id].append(child_id)
        has_parent.add(child_id)

    visited = set()

    def descend(member_id: int, level: int) -> TreeNode:
        visited.add(member_id)
        node = TreeNode(member=member_map[member_id], level=level)
        child_ids = sorted(children_map.get(member_id, []), key=lambda cid: _birth_order(member_map[cid]))
        for child_id in child_ids:
            if child_id in visited:
                continue
            node.children.append(descend(child_id, level + 1))
        return node

    ordered = sorted(member_map.values(), key=_birth_order)
    roots = []
    for member in ordered:
        if member.id not in has_parent and member.id not in visited:
            roots.append(descend(member.id, 0))

    # Whatever is left hangs off a parent cycle with no entry point
    for member_id in sorted(member_map):
        if member_id not in visited:
            roots.append(descend(member_id, 0))

    return roots


def iter_nodes(roots: Iterable[TreeNode]):
    stack = list(reversed(list(roots)))
    while stack:
        node = stack.pop()
        yield node
        stack.extend(reversed(node.children))


def compute_layout(roots: Iterable[TreeNode]) -> Dict[int, LayoutPosition]:
    """
    Fixed-band layout: one horizontal band per generation, one column slot per
    leaf, parents above their first child. Not a balancing algorithm.
    """
    positions: Dict[int, LayoutPosition] = {}
    next_slot = 0

    def place(node: TreeNode):
        nonlocal next_slot
        if node.children:
            for child in node.children:
                place(child)
            slot = positions[node.children[0].id].slot
        else:
            slot = next_slot
            next_slot += 1
        positions[node.id] = LayoutPosition(slot=slot, level=node.level)

    for root in roots:
        place(root)
    return positions


def tree_stats(members: Iterable[Member]) -> TreeStats:
    stats = TreeStats()
    for member in members:
        stats.total_members += 1
        relation = RelationType(member.relation_type)
        if relation in PARENT_TYPES:
            stats.parents += 1
        elif relation == RelationType.CHILD:
            stats.children += 1
        elif relation == RelationType.SIBLING:
            stats.siblings += 1
        elif relation == RelationType.SPOUSE:
            stats.spouses += 1
    return stats
