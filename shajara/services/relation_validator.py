"""
Admissibility rules for linking a new member to an existing one.

The table is a heuristic over the contextual relation labels, not a
genealogical proof system: it answers "may a member labelled X be attached to
a member labelled Y", nothing about gender or generations.
"""
from typing import Iterable, Optional
from shajara.models.member import Member, RelationType

# new member's relation type -> relation types of members it may be attached to
COMPATIBLE_RELATIONS = {
    RelationType.FATHER: frozenset({RelationType.CHILD, RelationType.MOTHER, RelationType.SPOUSE}),
    RelationType.MOTHER: frozenset({RelationType.CHILD, RelationType.FATHER, RelationType.SPOUSE}),
    RelationType.CHILD: frozenset({RelationType.FATHER, RelationType.MOTHER}),
    RelationType.SIBLING: frozenset({RelationType.SIBLING}),
    RelationType.SPOUSE: frozenset({RelationType.FATHER, RelationType.MOTHER}),
}

def is_compatible(new_type: RelationType, existing_type: RelationType) -> bool:
    return RelationType(existing_type) in COMPATIBLE_RELATIONS.get(RelationType(new_type), frozenset())

def find_duplicate(
    neighbors: Iterable[Member],
    relation_type: RelationType,
    full_name: str,
    birth_year: Optional[int],
) -> Optional[Member]:
    """
    Returns the first member already linked to the anchor that carries the same
    (relation type, full name, birth year) triple, or None.
    """
    for member in neighbors:
        if (
            member.relation_type == relation_type
            and member.full_name == full_name
            and member.birth_year == birth_year
        ):
            return member
    return None
