from typing import Iterable
from shajara.models.member import Member, MemberRelation, RelationType
from shajara.services.graph_builder import build_tree, tree_stats

EMPTY_TREE_TEXT = "Family tree is empty."

SECTION_TITLES = {
    "parents": "👨‍👩‍👧‍👦 *Parents:*",
    "siblings": "👥 *Siblings:*",
    "spouse": "💑 *Spouse:*",
    "children": "👶 *Children:*",
}

RELATION_NAMES = {
    RelationType.FATHER: "Father",
    RelationType.MOTHER: "Mother",
    RelationType.SIBLING: "Sibling",
    RelationType.CHILD: "Child",
    RelationType.SPOUSE: "Spouse",
}

def relation_name(relation_type) -> str:
    return RELATION_NAMES.get(RelationType(relation_type), str(relation_type).lower())

def format_years(member: Member) -> str:
    if member.birth_year and member.death_year:
        return f"{member.birth_year} - {member.death_year}"
    if member.birth_year:
        return str(member.birth_year)
    return "?"

def generate_text_tree(members: Iterable[Member], edges: Iterable[MemberRelation] = ()) -> str:
    members = list(members)
    view = build_tree(members, edges)
    if view.is_empty:
        return EMPTY_TREE_TEXT

    lines = []
    for section, section_members in view.sections():
        lines.append(SECTION_TITLES[section])
        for member in section_members:
            lines.append(f"• *{member.full_name}* ({format_years(member)})")
            related = view.neighbors.get(member.id, [])
            if related:
                lines.append("  Related to:")
                for other in related:
                    lines.append(f"  - {relation_name(other.relation_type)}: {other.full_name}")
        lines.append("")

    stats = tree_stats(members)
    lines.extend([
        "📊 *Statistics:*",
        f"• Total relatives: {stats.total_members}",
        f"• Parents: {stats.parents}",
        f"• Children: {stats.children}",
        f"• Siblings: {stats.siblings}",
        f"• Spouses: {stats.spouses}",
    ])
    return "\n".join(lines)
