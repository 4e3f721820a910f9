from typing import Iterable, List, NamedTuple
from shajara.models.member import Member

class SharedAncestor(NamedTuple):
    source_member: Member
    target_member: Member

def is_same_person(a: Member, b: Member) -> bool:
    # Exact comparison only; an unknown birth year never matches
    if a.birth_year is None or b.birth_year is None:
        return False
    return a.full_name == b.full_name and a.birth_year == b.birth_year

def find_shared_ancestors(
    source_members: Iterable[Member], target_members: Iterable[Member]
) -> List[SharedAncestor]:
    targets = list(target_members)
    shared = []
    for source in source_members:
        for target in targets:
            if is_same_person(source, target):
                shared.append(SharedAncestor(source, target))
    return shared
