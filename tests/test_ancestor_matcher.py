from shajara.models.member import Member, RelationType
from shajara.services.ancestor_matcher import find_shared_ancestors

def person(id, name, year, relation=RelationType.FATHER):
    return Member(id=id, full_name=name, birth_year=year, relation_type=relation)

def test_same_name_and_year_match():
    source = [person(1, "Ali", 1950)]
    target = [person(2, "Ali", 1950)]
    pairs = find_shared_ancestors(source, target)
    assert len(pairs) == 1
    assert pairs[0].source_member.id == 1
    assert pairs[0].target_member.id == 2

def test_null_birth_year_never_matches():
    assert find_shared_ancestors([person(1, "Ali", None)], [person(2, "Ali", None)]) == []

def test_no_normalization_of_names():
    assert find_shared_ancestors([person(1, "Ali", 1950)], [person(2, "ali ", 1950)]) == []

def test_different_year_is_not_a_match():
    assert find_shared_ancestors([person(1, "Ali", 1950)], [person(2, "Ali", 1951)]) == []

def test_relation_type_is_ignored():
    pairs = find_shared_ancestors(
        [person(1, "Ali", 1950, RelationType.FATHER)],
        [person(2, "Ali", 1950, RelationType.CHILD)],
    )
    assert len(pairs) == 1

def test_full_cross_product():
    source = [person(1, "Ali", 1950), person(2, "Zarina", 1955), person(3, "Bobur", 1980)]
    target = [person(10, "Zarina", 1955), person(11, "Ali", 1950), person(12, "Ali", 1950)]
    pairs = find_shared_ancestors(source, target)
    assert [(p.source_member.id, p.target_member.id) for p in pairs] == [(1, 11), (1, 12), (2, 10)]

def test_empty_inputs():
    assert find_shared_ancestors([], [person(1, "Ali", 1950)]) == []
    assert find_shared_ancestors([person(1, "Ali", 1950)], []) == []
