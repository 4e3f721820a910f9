import pytest
from shajara.models.member import Member, RelationType as R
from shajara.services.relation_validator import find_duplicate, is_compatible

COMPATIBILITY = [
    (R.FATHER, R.FATHER, False),
    (R.FATHER, R.MOTHER, True),
    (R.FATHER, R.SIBLING, False),
    (R.FATHER, R.CHILD, True),
    (R.FATHER, R.SPOUSE, True),
    (R.MOTHER, R.FATHER, True),
    (R.MOTHER, R.MOTHER, False),
    (R.MOTHER, R.SIBLING, False),
    (R.MOTHER, R.CHILD, True),
    (R.MOTHER, R.SPOUSE, True),
    (R.SIBLING, R.FATHER, False),
    (R.SIBLING, R.MOTHER, False),
    (R.SIBLING, R.SIBLING, True),
    (R.SIBLING, R.CHILD, False),
    (R.SIBLING, R.SPOUSE, False),
    (R.CHILD, R.FATHER, True),
    (R.CHILD, R.MOTHER, True),
    (R.CHILD, R.SIBLING, False),
    (R.CHILD, R.CHILD, False),
    (R.CHILD, R.SPOUSE, False),
    (R.SPOUSE, R.FATHER, True),
    (R.SPOUSE, R.MOTHER, True),
    (R.SPOUSE, R.SIBLING, False),
    (R.SPOUSE, R.CHILD, False),
    (R.SPOUSE, R.SPOUSE, False),
]

def test_table_covers_every_pair():
    assert len(COMPATIBILITY) == 25
    assert {(a, b) for a, b, _ in COMPATIBILITY} == {(a, b) for a in R for b in R}

@pytest.mark.parametrize("new_type,existing_type,expected", COMPATIBILITY)
def test_is_compatible(new_type, existing_type, expected):
    assert is_compatible(new_type, existing_type) is expected

def test_is_compatible_accepts_raw_values():
    assert is_compatible("FATHER", "CHILD") is True
    assert is_compatible("SIBLING", "CHILD") is False

def _member(id, name, year, relation):
    return Member(id=id, full_name=name, birth_year=year, relation_type=relation)

def test_find_duplicate_matches_full_triple():
    neighbors = [_member(1, "Vali", 1960, R.FATHER), _member(2, "Olga", 1962, R.MOTHER)]
    assert find_duplicate(neighbors, R.MOTHER, "Olga", 1962).id == 2

@pytest.mark.parametrize("relation,name,year", [
    (R.SIBLING, "Vali", 1960),  # other relation type
    (R.FATHER, "vali", 1960),   # case differs
    (R.FATHER, "Vali", 1961),   # other year
    (R.FATHER, "Vali", None),
])
def test_find_duplicate_needs_exact_match(relation, name, year):
    neighbors = [_member(1, "Vali", 1960, R.FATHER)]
    assert find_duplicate(neighbors, relation, name, year) is None

def test_find_duplicate_without_neighbors():
    assert find_duplicate([], R.CHILD, "Ali", 1990) is None
