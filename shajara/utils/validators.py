from datetime import date
from typing import Optional
from shajara.errors import ValidationError
from shajara.models.member import RelationType
import re

MIN_BIRTH_YEAR = 1900

# Menu numbers used by the chatbot when asking for a relation type
RELATION_CHOICES = {
    "1": RelationType.FATHER,
    "2": RelationType.MOTHER,
    "3": RelationType.SIBLING,
    "4": RelationType.CHILD,
    "5": RelationType.SPOUSE,
}

def validate_full_name(name: str) -> str:
    name = re.sub(r"\s+", " ", (name or "")).strip()
    if not name:
        raise ValidationError("Name cannot be empty. Please enter the full name.")
    return name

def validate_birth_year(value) -> int:
    try:
        year = int(str(value).strip())
    except (TypeError, ValueError):
        raise ValidationError("Invalid year. Please enter a full year, e.g. 1990.")
    current_year = date.today().year
    if year < MIN_BIRTH_YEAR or year > current_year:
        raise ValidationError(
            f"Invalid year. Please enter a year between {MIN_BIRTH_YEAR} and {current_year}.",
            {"year": year},
        )
    return year

def validate_death_year(value, birth_year: Optional[int]) -> int:
    try:
        year = int(str(value).strip())
    except (TypeError, ValueError):
        raise ValidationError("Invalid year. Please enter a full year, e.g. 1990.")
    if year > date.today().year:
        raise ValidationError("Death year cannot be in the future.", {"year": year})
    if birth_year is not None and year < birth_year:
        raise ValidationError(
            "Death year cannot be before birth year.",
            {"year": year, "birth_year": birth_year},
        )
    return year

def validate_relation_type(value: str) -> RelationType:
    value = (value or "").strip()
    if value in RELATION_CHOICES:
        return RELATION_CHOICES[value]
    try:
        return RelationType(value.upper())
    except ValueError:
        raise ValidationError("Invalid relation. Enter 1-5.")

def normalize_phone(phone: str) -> str:
    clean = re.sub(r'[^0-9+]', '', phone)
    if not clean.startswith('+'):
         clean = "+" + clean
    return clean
