"""Password strength policy applied to new and changed passwords."""

from __future__ import annotations

import unicodedata

MIN_LETTERS = 8


def is_acceptable(password: str) -> bool:
    """Return ``True`` when the password satisfies the strength policy.

    A password needs at least :data:`MIN_LETTERS` letters (spaces and
    uppercase letters count), at least one digit, one uppercase letter and one
    punctuation or symbol character.
    """
    letters = 0
    has_digit = has_upper = has_special = False
    for char in password:
        category = unicodedata.category(char)
        if category.startswith("N"):
            has_digit = True
        elif category == "Lu":
            has_upper = True
            letters += 1
        elif category[0] in ("P", "S"):
            has_special = True
        elif category.startswith("L") or char == " ":
            letters += 1
    return letters >= MIN_LETTERS and has_digit and has_upper and has_special
