"""
Serbian Cyrillic and Latin script conversion.

Outage pages publish settlement names in either script, so a search term is
matched in every script it can be written in.
"""

from typing import List

_CYRILLIC_TO_LATIN = {
    "а": "a", "б": "b", "в": "v", "г": "g", "д": "d", "ђ": "đ", "е": "e",
    "ж": "ž", "з": "z", "и": "i", "ј": "j", "к": "k", "л": "l", "љ": "lj",
    "м": "m", "н": "n", "њ": "nj", "о": "o", "п": "p", "р": "r", "с": "s",
    "т": "t", "ћ": "ć", "у": "u", "ф": "f", "х": "h", "ц": "c", "ч": "č",
    "џ": "dž", "ш": "š",
}

# Digraphs come first so "lj" is not read as "l" + "j".
_LATIN_TO_CYRILLIC = sorted(
    ((latin, cyrillic) for cyrillic, latin in _CYRILLIC_TO_LATIN.items()),
    key=lambda pair: -len(pair[0]),
)

_ASCII_FOLD = str.maketrans({"č": "c", "ć": "c", "š": "s", "ž": "z", "đ": "dj"})


def _match_case(source: str, converted: str) -> str:
    if source.isupper() and len(source) == 1:
        return converted[:1].upper() + converted[1:]
    return converted


def to_latin(text: str) -> str:
    """Converts Serbian Cyrillic letters to Latin, leaving anything else untouched."""
    return "".join(
        _match_case(char, _CYRILLIC_TO_LATIN.get(char.lower(), char)) for char in text
    )


def to_cyrillic(text: str) -> str:
    """Converts Serbian Latin letters to Cyrillic, leaving anything else untouched."""
    result = []
    i = 0
    while i < len(text):
        for latin, cyrillic in _LATIN_TO_CYRILLIC:
            chunk = text[i:i + len(latin)]
            if chunk.lower() == latin:
                result.append(cyrillic.upper() if chunk[:1].isupper() else cyrillic)
                i += len(latin)
                break
        else:
            result.append(text[i])
            i += 1
    return "".join(result)


def search_variants(term: str) -> List[str]:
    """
    Returns the term together with its Latin, Cyrillic and accent-free Latin
    spellings, without duplicates and in that order.
    """
    latin = to_latin(term)
    variants = [term, latin, to_cyrillic(term), latin.lower().translate(_ASCII_FOLD)]
    unique: List[str] = []
    for variant in variants:
        if variant and variant not in unique:
            unique.append(variant)
    return unique
