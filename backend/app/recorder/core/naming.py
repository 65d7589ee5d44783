"""
Naming helpers shared by the page-object synthesizer and the code emitter.
"""

import keyword
import re
from urllib.parse import urlparse

_WORD_SPLIT = re.compile(r"[^A-Za-z0-9]+")
_CAMEL_BOUNDARY = re.compile(r"(?<=[a-z0-9])(?=[A-Z])")


def words(text: str):
    """Split free text or identifiers into words"""
    parts = []
    for chunk in _WORD_SPLIT.split(text or ""):
        parts.extend(p for p in _CAMEL_BOUNDARY.split(chunk) if p)
    return parts


def to_pascal_case(text: str, max_words: int = 4) -> str:
    return "".join(w[:1].upper() + w[1:].lower() for w in words(text)[:max_words])


def to_camel_case(text: str, max_words: int = 4) -> str:
    pascal = to_pascal_case(text, max_words)
    return pascal[:1].lower() + pascal[1:]


def to_snake_case(text: str) -> str:
    return "_".join(w.lower() for w in words(text))


def to_kebab_case(text: str) -> str:
    return "-".join(w.lower() for w in words(text))


def python_identifier(text: str, default: str = "element") -> str:
    """snake_case identifier that is safe to emit in generated Python"""
    name = to_snake_case(text) or default
    if name[0].isdigit():
        name = f"_{name}"
    if keyword.iskeyword(name):
        name = f"{name}_"
    return name


def page_key(url: str) -> str:
    """
    Page-object name for a URL: the path PascalCased plus "Page".

    The query string and fragment are ignored; the root maps to HomePage.
    """
    try:
        path = urlparse(url or "").path
    except ValueError:
        return "HomePage"

    path = path.strip("/")
    if not path:
        path = "home"

    name = "".join(
        part[:1].upper() + part[1:].lower()
        for part in re.split(r"[-_/]", path)
        if part
    )
    name = re.sub(r"[^A-Za-z0-9]", "", name) or "Home"
    if name[0].isdigit():
        name = f"Page{name}"
    return f"{name}Page"
