"""
Extraction strategies and field specifications.

A FieldSpec is an ordered fallback chain of strategies for one field. Each
strategy reads one thing from a node (a CSS selector's text, an attribute, a
regex match) and returns None when it finds nothing, so the chain can move on.
"""

import re
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Tuple

from bs4 import Tag

from ..utils.normalizers import clean_text


def _select(node: Tag, selector: Optional[str], last: bool = False) -> Optional[Tag]:
    if selector is None:
        return node
    if last:
        matches = node.select(selector)
        return matches[-1] if matches else None
    return node.select_one(selector)


def is_present(value: Any) -> bool:
    """Default validator: anything but None and empty containers/strings."""
    if value is None:
        return False
    if isinstance(value, (str, list, tuple, dict, set, frozenset)):
        return len(value) > 0
    return True


class Strategy(ABC):
    """One way of reading a raw value out of a node."""

    @abstractmethod
    def extract(self, node: Tag) -> Any:
        """Raw value, or None when this strategy finds nothing."""

    def __str__(self) -> str:
        return self.describe()

    def describe(self) -> str:
        return type(self).__name__


@dataclass(frozen=True)
class Text(Strategy):
    """Whitespace-collapsed text of the first (or last) element matching selector."""
    selector: Optional[str] = None
    last: bool = False

    def extract(self, node: Tag) -> Optional[str]:
        element = _select(node, self.selector, self.last)
        if element is None:
            return None
        return clean_text(element.get_text(" ", strip=True))

    def describe(self) -> str:
        return f"text({self.selector or 'self'})"


@dataclass(frozen=True)
class Attr(Strategy):
    """Attribute value of the node itself or of the first element matching selector."""
    attr: str
    selector: Optional[str] = None

    def extract(self, node: Tag) -> Optional[str]:
        element = _select(node, self.selector)
        if element is None:
            return None
        value = element.get(self.attr)
        if isinstance(value, list):
            value = " ".join(value)
        return clean_text(value) if value is not None else None

    def describe(self) -> str:
        return f"attr({self.selector or 'self'}@{self.attr})"


@dataclass(frozen=True)
class Pattern(Strategy):
    """Regex capture group from the text (or an attribute) of a node."""
    regex: str
    selector: Optional[str] = None
    attr: Optional[str] = None
    group: int = 1
    flags: int = re.IGNORECASE

    def extract(self, node: Tag) -> Optional[str]:
        element = _select(node, self.selector)
        if element is None:
            return None
        if self.attr:
            source = element.get(self.attr)
            if isinstance(source, list):
                source = " ".join(source)
        else:
            source = element.get_text(" ", strip=True)
        if not source:
            return None
        match = re.search(self.regex, source, self.flags)
        return match.group(self.group) if match else None

    def describe(self) -> str:
        target = f"@{self.attr}" if self.attr else ""
        return f"pattern({self.selector or 'self'}{target} ~ {self.regex})"


@dataclass(frozen=True)
class Exists(Strategy):
    """True when an element matches; with include_self the node itself is tested too."""
    selector: str
    include_self: bool = True

    def extract(self, node: Tag) -> Optional[bool]:
        if self.include_self and node.css.match(self.selector):
            return True
        return True if node.select_one(self.selector) is not None else None

    def describe(self) -> str:
        return f"exists({self.selector})"


@dataclass(frozen=True)
class InputValue(Strategy):
    """Current value of a form control: input value, textarea text or selected option."""
    selector: str

    def extract(self, node: Tag) -> Optional[str]:
        element = node.select_one(self.selector)
        if element is None:
            return None
        if element.name == 'textarea':
            return clean_text(element.get_text())
        if element.name == 'select':
            option = element.select_one('option[selected]') or element.select_one('option')
            return clean_text(option.get('value')) if option is not None else None
        value = element.get('value')
        return clean_text(value) if value is not None else None

    def describe(self) -> str:
        return f"value({self.selector})"


@dataclass(frozen=True)
class TextList(Strategy):
    """Distinct non-empty texts of every element matching selector."""
    selector: str

    def extract(self, node: Tag) -> Optional[List[str]]:
        texts = []
        for element in node.select(self.selector):
            text = clean_text(element.get_text(" ", strip=True))
            if text and text not in texts:
                texts.append(text)
        return texts or None

    def describe(self) -> str:
        return f"texts({self.selector})"


@dataclass(frozen=True)
class KeyValueRows(Strategy):
    """Two-column table rows (label, value) as a dict."""
    row_selector: str

    def extract(self, node: Tag) -> Optional[Dict[str, str]]:
        pairs = {}
        for row in node.select(self.row_selector):
            cells = row.find_all(['th', 'td'])
            if len(cells) < 2:
                continue
            label = clean_text(cells[0].get_text(" ", strip=True))
            value = clean_text(cells[-1].get_text(" ", strip=True))
            if label and value and label != value:
                pairs[label] = value
        return pairs or None

    def describe(self) -> str:
        return f"rows({self.row_selector})"


@dataclass(frozen=True)
class FieldSpec:
    """
    Ordered extraction chain for one field.

    Attributes:
        name: Field name in the extracted dict
        strategies: Tried in order; the first result that converts to a value
            passing validate wins
        convert: Raw value -> typed value (may return None to reject)
        validate: Accepts or rejects a converted value
        required: Identity field; when it resolves to nothing the whole
            entity parse fails
        default: Value used when every strategy fails (enrichment fields)
        collect: Merge the results of all strategies instead of taking the
            first (multi-valued fields such as tags)
    """
    name: str
    strategies: Tuple[Strategy, ...]
    convert: Callable[[Any], Any] = lambda raw: raw
    validate: Callable[[Any], bool] = is_present
    required: bool = False
    default: Any = None
    collect: bool = False


@dataclass(frozen=True)
class EntitySchema:
    """Field chains for one entity kind, plus the repeating-element selectors for lists."""
    kind: str
    fields: Tuple[FieldSpec, ...]
    item_selectors: Tuple[str, ...] = ()

    def field(self, name: str) -> FieldSpec:
        for spec in self.fields:
            if spec.name == name:
                return spec
        raise KeyError(f"{self.kind} has no field '{name}'")
