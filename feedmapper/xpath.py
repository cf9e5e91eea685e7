"""
Path expressions over XML documents.
A small XPath subset: parsed once into a typed expression, then evaluated
against a DOM document or a context element.

Supported syntax:
    /a/b/c              absolute child steps
    //tag, a//b         descendant steps
    name/text()         text of matched elements (CDATA preferred)
    @id, a/b/@id, a@id  attribute selection; @* selects all attributes
    ., ./a, ..          self and parent
    tag[child/text()='x'], tag[child='x'], tag[@attr="x"], tag[child], tag[2]
"""

import logging
import re
from dataclasses import dataclass
from enum import Enum
from functools import lru_cache
from typing import Any, Dict, List, Optional, Tuple

from .errors import PathSyntaxError
from .xml_document import (
    attribute_items,
    direct_text,
    element_children,
    is_document,
    is_element,
    iter_descendants,
    owner_document,
    preferred_text,
)

logger = logging.getLogger(__name__)

_NAME_RE = re.compile(r'[A-Za-z_][\w.\-:]*')
_INT_RE = re.compile(r'\d+')


class Axis(str, Enum):
    CHILD = "child"
    DESCENDANT = "descendant"
    SELF = "self"
    PARENT = "parent"


class Target(str, Enum):
    ELEMENTS = "elements"
    ATTRIBUTE = "attribute"
    TEXT = "text"


class ResultKind(str, Enum):
    ELEMENT = "element"
    ATTRIBUTE = "attribute"
    TEXT = "text"


@dataclass(frozen=True)
class Predicate:
    """Filter on a step: positional, existence, or equality with a literal."""
    path: Optional['PathExpr'] = None
    literal: Optional[str] = None
    position: Optional[int] = None


@dataclass(frozen=True)
class Step:
    axis: Axis
    name: str  # tag name, '*', or '' for self/parent steps
    predicates: Tuple[Predicate, ...] = ()


@dataclass(frozen=True)
class PathExpr:
    source: str
    absolute: bool
    steps: Tuple[Step, ...]
    target: Target = Target.ELEMENTS
    attribute: Optional[str] = None  # attribute name or '*'


@dataclass(frozen=True)
class ResultNode:
    """One evaluation result: the DOM node and its string value."""
    kind: ResultKind
    node: Any
    value: str


class _PathParser:
    """Recursive-descent parser for the supported path subset."""

    def __init__(self, source: str):
        self.source = source
        self.pos = 0

    def error(self, message: str) -> PathSyntaxError:
        return PathSyntaxError(self.source, message, self.pos)

    def peek(self, token: str) -> bool:
        return self.source.startswith(token, self.pos)

    def at_end(self, stops: str = '') -> bool:
        return self.pos >= len(self.source) or self.source[self.pos] in stops

    def skip_spaces(self) -> None:
        while self.pos < len(self.source) and self.source[self.pos].isspace():
            self.pos += 1

    def read_name(self, allow_star: bool = True) -> str:
        if allow_star and self.peek('*'):
            self.pos += 1
            return '*'
        match = _NAME_RE.match(self.source, self.pos)
        if not match:
            raise self.error("expected a name")
        self.pos = match.end()
        if self.peek('('):
            raise self.error(f"unsupported function '{match.group()}()'")
        return match.group()

    def parse(self) -> PathExpr:
        expr = self.parse_path(stops='')
        if self.pos != len(self.source):
            raise self.error("unexpected trailing characters")
        return expr

    def parse_path(self, stops: str) -> PathExpr:
        start = self.pos
        absolute = False
        axis = Axis.CHILD

        if self.peek('//'):
            absolute, axis = True, Axis.DESCENDANT
            self.pos += 2
        elif self.peek('/'):
            absolute = True
            self.pos += 1

        if self.at_end(stops):
            raise self.error("path selects no node")

        steps: List[Step] = []
        target, attribute = Target.ELEMENTS, None

        while True:
            if self.peek('@'):
                self.pos += 1
                attribute = self.read_name()
                target = Target.ATTRIBUTE
                if absolute and not steps:
                    raise self.error("attribute selection needs an element step")
                break
            if self.peek('text()'):
                self.pos += len('text()')
                target = Target.TEXT
                if absolute and not steps:
                    raise self.error("text() needs an element step")
                break
            if self.peek('..'):
                self.pos += 2
                steps.append(Step(Axis.PARENT, ''))
            elif self.peek('.'):
                self.pos += 1
                steps.append(Step(Axis.SELF, ''))
            else:
                name = self.read_name()
                predicates = self.parse_predicates()
                steps.append(Step(axis, name, predicates))
                if self.peek('@'):
                    # tag@attr shorthand
                    self.pos += 1
                    attribute = self.read_name()
                    target = Target.ATTRIBUTE
                    break

            if self.at_end(stops):
                break
            if self.peek('//'):
                axis = Axis.DESCENDANT
                self.pos += 2
            elif self.peek('/'):
                axis = Axis.CHILD
                self.pos += 1
            else:
                raise self.error(f"unexpected character '{self.source[self.pos]}'")
            if self.at_end(stops):
                raise self.error("path ends with a separator")

        if not self.at_end(stops):
            raise self.error(f"unexpected character '{self.source[self.pos]}' after {target.value} selector")

        return PathExpr(
            source=self.source[start:self.pos],
            absolute=absolute,
            steps=tuple(steps),
            target=target,
            attribute=attribute,
        )

    def parse_predicates(self) -> Tuple[Predicate, ...]:
        predicates = []
        while self.peek('['):
            self.pos += 1
            self.skip_spaces()
            number = _INT_RE.match(self.source, self.pos)
            if number:
                self.pos = number.end()
                position = int(number.group())
                if position < 1:
                    raise self.error("positions start at 1")
                predicates.append(Predicate(position=position))
            else:
                if self.peek('/'):
                    raise self.error("absolute paths are not allowed in predicates")
                path = self.parse_path(stops='=]! \t')
                self.skip_spaces()
                literal = None
                if self.peek('='):
                    self.pos += 1
                    self.skip_spaces()
                    literal = self.parse_literal()
                predicates.append(Predicate(path=path, literal=literal))
            self.skip_spaces()
            if not self.peek(']'):
                raise self.error("expected ']'")
            self.pos += 1
        return tuple(predicates)

    def parse_literal(self) -> str:
        if self.pos >= len(self.source) or self.source[self.pos] not in ('"', "'"):
            raise self.error("expected a quoted literal")
        quote = self.source[self.pos]
        end = self.source.find(quote, self.pos + 1)
        if end < 0:
            raise self.error("unterminated string literal")
        literal = self.source[self.pos + 1:end]
        self.pos = end + 1
        return literal


@lru_cache(maxsize=1024)
def parse_path(path: str) -> PathExpr:
    """
    Parse a path expression.

    Raises:
        PathSyntaxError: If the path is empty or malformed
    """
    if not isinstance(path, str) or not path.strip():
        raise PathSyntaxError(str(path), "path is empty")
    return _PathParser(path.strip()).parse()


class PathEvaluator:
    """Evaluates path expressions; stateless."""

    def evaluate(self, doc, context, path: str) -> List[ResultNode]:
        """
        Evaluate a path.

        Args:
            doc: DOM document (used for absolute paths)
            context: Context element for relative paths (defaults to the document element)
            path: Path expression

        Returns:
            Ordered results; empty when nothing matches

        Raises:
            PathSyntaxError: If the path cannot be parsed
        """
        expr = parse_path(path)
        if doc is None and context is not None:
            doc = owner_document(context)
        if expr.absolute:
            start = doc
        else:
            start = context if context is not None else doc.documentElement
            if is_document(start):
                start = start.documentElement
        return self.evaluate_expr(expr, start)

    def select_elements(self, doc, context, path: str) -> list:
        """Evaluate and keep only element results."""
        return [r.node for r in self.evaluate(doc, context, path) if r.kind == ResultKind.ELEMENT]

    def evaluate_expr(self, expr: PathExpr, start) -> List[ResultNode]:
        nodes = [start]
        for step in expr.steps:
            nodes = self._apply_step(step, nodes)
            if not nodes:
                return []

        if expr.target == Target.ATTRIBUTE:
            return self._attributes(nodes, expr.attribute)
        if expr.target == Target.TEXT:
            results = []
            for node in nodes:
                if not is_element(node):
                    continue
                text = direct_text(node)
                if text is not None:
                    results.append(ResultNode(ResultKind.TEXT, node, text))
            return results
        return [
            ResultNode(ResultKind.ELEMENT, node, preferred_text(node))
            for node in nodes if is_element(node)
        ]

    def _apply_step(self, step: Step, nodes: list) -> list:
        selected = []
        seen = set()
        for node in nodes:
            if step.axis == Axis.SELF:
                candidates = [node]
            elif step.axis == Axis.PARENT:
                parent = node.parentNode
                candidates = [parent] if parent is not None and (is_element(parent) or is_document(parent)) else []
            elif step.axis == Axis.DESCENDANT:
                candidates = [n for n in iter_descendants(node) if _name_matches(n, step.name)]
            else:
                candidates = [n for n in element_children(node) if _name_matches(n, step.name)]

            for predicate in step.predicates:
                candidates = self._filter(candidates, predicate)

            for candidate in candidates:
                if id(candidate) not in seen:
                    seen.add(id(candidate))
                    selected.append(candidate)
        return selected

    def _filter(self, candidates: list, predicate: Predicate) -> list:
        if predicate.position is not None:
            # Positions count among siblings, so descendant matches are grouped by parent
            groups: Dict[int, list] = {}
            for candidate in candidates:
                groups.setdefault(id(candidate.parentNode), []).append(candidate)
            index = predicate.position - 1
            kept_ids = {id(group[index]) for group in groups.values() if index < len(group)}
            return [c for c in candidates if id(c) in kept_ids]

        kept = []
        for candidate in candidates:
            if not is_element(candidate):
                continue
            results = self.evaluate_expr(predicate.path, candidate)
            if predicate.literal is None:
                if results:
                    kept.append(candidate)
            elif any(r.value.strip() == predicate.literal for r in results):
                kept.append(candidate)
        return kept

    @staticmethod
    def _attributes(nodes: list, name: str) -> List[ResultNode]:
        results = []
        for node in nodes:
            if not is_element(node):
                continue
            if name == '*':
                for attr_name, _ in attribute_items(node):
                    attr = node.getAttributeNode(attr_name)
                    results.append(ResultNode(ResultKind.ATTRIBUTE, attr, attr.value))
            elif node.hasAttribute(name):
                attr = node.getAttributeNode(name)
                results.append(ResultNode(ResultKind.ATTRIBUTE, attr, attr.value))
        return results


def _name_matches(node, name: str) -> bool:
    return is_element(node) and (name == '*' or node.tagName == name)


_default_evaluator = PathEvaluator()


def evaluate(doc, context, path: str) -> List[ResultNode]:
    """Module-level shortcut for PathEvaluator().evaluate."""
    return _default_evaluator.evaluate(doc, context, path)
