"""
Dialogue script parser - converts script text into nodes.

Scripts are a series of nodes:

```
title: Start
mood: cheerful
---
Hello there.
<<set $met_guard true>>
<<if visited("Gate")>>
    Back again?
<<else>>
    First time here?
<<endif>>
Where to?
[[The gate|Gate]]
-> Stay a while
    You sit down.
===
```

Parsing is recursive descent over whole lines; a load is all or nothing.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum, auto
from typing import Optional

from spindle.core.errors import ParseError
from spindle.dialog.lexer import Lexer, Token, TokenKind
from spindle.dialog.nodes import (
    AssignStep,
    BinaryExpr,
    BinaryOp,
    BooleanTerm,
    Choice,
    CommandStep,
    ConditionalStep,
    DialogueStep,
    Expr,
    ExternalChoice,
    FunctionTerm,
    InlineChoice,
    JumpStep,
    Node,
    NumberTerm,
    ParenExpr,
    Step,
    StopStep,
    StringTerm,
    TermExpr,
    UnaryExpr,
    UnaryOp,
    VariableTerm,
)


class LineKind(Enum):
    DIALOGUE = auto()
    IF = auto()
    ELSEIF = auto()
    ELSE = auto()
    ENDIF = auto()
    ACTION = auto()
    OPTION = auto()
    INLINE_OPTION = auto()


@dataclass
class Line:
    """
    One classified body line.

    `text` holds the dialogue, condition source, command or choice text,
    `target` the node named by `[[...]]` and `condition` an inline
    choice's guard source.
    """
    kind: LineKind
    indent: int
    line: int
    text: str = ""
    target: str = ""
    condition: Optional[str] = None


WORD_OPERATORS: dict[str, BinaryOp] = {
    'and': BinaryOp.AND,
    'or': BinaryOp.OR,
    'eq': BinaryOp.EQUALS,
    'neq': BinaryOp.NOT_EQUALS,
    'gt': BinaryOp.GREATER_THAN,
    'lt': BinaryOp.LESS_THAN,
    'gte': BinaryOp.GREATER_EQUAL,
    'lte': BinaryOp.LESS_EQUAL,
}

SYMBOL_OPERATORS: dict[TokenKind, BinaryOp] = {
    TokenKind.PLUS: BinaryOp.PLUS,
    TokenKind.MINUS: BinaryOp.MINUS,
    TokenKind.STAR: BinaryOp.MULTIPLY,
    TokenKind.SLASH: BinaryOp.DIVIDE,
}


class ExpressionParser:
    """
    Parses one expression from a lexer.

    The grammar is flat and right-associative: a primary, then optionally
    one operator and another whole expression. There is no precedence, so
    `1 * 2 + 3` is `1 * (2 + 3)` and `-1 + 2` is `-(1 + 2)`.
    """

    def __init__(self, lexer: Lexer):
        self._lexer = lexer

    def parse(self) -> Expr:
        """Parse an expression that must span the whole input."""
        expr = self.parse_expr()
        token = self._lexer.next()
        if token is not None:
            raise ParseError(f"unexpected {_describe(token)} after expression", token.line)
        return expr

    def parse_expr(self) -> Expr:
        left = self._parse_primary()

        ch = self._lexer.peek()
        if ch is None or ch in '),':
            return left

        op = self._parse_operator()
        right = self.parse_expr()
        return BinaryExpr(op, left, right)

    def _parse_primary(self) -> Expr:
        if self._lexer.peek() == '"':
            return TermExpr(StringTerm(self._lexer.read_quoted()))

        token = self._expect_token("an expression")

        if token.kind == TokenKind.NUMBER:
            return TermExpr(NumberTerm(token.value))
        if token.kind == TokenKind.BANG:
            return UnaryExpr(UnaryOp.NOT, self.parse_expr())
        if token.kind == TokenKind.MINUS:
            return UnaryExpr(UnaryOp.NEGATE, self.parse_expr())
        if token.kind == TokenKind.DOLLAR:
            name = self._expect_token("a variable name")
            if name.kind != TokenKind.WORD:
                raise ParseError(f"expected a variable name, found {_describe(name)}", name.line)
            return TermExpr(VariableTerm(name.value))
        if token.kind == TokenKind.LEFT_PAREN:
            inner = self.parse_expr()
            self._expect_kind(TokenKind.RIGHT_PAREN)
            return ParenExpr(inner)
        if token.kind == TokenKind.WORD:
            if token.is_word('true'):
                return TermExpr(BooleanTerm(True))
            if token.is_word('false'):
                return TermExpr(BooleanTerm(False))
            if self._lexer.peek() == '(':
                self._lexer.next()
                return TermExpr(FunctionTerm(token.value, self._parse_arguments()))

        raise ParseError(f"unexpected {_describe(token)} in expression", token.line)

    def _parse_arguments(self) -> tuple[Expr, ...]:
        args: list[Expr] = []
        if self._lexer.peek() == ')':
            self._lexer.next()
            return ()
        while True:
            args.append(self.parse_expr())
            token = self._expect_token("',' or ')'")
            if token.kind == TokenKind.RIGHT_PAREN:
                return tuple(args)
            if token.kind != TokenKind.COMMA:
                raise ParseError(f"expected ',' or ')', found {_describe(token)}", token.line)

    def _parse_operator(self) -> BinaryOp:
        token = self._expect_token("an operator")

        if token.kind in SYMBOL_OPERATORS:
            return SYMBOL_OPERATORS[token.kind]
        if token.kind == TokenKind.EQUALS:
            self._expect_kind(TokenKind.EQUALS)
            return BinaryOp.EQUALS
        if token.kind == TokenKind.BANG:
            self._expect_kind(TokenKind.EQUALS)
            return BinaryOp.NOT_EQUALS
        if token.kind == TokenKind.LEFT_ANGLE:
            return BinaryOp.LESS_EQUAL if self._take_equals() else BinaryOp.LESS_THAN
        if token.kind == TokenKind.RIGHT_ANGLE:
            return BinaryOp.GREATER_EQUAL if self._take_equals() else BinaryOp.GREATER_THAN
        if token.kind == TokenKind.WORD and token.value in WORD_OPERATORS:
            return WORD_OPERATORS[token.value]

        raise ParseError(f"expected an operator, found {_describe(token)}", token.line)

    def _take_equals(self) -> bool:
        if self._lexer.peek() == '=':
            self._lexer.next()
            return True
        return False

    def _expect_token(self, what: str) -> Token:
        token = self._lexer.next()
        if token is None:
            raise ParseError(f"expected {what}, found end of input", self._lexer.line)
        return token

    def _expect_kind(self, kind: TokenKind) -> Token:
        token = self._expect_token(_SYMBOL_NAMES.get(kind, kind.name))
        if token.kind != kind:
            raise ParseError(
                f"expected {_SYMBOL_NAMES.get(kind, kind.name)}, found {_describe(token)}",
                token.line,
            )
        return token


class ScriptParser:
    """
    Parses script text into Nodes.

    Usage:
        nodes = ScriptParser(source).parse_nodes()
    """

    def __init__(self, source: str):
        self._lexer = Lexer(source)
        # A `[[Target]]` read while looking for choices becomes the next step.
        self._pending: Optional[Line] = None

    def parse_nodes(self) -> list[Node]:
        nodes: list[Node] = []
        while self._lexer.peek() is not None:
            nodes.append(self._parse_node())
        return nodes

    # Nodes

    def _parse_node(self) -> Node:
        node = Node(title="")
        has_title = False

        while True:
            token = self._lexer.next()
            if token is None:
                raise ParseError("expected '---' before end of input", self._lexer.line)

            if token.kind == TokenKind.WORD:
                key, sep, value = token.value.partition(':')
                if not sep:
                    raise ParseError(f"expected 'key: value' header, found '{token.value}'", token.line)
                value = value + (self._lexer.remainder_of_line() or "")
                key = key.strip()
                if key == 'title':
                    if has_title:
                        raise ParseError("node has more than one title", token.line)
                    node.title = value.strip()
                    has_title = True
                    if not node.title:
                        raise ParseError("node title is empty", token.line)
                else:
                    node.extra[key] = value.strip()
            elif token.kind == TokenKind.MINUS:
                self._expect_kind(TokenKind.MINUS)
                self._expect_kind(TokenKind.MINUS)
                if not has_title:
                    raise ParseError("node has no title", token.line)
                node.steps = self._parse_body()
                return node
            else:
                raise ParseError(f"unexpected {_describe(token)} in node header", token.line)

    def _parse_body(self) -> list[Step]:
        steps: list[Step] = []
        while True:
            if self._pending is None:
                ch = self._lexer.peek()
                if ch is None:
                    raise ParseError("expected '===' before end of input", self._lexer.line)
                if ch == '=':
                    for _ in range(3):
                        self._expect_kind(TokenKind.EQUALS)
                    return steps
            steps.append(self._parse_step(self._next_line()))

    # Lines

    def _next_line(self) -> Line:
        if self._pending is not None:
            line, self._pending = self._pending, None
            return line
        return self._parse_line()

    def _parse_line(self) -> Line:
        token = self._lexer.next()
        if token is None:
            raise ParseError("unexpected end of input", self._lexer.line)
        indent = self._lexer.last_indent
        lineno = token.line

        if token.kind == TokenKind.WORD:
            rest = self._lexer.remainder_of_line() or ""
            return Line(LineKind.DIALOGUE, indent, lineno, text=(token.value + rest).rstrip())

        if token.kind == TokenKind.LEFT_ANGLE:
            self._expect_kind(TokenKind.LEFT_ANGLE)
            body = self._lexer.read_until_pair('>')
            return self._classify_command(body.strip(), indent, lineno)

        if token.kind == TokenKind.LEFT_BRACKET:
            self._expect_kind(TokenKind.LEFT_BRACKET)
            contents = self._lexer.read_until(']')
            self._expect_kind(TokenKind.RIGHT_BRACKET)
            text, sep, target = contents.partition('|')
            if not sep:
                text, target = "", text
            if not target.strip():
                raise ParseError("choice has no target node", lineno)
            return Line(LineKind.OPTION, indent, lineno, text=text.strip(), target=target.strip())

        if token.kind == TokenKind.MINUS:
            self._expect_kind(TokenKind.RIGHT_ANGLE)
            rest = self._lexer.remainder_of_line() or ""
            condition = None
            start = rest.find('<<')
            if start != -1:
                end = rest.find('>>', start + 2)
                if end == -1:
                    raise ParseError("expected '>>' to close choice condition", lineno)
                condition = rest[start + 2:end].strip()
                rest = rest[:start]
            return Line(LineKind.INLINE_OPTION, indent, lineno, text=rest.strip(), condition=condition)

        raise ParseError(f"unexpected {_describe(token)} at start of line", lineno)

    @staticmethod
    def _classify_command(body: str, indent: int, lineno: int) -> Line:
        if body == 'if' or body.startswith('if '):
            return Line(LineKind.IF, indent, lineno, text=body[2:].strip())
        if body == 'elseif' or body.startswith('elseif '):
            return Line(LineKind.ELSEIF, indent, lineno, text=body[6:].strip())
        if body == 'else':
            return Line(LineKind.ELSE, indent, lineno)
        if body == 'endif':
            return Line(LineKind.ENDIF, indent, lineno)
        return Line(LineKind.ACTION, indent, lineno, text=body)

    # Steps

    def _parse_step(self, line: Line) -> Step:
        if line.kind == LineKind.DIALOGUE:
            return DialogueStep(line.text, self._parse_choices(line.indent))

        if line.kind == LineKind.IF:
            return self._parse_conditional(line)

        if line.kind == LineKind.ACTION:
            if line.text == 'stop':
                return StopStep()
            if line.text.startswith('set '):
                return self._parse_assignment(line)
            return CommandStep(line.text)

        if line.kind == LineKind.OPTION and not line.text:
            return JumpStep(line.target)

        raise ParseError(f"{_LINE_NAMES[line.kind]} is not allowed here", line.line)

    def _parse_assignment(self, line: Line) -> AssignStep:
        rest = line.text[4:].strip()
        name, _, expr_text = rest.partition(' ')
        name = name.lstrip('$')
        if not name:
            raise ParseError("assignment has no variable name", line.line)

        expr_text = expr_text.strip()
        if expr_text.startswith('to '):
            expr_text = expr_text[3:]
        elif expr_text.startswith('=') and not expr_text.startswith('=='):
            expr_text = expr_text[1:]
        return AssignStep(name, self._parse_expression(expr_text, line.line))

    def _parse_conditional(self, line: Line) -> ConditionalStep:
        condition = self._parse_expression(line.text, line.line)
        if_steps: list[Step] = []
        else_ifs: list[tuple[Expr, list[Step]]] = []
        else_steps: list[Step] = []
        in_else = False
        current = if_steps

        while True:
            if self._pending is None and self._lexer.peek() in (None, '='):
                raise ParseError("missing <<endif>>", line.line)

            inner = self._next_line()
            if inner.kind == LineKind.ELSEIF:
                if in_else:
                    raise ParseError("<<elseif>> after <<else>>", inner.line)
                branch: list[Step] = []
                else_ifs.append((self._parse_expression(inner.text, inner.line), branch))
                current = branch
            elif inner.kind == LineKind.ELSE:
                if in_else:
                    raise ParseError("<<else>> after <<else>>", inner.line)
                in_else = True
                current = else_steps
            elif inner.kind == LineKind.ENDIF:
                return ConditionalStep(
                    condition,
                    tuple(if_steps),
                    tuple((cond, tuple(steps)) for cond, steps in else_ifs),
                    tuple(else_steps),
                )
            else:
                current.append(self._parse_step(inner))

    def _parse_choices(self, indent: int) -> tuple[Choice, ...]:
        choices: list[Choice] = []
        while self._pending is None:
            ch = self._lexer.peek()
            if ch not in ('[', '-') or self._lexer.last_indent < indent:
                break

            line = self._parse_line()
            if line.kind == LineKind.OPTION:
                if not line.text:
                    self._pending = line
                    break
                choices.append(ExternalChoice(line.text, line.target))
            else:
                condition = None
                if line.condition is not None:
                    condition = self._parse_expression(line.condition, line.line)
                # TODO: hide inline choices whose guard is falsy once the
                # hidden-versus-disabled presentation is settled.
                choices.append(InlineChoice(line.text, self._parse_inline_body(line.indent), condition))
        return tuple(choices)

    def _parse_inline_body(self, indent: int) -> tuple[Step, ...]:
        steps: list[Step] = []
        while True:
            if self._pending is not None:
                if self._pending.indent <= indent:
                    break
            else:
                ch = self._lexer.peek()
                if ch is None or ch == '=' or self._lexer.last_indent <= indent:
                    break
            steps.append(self._parse_step(self._next_line()))
        return tuple(steps)

    def _parse_expression(self, text: str, lineno: int) -> Expr:
        try:
            return ExpressionParser(Lexer(text)).parse()
        except ParseError as e:
            raise ParseError(f"in expression '{text}': {e.message}", lineno) from e

    def _expect_kind(self, kind: TokenKind) -> Token:
        token = self._lexer.next()
        name = _SYMBOL_NAMES.get(kind, kind.name)
        if token is None:
            raise ParseError(f"expected {name}, found end of input", self._lexer.line)
        if token.kind != kind:
            raise ParseError(f"expected {name}, found {_describe(token)}", token.line)
        return token


_SYMBOL_NAMES: dict[TokenKind, str] = {
    TokenKind.LEFT_ANGLE: "'<'",
    TokenKind.RIGHT_ANGLE: "'>'",
    TokenKind.LEFT_BRACKET: "'['",
    TokenKind.RIGHT_BRACKET: "']'",
    TokenKind.LEFT_PAREN: "'('",
    TokenKind.RIGHT_PAREN: "')'",
    TokenKind.MINUS: "'-'",
    TokenKind.EQUALS: "'='",
}

_LINE_NAMES: dict[LineKind, str] = {
    LineKind.ELSEIF: "<<elseif>>",
    LineKind.ELSE: "<<else>>",
    LineKind.ENDIF: "<<endif>>",
    LineKind.OPTION: "a choice without a preceding line",
    LineKind.INLINE_OPTION: "a choice without a preceding line",
}


def _describe(token: Token) -> str:
    if token.kind == TokenKind.WORD:
        return f"'{token.value}'"
    if token.kind == TokenKind.NUMBER:
        return f"number {token.value:g}"
    return _SYMBOL_NAMES.get(token.kind, f"'{token.kind.name.lower()}'")


def parse_nodes(source: str) -> list[Node]:
    """Parse script text into nodes, raising ParseError on any grammar violation."""
    return ScriptParser(source).parse_nodes()


def parse_expression(source: str) -> Expr:
    """Parse a standalone expression such as `$gold + 5`."""
    return ExpressionParser(Lexer(source)).parse()
