from __future__ import annotations
import re
from pathlib import Path
from typing import List, Optional

from lark import Lark, Token, Transformer, v_args
from lark.exceptions import UnexpectedCharacters, UnexpectedEOF, UnexpectedInput, UnexpectedToken, VisitError

from .ast import Command, ForEach, If, Parallel, Program, Statement
from .errors import ParseError

GRAMMAR_PATH = Path(__file__).with_name("grammar.lark")

_parser = None

_ESCAPES = {"n": "\n", "t": "\t", "r": "\r"}
_ESCAPE_RE = re.compile(r"\\(.)", re.DOTALL)


def _load_parser() -> Lark:
    global _parser
    if _parser is None:
        grammar = GRAMMAR_PATH.read_text(encoding="utf-8")
        _parser = Lark(grammar, start="start", parser="lalr", maybe_placeholders=True)
    return _parser


def unquote(token: Token) -> str:
    body = str(token)[1:-1]
    return _ESCAPE_RE.sub(lambda m: _ESCAPES.get(m.group(1), m.group(1)), body)


@v_args(inline=True)
class _ToAST(Transformer):
    """Builds immutable AST nodes bottom-up from the Lark parse tree."""

    def start(self, *statements: Statement) -> Program:
        return Program(statements=tuple(statements))

    def statement(self, *nodes) -> Statement:
        # fold the flat stage list into the linked `->` chain without recursion
        stmt: Optional[Statement] = None
        for node in reversed(nodes):
            stmt = Statement(node=node, next=stmt)
        return stmt

    def command(self, name: Token, arg1: Optional[Token] = None, arg2: Optional[Token] = None) -> Command:
        args = [unquote(a) for a in (arg1, arg2) if a is not None]
        args += [""] * (2 - len(args))
        return Command(action=str(name).lower(), arg1=args[0], arg2=args[1])

    def parallel(self, _kw: Token, *branches: Statement) -> Parallel:
        return Parallel(branches=tuple(branches))

    def if_block(self, _kw: Token, condition: Token, *body: Statement) -> If:
        return If(condition=unquote(condition), then=tuple(body))

    def foreach_block(self, _kw: Token, strategy: Optional[Token], *body: Statement) -> ForEach:
        return ForEach(strategy=unquote(strategy) if strategy is not None else "line", body=tuple(body))


def _describe(e: UnexpectedInput) -> ParseError:
    line = getattr(e, "line", None)
    column = getattr(e, "column", None)
    if isinstance(e, UnexpectedEOF):
        return ParseError("unexpected end of input (unbalanced braces or dangling '->'?)", line, column)
    if isinstance(e, UnexpectedToken):
        tok = e.token
        if tok.type == "$END":
            return ParseError("unexpected end of input (unbalanced braces or dangling '->'?)", line, column)
        expected: List[str] = sorted(e.expected) if e.expected else []
        msg = f"unexpected token {str(tok)!r}"
        if expected:
            msg += f", expected one of: {', '.join(expected)}"
        return ParseError(msg, tok.line, tok.column, str(tok))
    if isinstance(e, UnexpectedCharacters):
        char = e.char
        hint = " (missing closing quote?)" if char in ("\"", "'") else ""
        return ParseError(f"unexpected character {char!r}{hint}", line, column, char)
    return ParseError(str(e), line, column)


def parse(source: str | Path) -> Program:
    if isinstance(source, Path):
        return parse_file(source)
    text = str(source)
    if not text.strip():
        raise ParseError("empty program")
    try:
        tree = _load_parser().parse(text)
        return _ToAST().transform(tree)
    except UnexpectedInput as e:
        raise _describe(e) from e
    except VisitError as e:
        raise ParseError(str(e.orig_exc)) from e


def parse_file(path: str | Path) -> Program:
    p = Path(path)
    try:
        text = p.read_text(encoding="utf-8")
    except OSError as e:
        raise ParseError(f"cannot read script {p}: {e}") from e
    return parse(text)
