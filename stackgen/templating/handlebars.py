"""Handlebars-compatible template front-end for Jinja2.

Project templates are written in Handlebars syntax.  Rather than carrying a
second template engine, the source is translated once into an equivalent
Jinja2 template and rendered by Jinja2.  The translation supports:

* ``{{path}}`` / ``{{{path}}}`` / ``{{&path}}`` output (never HTML escaped),
* ``{{#if}}``, ``{{else if}}``, ``{{else}}``, ``{{#unless}}``, ``{{^x}}``,
* ``{{#each}}`` over lists and mappings with ``this``, ``@index``,
  ``@key``, ``@first``, ``@last``, ``../`` and ``as |item key|``,
* ``@root`` paths, sub-expressions ``(helper a b)`` and literals,
* ``{{! }}`` / ``{{!-- --}}`` comments, ``\\{{`` escapes,
* ``~`` whitespace control and standalone-line removal for block tags.

Helpers are a fixed set (see :mod:`stackgen.templating.helpers`).  Partials,
hash arguments and unknown helpers are rejected with
:class:`~stackgen.errors.TemplateSyntaxError`.
"""

from __future__ import annotations

import functools
import inspect
import json
import re
from dataclasses import dataclass, field
from typing import Any

import jinja2
from jinja2 import ChainableUndefined, Environment

from stackgen.errors import TemplateSyntaxError
from stackgen.templating import helpers

# ---------------------------------------------------------------------------
# Tokens
# ---------------------------------------------------------------------------


@dataclass
class _Text:
    original: str
    value: str
    lineno: int


@dataclass
class _Tag:
    content: str
    lineno: int
    comment: bool = False
    triple: bool = False
    strip_left: bool = False
    strip_right: bool = False

    @property
    def is_block_tag(self) -> bool:
        """Tags that disappear with their line when they stand alone on it."""
        if self.comment:
            return True
        if self.triple:
            return False
        head = self.content.strip()
        return head.startswith(("#", "/", "^")) or head == "else" or head.startswith("else ")


_TRIPLE_END = re.compile(r"\}(~?)\}\}")
_MUSTACHE_END = re.compile(r"(~?)\}\}")
_LONG_COMMENT_END = re.compile(r"--(~?)\}\}")

_PREV_WS = re.compile(r"\r?\n[ \t]*\Z")
_PREV_WS_FIRST = re.compile(r"(?:\A|\r?\n)[ \t]*\Z")
_NEXT_WS = re.compile(r"\A[ \t]*\r?\n")
_NEXT_WS_LAST = re.compile(r"\A[ \t]*(?:\r?\n|\Z)")


def _tokenize(source: str, name: str | None) -> list[_Text | _Tag]:
    tokens: list[_Text | _Tag] = []
    pending: list[str] = []
    pending_line = 1
    pos = 0

    def flush() -> None:
        if pending:
            text = "".join(pending)
            tokens.append(_Text(original=text, value=text, lineno=pending_line))
            pending.clear()

    while True:
        idx = source.find("{{", pos)
        if idx == -1:
            if not pending:
                pending_line = source.count("\n", 0, pos) + 1
            pending.append(source[pos:])
            break

        if not pending:
            pending_line = source.count("\n", 0, pos) + 1

        # \{{ is a literal; \\{{ is a literal backslash followed by a tag.
        if idx > 0 and source[idx - 1] == "\\" and not (idx > 1 and source[idx - 2] == "\\"):
            pending.append(source[pos : idx - 1] + "{{")
            pos = idx + 2
            continue
        if idx > 1 and source[idx - 1] == "\\" and source[idx - 2] == "\\":
            pending.append(source[pos : idx - 1])
        else:
            pending.append(source[pos:idx])
        flush()

        lineno = source.count("\n", 0, idx) + 1
        j = idx + 2
        strip_left = source.startswith("~", j)
        if strip_left:
            j += 1

        if source.startswith("!--", j):
            match = _LONG_COMMENT_END.search(source, j + 3)
            if match is None:
                raise TemplateSyntaxError("Unclosed comment", name, lineno)
            tag = _Tag(source[j + 3 : match.start()], lineno, comment=True)
        elif source.startswith("!", j):
            match = _MUSTACHE_END.search(source, j + 1)
            if match is None:
                raise TemplateSyntaxError("Unclosed comment", name, lineno)
            tag = _Tag(source[j + 1 : match.start()], lineno, comment=True)
        elif source.startswith("{", j):
            match = _TRIPLE_END.search(source, j + 1)
            if match is None:
                raise TemplateSyntaxError("Unclosed triple-stash", name, lineno)
            tag = _Tag(source[j + 1 : match.start()], lineno, triple=True)
        else:
            match = _MUSTACHE_END.search(source, j)
            if match is None:
                raise TemplateSyntaxError("Unclosed mustache", name, lineno)
            tag = _Tag(source[j : match.start()], lineno)

        tag.strip_left = strip_left
        tag.strip_right = bool(match.group(1))
        tokens.append(tag)
        pos = match.end()

    flush()
    return tokens


def _omit_left(tokens: list[_Text | _Tag], i: int, multiple: bool = False) -> None:
    prev = tokens[i - 1] if i > 0 else None
    if isinstance(prev, _Text):
        prev.value = re.sub(r"\s+\Z" if multiple else r"[ \t]+\Z", "", prev.value)


def _omit_right(tokens: list[_Text | _Tag], i: int, multiple: bool = False) -> None:
    nxt = tokens[i + 1] if i + 1 < len(tokens) else None
    if isinstance(nxt, _Text):
        nxt.value = re.sub(r"\A\s+" if multiple else r"\A[ \t]*\r?\n?", "", nxt.value, count=1)


def _is_standalone(tokens: list[_Text | _Tag], i: int) -> bool:
    if i > 0:
        prev = tokens[i - 1]
        if not isinstance(prev, _Text):
            return False
        pattern = _PREV_WS_FIRST if i == 1 else _PREV_WS
        if not pattern.search(prev.original):
            return False
    if i + 1 < len(tokens):
        nxt = tokens[i + 1]
        if not isinstance(nxt, _Text):
            return False
        pattern = _NEXT_WS_LAST if i + 2 == len(tokens) else _NEXT_WS
        if not pattern.search(nxt.original):
            return False
    return True


def _apply_whitespace_control(tokens: list[_Text | _Tag]) -> None:
    for i, tok in enumerate(tokens):
        if not isinstance(tok, _Tag):
            continue
        if tok.strip_left:
            _omit_left(tokens, i, multiple=True)
        if tok.strip_right:
            _omit_right(tokens, i, multiple=True)
        if tok.is_block_tag and _is_standalone(tokens, i):
            _omit_left(tokens, i)
            _omit_right(tokens, i)


# ---------------------------------------------------------------------------
# Expressions
# ---------------------------------------------------------------------------

_EXPR_TOKEN = re.compile(
    r"""
    \s*(?:
        (?P<lparen>\()
      | (?P<rparen>\))
      | "(?P<dq>(?:[^"\\]|\\.)*)"
      | '(?P<sq>(?:[^'\\]|\\.)*)'
      | (?P<pipe>\|)
      | (?P<hash>[^\s()=|"']+=)
      | (?P<word>(?:\[[^\]]*\]|[^\s()=|\[])+)
    )
    """,
    re.VERBOSE,
)
_NUMBER = re.compile(r"-?\d+(?:\.\d+)?\Z")
_SEGMENT = re.compile(r"\[([^\]]*)\]|([^./\[]+)")


@dataclass
class _Literal:
    value: Any


@dataclass
class _Path:
    text: str


@dataclass
class _SubExpr:
    name: str
    params: list[Any] = field(default_factory=list)


def _lex_expression(content: str, name: str | None, lineno: int) -> list[tuple[str, str]]:
    items: list[tuple[str, str]] = []
    pos = 0
    stripped = content.rstrip()
    while pos < len(stripped):
        match = _EXPR_TOKEN.match(stripped, pos)
        if match is None or match.end() == pos:
            raise TemplateSyntaxError(f"Invalid expression '{content.strip()}'", name, lineno)
        kind = match.lastgroup or ""
        value = match.group(kind) if kind else ""
        if kind in ("dq", "sq"):
            quote = '"' if kind == "dq" else "'"
            value = value.replace("\\" + quote, quote)
            kind = "str"
        items.append((kind, value))
        pos = match.end()
    return items


def _word_node(word: str) -> _Literal | _Path:
    if _NUMBER.match(word):
        return _Literal(float(word) if "." in word else int(word))
    if word == "true":
        return _Literal(True)
    if word == "false":
        return _Literal(False)
    if word in ("null", "undefined"):
        return _Literal(None)
    return _Path(word)


def _parse_params(
    items: list[tuple[str, str]], pos: int, name: str | None, lineno: int, nested: bool
) -> tuple[list[Any], int]:
    params: list[Any] = []
    while pos < len(items):
        kind, value = items[pos]
        if kind == "rparen":
            if not nested:
                raise TemplateSyntaxError("Unexpected ')'", name, lineno)
            return params, pos + 1
        if kind == "lparen":
            inner, pos = _parse_params(items, pos + 1, name, lineno, nested=True)
            if not inner or not isinstance(inner[0], _Path):
                raise TemplateSyntaxError("Sub-expression needs a helper name", name, lineno)
            params.append(_SubExpr(inner[0].text, inner[1:]))
            continue
        if kind == "hash":
            raise TemplateSyntaxError(
                f"Hash arguments are not supported ('{value}')", name, lineno
            )
        if kind == "pipe":
            raise TemplateSyntaxError("Unexpected '|'", name, lineno)
        params.append(_Literal(value) if kind == "str" else _word_node(value))
        pos += 1
    if nested:
        raise TemplateSyntaxError("Unclosed sub-expression", name, lineno)
    return params, pos


def _split_block_params(
    items: list[tuple[str, str]], name: str | None, lineno: int
) -> tuple[list[tuple[str, str]], tuple[str, ...]]:
    """Split ``... as |a b|`` off the end of a block expression."""
    for i, (kind, value) in enumerate(items):
        if kind == "word" and value == "as" and i + 1 < len(items) and items[i + 1][0] == "pipe":
            tail = items[i + 2 :]
            if not tail or tail[-1][0] != "pipe":
                raise TemplateSyntaxError("Unclosed block parameters", name, lineno)
            names = tuple(v for k, v in tail[:-1])
            if not names or len(names) > 2 or any(k != "word" for k, _ in tail[:-1]):
                raise TemplateSyntaxError("Invalid block parameters", name, lineno)
            return items[:i], names
    return items, ()


def _literal(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if value is None:
        return "none"
    if isinstance(value, str):
        return json.dumps(value)
    return repr(value)


def _list_literal(values: list[str] | tuple[str, ...]) -> str:
    return "[" + ", ".join(json.dumps(v) for v in values) + "]"


# ---------------------------------------------------------------------------
# Translation
# ---------------------------------------------------------------------------


@functools.lru_cache(maxsize=None)
def _helper_signature(helper: str) -> inspect.Signature:
    return inspect.signature(helpers.HELPERS[helper])


@dataclass
class _Frame:
    index: int
    params: tuple[str, ...] = ()


@dataclass
class _Block:
    kind: str
    name: str
    lineno: int
    frame: _Frame | None = None
    in_inverse: bool = False
    has_else: bool = False
    nested_ifs: int = 0


class _Translator:
    """Turns a token stream into Jinja2 source plus its literal text chunks."""

    def __init__(self, name: str | None) -> None:
        self.name = name
        self.out: list[str] = []
        self.texts: list[str] = []
        self.frames: list[_Frame] = []
        self.blocks: list[_Block] = []
        self._counter = 0

    def error(self, message: str, lineno: int) -> TemplateSyntaxError:
        return TemplateSyntaxError(message, self.name, lineno)

    # -- Driver ------------------------------------------------------------

    def translate(self, tokens: list[_Text | _Tag]) -> str:
        for tok in tokens:
            if isinstance(tok, _Text):
                if tok.value:
                    self.out.append("{{ _hb_text[%d] }}" % len(self.texts))
                    self.texts.append(tok.value)
            elif not tok.comment:
                self.tag(tok)
        if self.blocks:
            block = self.blocks[-1]
            raise self.error(f"Unclosed block '{{{{#{block.name}}}}}'", block.lineno)
        return "".join(self.out)

    def tag(self, tok: _Tag) -> None:
        content = tok.content.strip()
        if not content:
            raise self.error("Empty mustache", tok.lineno)
        if tok.triple:
            self.output(content, tok.lineno)
            return
        head = content[0]
        if head == "#":
            self.open_block(content[1:].strip(), tok.lineno)
        elif head == "/":
            self.close_block(content[1:].strip(), tok.lineno)
        elif content == "else" or content == "^":
            self.else_branch(None, tok.lineno)
        elif content.startswith("else "):
            self.else_branch(content[5:].strip(), tok.lineno)
        elif head == "^":
            self.open_inverse(content[1:].strip(), tok.lineno)
        elif head == ">":
            raise self.error("Partials are not supported", tok.lineno)
        elif head == "&":
            self.output(content[1:].strip(), tok.lineno)
        else:
            self.output(content, tok.lineno)

    # -- Expressions -------------------------------------------------------

    def expression(self, node: Any, lineno: int) -> str:
        if isinstance(node, _Literal):
            return _literal(node.value)
        if isinstance(node, _SubExpr):
            return self.helper_call(node.name, node.params, lineno)
        return self.path(node.text, lineno)

    def helper_call(self, helper: str, params: list[Any], lineno: int) -> str:
        if helper not in helpers.HELPERS:
            raise self.error(f"Unknown helper '{helper}'", lineno)
        try:
            _helper_signature(helper).bind(*params)
        except TypeError as exc:
            raise self.error(f"Bad arguments for helper '{helper}': {exc}", lineno) from None
        args = ", ".join(self.expression(p, lineno) for p in params)
        return f"_hb[{json.dumps(helper)}]({args})"

    def call_or_value(self, content: str, lineno: int) -> str:
        items = _lex_expression(content, self.name, lineno)
        params, _ = _parse_params(items, 0, self.name, lineno, nested=False)
        return self.params_expression(params, lineno)

    def params_expression(self, params: list[Any], lineno: int) -> str:
        if not params:
            raise self.error("Missing expression", lineno)
        first = params[0]
        if isinstance(first, _Path) and first.text in helpers.HELPERS:
            return self.helper_call(first.text, params[1:], lineno)
        if len(params) > 1:
            label = first.text if isinstance(first, _Path) else "?"
            raise self.error(f"Unknown helper '{label}'", lineno)
        return self.expression(first, lineno)

    def path(self, text: str, lineno: int) -> str:
        if text.startswith("@"):
            return self.data_path(text[1:], lineno)

        up = 0
        while text.startswith("../"):
            up += 1
            text = text[3:]
        explicit = up > 0
        if text in ("this", "."):
            explicit, text = True, ""
        elif text.startswith(("this.", "this/")):
            explicit, text = True, text[5:]
        elif text.startswith("./"):
            explicit, text = True, text[2:]

        parts = self.segments(text, lineno)
        depth = max(len(self.frames) - up, 0)
        visible = self.frames[:depth]

        if not explicit and parts:
            for frame in reversed(visible):
                if parts[0] in frame.params:
                    slot = frame.params.index(parts[0])
                    var = f"_this{frame.index}" if slot == 0 else f"_key{frame.index}"
                    return f"_hb_resolve([{var}], {_list_literal(parts[1:])})"

        scopes = [f"_this{frame.index}" for frame in reversed(visible)] + ["_root"]
        implicit = "true" if (not explicit and len(scopes) > 1) else "false"
        return f"_hb_resolve([{', '.join(scopes)}], {_list_literal(parts)}, {implicit})"

    def data_path(self, text: str, lineno: int) -> str:
        if text == "root" or text.startswith(("root.", "root/")):
            parts = self.segments(text[5:], lineno)
            return f"_hb_resolve([_root], {_list_literal(parts)})"
        if not self.frames:
            return "none"
        frame = self.frames[-1]
        if text == "index":
            return f"_loop{frame.index}.index0"
        if text == "first":
            return f"_loop{frame.index}.first"
        if text == "last":
            return f"_loop{frame.index}.last"
        if text == "key":
            return f"_key{frame.index}"
        raise self.error(f"Unknown data variable '@{text}'", lineno)

    def segments(self, text: str, lineno: int) -> list[str]:
        if not text:
            return []
        parts = []
        pos = 0
        while pos < len(text):
            match = _SEGMENT.match(text, pos)
            if match is None:
                raise self.error(f"Invalid path '{text}'", lineno)
            parts.append(match.group(1) if match.group(1) is not None else match.group(2))
            pos = match.end()
            if pos < len(text):
                if text[pos] not in "./":
                    raise self.error(f"Invalid path '{text}'", lineno)
                pos += 1
        return parts

    # -- Output ------------------------------------------------------------

    def output(self, content: str, lineno: int) -> None:
        self.out.append("{{ %s }}" % self.call_or_value(content, lineno))

    # -- Blocks ------------------------------------------------------------

    def condition(self, content: str, lineno: int, negate: bool = False) -> str:
        items = _lex_expression(content, self.name, lineno)
        params, _ = _parse_params(items, 0, self.name, lineno, nested=False)
        if len(params) != 1:
            raise self.error("Conditionals take exactly one argument", lineno)
        expr = f"_hb_truthy({self.expression(params[0], lineno)})"
        return f"not {expr}" if negate else expr

    def open_block(self, content: str, lineno: int) -> None:
        helper, _, rest = content.partition(" ")
        rest = rest.strip()
        if helper in ("if", "unless"):
            cond = self.condition(rest, lineno, negate=helper == "unless")
            self.out.append(f"{{% if {cond} %}}")
            self.blocks.append(_Block("if", helper, lineno))
        elif helper == "each":
            items = _lex_expression(rest, self.name, lineno)
            items, block_params = _split_block_params(items, self.name, lineno)
            params, _ = _parse_params(items, 0, self.name, lineno, nested=False)
            if len(params) != 1:
                raise self.error("'each' takes exactly one argument", lineno)
            source = self.expression(params[0], lineno)
            self._counter += 1
            frame = _Frame(self._counter, block_params)
            n = frame.index
            self.out.append(
                f"{{% for _key{n}, _this{n} in _hb_each({source}) %}}{{% set _loop{n} = loop %}}"
            )
            self.frames.append(frame)
            self.blocks.append(_Block("each", helper, lineno, frame=frame))
        elif not helper:
            raise self.error("Missing block helper name", lineno)
        else:
            raise self.error(f"Unknown block helper '{helper}'", lineno)

    def open_inverse(self, content: str, lineno: int) -> None:
        cond = self.condition(content, lineno, negate=True)
        self.out.append(f"{{% if {cond} %}}")
        self.blocks.append(_Block("if", content, lineno))

    def else_branch(self, chained: str | None, lineno: int) -> None:
        if not self.blocks:
            raise self.error("'else' outside of a block", lineno)
        block = self.blocks[-1]
        if block.has_else:
            raise self.error("Duplicate 'else' in block", lineno)

        cond = None
        if chained is not None:
            helper, _, rest = chained.partition(" ")
            if helper not in ("if", "unless"):
                raise self.error(f"Unsupported chained block '{helper}'", lineno)
            cond = self.condition(rest.strip(), lineno, negate=helper == "unless")

        if block.kind == "each" and not block.in_inverse:
            # The inverse of each renders in the enclosing scope.
            block.in_inverse = True
            self.frames.pop()
            self.out.append("{% else %}")
            if cond is None:
                block.has_else = True
            else:
                self.out.append(f"{{% if {cond} %}}")
                block.nested_ifs += 1
            return

        if cond is None:
            block.has_else = True
            self.out.append("{% else %}")
        else:
            self.out.append(f"{{% elif {cond} %}}")

    def close_block(self, content: str, lineno: int) -> None:
        if not self.blocks:
            raise self.error(f"Unexpected closing tag '{{{{/{content}}}}}'", lineno)
        block = self.blocks.pop()
        if content != block.name:
            raise self.error(
                f"'{{{{/{content}}}}}' does not match '{{{{#{block.name}}}}}' "
                f"opened on line {block.lineno}",
                lineno,
            )
        if block.kind == "each":
            if not block.in_inverse:
                self.frames.pop()
            self.out.append("{% endif %}" * block.nested_ifs)
            self.out.append("{% endfor %}")
        else:
            self.out.append("{% endif %}")


def translate(source: str, name: str | None = None) -> tuple[str, list[str]]:
    """Translate Handlebars *source* into Jinja2 source.

    Returns:
        ``(jinja_source, texts)`` where *texts* holds the literal chunks the
        Jinja2 source refers to as ``_hb_text[i]``.

    Raises:
        TemplateSyntaxError: On malformed or unsupported syntax.
    """
    tokens = _tokenize(source, name)
    _apply_whitespace_control(tokens)
    translator = _Translator(name)
    code = translator.translate(tokens)
    return code, translator.texts


# ---------------------------------------------------------------------------
# Environment and rendering
# ---------------------------------------------------------------------------


def _build_environment() -> Environment:
    env = Environment(
        autoescape=False,
        keep_trailing_newline=True,
        undefined=ChainableUndefined,
        finalize=helpers.stringify,
    )
    env.globals.update(
        _hb=helpers.HELPERS,
        _hb_truthy=helpers.truthy,
        _hb_each=helpers.each_items,
        _hb_resolve=helpers.resolve,
    )
    return env


_ENV = _build_environment()


@functools.lru_cache(maxsize=512)
def compile_template(source: str, name: str | None = None) -> jinja2.Template:
    """Translate and compile *source*; results are cached per source text."""
    code, texts = translate(source, name)
    try:
        return _ENV.from_string(code, globals={"_hb_text": tuple(texts)})
    except jinja2.TemplateSyntaxError as exc:
        raise TemplateSyntaxError(exc.message or str(exc), name) from exc


def render(source: str, context: dict[str, Any] | None = None, name: str | None = None) -> str:
    """Render Handlebars *source* against *context*."""
    template = compile_template(source, name)
    return template.render(_root=context if context is not None else {})
