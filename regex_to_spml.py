#!/usr/bin/env python3
"""
Regex to SPML Converter

Translates classic regular expressions into SPML source: nested
continuation-style calls against a backtracking Pattern runtime.

Assumptions baked into the generated code:
- ^ / $ map to bol/eol, \\A / \\z map to bos/eos
- Dot (.) does not match newline unless (?s) appears in the pattern
- Single characters use c/ci, longer literals use s/si
- Unsupported constructs produce a stub: /* TODO: ... */
"""

import argparse
import sys
import textwrap
from contextlib import contextmanager
from dataclasses import dataclass, field
from string import Template, ascii_letters
from typing import List, Optional, Tuple, Union

import yaml

# =============================================================================
# AST Node Types
# =============================================================================

@dataclass(frozen=True)
class Sequence:
    """Sequence of patterns (abc). May be empty."""
    children: tuple = ()

    def __repr__(self):
        return f"Seq({list(self.children)})"

@dataclass(frozen=True)
class Alternation:
    """Alternation of patterns (a|b|c). Always two or more arms."""
    arms: tuple

    def __repr__(self):
        return f"Alt({list(self.arms)})"

@dataclass(frozen=True)
class Group:
    """A group. The capturing flag has no effect on generated code."""
    child: 'Node'
    capturing: bool = True

    def __repr__(self):
        prefix = "" if self.capturing else "?:"
        return f"Group({prefix}{self.child})"

@dataclass(frozen=True)
class Literal:
    """One or more literal characters matched in order."""
    text: str

    def __repr__(self):
        return f"Literal({self.text!r})"

@dataclass(frozen=True)
class Dot:
    """Matches any character (.)"""

    def __repr__(self):
        return "Dot"

BOL = "bol"
EOL = "eol"
BOS = "bos"
EOS = "eos"

@dataclass(frozen=True)
class Anchor:
    """Zero-width position assertion: bol (^), eol ($), bos (\\A), eos (\\z)."""
    kind: str

    def __repr__(self):
        return f"Anchor({self.kind})"

@dataclass(frozen=True)
class CharClass:
    """A bracket class like [a-z] or [^0-9]. Singles and ranges may overlap."""
    negated: bool = False
    singles: tuple = ()
    ranges: tuple = ()  # (lo, hi) pairs

    def __repr__(self):
        neg = "^" if self.negated else ""
        ranges = [f"{lo}-{hi}" for lo, hi in self.ranges]
        return f"CharClass({neg}{list(self.singles)} {ranges})"

@dataclass(frozen=True)
class EscapeClass:
    """Predefined class \\d, \\D, \\w, \\W, \\s or \\S."""
    kind: str  # "d", "D", "w", "W", "s", "S"

    def __repr__(self):
        return f"\\{self.kind}"

ZERO_OR_MORE = "zero_or_more"
ONE_OR_MORE = "one_or_more"
ZERO_OR_ONE = "zero_or_one"
EXACT = "exact"
AT_LEAST = "at_least"
BETWEEN = "between"

@dataclass(frozen=True)
class Quantifier:
    """Quantifier applied to a node."""
    child: 'Node'
    kind: str
    min_count: int
    max_count: int  # -1 means unlimited
    greedy: bool = True

    def __repr__(self):
        if self.kind == ZERO_OR_MORE:
            q = "*"
        elif self.kind == ONE_OR_MORE:
            q = "+"
        elif self.kind == ZERO_OR_ONE:
            q = "?"
        elif self.kind == EXACT:
            q = f"{{{self.min_count}}}"
        elif self.kind == AT_LEAST:
            q = f"{{{self.min_count},}}"
        else:
            q = f"{{{self.min_count},{self.max_count}}}"
        if not self.greedy:
            q += "?"
        return f"Quantifier({self.child}, {q})"

@dataclass(frozen=True)
class Stub:
    """Placeholder for an unsupported or malformed construct."""
    message: str

    def __repr__(self):
        return f"Stub({self.message!r})"

# Type alias for all node types
Node = Union[
    Sequence, Alternation, Group, Literal, Dot, Anchor,
    CharClass, EscapeClass, Quantifier, Stub
]


def collect_stubs(node: Node) -> List[Stub]:
    """Return every Stub in the tree, in pattern order."""
    if isinstance(node, Stub):
        return [node]
    if isinstance(node, Sequence):
        return [s for c in node.children for s in collect_stubs(c)]
    if isinstance(node, Alternation):
        return [s for a in node.arms for s in collect_stubs(a)]
    if isinstance(node, (Group, Quantifier)):
        return collect_stubs(node.child)
    return []


# =============================================================================
# Hand-written Recursive Descent Parser
# =============================================================================

METACHARS = "^$.*+?()[]{}\\|"
QUANTIFIER_CHARS = "*+?{"
ESCAPE_CLASSES = "dDwWsS"
DIGITS = "0123456789"
HEX_DIGITS = "0123456789abcdefABCDEF"

# Control escapes decoded both inside and outside classes
ESCAPE_MAP = {'n': '\n', 'r': '\r', 't': '\t', 'f': '\f', 'v': '\v', '0': '\0'}

SIMPLE_QUANTIFIERS = {
    '*': (ZERO_OR_MORE, 0, -1),
    '+': (ONE_OR_MORE, 1, -1),
    '?': (ZERO_OR_ONE, 0, 1),
}


@dataclass
class Flags:
    """Emission flags set by inline flag groups such as (?i) and (?s).

    The parser sets them wherever the flag group appears; the emitter reads
    them only after the whole pattern is parsed, so a flag applies to the
    entire pattern, including the part before it.
    """
    ignore_case: bool = False
    dot_all: bool = False


@dataclass
class ParseResult:
    """Tree plus everything the emitter and driver need from the parse."""
    pattern: str
    ast: Node
    flags: Flags
    end: int
    warnings: List[str] = field(default_factory=list)

    @property
    def complete(self) -> bool:
        return self.end >= len(self.pattern)

    @property
    def stubs(self) -> List[Stub]:
        return collect_stubs(self.ast)


class RegexParser:
    """
    Recursive descent parser for classic regex syntax.

    Grammar (roughly):
        expression  -> term ('|' term)*
        term        -> factor*
        factor      -> atom quantifier?
        atom        -> literal-run | escape | charclass | group | '.' | '^' | '$'
        quantifier  -> ('*' | '+' | '?' | '{n}' | '{n,}' | '{n,m}') '?'?
        group       -> '(' expression ')' | '(?:' expression ')' | '(?P<name>' expression ')'
                     | '(?' flags ')' | lookaround
        charclass   -> '[' '^'? (cc_item | cc_item '-' cc_item)* ']'

    Never raises on pattern content. Anything it cannot translate becomes a
    Stub node and parsing resumes after it.
    """

    def __init__(self, pattern: str):
        self.pattern = pattern
        self.pos = 0
        self.length = len(pattern)
        self.flags = Flags()
        self.warnings = []

    def parse(self) -> ParseResult:
        ast = self.parse_expression()
        return ParseResult(self.pattern, ast, self.flags, self.pos, list(self.warnings))

    def _peek(self, offset: int = 0) -> Optional[str]:
        pos = self.pos + offset
        if pos < self.length:
            return self.pattern[pos]
        return None

    def _advance(self, count: int = 1):
        self.pos += count

    def _match(self, s: str) -> bool:
        if self.pattern[self.pos:self.pos + len(s)] == s:
            self.pos += len(s)
            return True
        return False

    def _scan(self, charset: str) -> str:
        start = self.pos
        while self._peek() is not None and self._peek() in charset:
            self._advance()
        return self.pattern[start:self.pos]

    def parse_expression(self) -> Node:
        """Parse alternation: term ('|' term)*"""
        arms = [self.parse_term()]

        while self._peek() == '|':
            self._advance()
            arms.append(self.parse_term())

        if len(arms) == 1:
            return arms[0]
        return Alternation(tuple(arms))

    def parse_term(self) -> Sequence:
        """Parse factors up to '|' or ')', which are left for the caller."""
        factors = []
        while self.pos < self.length and self._peek() not in ('|', ')'):
            factors.append(self.parse_factor())
        return Sequence(tuple(factors))

    def parse_factor(self) -> Node:
        """Parse factor: atom quantifier?"""
        atom = self.parse_atom()

        ch = self._peek()
        if ch is None or ch not in QUANTIFIER_CHARS:
            return atom

        q_start = self.pos
        if ch == '{':
            bounds = self._parse_bounds()
            if isinstance(bounds, Stub):
                return bounds
            kind, min_c, max_c = bounds
        else:
            self._advance()
            kind, min_c, max_c = SIMPLE_QUANTIFIERS[ch]

        greedy = not self._match('?')

        if atom in (Literal(""), Sequence()):
            text = self.pattern[q_start:self.pos]
            return Stub(f"quantifier '{text}' has nothing to repeat")
        return Quantifier(atom, kind, min_c, max_c, greedy)

    def _parse_bounds(self) -> Union[Tuple[str, int, int], Stub]:
        """Parse {n}, {n,} or {n,m}. Anything else degrades to a Stub."""
        start = self.pos
        self._advance()  # consume '{'

        min_digits = self._scan(DIGITS)
        if not min_digits:
            return self._malformed_bounds(start)
        min_val = int(min_digits)

        if self._match('}'):
            return (EXACT, min_val, min_val)

        if self._match(','):
            max_digits = self._scan(DIGITS)
            if self._match('}'):
                if not max_digits:
                    return (AT_LEAST, min_val, -1)
                max_val = int(max_digits)
                if max_val < min_val:
                    text = self.pattern[start:self.pos]
                    return Stub(f"malformed quantifier '{text}' (minimum exceeds maximum)")
                return (BETWEEN, min_val, max_val)

        return self._malformed_bounds(start)

    def _malformed_bounds(self, start: int) -> Stub:
        """Consume through the closing '}' when one follows before any group or class syntax."""
        pos = self.pos
        while pos < self.length and self.pattern[pos] not in "}()[]|":
            pos += 1
        if pos < self.length and self.pattern[pos] == '}':
            self.pos = pos + 1
        return Stub(f"malformed quantifier '{self.pattern[start:self.pos]}'")

    def parse_atom(self) -> Node:
        """Parse atom: literal-run | escape | charclass | group | '.' | anchor"""
        ch = self._peek()

        if ch is None:
            return Sequence()

        # Anchors
        if ch == '^':
            self._advance()
            return Anchor(BOL)
        if ch == '$':
            self._advance()
            return Anchor(EOL)

        if ch == '(':
            return self._parse_group()

        if ch == '[':
            return self.parse_char_class()

        if ch == '.':
            self._advance()
            return Dot()

        if ch == '\\':
            return self._parse_escape()

        # Quantifier with no atom in front; parse_factor reports it
        if ch in QUANTIFIER_CHARS:
            return Literal("")

        # Unbalanced closers are plain characters
        if ch in ']}':
            self._advance()
            return Literal(ch)

        # Gather a run of plain characters
        start = self.pos
        self._scan_until(METACHARS)
        # A quantifier binds to the last character of the run only
        if self.pos - start > 1 and self._peek() is not None and self._peek() in QUANTIFIER_CHARS:
            self.pos -= 1
        return Literal(self.pattern[start:self.pos])

    def _scan_until(self, stop: str):
        while self._peek() is not None and self._peek() not in stop:
            self._advance()

    # -------------------------------------------------------------------------
    # Escapes
    # -------------------------------------------------------------------------

    def _parse_escape(self) -> Node:
        """Parse escape sequence outside a class."""
        self._advance()  # consume '\'
        ch = self._peek()

        if ch is None:
            return Stub("dangling escape")
        self._advance()

        if ch in ESCAPE_CLASSES:
            return EscapeClass(ch)
        if ch == 'A':
            return Anchor(BOS)
        if ch == 'z':
            return Anchor(EOS)

        # Backreferences: \1 .. \99
        if ch in "123456789":
            number = ch + self._scan(DIGITS)
            return Stub(f"backreference \\{number} unsupported")

        if ch in 'bB':
            return Stub(f"word boundary \\{ch} unsupported")

        # Unicode category: \p{...} or \P{...}
        if ch in 'pP':
            if self._match('{'):
                start = self.pos
                self._scan_until('}')
                category = self.pattern[start:self.pos]
                self._match('}')
                return Stub(f"unicode property \\{ch}{{{category}}} unsupported")
            name = self._peek() or ""
            self._advance(len(name))
            return Stub(f"unicode property \\{ch}{name} unsupported")

        if ch in 'xu':
            decoded = self._parse_hex_escape(ch)
            if decoded is None:
                return Stub(f"malformed \\{ch} escape")
            return Literal(decoded)

        return Literal(ESCAPE_MAP.get(ch, ch))

    def _parse_hex_escape(self, kind: str) -> Optional[str]:
        """Decode the digits of \\xNN or \\uNNNN. The prefix letter is already consumed."""
        width = 2 if kind == 'x' else 4
        digits = self.pattern[self.pos:self.pos + width]
        if len(digits) != width or any(d not in HEX_DIGITS for d in digits):
            return None
        code = int(digits, 16)
        # Lone UTF-16 surrogate halves are not characters
        if 0xD800 <= code <= 0xDFFF:
            return None
        self._advance(width)
        return chr(code)

    def _parse_class_escape(self) -> Optional[str]:
        """Parse an escape inside [...]. Returns None for a dangling backslash."""
        self._advance()  # consume '\'
        ch = self._peek()
        if ch is None:
            return None
        self._advance()

        if ch in 'xu':
            decoded = self._parse_hex_escape(ch)
            if decoded is not None:
                return decoded
            self.warnings.append(
                f"malformed \\{ch} escape inside [...] at index {self.pos - 2} treated as literal '{ch}'")
        elif ch in ESCAPE_CLASSES:
            self.warnings.append(
                f"escape class '\\{ch}' inside [...] at index {self.pos - 2} treated as literal '{ch}'")
        return ESCAPE_MAP.get(ch, ch)

    # -------------------------------------------------------------------------
    # Character classes
    # -------------------------------------------------------------------------

    def parse_char_class(self) -> CharClass:
        """Parse character class: [...]"""
        start = self.pos
        self._advance()  # consume '['

        negated = self._match('^')
        singles = []
        ranges = []
        last_char = None

        while self._peek() is not None and self._peek() != ']':
            ch = self._peek()

            if ch == '\\':
                esc = self._parse_class_escape()
                if esc is None:
                    break
                singles.append(esc)
                last_char = esc
                continue

            # Range a-z; the low end was recorded as a single, move it over
            if ch == '-' and last_char is not None and self._peek(1) not in (']', None):
                self._advance()
                if self._peek() == '\\':
                    hi = self._parse_class_escape()
                    if hi is None:
                        hi = '\\'
                else:
                    hi = self._peek()
                    self._advance()
                singles.pop()
                ranges.append((last_char, hi))
                last_char = None
                continue

            self._advance()
            singles.append(ch)
            last_char = ch

        if not self._match(']'):
            self.warnings.append(f"missing ']' for class opened at index {start}")
        return CharClass(negated, tuple(singles), tuple(ranges))

    # -------------------------------------------------------------------------
    # Groups
    # -------------------------------------------------------------------------

    def _parse_group(self) -> Node:
        """Parse group: (...) with various modifiers."""
        start = self.pos
        self._advance()  # consume '('

        if self._peek() != '?':
            return self._finish_group(start, capturing=True)

        modifier = self._peek(1)

        if modifier == ':':
            self._advance(2)
            return self._finish_group(start, capturing=False)

        if modifier in ('=', '!'):
            return self._skip_group(f"(?{modifier}…) not directly supported; rewrite or use peek helpers")

        if modifier == '<':
            kind = self._peek(2)
            if kind in ('=', '!'):
                return self._skip_group(f"(?<{kind}…) not directly supported; rewrite or use peek helpers")
            if kind is not None and (kind.isalpha() or kind == '_'):
                return self._parse_named_group(start, prefix_len=2)
            return self._skip_group("malformed look-behind")

        if modifier == 'P':
            if self._peek(2) == '<':
                return self._parse_named_group(start, prefix_len=3)
            if self._peek(2) == '=':
                return self._skip_group("named backreference (?P=…) unsupported")

        if modifier == '#':
            self._scan_until(')')
            self._match(')')
            return Sequence()

        if modifier is not None and (modifier.isalpha() or modifier == '-'):
            return self._parse_inline_flags()

        return self._skip_group(f"group '(?{modifier or ''}…)' unsupported")

    def _finish_group(self, start: int, capturing: bool) -> Group:
        child = self.parse_expression()
        if not self._match(')'):
            self.warnings.append(f"missing ')' for group opened at index {start}")
        return Group(child, capturing)

    def _parse_named_group(self, start: int, prefix_len: int) -> Node:
        """(?<name>...) and (?P<name>...) capture like a plain group; the name is dropped."""
        close = self.pattern.find('>', self.pos)
        if close == -1:
            return self._skip_group("malformed named group")
        name = self.pattern[self.pos + prefix_len:close]
        if not name or not all(c.isalnum() or c == '_' for c in name):
            return self._skip_group("malformed named group")
        self.pos = close + 1
        return self._finish_group(start, capturing=True)

    def _parse_inline_flags(self) -> Node:
        """Parse (?ims) style flags. i and s set emission flags, m is accepted."""
        self._advance()  # consume '?'
        letters = self._scan(ascii_letters + "-")

        if self._peek() == ':':
            return self._skip_group(f"scoped inline flags (?{letters}:…) unsupported")
        if self._peek() != ')':
            return self._skip_group(f"malformed inline flags (?{letters}")
        self._advance()

        unsupported = []
        enabled, _, disabled = letters.partition('-')
        for letter in enabled:
            if letter == 'i':
                self.flags.ignore_case = True
            elif letter == 's':
                self.flags.dot_all = True
            elif letter != 'm':
                unsupported.append(letter)

        if disabled or '-' in letters:
            return Stub(f"clearing inline flags (?{letters}) unsupported")
        if unsupported:
            return Stub(f"inline flag(s) '{''.join(unsupported)}' unsupported")
        return Sequence()

    def _skip_group(self, message: str) -> Stub:
        """Skip to the ')' matching the group we are inside and stub it out."""
        depth = 1
        while self.pos < self.length and depth > 0:
            ch = self.pattern[self.pos]
            if ch == '\\':
                self._advance()
            elif ch == '(':
                depth += 1
            elif ch == ')':
                depth -= 1
            self._advance()
        return Stub(message)


def parse_regex(pattern: str) -> ParseResult:
    """Parse a regex pattern into an AST."""
    return RegexParser(pattern).parse()

# =============================================================================
# SPML Code Emitter
# =============================================================================

INDENT = "   "

# Continuations
SUCCESS = ("return true",)
FAILURE = ("return false",)
REPEAT_TAIL = ("return tail()",)

# (kind, greedy) -> repetition primitive
REPEAT_PRIMITIVES = {
    (ZERO_OR_MORE, True): "zeroOrMorePat",
    (ZERO_OR_MORE, False): "zeroOrMorePat_lazy",
    (ONE_OR_MORE, True): "oneOrMorePat",
    (ONE_OR_MORE, False): "oneOrMorePat_lazy",
    (ZERO_OR_ONE, True): "zeroOrOnePat",
    (ZERO_OR_ONE, False): "zeroOrOnePat_lazy",
    (AT_LEAST, True): "nTomPat",
    (AT_LEAST, False): "nTomPat_lazy",
    (BETWEEN, True): "nTomPat",
    (BETWEEN, False): "nTomPat_lazy",
}

ANCHOR_PRIMITIVES = {BOL: "bol", EOL: "eol", BOS: "bos", EOS: "eos"}


class CodeWriter:
    """Line buffer with indentation tracking."""

    def __init__(self):
        self.indent_level = 0
        self.lines = []

    def emit(self, line: str = ""):
        """Emit a single line with current indentation."""
        self.lines.append(INDENT * self.indent_level + line if line else "")

    def emit_lines(self, lines):
        """Emit already-built lines, keeping their relative indentation."""
        for line in lines:
            self.emit(line)

    def emit_block(self, template: str, vars: dict = None):
        """Emit a multi-line template block with auto-dedent.

        Uses $var syntax for substitution. Pass locals() as vars for convenience.
        """
        code = textwrap.dedent(template).strip()
        if vars:
            code = Template(code).safe_substitute(vars)
        for line in code.split('\n'):
            self.emit(line)

    @contextmanager
    def block(self, open_line: str = "{", close_line: str = "}"):
        """Context manager for indented blocks with braces."""
        self.emit(open_line)
        self.indent_level += 1
        try:
            yield
        finally:
            self.indent_level -= 1
            self.emit(close_line)

    @contextmanager
    def indent_block(self, levels: int = 1):
        """Context manager for indentation without braces."""
        self.indent_level += levels
        try:
            yield
        finally:
            self.indent_level -= levels


def escape_string(s: str) -> str:
    """Escape text for an SPML string literal."""
    out = []
    for c in s:
        if c == '\\':
            out.append('\\\\')
        elif c == '"':
            out.append('\\"')
        elif c == '\n':
            out.append('\\n')
        elif c == '\r':
            out.append('\\r')
        elif c == '\t':
            out.append('\\t')
        elif c == '\0':
            out.append('\\0')
        elif ord(c) < 0x20 or ord(c) == 0x7F:
            out.append(f'\\u{{{ord(c):02X}}}')
        else:
            out.append(c)
    return "".join(out)


def escape_comment(s: str) -> str:
    """Keep text from closing a /* */ comment early."""
    return s.replace("*/", "*\\/")


class SPMLEmitter:
    """Generates SPML code from a parsed regex AST.

    Every compile step takes the node and its success continuation (the
    lines to run once the node matched) and returns the lines for both.

    Args:
        flags: emission flags collected while parsing
        thread_alternation_tail: run the outer continuation inside every
            alternation arm. When False, each arm just returns true and the
            outer continuation is dropped, as older output did.
        fail_on_stub: make stubs return false instead of falling through

    Multi-line alternation continuations are bound to closures k1, k2, ...
    numbered per generated program.
    """

    def __init__(self, flags: Flags = None, thread_alternation_tail: bool = True,
                 fail_on_stub: bool = False):
        self.flags = flags if flags is not None else Flags()
        self.thread_alternation_tail = thread_alternation_tail
        self.fail_on_stub = fail_on_stub
        self.continuations = 0

    def generate(self, result: ParseResult) -> str:
        """Generate the complete SPML program for a parse result."""
        self.flags = result.flags
        self.continuations = 0
        w = CodeWriter()

        if not result.complete:
            w.emit(f"/* ERROR: Unparsed trailing input near index {result.end} */")
        for warning in result.warnings:
            w.emit(f"/* WARNING: {escape_comment(warning)} */")

        w.emit("let p = Pattern()")
        w.emit()
        w.emit("let ok = p.match(haystack)")
        with w.block():
            w.emit_lines(self.compile(result.ast, SUCCESS))

        return "\n".join(w.lines)

    def compile(self, node: Node, tail=SUCCESS) -> List[str]:
        """Compile node so that tail runs after it matches."""
        if isinstance(node, Sequence):
            return self._compile_sequence(node, tail)
        if isinstance(node, Alternation):
            return self._compile_alternation(node, tail)
        if isinstance(node, Group):
            return self.compile(node.child, tail)
        if isinstance(node, Literal):
            return self._compile_literal(node, tail)
        if isinstance(node, Dot):
            if self.flags.dot_all:
                return self._matcher("return p.skip(1)", tail)
            return self._matcher("return p.any", tail)
        if isinstance(node, Anchor):
            return self._matcher(f"return p.{ANCHOR_PRIMITIVES[node.kind]}", tail)
        if isinstance(node, EscapeClass):
            return self._compile_escape_class(node, tail)
        if isinstance(node, CharClass):
            return self._compile_char_class(node, tail)
        if isinstance(node, Quantifier):
            return self._compile_quantifier(node, tail)
        if isinstance(node, Stub):
            return self._compile_stub(node, tail)
        raise ValueError(f"Unsupported node type: {type(node)}")

    def _matcher(self, head: str, tail) -> List[str]:
        """head followed by a trailing closure holding the continuation."""
        w = CodeWriter()
        w.emit(head)
        with w.block():
            w.emit_lines(tail)
        return w.lines

    def _compile_sequence(self, node: Sequence, tail) -> List[str]:
        # Right to left: each element runs the rest of the sequence on success
        lines = list(tail)
        for child in reversed(node.children):
            lines = self.compile(child, lines)
        return lines

    def _compile_alternation(self, node: Alternation, tail) -> List[str]:
        """First arm that matches wins; arms are tried in source order.

        A continuation longer than one line is bound to a local closure once
        and every arm calls it, so chained alternations grow linearly.
        """
        arm_tail = tail if self.thread_alternation_tail else SUCCESS
        w = CodeWriter()
        if len(arm_tail) > 1:
            self.continuations += 1
            name = f"k{self.continuations}"
            with w.block(f"let {name} = {{ () -> Bool in", "}"):
                w.emit_lines(arm_tail)
            arm_tail = (f"return {name}()",)
        w.emit("return")
        for i, arm in enumerate(node.arms):
            w.emit("   (" if i == 0 else "|| (")
            with w.indent_block(2):
                with w.block("{ () -> Bool in", "}()"):
                    w.emit_lines(self.compile(arm, arm_tail))
            w.emit("   )")
        return w.lines

    def _compile_literal(self, node: Literal, tail) -> List[str]:
        if not node.text:
            return list(tail)
        if len(node.text) == 1:
            fn = "ci" if self.flags.ignore_case else "c"
        else:
            fn = "si" if self.flags.ignore_case else "s"
        return self._matcher(f'return p.{fn}("{escape_string(node.text)}")', tail)

    def _compile_escape_class(self, node: EscapeClass, tail) -> List[str]:
        kind = node.kind
        if kind == 'd':
            return self._matcher("return p.aDigit", tail)
        if kind == 'w':
            return self._matcher("return p.oneWordChar", tail)

        # No negated or whitespace primitive: inline the test
        w = CodeWriter()
        with w.block("return { () -> Bool in", "}()"):
            w.emit("if p.cursor >= p.endStr { return false }")
            if kind == 'D':
                w.emit("if let b = p.haystack[p.cursor].asciiValue, (b >= 48 && b <= 57) { return false }")
            elif kind == 'W':
                w.emit_block('''
                    let ch = p.haystack[p.cursor]
                    let isWord = ch.isLetter || ch.isNumber || ch == "_"
                    if isWord { return false }
                ''')
            else:
                reject = "ws" if kind == 'S' else "!ws"
                w.emit_block('''
                    let ch = p.haystack[p.cursor]
                    let ws = ch.isWhitespace
                    if $reject { return false }
                ''', locals())
            w.emit_block('''
                p.incCursor()
                return true
            ''')
        with w.block():
            w.emit_lines(tail)
        return w.lines

    def class_conditions(self, node: CharClass) -> Tuple[str, str]:
        """Build the (ASCII, non-ASCII) pass expressions for a bracket class.

        ASCII members are tested through the byte value `b`, everything else
        through the character `ch`, so multi-byte characters never hit a byte
        comparison. Negation wraps each whole expression once.
        """
        ascii_conds = []
        uni_conds = []

        for lo, hi in node.ranges:
            if ord(lo) < 128 and ord(hi) < 128:
                ascii_conds.append(f"(b >= {ord(lo)} && b <= {ord(hi)})")
            else:
                uni_conds.append(f'(ch >= "{escape_string(lo)}" && ch <= "{escape_string(hi)}")')

        for c in node.singles:
            if ord(c) < 128:
                ascii_conds.append(f"(b == {ord(c)})")
            else:
                uni_conds.append(f'(ch == "{escape_string(c)}")')

        # "false" when empty so negation still works
        ascii_expr = " || ".join(ascii_conds) if ascii_conds else "false"
        uni_expr = " || ".join(uni_conds) if uni_conds else "false"

        if node.negated:
            return f"!({ascii_expr})", f"!({uni_expr})"
        return f"({ascii_expr})", f"({uni_expr})"

    def _compile_char_class(self, node: CharClass, tail) -> List[str]:
        pass_ascii, pass_uni = self.class_conditions(node)
        w = CodeWriter()
        w.emit_block('''
            return { () -> Bool in
               if p.cursor >= p.endStr { return false }
               let ch = p.haystack[p.cursor]
               if let b = ch.asciiValue
               {
                  if $pass_ascii { p.incCursor(); return true }
                  return false
               }
               if $pass_uni { p.incCursor(); return true }
               return false
            }()
        ''', locals())
        with w.block():
            w.emit_lines(tail)
        return w.lines

    def repeat_call(self, node: Quantifier) -> str:
        """The repetition primitive call, up to and including 'block: '."""
        if node.kind == EXACT:
            return f"p.nPat(n: {node.min_count}, block: "
        fn = REPEAT_PRIMITIVES[(node.kind, node.greedy)]
        if node.kind == AT_LEAST:
            return f"p.{fn}(n: {node.min_count}, m: .max, block: "
        if node.kind == BETWEEN:
            return f"p.{fn}(n: {node.min_count}, m: {node.max_count}, block: "
        return f"p.{fn}(block: "

    def _compile_quantifier(self, node: Quantifier, tail) -> List[str]:
        """Hand one repetition of the child to the runtime's repetition driver.

        The child is compiled against `return tail()`, so the unit matches once
        and then calls whatever continuation the driver passes in. All
        backtracking over repetition counts happens in the runtime.
        """
        unit = self.compile(node.child, REPEAT_TAIL)
        w = CodeWriter()
        with w.block(f"return {self.repeat_call(node)}{{ tail in", "})"):
            w.emit_lines(unit)
        with w.block():
            w.emit_lines(tail)
        return w.lines

    def _compile_stub(self, node: Stub, tail) -> List[str]:
        comment = f"/* TODO: {escape_comment(node.message)} */"
        if self.fail_on_stub:
            return [comment, *FAILURE]
        return [comment, *tail]


def translate(pattern: str, thread_alternation_tail: bool = True,
              fail_on_stub: bool = False) -> str:
    """Parse a pattern and return the complete SPML program."""
    result = parse_regex(pattern)
    emitter = SPMLEmitter(result.flags, thread_alternation_tail, fail_on_stub)
    return emitter.generate(result)

# =============================================================================
# Main
# =============================================================================

def load_examples(path: str) -> List[dict]:
    """Load example patterns: a top-level YAML list of {name, pattern, description}."""
    with open(path, encoding='utf-8') as f:
        data = yaml.safe_load(f)
    if not isinstance(data, list):
        raise ValueError(f"Expected list in {path}, got {type(data).__name__}")
    for i, entry in enumerate(data):
        if not isinstance(entry, dict) or not isinstance(entry.get("pattern"), str):
            raise ValueError(f"Entry {i} in {path} has no 'pattern' string")
    return data


def _report_stubs(results: List[ParseResult]):
    stubs = [stub for result in results for stub in result.stubs]
    if stubs:
        print("\n// Unsupported constructs:", file=sys.stderr)
        for stub in stubs:
            print(f"//   - {stub.message}", file=sys.stderr)


def main(argv: List[str] = None):
    parser = argparse.ArgumentParser(
        description="Convert regex patterns to SPML code"
    )
    source = parser.add_mutually_exclusive_group(required=True)
    source.add_argument(
        "--pattern", "-p",
        help="The regex pattern to convert"
    )
    source.add_argument(
        "--examples", "-e",
        help="YAML file with a list of example patterns to convert"
    )
    parser.add_argument(
        "--name", "-n",
        help="With --examples, convert only the example with this name"
    )
    parser.add_argument(
        "--list", "-l",
        action="store_true",
        help="With --examples, list the available examples"
    )
    parser.add_argument(
        "--output", "-o",
        help="Output file (default: stdout)"
    )
    parser.add_argument(
        "--legacy-alternation",
        action="store_true",
        help="End every alternation arm with 'return true' instead of the outer continuation"
    )
    parser.add_argument(
        "--fail-on-stub",
        action="store_true",
        help="Make unsupported constructs fail at runtime instead of falling through"
    )
    parser.add_argument(
        "--dump-ast",
        action="store_true",
        help="Print the parsed AST to stderr"
    )

    args = parser.parse_args(argv)

    if args.pattern is not None and (args.list or args.name):
        parser.error("--list and --name require --examples")

    if args.pattern is not None:
        entries = [{"name": None, "pattern": args.pattern}]
    else:
        try:
            entries = load_examples(args.examples)
        except (OSError, yaml.YAMLError, ValueError) as e:
            print(f"Error: {e}", file=sys.stderr)
            sys.exit(1)

        if args.list:
            print(f"Available examples in {args.examples}:")
            for entry in entries:
                name = entry.get("name", "unnamed")
                description = entry.get("description", "")
                print(f"  - {name}: {entry['pattern']}  {description}".rstrip())
            sys.exit(0)

        if args.name:
            entries = [e for e in entries if e.get("name") == args.name]
            if not entries:
                print(f"Error: No example named '{args.name}' found", file=sys.stderr)
                sys.exit(1)

    emitter = SPMLEmitter(
        thread_alternation_tail=not args.legacy_alternation,
        fail_on_stub=args.fail_on_stub,
    )

    chunks = []
    results = []
    for entry in entries:
        result = parse_regex(entry["pattern"])
        results.append(result)
        if args.dump_ast:
            print(f"// AST: {result.ast!r}", file=sys.stderr)
        code = emitter.generate(result)
        if args.examples:
            code = "\n".join([
                "/* ---------------- REGEX ---------------- */",
                f"/* {escape_comment(entry['pattern'])} */",
                "/* --------------- GENERATED ------------- */",
                code,
                "",
            ])
        chunks.append(code)

    spml_code = "\n".join(chunks)

    # Output
    if args.output:
        try:
            with open(args.output, 'w', encoding='utf-8') as f:
                f.write(spml_code + "\n")
        except OSError as e:
            print(f"Error writing {args.output}: {e}", file=sys.stderr)
            sys.exit(1)
        print(f"Generated SPML code written to {args.output}")
    else:
        print(spml_code)

    _report_stubs(results)


if __name__ == "__main__":
    main()
