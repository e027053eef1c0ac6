import pytest

from regex_to_spml import (
    AT_LEAST, BETWEEN, BOL, BOS, EOL, EOS, EXACT, ONE_OR_MORE, ZERO_OR_MORE, ZERO_OR_ONE,
    Alternation, Anchor, CharClass, Dot, EscapeClass, Group, Literal, Quantifier,
    Sequence, Stub, parse_regex,
)


def seq(*children):
    return Sequence(tuple(children))


def test_plain_run_is_one_literal():
    result = parse_regex("hello world")
    assert result.ast == seq(Literal("hello world"))
    assert result.complete


def test_alternation_keeps_arm_order():
    ast = parse_regex("ab|cd|ef").ast
    assert ast == Alternation((seq(Literal("ab")), seq(Literal("cd")), seq(Literal("ef"))))


def test_single_arm_is_bare_sequence():
    assert isinstance(parse_regex("abc").ast, Sequence)


def test_empty_pattern():
    result = parse_regex("")
    assert result.ast == Sequence()
    assert result.complete


def test_empty_arm():
    assert parse_regex("a|").ast == Alternation((seq(Literal("a")), Sequence()))


@pytest.mark.parametrize("pattern, kind, min_c, max_c", [
    ("a{2,4}", BETWEEN, 2, 4),
    ("a{2,}", AT_LEAST, 2, -1),
    ("a{2}", EXACT, 2, 2),
    ("a*", ZERO_OR_MORE, 0, -1),
    ("a+", ONE_OR_MORE, 1, -1),
    ("a?", ZERO_OR_ONE, 0, 1),
])
def test_quantifier_kinds(pattern, kind, min_c, max_c):
    assert parse_regex(pattern).ast == seq(Quantifier(Literal("a"), kind, min_c, max_c, True))


def test_lazy_suffix():
    (quant,) = parse_regex("a{1,3}?").ast.children
    assert quant.kind == BETWEEN
    assert not quant.greedy

    (quant,) = parse_regex("x+?").ast.children
    assert quant.kind == ONE_OR_MORE
    assert not quant.greedy


def test_lower_bound_is_required():
    result = parse_regex("{,4}")
    assert result.ast == seq(Stub("malformed quantifier '{,4}'"))
    assert result.complete


def test_malformed_quantifier_keeps_parsing():
    result = parse_regex("a{x}b")
    assert result.ast == seq(Stub("malformed quantifier '{x}'"), Literal("b"))
    assert result.complete


def test_unclosed_brace():
    result = parse_regex("a{3")
    assert result.ast == seq(Stub("malformed quantifier '{3'"))
    assert result.complete


def test_inverted_bounds():
    (stub,) = parse_regex("a{4,2}").ast.children
    assert isinstance(stub, Stub)
    assert "minimum exceeds maximum" in stub.message


def test_nothing_to_repeat():
    assert parse_regex("*a").ast == seq(Stub("quantifier '*' has nothing to repeat"), Literal("a"))
    assert parse_regex("a**").ast.children[1] == Stub("quantifier '*' has nothing to repeat")


def test_quantifier_binds_to_last_char_of_run():
    assert parse_regex("abc*").ast == seq(
        Literal("ab"), Quantifier(Literal("c"), ZERO_OR_MORE, 0, -1, True))


def test_anchors():
    assert parse_regex(r"^\Aa\z$").ast == seq(
        Anchor(BOL), Anchor(BOS), Literal("a"), Anchor(EOS), Anchor(EOL))


def test_dot_and_escape_classes():
    assert parse_regex(r".\d\D\w\W\s\S").ast == seq(
        Dot(), *(EscapeClass(k) for k in "dDwWsS"))


def test_escaped_metachar_is_literal():
    assert parse_regex(r"a\.b").ast == seq(Literal("a"), Literal("."), Literal("b"))


def test_control_and_hex_escapes():
    assert parse_regex(r"\n\t\x41é").ast == seq(
        Literal("\n"), Literal("\t"), Literal("A"), Literal("é"))
    assert parse_regex(r"\xZZ").ast.children[0] == Stub("malformed \\x escape")


def test_surrogate_escape_is_malformed():
    assert parse_regex(r"\uD83D").ast.children[0] == Stub("malformed \\u escape")
    assert parse_regex(r"\uDFFF").ast.children[0] == Stub("malformed \\u escape")
    assert parse_regex(r"").ast == seq(Literal(""))


def test_dangling_escape():
    result = parse_regex("abc\\")
    assert result.ast == seq(Literal("abc"), Stub("dangling escape"))
    assert result.complete


def test_backreferences():
    assert parse_regex(r"\1").ast == seq(Stub("backreference \\1 unsupported"))
    assert parse_regex(r"\12").ast == seq(Stub("backreference \\12 unsupported"))


def test_unicode_property_and_word_boundary_are_stubs():
    assert parse_regex(r"\p{L}").ast == seq(Stub("unicode property \\p{L} unsupported"))
    assert parse_regex(r"\bx").ast == seq(Stub("word boundary \\b unsupported"), Literal("x"))


def test_stray_closers_are_literals():
    assert parse_regex("a]b}").ast == seq(Literal("a"), Literal("]"), Literal("b"), Literal("}"))


def test_groups():
    assert parse_regex("(ab)").ast == seq(Group(seq(Literal("ab")), capturing=True))
    assert parse_regex("(?:ab)").ast == seq(Group(seq(Literal("ab")), capturing=False))


def test_named_groups_capture():
    expected = seq(Group(seq(Quantifier(EscapeClass("d"), ONE_OR_MORE, 1, -1, True)), capturing=True))
    assert parse_regex(r"(?P<year>\d+)").ast == expected
    assert parse_regex(r"(?<year>\d+)").ast == expected


def test_group_alternation():
    (group,) = parse_regex("(a|b)").ast.children
    assert group.child == Alternation((seq(Literal("a")), seq(Literal("b"))))


def test_unclosed_group_is_tolerated():
    result = parse_regex("(ab")
    assert result.ast == seq(Group(seq(Literal("ab"))))
    assert result.complete
    assert result.warnings == ["missing ')' for group opened at index 0"]


@pytest.mark.parametrize("pattern, label", [
    ("(?=a(b)c)d", "(?=…)"),
    ("(?!ab)d", "(?!…)"),
    ("(?<=ab+)d", "(?<=…)"),
    ("(?<!x)d", "(?<!…)"),
])
def test_lookaround_is_skipped(pattern, label):
    result = parse_regex(pattern)
    assert result.complete
    stub, tail = result.ast.children
    assert stub == Stub(f"{label} not directly supported; rewrite or use peek helpers")
    assert tail == Literal("d")


def test_lookaround_scan_honours_escapes():
    result = parse_regex(r"(?=\))x")
    assert result.complete
    assert result.ast.children[1] == Literal("x")


def test_inline_flags():
    result = parse_regex("(?i)ab")
    assert result.ast == seq(Sequence(), Literal("ab"))
    assert result.flags.ignore_case
    assert not result.flags.dot_all

    result = parse_regex("(?s)")
    assert result.flags.dot_all

    result = parse_regex("(?m)a")
    assert not result.flags.ignore_case and not result.flags.dot_all
    assert result.ast == seq(Sequence(), Literal("a"))


def test_combined_inline_flags():
    flags = parse_regex("a(?is)b").flags
    assert flags.ignore_case and flags.dot_all


def test_unsupported_inline_flags():
    assert parse_regex("(?x)a").ast == seq(Stub("inline flag(s) 'x' unsupported"), Literal("a"))
    assert parse_regex("(?-i)a").ast.children[0] == Stub("clearing inline flags (?-i) unsupported")


def test_scoped_flags_are_stubbed():
    result = parse_regex("(?i:ab)c")
    assert result.ast == seq(Stub("scoped inline flags (?i:…) unsupported"), Literal("c"))
    assert not result.flags.ignore_case


def test_inline_comment_is_dropped():
    assert parse_regex("a(?#note)b").ast == seq(Literal("a"), Sequence(), Literal("b"))


def test_char_class_range():
    assert parse_regex("[^a-c]").ast == seq(CharClass(True, (), (("a", "c"),)))


def test_char_class_singles_and_ranges():
    assert parse_regex("[0-9A-Fx_]").ast == seq(
        CharClass(False, ("x", "_"), (("0", "9"), ("A", "F"))))


@pytest.mark.parametrize("pattern, singles", [
    ("[a-]", ("a", "-")),
    ("[-a]", ("-", "a")),
    (r"[a\-z]", ("a", "-", "z")),
    (r"[\]]", ("]",)),
    (r"[\n]", ("\n",)),
])
def test_char_class_literal_dash_and_escapes(pattern, singles):
    (cls,) = parse_regex(pattern).ast.children
    assert cls.singles == singles
    assert cls.ranges == ()


def test_dash_after_range_is_literal():
    (cls,) = parse_regex("[a-c-e]").ast.children
    assert cls.ranges == (("a", "c"),)
    assert cls.singles == ("-", "e")


def test_escape_class_inside_class_is_literal():
    result = parse_regex(r"[\d]")
    assert result.ast == seq(CharClass(False, ("d",), ()))
    assert len(result.warnings) == 1


def test_malformed_hex_escape_inside_class_warns():
    result = parse_regex(r"[\xZ]")
    assert result.ast == seq(CharClass(False, ("x", "Z"), ()))
    assert result.warnings == ["malformed \\x escape inside [...] at index 1 treated as literal 'x'"]

    result = parse_regex(r"[\uD83D-\uDBFF]")
    assert len(result.warnings) == 2
    (cls,) = result.ast.children
    chars = list(cls.singles) + [c for r in cls.ranges for c in r]
    assert not any("\ud800" <= c <= "\udfff" for c in chars)


def test_unclosed_class_is_tolerated():
    result = parse_regex("[abc")
    assert result.ast == seq(CharClass(False, ("a", "b", "c"), ()))
    assert result.complete
    assert result.warnings == ["missing ']' for class opened at index 0"]


def test_trailing_close_paren_is_left_over():
    result = parse_regex("ab)c")
    assert not result.complete
    assert result.end == 2
    assert result.ast == seq(Literal("ab"))


def test_stubs_are_collected():
    result = parse_regex(r"(a|(?=x)b)\1+")
    assert [s.message for s in result.stubs] == [
        "(?=…) not directly supported; rewrite or use peek helpers",
        "backreference \\1 unsupported",
    ]


@pytest.mark.parametrize("pattern", [
    "(", ")", "[", "]", "{", "}", "\\", "(?", "(?<", "(?P", "[\\", "[a-", "{1,",
    "a{", "((((", "))))", "|||", "?", "+*?", "(?i", "(?=", "[^", "\\p", "\\p{L",
])
def test_parse_always_terminates(pattern):
    result = parse_regex(pattern)
    assert 0 <= result.end <= len(pattern)
