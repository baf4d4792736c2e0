import pytest

from spindle.core.errors import ParseError
from spindle.dialog.lexer import Lexer, TokenKind


def kinds(source):
    return [token.kind for token in Lexer(source)]


def test_symbols():
    assert kinds("$ < > = | + - * / ! [ ] ( ) ,") == [
        TokenKind.DOLLAR,
        TokenKind.LEFT_ANGLE,
        TokenKind.RIGHT_ANGLE,
        TokenKind.EQUALS,
        TokenKind.PIPE,
        TokenKind.PLUS,
        TokenKind.MINUS,
        TokenKind.STAR,
        TokenKind.SLASH,
        TokenKind.BANG,
        TokenKind.LEFT_BRACKET,
        TokenKind.RIGHT_BRACKET,
        TokenKind.LEFT_PAREN,
        TokenKind.RIGHT_PAREN,
        TokenKind.COMMA,
    ]


def test_numbers_are_greedy_with_one_decimal_point():
    tokens = list(Lexer("12.5+3"))
    assert [t.kind for t in tokens] == [TokenKind.NUMBER, TokenKind.PLUS, TokenKind.NUMBER]
    assert tokens[0].value == 12.5
    assert tokens[2].value == 3.0

    first, second = Lexer("1.2.3")
    assert first.value == 1.2
    assert second.kind == TokenKind.WORD
    assert second.value == ".3"


def test_words_stop_at_whitespace_and_operators():
    tokens = list(Lexer("title: Start"))
    assert [t.value for t in tokens] == ["title:", "Start"]

    tokens = list(Lexer("visited(x)"))
    assert [t.kind for t in tokens] == [
        TokenKind.WORD,
        TokenKind.LEFT_PAREN,
        TokenKind.WORD,
        TokenKind.RIGHT_PAREN,
    ]

    tokens = list(Lexer("$gold==5"))
    assert [t.kind for t in tokens] == [
        TokenKind.DOLLAR,
        TokenKind.WORD,
        TokenKind.EQUALS,
        TokenKind.EQUALS,
        TokenKind.NUMBER,
    ]


def test_peek_skips_blank_lines_and_records_indent():
    lexer = Lexer("\n\n    abc")
    assert lexer.peek() == "a"
    assert lexer.last_indent == 4

    token = lexer.next()
    assert token.value == "abc"
    assert lexer.peek() is None


def test_last_indent_follows_lines():
    lexer = Lexer("a\n  b\nc")
    lexer.next()
    assert lexer.last_indent == 0
    lexer.next()
    assert lexer.last_indent == 2
    lexer.next()
    assert lexer.last_indent == 0


def test_remainder_of_line():
    lexer = Lexer("Hello there friend\nNext")
    assert lexer.next().value == "Hello"
    assert lexer.remainder_of_line() == " there friend"
    assert lexer.next().value == "Next"
    assert lexer.remainder_of_line() is None


def test_remainder_of_empty_line_is_empty_string():
    lexer = Lexer("tags:\nnext")
    lexer.next()
    assert lexer.remainder_of_line() == ""


def test_read_until():
    lexer = Lexer("set $x 1>>")
    assert lexer.read_until(">") == "set $x 1"
    assert lexer.next().kind == TokenKind.RIGHT_ANGLE
    assert lexer.next() is None


def test_read_until_end_of_input_fails():
    with pytest.raises(ParseError):
        Lexer("never closed").read_until("]")


def test_read_until_pair_keeps_single_terminators():
    lexer = Lexer("if $gold >= 5>>\nNext")
    assert lexer.read_until_pair(">") == "if $gold >= 5"
    assert lexer.remainder_of_line() == ""
    assert lexer.next().value == "Next"

    assert Lexer("a > b>>").read_until_pair(">") == "a > b"


def test_read_until_pair_end_of_input_fails():
    with pytest.raises(ParseError):
        Lexer("if $a > 1>").read_until_pair(">")


def test_operator_characters_end_words():
    assert [(t.kind, t.value) for t in Lexer("$x+1")] == [
        (TokenKind.DOLLAR, None),
        (TokenKind.WORD, "x"),
        (TokenKind.PLUS, None),
        (TokenKind.NUMBER, 1.0),
    ]


def test_minus_stays_inside_words():
    assert [(t.kind, t.value) for t in Lexer("$a-1")] == [
        (TokenKind.DOLLAR, None),
        (TokenKind.WORD, "a-1"),
    ]


def test_read_quoted():
    lexer = Lexer('  "say \\"hi\\"" rest')
    assert lexer.read_quoted() == 'say "hi"'
    assert lexer.next().value == "rest"


def test_unterminated_quote_fails():
    with pytest.raises(ParseError):
        Lexer('"open').read_quoted()


def test_pushback_holds_one_character():
    lexer = Lexer("abc")
    lexer.push_back("x")
    with pytest.raises(RuntimeError):
        lexer.push_back("y")


def test_line_numbers():
    tokens = list(Lexer("a\r\nb\n\nc"))
    assert [t.line for t in tokens] == [1, 2, 4]
