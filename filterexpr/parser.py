"""
Recursive descent parser for filter expressions.

Grammar, lowest to highest precedence:

    Or      := And ( '||' And )*
    And     := Cmp ( '&&' Cmp )*
    Cmp     := AddSub ( CmpTail )?
    CmpTail := ('==' | '=' | '!=' | '<' | '>' | '<=' | '>=') AddSub
             | ('in' | 'not in') '{' AddSub (',' AddSub)* '}'
             | ('like' | 'not like') AddSub
             | ('between' | 'not between') AddSub 'and' AddSub
             | 'is' ('null' | 'not null' | 'empty' | 'not empty')
    AddSub  := MulDiv ( ('+' | '-') MulDiv )*
    MulDiv  := Unary ( ('*' | '/') Unary )*
    Unary   := ('!' | '-' | '+') Unary | Primary
    Primary := Number | String | [Field] | NULL | '(' Or ')'

At most one comparison is allowed per level, so `a < b < c` is rejected.
"""

from __future__ import annotations

from .ast import Between, Binary, BinaryOp, Const, Expr, FieldRef, In, Unary, UnaryOp
from .exceptions import LexError, ParseError
from .tokens import Token, TokenType, tokenize
from .values import literal_value

_COMPARISON_SYMBOLS = {
    "==": BinaryOp.EQ,
    "=": BinaryOp.EQ,
    "!=": BinaryOp.NE,
    "<": BinaryOp.LT,
    ">": BinaryOp.GT,
    "<=": BinaryOp.LE,
    ">=": BinaryOp.GE,
}

_IS_KEYWORDS = {
    "is null": BinaryOp.IS_NULL,
    "is not null": BinaryOp.IS_NOT_NULL,
    "is empty": BinaryOp.IS_EMPTY,
    "is not empty": BinaryOp.IS_NOT_EMPTY,
}

_UNARY_SYMBOLS = {"!": UnaryOp.NOT, "-": UnaryOp.NEG, "+": UnaryOp.PLUS}


class _Parser:
    """Parser state for a single parse call."""

    def __init__(self, tokens: list[Token]):
        if not tokens or tokens[-1].type is not TokenType.EOF:
            end = tokens[-1].pos + len(tokens[-1].text) if tokens else 0
            tokens = [*tokens, Token(TokenType.EOF, "", end)]
        self.tokens = tokens
        self.pos = 0

    def _current(self) -> Token:
        """Get current token."""
        return self.tokens[self.pos]

    def _advance(self) -> Token:
        """Advance to next token and return previous."""
        token = self.tokens[self.pos]
        if self.pos < len(self.tokens) - 1:
            self.pos += 1
        return token

    def _is_symbol(self, *texts: str) -> bool:
        token = self._current()
        return token.type is TokenType.SYMBOL and token.text in texts

    def _is_punct(self, text: str) -> bool:
        token = self._current()
        return token.type is TokenType.PUNCT and token.text == text

    def _expect_punct(self, text: str, message: str) -> Token:
        if not self._is_punct(text):
            token = self._current()
            found = f"'{token.text}'" if token.type is not TokenType.EOF else "end of expression"
            raise ParseError(f"{message} at position {token.pos}, got {found}", position=token.pos)
        return self._advance()

    @staticmethod
    def _invalid_token_error(token: Token) -> ParseError:
        if token.text.startswith("["):
            return LexError(
                f"Unterminated field reference starting at position {token.pos}",
                position=token.pos,
            )
        if token.text.startswith("'"):
            return LexError(
                f"Unterminated string literal starting at position {token.pos}",
                position=token.pos,
            )
        return ParseError(
            f"Unknown character '{token.text}' at position {token.pos}", position=token.pos
        )

    def parse(self) -> Expr:
        """Parse the token stream into an Expr tree."""
        if self._current().type is TokenType.EOF:
            raise ParseError("Empty filter expression", position=0)

        expr = self._parse_or()

        token = self._current()
        if token.type is TokenType.EOF:
            return expr
        if token.type is TokenType.INVALID:
            raise self._invalid_token_error(token)
        if token.keyword == "and":
            raise ParseError(
                f"Unexpected 'and' at position {token.pos}. "
                f"Hint: Use '&&' to combine conditions",
                position=token.pos,
            )
        if token.type is TokenType.IDENT and token.text.lower() == "or":
            raise ParseError(
                f"Unexpected 'or' at position {token.pos}. "
                f"Hint: Use '||' to combine conditions",
                position=token.pos,
            )
        if token.type is TokenType.SYMBOL and token.text in _COMPARISON_SYMBOLS:
            raise ParseError(
                f"Unexpected '{token.text}' at position {token.pos}. "
                f"Chained comparisons are not supported; combine them with '&&'",
                position=token.pos,
            )
        raise ParseError(
            f"Unexpected token '{token.text}' at position {token.pos}", position=token.pos
        )

    def _parse_or(self) -> Expr:
        """Parse OR expressions (lowest precedence)."""
        left = self._parse_and()

        while self._is_symbol("||"):
            self._advance()  # consume ||
            right = self._parse_and()
            left = Binary(BinaryOp.OR, left, right)

        return left

    def _parse_and(self) -> Expr:
        """Parse AND expressions."""
        left = self._parse_comparison()

        while self._is_symbol("&&"):
            self._advance()  # consume &&
            right = self._parse_comparison()
            left = Binary(BinaryOp.AND, left, right)

        return left

    def _parse_comparison(self) -> Expr:
        """Parse one operand followed by at most one comparison tail."""
        left = self._parse_add_sub()
        token = self._current()

        if token.type is TokenType.SYMBOL and token.text in _COMPARISON_SYMBOLS:
            self._advance()
            op = _COMPARISON_SYMBOLS[token.text]
            right = self._parse_add_sub()
            # = NULL -> IS NULL, != NULL -> IS NOT NULL
            if isinstance(right, Const) and right.value.is_null:
                if op is BinaryOp.EQ:
                    return Binary(BinaryOp.IS_NULL, left)
                if op is BinaryOp.NE:
                    return Binary(BinaryOp.IS_NOT_NULL, left)
            return Binary(op, left, right)

        keyword = token.keyword
        if keyword in ("in", "not in"):
            self._advance()
            return self._parse_in_list(left, negate=keyword == "not in", op_token=token)

        if keyword in ("like", "not like"):
            self._advance()
            pattern = self._parse_add_sub()
            expr: Expr = Binary(BinaryOp.LIKE, left, pattern)
            if keyword == "not like":
                expr = Unary(UnaryOp.NOT, expr)
            return expr

        if keyword in ("between", "not between"):
            self._advance()
            lower = self._parse_add_sub()
            and_token = self._current()
            if and_token.keyword != "and":
                raise ParseError(
                    f"Expected 'and' in '{token.text}' at position {and_token.pos}, "
                    f"got '{and_token.text}'",
                    position=and_token.pos,
                )
            self._advance()
            upper = self._parse_add_sub()
            return Between(left, lower, upper, negate=keyword == "not between")

        if keyword in _IS_KEYWORDS:
            self._advance()
            return Binary(_IS_KEYWORDS[keyword], left)

        if keyword == "is":
            raise ParseError(
                f"Expected NULL, NOT NULL, EMPTY or NOT EMPTY after 'is' at position {token.pos}",
                position=token.pos,
            )

        return left

    def _parse_in_list(self, left: Expr, *, negate: bool, op_token: Token) -> Expr:
        self._expect_punct("{", f"Expected '{{' after '{op_token.text}'")
        if self._is_punct("}"):
            token = self._current()
            raise ParseError(
                f"Empty value list for '{op_token.text}' at position {token.pos}",
                position=token.pos,
            )
        values = [self._parse_add_sub()]
        while self._is_punct(","):
            self._advance()  # consume ,
            values.append(self._parse_add_sub())
        self._expect_punct("}", f"Expected '}}' to close '{op_token.text}' list")
        return In(left, tuple(values), negate=negate)

    def _parse_add_sub(self) -> Expr:
        left = self._parse_mul_div()
        while self._is_symbol("+", "-"):
            op = BinaryOp.ADD if self._advance().text == "+" else BinaryOp.SUB
            right = self._parse_mul_div()
            left = Binary(op, left, right)
        return left

    def _parse_mul_div(self) -> Expr:
        left = self._parse_unary()
        while self._is_symbol("*", "/"):
            op = BinaryOp.MUL if self._advance().text == "*" else BinaryOp.DIV
            right = self._parse_unary()
            left = Binary(op, left, right)
        return left

    def _parse_unary(self) -> Expr:
        """Parse prefix operators (right-associative)."""
        token = self._current()
        if token.type is TokenType.SYMBOL and token.text in _UNARY_SYMBOLS:
            self._advance()
            operand = self._parse_unary()
            return Unary(_UNARY_SYMBOLS[token.text], operand)
        return self._parse_primary()

    def _parse_primary(self) -> Expr:
        """Parse literals, field references and parenthesized expressions."""
        token = self._current()

        if token.type is TokenType.PUNCT and token.text == "(":
            self._advance()  # consume (
            expr = self._parse_or()
            self._expect_punct(")", "Unbalanced parentheses: expected ')'")
            return expr

        if token.type is TokenType.FIELD:
            self._advance()
            name = token.text[1:-1]
            if not name.strip():
                raise ParseError(
                    f"Empty field reference at position {token.pos}", position=token.pos
                )
            return FieldRef(name)

        if token.type in (TokenType.NUMBER, TokenType.STRING, TokenType.NULL):
            self._advance()
            return Const(literal_value(token))

        # Error cases
        if token.type is TokenType.EOF:
            raise ParseError("Unexpected end of expression", position=token.pos)
        if token.type is TokenType.INVALID:
            raise self._invalid_token_error(token)
        if token.type is TokenType.IDENT:
            raise ParseError(
                f"Unknown token '{token.text}' at position {token.pos}. "
                f"Hint: Field names must be bracketed: [{token.text}]",
                position=token.pos,
            )
        raise ParseError(
            f"Unexpected token '{token.text}' at position {token.pos}", position=token.pos
        )


def parse(tokens: list[Token]) -> Expr:
    """Parse a token list (as produced by tokenize()) into an Expr tree."""
    return _Parser(tokens).parse()


def parse_expression(text: str) -> Expr:
    """
    Parse a filter string into an Expr tree.

    Raises:
        ParseError: If the filter string is malformed (LexError for an
            unterminated string literal or field reference)

    Examples:
        >>> parse_expression("[Age] between 18 and 30")
        Between(left=FieldRef(name='Age'), ...)
    """
    try:
        return parse(tokenize(text))
    except ParseError as exc:
        exc.expression = text
        raise
