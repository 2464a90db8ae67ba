import re

class TokenType:
    IDENTIFIER = 'IDENTIFIER'
    KEYWORD = 'KEYWORD'
    STRING = 'STRING'
    NUMBER = 'NUMBER'
    SYMBOL = 'SYMBOL'
    EOF = 'EOF'

KEYWORDS = {
    'Get', 'class', 'new', 'local', 'print', 'rest',
    'if', 'then', 'while', 'do', 'is', 'done'
}

TOKEN_SPEC = [
    ('STRING', r'"[^"]*"?'),
    ('COMMENT', r'//.*'),
    ('NUMBER', r'\d[\d.]*'),
    ('IDENTIFIER', r'[a-zA-Z_]\w*'),
    ('SYMBOL', r'==|[?%@,.\[\]<>+\-*/=]'),
    ('NEWLINE', r'\n'),
    ('SKIP', r'[ \t\r]+'),
    ('MISMATCH', r'.'),
]

TOKEN_REGEX = re.compile('|'.join('(?P<%s>%s)' % pair for pair in TOKEN_SPEC))

class Token:
    def __init__(self, type, value, line, column):
        self.type = type
        self.value = value
        self.line = line
        self.column = column

    def is_keyword(self, value):
        return self.type == TokenType.KEYWORD and self.value == value

    def is_symbol(self, *values):
        return self.type == TokenType.SYMBOL and self.value in values

    def __repr__(self):
        return f"Token({self.type}, {repr(self.value)}, {self.line}, {self.column})"

def parse_number(text):
    """Convert a numeric lexeme; malformed ones such as '1.2.3' become 0."""
    if '.' not in text:
        return int(text)
    try:
        return float(text)
    except ValueError:
        return 0

def tokenize(code):
    tokens = []
    line_num = 1
    line_start = 0
    for mo in TOKEN_REGEX.finditer(code):
        kind = mo.lastgroup
        value = mo.group()
        column = mo.start() - line_start
        if kind == 'STRING':
            literal = value[1:-1] if len(value) > 1 and value.endswith('"') else value[1:]
            tokens.append(Token(TokenType.STRING, literal, line_num, column))
            if '\n' in value:
                line_num += value.count('\n')
                line_start = mo.start() + value.rfind('\n') + 1
        elif kind == 'NUMBER':
            tokens.append(Token(TokenType.NUMBER, parse_number(value), line_num, column))
        elif kind == 'IDENTIFIER':
            if value in KEYWORDS:
                tokens.append(Token(TokenType.KEYWORD, value, line_num, column))
            else:
                tokens.append(Token(TokenType.IDENTIFIER, value, line_num, column))
        elif kind == 'SYMBOL':
            tokens.append(Token(TokenType.SYMBOL, value, line_num, column))
        elif kind == 'NEWLINE':
            line_start = mo.end()
            line_num += 1
        # Comments, whitespace and unknown characters are dropped.
    tokens.append(Token(TokenType.EOF, None, line_num, 0))
    return tokens
