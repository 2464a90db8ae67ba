from .lexer import TokenType

class ASTNode:
    line = 0

class LocalAssign(ASTNode):
    def __init__(self, name, value, line=0):
        self.name = name
        self.value = value
        self.line = line

class ClassDef(ASTNode):
    def __init__(self, name, fields, line=0):
        self.name = name
        self.fields = fields  # ordered field names, field i lives at i * 8
        self.line = line

class HeapAlloc(ASTNode):
    def __init__(self, var, class_name, line=0):
        self.var = var
        self.class_name = class_name
        self.line = line

class FieldAssign(ASTNode):
    def __init__(self, path, value, line=0):
        self.path = path
        self.value = value
        self.line = line

class FieldMath(ASTNode):
    def __init__(self, path, operator, value, line=0):
        self.path = path
        self.operator = operator
        self.value = value
        self.line = line

class PrintVar(ASTNode):
    def __init__(self, name, line=0):
        self.name = name
        self.line = line

class PrintField(ASTNode):
    def __init__(self, path, line=0):
        self.path = path
        self.line = line

class PrintString(ASTNode):
    def __init__(self, literal, line=0):
        self.literal = literal
        self.line = line

class IfStmt(ASTNode):
    def __init__(self, path, operator, value, body, line=0):
        self.path = path
        self.operator = operator
        self.value = value
        self.body = body
        self.line = line

class WhileStmt(ASTNode):
    def __init__(self, path, operator, value, body, line=0):
        self.path = path
        self.operator = operator
        self.value = value
        self.body = body
        self.line = line

class ProbIf(ASTNode):
    def __init__(self, chance, body, line=0):
        self.chance = chance  # percent
        self.body = body
        self.line = line

class Rest(ASTNode):
    def __init__(self, seconds, line=0):
        self.seconds = seconds
        self.line = line

class RawInstruction(ASTNode):
    def __init__(self, text, line=0, inline_get=False):
        self.text = text
        self.line = line
        self.inline_get = inline_get

class Parser:
    """Recursive-descent parser that never rejects input.

    Unexpected tokens are consumed and turned into defaults (0 for numbers,
    "" for names, a `nop` instruction for unknown statements) so every
    source file yields a statement list.
    """

    def __init__(self, tokens):
        self.tokens = tokens
        self.pos = 0

    def peek(self, offset=0):
        if self.pos + offset >= len(self.tokens):
            return self.tokens[-1]
        return self.tokens[self.pos + offset]

    def advance(self):
        token = self.peek()
        if self.pos < len(self.tokens) - 1:
            self.pos += 1
        return token

    def at_end(self):
        return self.peek().type == TokenType.EOF

    def take_identifier(self, default=""):
        token = self.advance()
        return token.value if token.type == TokenType.IDENTIFIER else default

    def take_number(self, default=0):
        token = self.advance()
        return token.value if token.type == TokenType.NUMBER else default

    def skip_keywords(self, *values):
        while self.peek().type == TokenType.KEYWORD and self.peek().value in values:
            self.advance()

    def parse(self):
        statements = []
        while not self.at_end():
            statements.append(self.parse_statement())
        return statements

    def parse_block(self):
        body = []
        while not self.peek().is_keyword('done') and not self.at_end():
            body.append(self.parse_statement())
        if self.peek().is_keyword('done'):
            self.advance()
        return body

    def parse_path(self):
        path = []
        if self.peek().type == TokenType.IDENTIFIER:
            path.append(self.advance().value)
            while self.peek().is_symbol('.'):
                self.advance()
                token = self.advance()
                if token.type == TokenType.IDENTIFIER:
                    path.append(token.value)
        return path

    def parse_statement(self):
        token = self.peek()
        line = token.line
        if token.type == TokenType.KEYWORD:
            if token.value == 'Get':
                self.advance()
                self.advance()
                return RawInstruction("nop", line, inline_get=True)
            elif token.value == 'class':
                return self.parse_class_def()
            elif token.value == 'local':
                return self.parse_local()
            elif token.value == 'if':
                return self.parse_if()
            elif token.value == 'while':
                self.advance()
                path, operator, value = self.parse_condition()
                self.skip_keywords('do', 'is')
                return WhileStmt(path, operator, value, self.parse_block(), line)
            elif token.value == 'print':
                return self.parse_print()
            elif token.value == 'rest':
                self.advance()
                return Rest(self.take_number(1), line)
        elif token.is_symbol('@'):
            return self.parse_raw_block()

        path = self.parse_path()
        if path and self.peek().is_symbol('='):
            self.advance()
            if self.peek().type == TokenType.NUMBER:
                return FieldAssign(path, self.advance().value, line)
            # The right-hand operand (`wins` in `wins = wins + 1`) is implied.
            if not self.parse_path():
                self.advance()
            operator = self.advance().value
            return FieldMath(path, operator, self.take_number(), line)
        self.advance()
        return RawInstruction("nop", line)

    def parse_class_def(self):
        line = self.advance().line
        name = self.take_identifier()
        self.skip_keywords('is')
        fields = []
        while not self.peek().is_keyword('done') and not self.at_end():
            token = self.advance()
            if token.type == TokenType.IDENTIFIER:
                fields.append(token.value)
        if self.peek().is_keyword('done'):
            self.advance()
        return ClassDef(name, fields, line)

    def parse_local(self):
        line = self.advance().line
        name = self.take_identifier()
        if self.peek().is_symbol('='):
            self.advance()
        if self.peek().is_keyword('new'):
            self.advance()
            return HeapAlloc(name, self.take_identifier(), line)
        return LocalAssign(name, self.take_number(), line)

    def parse_condition(self):
        path = self.parse_path()
        operator = self.advance().value
        value = self.take_number()
        return path, operator, value

    def parse_if(self):
        line = self.advance().line
        if self.peek().is_symbol('?'):
            self.advance()
            while self.peek().is_symbol('<', '%'):
                self.advance()
            chance = self.take_number()
            while self.peek().is_symbol('>') or self.peek().is_keyword('is') or self.peek().is_keyword('then'):
                self.advance()
            return ProbIf(chance, self.parse_block(), line)
        path, operator, value = self.parse_condition()
        self.skip_keywords('then', 'is')
        return IfStmt(path, operator, value, self.parse_block(), line)

    def parse_print(self):
        line = self.advance().line
        if self.peek().type == TokenType.STRING:
            return PrintString(self.advance().value, line)
        path = self.parse_path()
        if len(path) > 1:
            return PrintField(path, line)
        if path:
            return PrintVar(path[0], line)
        self.advance()
        return RawInstruction("nop", line)

    def parse_raw_block(self):
        line = self.advance().line  # @
        self.advance()
        self.advance()
        parts = []
        negate = False
        while not self.peek().is_keyword('done') and not self.at_end():
            token = self.advance()
            if token.type == TokenType.IDENTIFIER:
                parts.append(token.value)
            elif token.type == TokenType.NUMBER:
                parts.append(f"#{'-' if negate else ''}{format_number(token.value)}")
            elif token.is_symbol(','):
                parts.append(',')
            elif token.is_symbol('['):
                parts.append('[')
            elif token.is_symbol(']'):
                parts.append(']')
            negate = token.is_symbol('-')
        if self.peek().is_keyword('done'):
            self.advance()
        return RawInstruction(' '.join(parts), line)

def format_number(value):
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)
