import re
from .parser import (LocalAssign, ClassDef, HeapAlloc, FieldAssign, FieldMath, PrintVar, PrintField,
                     PrintString, IfStmt, WhileStmt, ProbIf, Rest, RawInstruction)
from .codegen import (explain_unresolved, SKIP_BRANCHES, WORD_SIZE, HEAP_SIZE, MATH_OBJECT, SEED_OFFSET,
                      DIVISOR_REGISTER, HEAP_REGISTER, FIRST_USER_REGISTER, LAST_USER_REGISTER,
                      RESERVED_USER_RANGE, USER_REGISTER_COUNT)

REGISTER_PATTERN = re.compile(r'\b[xw](\d+)\b', re.IGNORECASE)
RUNTIME_REGISTERS = {DIVISOR_REGISTER, HEAP_REGISTER}

class SemanticAnalyzer:
    """Replays the generator's tables to report problems before emission.

    Nothing here changes the generated code; it surfaces the places where
    the generator would silently fall back to a default register or
    offset, and the runtime limits the emitted program does not check.
    """

    def __init__(self, ast, error_manager):
        self.ast = ast
        self.errors = error_manager
        self.symbols = {}    # name -> register the generator will assign
        self.class_map = {}
        self.obj_types = {}
        self.reg_count = FIRST_USER_REGISTER
        self.exhausted = False
        self.heap_used = 0
        self.heap_overflow_reported = False
        self.loop_depth = 0

    def analyze(self):
        for stmt in self.ast:
            self.check_statement(stmt)
        return not self.errors.has_error

    def declare(self, name, line):
        if name in self.symbols:
            return
        while self.reg_count in RESERVED_USER_RANGE:
            self.reg_count += 1
        if self.reg_count > LAST_USER_REGISTER and not self.exhausted:
            self.exhausted = True
            self.errors.error(f"too many variables: only {USER_REGISTER_COUNT} registers are available",
                              line, hint=f"'{name}' is the first variable without a register")
        self.symbols[name] = f"x{self.reg_count}"
        self.reg_count += 1

    def check_path(self, path, line):
        problem = explain_unresolved(path, self.symbols, self.obj_types, self.class_map)
        if problem:
            self.errors.warning(problem, line, hint="the generated code reads a default location instead")
        if len(path) > 2:
            self.errors.warning(f"only the first field of '{'.'.join(path)}' is used", line)

    def check_comparison(self, operator, line):
        if operator not in SKIP_BRANCHES and operator != '==':
            self.errors.tip(f"operator '{operator}' is compared as '=='", line)

    def check_body(self, body):
        for stmt in body:
            self.check_statement(stmt)

    def check_statement(self, stmt):
        if isinstance(stmt, LocalAssign):
            self.declare(stmt.name, stmt.line)
        elif isinstance(stmt, ClassDef):
            if stmt.name in self.class_map:
                self.errors.warning(f"class '{stmt.name}' redefined; later allocations use the new layout", stmt.line)
            self.class_map[stmt.name] = list(stmt.fields)
        elif isinstance(stmt, HeapAlloc):
            self.check_heap_alloc(stmt)
        elif isinstance(stmt, (FieldAssign, PrintField)):
            self.check_path(stmt.path, stmt.line)
        elif isinstance(stmt, FieldMath):
            self.check_path(stmt.path, stmt.line)
            if stmt.operator not in ('+', '-'):
                self.errors.tip(f"operator '{stmt.operator}' is treated as '+'", stmt.line)
        elif isinstance(stmt, PrintVar):
            if stmt.name not in self.symbols:
                self.errors.warning(f"undefined variable '{stmt.name}'", stmt.line,
                                    hint="nothing is printed for an unknown variable")
        elif isinstance(stmt, IfStmt):
            self.check_path(stmt.path, stmt.line)
            self.check_comparison(stmt.operator, stmt.line)
            self.check_body(stmt.body)
        elif isinstance(stmt, WhileStmt):
            self.check_path(stmt.path, stmt.line)
            self.check_comparison(stmt.operator, stmt.line)
            self.loop_depth += 1
            self.check_body(stmt.body)
            self.loop_depth -= 1
        elif isinstance(stmt, ProbIf):
            self.check_prob_if(stmt)
        elif isinstance(stmt, RawInstruction):
            self.check_raw(stmt)
        elif isinstance(stmt, (PrintString, Rest)):
            pass

    def check_heap_alloc(self, stmt):
        self.declare(stmt.var, stmt.line)
        self.obj_types[stmt.var] = stmt.class_name
        fields = self.class_map.get(stmt.class_name)
        if fields is None:
            self.errors.error(f"class '{stmt.class_name}' is not defined", stmt.line,
                              hint="classes must be defined before the first 'new'")
            return
        if self.loop_depth:
            self.errors.pre(f"allocating '{stmt.class_name}' inside a loop advances the heap on every iteration",
                            stmt.line, hint=f"the heap is {HEAP_SIZE} bytes and is never reclaimed")
        self.heap_used += len(fields) * WORD_SIZE
        if self.heap_used > HEAP_SIZE and not self.heap_overflow_reported:
            self.heap_overflow_reported = True
            self.errors.pre(f"objects need {self.heap_used} bytes but only {HEAP_SIZE} are mapped", stmt.line)

    def check_prob_if(self, stmt):
        if MATH_OBJECT not in self.symbols:
            self.errors.warning(f"probabilistic branch needs a '{MATH_OBJECT}' object holding the seed", stmt.line,
                                hint=f"allocate it first, e.g. 'local {MATH_OBJECT} = new Math'")
        else:
            fields = self.class_map.get(self.obj_types.get(MATH_OBJECT))
            if fields is not None and len(fields) * WORD_SIZE <= SEED_OFFSET:
                self.errors.pre(f"'{MATH_OBJECT}' is too small to hold the seed at offset {SEED_OFFSET}", stmt.line,
                                hint="give its class at least two fields")
        if not 0 <= stmt.chance <= 100:
            self.errors.tip(f"chance {stmt.chance}% is clamped to 0..100", stmt.line)
        self.check_body(stmt.body)

    def check_raw(self, stmt):
        if stmt.inline_get:
            self.errors.warning("'Get' must start its own line to import a library; this one is ignored", stmt.line)
            return
        owners = {register: name for name, register in self.symbols.items()}
        for number in sorted({int(n) for n in REGISTER_PATTERN.findall(stmt.text)}):
            register = f"x{number}"
            if register in RUNTIME_REGISTERS:
                self.errors.warning(f"raw instruction touches {register}, which the runtime reserves", stmt.line)
            elif register in owners:
                self.errors.tip(f"raw instruction uses {register}, which holds '{owners[register]}'", stmt.line)
