import re
from .errors import ErrorManager, CompileError, UnresolvedReferenceError, RegisterExhaustedError
from .parser import (LocalAssign, ClassDef, HeapAlloc, FieldAssign, FieldMath, PrintVar, PrintField,
                     PrintString, IfStmt, WhileStmt, ProbIf, Rest, RawInstruction)

# Target: AArch64 Linux, GNU assembler syntax.
WORD_SIZE = 8
HEAP_SIZE = 4096

SYS_WRITE = 64
SYS_EXIT = 93
SYS_NANOSLEEP = 115
SYS_MMAP = 222
PROT_READ_WRITE = 3
MAP_PRIVATE_ANONYMOUS = 34
STDOUT = 1

DEFAULT_REGISTER = "x0"
DIVISOR_REGISTER = "x11"   # holds 10 for the decimal print loop
HEAP_REGISTER = "x20"      # bump pointer into the mapped region
FIRST_USER_REGISTER = 12
LAST_USER_REGISTER = 28    # x29/x30 are the frame pointer and link register
RESERVED_USER_RANGE = {20}
USER_REGISTER_COUNT = LAST_USER_REGISTER - FIRST_USER_REGISTER + 1 - len(RESERVED_USER_RANGE)

MATH_OBJECT = "math"
MATH_FALLBACK_REGISTER = f"x{FIRST_USER_REGISTER}"
SEED_OFFSET = 8
MIX_MULTIPLIER = 0x9E3779B97F4A7C15
MIX_SHIFT = 33
SAMPLE_MASK = 0x7FFFFFFF

INT64_MIN = -(1 << 63)
INT64_MAX = (1 << 63) - 1

# Branch taken to skip a body: the negation of the source comparison.
SKIP_BRANCHES = {'>': 'b.le', '<': 'b.ge'}
DEFAULT_SKIP_BRANCH = 'b.ne'

RAW_MNEMONICS = {
    "MOV", "ADD", "SUB", "LDR", "STR", "SVC", "CMP", "AND", "STP", "LDP",
    "MUL", "UDIV", "MSUB", "EOR", "LSL", "LSR", "NEG", "MRS", "NOP",
}

def skip_branch(operator):
    return SKIP_BRANCHES.get(operator, DEFAULT_SKIP_BRANCH)

def fits_mov(value):
    """True when a single movz/movn can materialize the value."""
    return -65536 < value < 65536

def fits_arith(value):
    """True when the value is a valid unshifted add/sub/cmp immediate."""
    return 0 <= value < 4096

def to_int(value):
    """Saturate a literal to the signed 64-bit range."""
    if value is None:
        return 0
    return int(max(INT64_MIN, min(INT64_MAX, value)))

def escape_ascii(literal):
    return literal.replace('\\', '\\\\').replace('"', '\\"').replace('\n', '\\n')

def format_raw(text):
    """Split a raw block into one instruction per line.

    A new line starts at every recognized mnemonic; operands are kept in
    order with the spacing around commas and brackets tidied.
    """
    lines = []
    current = []
    for word in text.split():
        if word.upper() in RAW_MNEMONICS and current:
            lines.append(current)
            current = []
        current.append(word)
    if current:
        lines.append(current)

    formatted = []
    for words in lines:
        line = ' '.join(words)
        line = re.sub(r'\s+,', ',', line)
        line = line.replace('[ ', '[').replace(' ]', ']')
        formatted.append(line)
    return formatted

def explain_unresolved(path, symbols, obj_types, class_map):
    """Describe why a path does not resolve, or return None if it does."""
    if not path:
        return "empty reference"
    name = path[0]
    if name not in symbols:
        return f"undefined variable '{name}'"
    if len(path) == 1:
        return None
    class_name = obj_types.get(name)
    if class_name is None:
        return f"'{name}' is not an object"
    fields = class_map.get(class_name)
    if fields is None:
        return f"class '{class_name}' is not defined"
    if path[1] not in fields:
        return f"class '{class_name}' has no field '{path[1]}'"
    return None

class PathInfo:
    def __init__(self, register, offset=0, is_field=False):
        self.register = register
        self.offset = offset
        # Field paths are memory operands; bare names live in the register.
        self.is_field = is_field

    def __eq__(self, other):
        return (isinstance(other, PathInfo) and self.register == other.register
                and self.offset == other.offset and self.is_field == other.is_field)

    def __repr__(self):
        return f"PathInfo({self.register!r}, {self.offset}, is_field={self.is_field})"

class CodeGen:
    def __init__(self, ast, strict=False, error_manager=None):
        self.ast = ast
        self.strict = strict
        self.errors = error_manager if error_manager is not None else ErrorManager()
        self.reset()

    def reset(self):
        self.data = []     # data-section declarations
        self.output = []   # instruction-section lines
        self.symbols = {}  # variable -> register
        self.class_map = {}  # class -> ordered field names
        self.obj_types = {}  # variable -> class
        self.reg_count = FIRST_USER_REGISTER
        self.label_count = 0
        self.print_count = 0

    def new_label_id(self):
        label_id = self.label_count
        self.label_count += 1
        return label_id

    def new_register(self, line=0):
        while self.reg_count in RESERVED_USER_RANGE:
            self.reg_count += 1
        if self.reg_count > LAST_USER_REGISTER:
            raise RegisterExhaustedError(
                f"out of registers: at most {USER_REGISTER_COUNT} variables can be live", line)
        register = f"x{self.reg_count}"
        self.reg_count += 1
        return register

    def register_for(self, name, line=0):
        """Return the register bound to name, binding a fresh one on first use."""
        if name not in self.symbols:
            self.symbols[name] = self.new_register(line)
        return self.symbols[name]

    # ------------------------------------------------------------------
    # Path resolution
    # ------------------------------------------------------------------

    def lookup_path(self, path):
        """Resolve a path to a PathInfo, or None when any part is unknown."""
        if explain_unresolved(path, self.symbols, self.obj_types, self.class_map) is not None:
            return None
        register = self.symbols[path[0]]
        if len(path) == 1:
            return PathInfo(register)
        fields = self.class_map[self.obj_types[path[0]]]
        return PathInfo(register, fields.index(path[1]) * WORD_SIZE, True)

    def resolve_path(self, path, line=0):
        info = self.lookup_path(path)
        if info is not None:
            return info
        self.unresolved(explain_unresolved(path, self.symbols, self.obj_types, self.class_map), line)
        # Unknown variables read x0, unknown classes or fields read offset 0.
        register = self.symbols.get(path[0], DEFAULT_REGISTER) if path else DEFAULT_REGISTER
        return PathInfo(register, 0, len(path) > 1)

    def unresolved(self, message, line=0):
        if self.strict:
            raise UnresolvedReferenceError(message, line)
        self.errors.warning(message, line, hint="the generated code reads a default location instead")

    # ------------------------------------------------------------------
    # Emission helpers
    # ------------------------------------------------------------------

    def emit(self, *lines):
        self.output.extend(lines)

    def load_immediate(self, register, value):
        if fits_mov(value):
            self.emit(f"    mov {register}, #{value}")
        else:
            self.emit(f"    ldr {register}, ={value}")

    def emit_arith(self, mnemonic, dest, src, value):
        if fits_arith(value):
            self.emit(f"    {mnemonic} {dest}, {src}, #{value}")
        else:
            self.load_immediate("x2", value)
            self.emit(f"    {mnemonic} {dest}, {src}, x2")

    def emit_compare(self, value):
        if fits_arith(value):
            self.emit(f"    cmp x1, #{value}")
        else:
            self.load_immediate("x2", value)
            self.emit("    cmp x1, x2")

    def load_path(self, info):
        if info.is_field:
            self.emit(f"    ldr x1, [{info.register}, #{info.offset}]")
        else:
            self.emit(f"    mov x1, {info.register}")

    def store_path(self, info):
        if info.is_field:
            self.emit(f"    str x1, [{info.register}, #{info.offset}]")
        else:
            self.emit(f"    mov {info.register}, x1")

    # ------------------------------------------------------------------
    # Program shell
    # ------------------------------------------------------------------

    def emit_prologue(self):
        self.emit(
            ".global _start",
            ".section .text",
            "",
            "_start:",
            f"    mov {DIVISOR_REGISTER}, #10",
            "    mov x0, #0",
            f"    mov x1, #{HEAP_SIZE}",
            f"    mov x2, #{PROT_READ_WRITE}",
            f"    mov x3, #{MAP_PRIVATE_ANONYMOUS}",
            "    mov x4, #-1",
            "    mov x5, #0",
            f"    mov x8, #{SYS_MMAP}",
            "    svc #0",
            f"    mov {HEAP_REGISTER}, x0",
        )

    def emit_epilogue(self):
        self.emit(
            "",
            "    mov x0, #0",
            f"    mov x8, #{SYS_EXIT}",
            "    svc #0",
        )

    def generate(self):
        self.reset()
        self.emit_prologue()
        for stmt in self.ast:
            self.gen_statement(stmt)
        self.emit_epilogue()

        lines = []
        if self.data:
            lines.append(".section .data")
            lines.extend(self.data)
        lines.extend(self.output)
        return "\n".join(lines) + "\n"

    # ------------------------------------------------------------------
    # Statements
    # ------------------------------------------------------------------

    def gen_statement(self, stmt):
        if isinstance(stmt, LocalAssign):
            register = self.register_for(stmt.name, stmt.line)
            self.load_immediate(register, to_int(stmt.value))
        elif isinstance(stmt, ClassDef):
            self.class_map[stmt.name] = list(stmt.fields)
        elif isinstance(stmt, HeapAlloc):
            self.gen_heap_alloc(stmt)
        elif isinstance(stmt, FieldAssign):
            info = self.resolve_path(stmt.path, stmt.line)
            self.load_immediate("x1", to_int(stmt.value))
            self.store_path(info)
        elif isinstance(stmt, FieldMath):
            info = self.resolve_path(stmt.path, stmt.line)
            self.load_path(info)
            mnemonic = "sub" if stmt.operator == '-' else "add"
            self.emit_arith(mnemonic, "x1", "x1", to_int(stmt.value))
            self.store_path(info)
        elif isinstance(stmt, PrintVar):
            register = self.symbols.get(stmt.name)
            if register is None:
                self.unresolved(f"undefined variable '{stmt.name}'", stmt.line)
                return
            self.gen_print_loop(register)
        elif isinstance(stmt, PrintField):
            info = self.resolve_path(stmt.path, stmt.line)
            self.emit(f"    ldr x2, [{info.register}, #{info.offset}]")
            self.gen_print_loop("x2")
        elif isinstance(stmt, PrintString):
            self.gen_print_string(stmt.literal)
        elif isinstance(stmt, IfStmt):
            self.gen_if_stmt(stmt)
        elif isinstance(stmt, WhileStmt):
            self.gen_while_stmt(stmt)
        elif isinstance(stmt, ProbIf):
            self.gen_prob_if(stmt)
        elif isinstance(stmt, Rest):
            self.gen_rest(stmt.seconds)
        elif isinstance(stmt, RawInstruction):
            for line in format_raw(stmt.text):
                self.emit(f"    {line}")
        else:
            raise CompileError(f"Unsupported statement {type(stmt).__name__}", getattr(stmt, "line", 0))

    def gen_heap_alloc(self, stmt):
        register = self.register_for(stmt.var, stmt.line)
        self.obj_types[stmt.var] = stmt.class_name
        fields = self.class_map.get(stmt.class_name)
        if fields is None:
            self.unresolved(f"class '{stmt.class_name}' is not defined", stmt.line)
            return
        self.emit(f"    mov {register}, {HEAP_REGISTER}")
        self.emit_arith("add", HEAP_REGISTER, HEAP_REGISTER, len(fields) * WORD_SIZE)

    def gen_if_stmt(self, stmt):
        label_id = self.new_label_id()
        info = self.resolve_path(stmt.path, stmt.line)
        self.load_path(info)
        self.emit_compare(to_int(stmt.value))
        self.emit(f"    {skip_branch(stmt.operator)} .Lif{label_id}")
        for s in stmt.body:
            self.gen_statement(s)
        self.emit(f".Lif{label_id}:")

    def gen_while_stmt(self, stmt):
        label_id = self.new_label_id()
        self.emit(f".Lloop{label_id}:")
        info = self.resolve_path(stmt.path, stmt.line)
        self.load_path(info)
        self.emit_compare(to_int(stmt.value))
        self.emit(f"    {skip_branch(stmt.operator)} .Lexit{label_id}")
        for s in stmt.body:
            self.gen_statement(s)
        self.emit(f"    b .Lloop{label_id}", f".Lexit{label_id}:")

    def gen_prob_if(self, stmt):
        label_id = self.new_label_id()
        chance = min(100, max(0, to_int(stmt.chance)))
        math_reg = self.symbols.get(MATH_OBJECT)
        if math_reg is None:
            self.unresolved(f"probabilistic branch needs a '{MATH_OBJECT}' object holding the seed", stmt.line)
            math_reg = MATH_FALLBACK_REGISTER

        self.emit("", f"    // Prob Roll {chance}%")
        self.emit(f"    ldr x1, [{math_reg}, #{SEED_OFFSET}]")
        # Seed from the virtual counter the first time the seed is zero.
        self.emit(
            "    cmp x1, #0",
            f"    b.ne .Lseedok{label_id}",
            "    mrs x1, cntvct_el0",
            f".Lseedok{label_id}:",
        )
        self.emit(
            f"    ldr x2, =0x{MIX_MULTIPLIER:X}",
            "    mul x1, x1, x2",
            f"    eor x1, x1, x1, lsr #{MIX_SHIFT}",
            f"    str x1, [{math_reg}, #{SEED_OFFSET}]",
        )
        self.emit(
            f"    and x1, x1, #0x{SAMPLE_MASK:X}",
            "    mov x2, #100",
            "    udiv x3, x1, x2",
            "    msub x1, x3, x2, x1",
            f"    cmp x1, #{chance}",
            f"    b.hs .Lif{label_id}",
        )
        for s in stmt.body:
            self.gen_statement(s)
        self.emit(f".Lif{label_id}:")

    # ------------------------------------------------------------------
    # Runtime primitives
    # ------------------------------------------------------------------

    def gen_print_loop(self, register):
        """Print the unsigned value in register as decimal plus newline.

        Digits are written back-to-front below a newline byte in a 32-byte
        stack buffer. The first division runs before the exit test so 0
        still produces one digit.
        """
        label = f".Lp{self.print_count}"
        self.print_count += 1
        self.emit(
            "    stp x0, x1, [sp, #-16]!",
            f"    mov x0, {register}",
            "    sub sp, sp, #32",
            "    mov x1, sp",
            "    add x1, x1, #31",
            "    mov w2, #10",
            "    strb w2, [x1]",
            f"{label}:",
            "    sub x1, x1, #1",
            f"    udiv x2, x0, {DIVISOR_REGISTER}",
            f"    msub x3, x2, {DIVISOR_REGISTER}, x0",
            "    add x3, x3, #48",
            "    strb w3, [x1]",
            "    mov x0, x2",
            f"    cbnz x0, {label}",
            f"    mov x0, #{STDOUT}",
            "    mov x2, sp",
            "    add x2, x2, #32",
            "    sub x2, x2, x1",
            f"    mov x8, #{SYS_WRITE}",
            "    svc #0",
            "    add sp, sp, #32",
            "    ldp x0, x1, [sp], #16",
        )

    def gen_print_string(self, literal):
        label = f"str_{self.new_label_id()}"
        self.data.append(f'{label}: .ascii "{escape_ascii(literal)}\\n"')
        self.emit(f"    mov x0, #{STDOUT}", f"    ldr x1, ={label}")
        self.load_immediate("x2", len(literal.encode("utf-8")) + 1)
        self.emit(f"    mov x8, #{SYS_WRITE}", "    svc #0")

    def gen_rest(self, seconds):
        seconds = max(0, min(INT64_MAX, seconds or 0))
        whole = int(seconds)
        nanos = int(round((seconds - whole) * 1_000_000_000))
        if nanos >= 1_000_000_000:
            whole += 1
            nanos -= 1_000_000_000
        self.load_immediate("x0", whole)
        self.load_immediate("x1", nanos)
        self.emit(
            "    stp x0, x1, [sp, #-16]!",
            "    mov x0, sp",
            "    mov x1, #0",
            f"    mov x8, #{SYS_NANOSLEEP}",
            "    svc #0",
            "    add sp, sp, #16",
        )
