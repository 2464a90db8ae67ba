import sys

class CompileError(Exception):
    """Base class for errors that stop compilation."""

    def __init__(self, message, line=0):
        super().__init__(message)
        self.message = message
        self.line = line

class UnresolvedReferenceError(CompileError):
    pass

class RegisterExhaustedError(CompileError):
    pass

class ImportResolutionError(CompileError):
    def __init__(self, message, path=None, line=0):
        super().__init__(message, line)
        self.path = path

class DiagnosticLevel:
    ERROR = "ERROR"
    WARNING = "WARNING"
    TIP = "TIP"
    PRE = "POSSIBLE RUNTIME ERROR"

# ANSI colors
RESET = "\033[0m"
RED = "\033[91m"
YELLOW = "\033[93m"
BLUE = "\033[94m"
MAGENTA = "\033[95m"
BOLD = "\033[1m"
WHITE = "\033[97m"

LEVEL_COLORS = {
    DiagnosticLevel.ERROR: RED,
    DiagnosticLevel.WARNING: YELLOW,
    DiagnosticLevel.TIP: BLUE,
    DiagnosticLevel.PRE: MAGENTA,
}

class Diagnostic:
    def __init__(self, level, message, line=0, column=0, hint=None, source_file=None):
        self.level = level
        self.message = message
        self.line = line
        self.column = column
        self.hint = hint
        self.source_file = source_file

class ErrorManager:
    """Collects diagnostics for one compilation and renders them.

    Line numbers reported by the analyzer and generator refer to the
    preprocessed source. When a line map is supplied (one `(file, line)`
    entry per combined line) they are translated back to the file the
    statement came from before display.
    """

    def __init__(self, source_code="", filename="<unknown>", line_map=None):
        self.diagnostics = []
        self.source_files = {}  # filename -> source lines
        self.source_files[filename] = source_code.splitlines() if source_code else []
        self.filename = filename
        self.line_map = line_map or []
        self.has_error = False

    def add_source_file(self, filename, source_code):
        if filename not in self.source_files:
            self.source_files[filename] = source_code.splitlines() if source_code else []

    def locate(self, line):
        """Map a combined-source line to its (file, line) origin."""
        if 0 < line <= len(self.line_map):
            return self.line_map[line - 1]
        return self.filename, line

    def add(self, level, message, line=0, column=0, hint=None, source_file=None):
        if source_file is None and self.line_map:
            source_file, line = self.locate(line)
        for diag in self.diagnostics:
            # The analyzer and generator may both report the same miss.
            if (diag.level, diag.message, diag.line, diag.source_file) == (level, message, line, source_file):
                return
        self.diagnostics.append(Diagnostic(level, message, line, column, hint, source_file))
        if level == DiagnosticLevel.ERROR:
            self.has_error = True

    def error(self, message, line=0, column=0, hint=None, source_file=None):
        self.add(DiagnosticLevel.ERROR, message, line, column, hint, source_file)

    def warning(self, message, line=0, column=0, hint=None, source_file=None):
        self.add(DiagnosticLevel.WARNING, message, line, column, hint, source_file)

    def tip(self, message, line=0, column=0, hint=None, source_file=None):
        self.add(DiagnosticLevel.TIP, message, line, column, hint, source_file)

    def pre(self, message, line=0, column=0, hint=None, source_file=None):
        self.add(DiagnosticLevel.PRE, message, line, column, hint, source_file)

    def count(self, level):
        return sum(1 for diag in self.diagnostics if diag.level == level)

    def format_diagnostic(self, diag, color=True):
        paint = (lambda code: code) if color else (lambda code: "")
        level_color = paint(LEVEL_COLORS.get(diag.level, WHITE))
        filename = diag.source_file if diag.source_file else self.filename
        lines = [f"{paint(BOLD)}{filename}:{diag.line}:{diag.column}: {level_color}{diag.level}: {diag.message}{paint(RESET)}"]

        source_lines = self.source_files.get(filename, [])
        if 0 < diag.line <= len(source_lines):
            lines.append(f"  {source_lines[diag.line - 1]}")
            caret_trace = " " * diag.column + "^"
            lines.append(f"  {level_color}{caret_trace}{paint(RESET)}")

        if diag.hint:
            lines.append(f"{paint(BLUE)}  Tip: {diag.hint}{paint(RESET)}")
        return "\n".join(lines)

    def format_diagnostics(self, color=False):
        return "\n\n".join(self.format_diagnostic(diag, color) for diag in self.diagnostics)

    def print_diagnostics(self, stream=None):
        stream = stream or sys.stdout
        color = hasattr(stream, "isatty") and stream.isatty()
        for diag in self.diagnostics:
            print(self.format_diagnostic(diag, color), file=stream)
            print(file=stream)
