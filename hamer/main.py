import sys
import os
import time
from hamer.lexer import tokenize
from hamer.parser import Parser
from hamer.codegen import CodeGen
from hamer.analyzer import SemanticAnalyzer
from hamer.errors import ErrorManager, CompileError
from hamer.preprocess import resolve_imports

VERSION = "0.3.0"
VERSION_STRING = f"H@mer Compiler {VERSION}"

HELP_TEXT = f"""
{VERSION_STRING}
Compiles H@mer scripts to AArch64 Linux assembly

USAGE:
    hamer <input_file> [OPTIONS]

OPTIONS:
    -o <file>       Output assembly file (default: out.s)
    --strict        Treat unresolved variables, classes and fields as errors
    --analyze, -a   Only run semantic analysis (check for errors/warnings)
    --verbose       Report injected libraries and compile time
    --help, -h      Show this help message
    --version, -v   Show version information

EXAMPLES:
    hamer game.hmr                  Compile to out.s
    hamer game.hmr -o game.s        Specify output file
    hamer game.hmr --strict         Reject unresolved references
    hamer game.hmr --analyze        Only check for errors and warnings

BUILDING THE OUTPUT:
    aarch64-linux-gnu-as game.s -o game.o
    aarch64-linux-gnu-ld game.o -o game
"""

def print_version():
    print(VERSION_STRING)
    print("Target: AArch64 (Linux)")
    print(f"Python: {sys.version.split()[0]}")

def print_help():
    print(HELP_TEXT)

def compile_source(code, filename="<input>", strict=False, error_manager=None, analyze_only=False):
    """Compile already-preprocessed source text to assembly.

    Returns None when the analyzer reports an error or when only analysis
    was requested; the diagnostics stay on the error manager.
    """
    error_manager = error_manager or ErrorManager(code, filename)
    ast = Parser(tokenize(code)).parse()
    SemanticAnalyzer(ast, error_manager).analyze()
    if error_manager.has_error or analyze_only:
        return None
    return CodeGen(ast, strict=strict, error_manager=error_manager).generate()

def main(argv=None):
    argv = sys.argv[1:] if argv is None else argv

    if not argv or "--help" in argv or "-h" in argv:
        print_help()
        sys.exit(0 if "--help" in argv or "-h" in argv else 1)

    if "--version" in argv or "-v" in argv:
        print_version()
        sys.exit(0)

    input_file = argv[0]

    if input_file.startswith("-"):
        print(f"Error: Expected input file, got '{input_file}'")
        print("Use 'hamer --help' for usage information.")
        sys.exit(1)

    output_file = "out.s"
    strict = "--strict" in argv
    analyze_only = "--analyze" in argv or "-a" in argv
    verbose = "--verbose" in argv

    if "-o" in argv:
        idx = argv.index("-o")
        if idx + 1 < len(argv):
            output_file = argv[idx + 1]

    if not os.path.exists(input_file):
        print(f"Error: Input file '{input_file}' not found.")
        sys.exit(1)

    def report_include(lib_name, lib_path):
        if verbose:
            print(f"Injected {lib_name} from {lib_path}")

    error_manager = None
    try:
        start_time = time.perf_counter()

        unit = resolve_imports(input_file, on_include=report_include)
        abs_input = os.path.abspath(input_file)
        with open(abs_input, 'r') as f:
            error_manager = ErrorManager(f.read(), abs_input, unit.line_map)
        for included_path in unit.files:
            if included_path != abs_input:
                with open(included_path, 'r') as f:
                    error_manager.add_source_file(included_path, f.read())

        asm = compile_source(unit.text, input_file, strict, error_manager, analyze_only)

        if error_manager.has_error:
            error_manager.print_diagnostics()
            print("Compilation failed due to errors.")
            sys.exit(1)

        if analyze_only:
            if error_manager.diagnostics:
                error_manager.print_diagnostics()
            else:
                print(f"Analysis complete: No issues found in {input_file}")
            if verbose:
                print(f"Analysis time: {(time.perf_counter() - start_time)*1000:.2f}ms")
            sys.exit(0)

        if error_manager.diagnostics:
            error_manager.print_diagnostics()

        with open(output_file, 'w') as f:
            f.write(asm)

        print("H@mer: Compilation Successful.")
        if verbose:
            print(f"Wrote {output_file} in {(time.perf_counter() - start_time)*1000:.2f}ms")

    except CompileError as e:
        location = ""
        if error_manager is not None:
            error_manager.print_diagnostics()
            if e.line:
                filename, line = error_manager.locate(e.line)
                location = f" ({filename}:{line})"
        print(f"COMPILER ERROR: {e.message}{location}")
        sys.exit(1)
    except OSError as e:
        print(f"Error: {e}")
        sys.exit(1)
    except Exception as e:
        # Fallback for unhandled exceptions
        print(f"Internal Compiler Error: {e}")
        import traceback
        traceback.print_exc()
        sys.exit(1)

if __name__ == "__main__":
    main()
