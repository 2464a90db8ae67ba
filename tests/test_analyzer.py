"""Tests for the pre-generation semantic checks."""

from conftest import parse_source

from hamer.analyzer import SemanticAnalyzer
from hamer.codegen import USER_REGISTER_COUNT
from hamer.errors import DiagnosticLevel, ErrorManager


def analyze(code: str) -> ErrorManager:
    errors = ErrorManager(code, "test.hmr")
    SemanticAnalyzer(parse_source(code), errors).analyze()
    return errors


def reported(errors: ErrorManager) -> list[tuple[str, str]]:
    return [(d.level, d.message) for d in errors.diagnostics]


def test_clean_program_has_no_diagnostics():
    errors = analyze(
        """
        class Math is pad seed done
        local math = new Math
        local i = 0
        while i < 3 do
            if ?<%50> then print i done
            i = i + 1
        done
        """
    )
    assert errors.diagnostics == []


def test_undefined_variable_is_a_warning():
    errors = analyze("local a = 1\nprint ghost")
    assert reported(errors) == [
        (DiagnosticLevel.WARNING, "undefined variable 'ghost'"),
    ]
    assert errors.diagnostics[0].line == 2
    assert not errors.has_error


def test_unknown_class_is_an_error():
    errors = analyze("local o = new Missing")
    assert reported(errors) == [(DiagnosticLevel.ERROR, "class 'Missing' is not defined")]
    assert errors.has_error


def test_unknown_field_and_deep_path():
    errors = analyze("class C is a done\nlocal o = new C\no.b = 1\no.a.x = 2")
    assert (DiagnosticLevel.WARNING, "class 'C' has no field 'b'") in reported(errors)
    assert (DiagnosticLevel.WARNING, "only the first field of 'o.a.x' is used") in reported(errors)


def test_field_on_plain_variable():
    errors = analyze("local n = 1\nprint n.x")
    assert reported(errors) == [(DiagnosticLevel.WARNING, "'n' is not an object")]


def test_default_operators_get_tips():
    errors = analyze("local n = 1\nif n = 1 then done\nn = n * 3")
    assert reported(errors) == [
        (DiagnosticLevel.TIP, "operator '=' is compared as '=='"),
        (DiagnosticLevel.TIP, "operator '*' is treated as '+'"),
    ]


def test_probabilistic_branch_without_math():
    errors = analyze('if ?<%10> then print "x" done')
    assert reported(errors) == [
        (DiagnosticLevel.WARNING, "probabilistic branch needs a 'math' object holding the seed"),
    ]


def test_math_object_too_small():
    errors = analyze("class Math is seed done\nlocal math = new Math\nif ?<%10> then done")
    assert reported(errors) == [
        (DiagnosticLevel.PRE, "'math' is too small to hold the seed at offset 8"),
    ]


def test_chance_outside_range_is_clamped():
    errors = analyze("class Math is a b done\nlocal math = new Math\nif ?<%150> then done")
    assert reported(errors) == [(DiagnosticLevel.TIP, "chance 150% is clamped to 0..100")]


def test_heap_overflow_is_a_possible_runtime_error():
    fields = " ".join(f"f{i}" for i in range(300))
    errors = analyze(f"class Big is {fields} done\nlocal a = new Big\nlocal b = new Big")
    assert reported(errors) == [
        (DiagnosticLevel.PRE, "objects need 4800 bytes but only 4096 are mapped"),
    ]
    assert errors.diagnostics[0].line == 3


def test_allocation_inside_loop():
    errors = analyze("class C is a done\nlocal i = 0\nwhile i < 3 do local o = new C i = i + 1 done")
    assert reported(errors) == [
        (DiagnosticLevel.PRE, "allocating 'C' inside a loop advances the heap on every iteration"),
    ]


def test_too_many_variables():
    code = "\n".join(f"local v{i} = 1" for i in range(USER_REGISTER_COUNT + 2))
    errors = analyze(code)
    assert reported(errors) == [
        (DiagnosticLevel.ERROR, f"too many variables: only {USER_REGISTER_COUNT} registers are available"),
    ]


def test_raw_block_register_checks():
    errors = analyze("local n = 1\n@asm is mov x20, #0 add x12, x12, #1 mov w11, #3 done")
    assert reported(errors) == [
        (DiagnosticLevel.WARNING, "raw instruction touches x11, which the runtime reserves"),
        (DiagnosticLevel.TIP, "raw instruction uses x12, which holds 'n'"),
        (DiagnosticLevel.WARNING, "raw instruction touches x20, which the runtime reserves"),
    ]


def test_inline_get_is_reported():
    errors = analyze('local a = 1 Get "lib"')
    assert reported(errors) == [
        (DiagnosticLevel.WARNING, "'Get' must start its own line to import a library; this one is ignored"),
    ]


def test_class_redefinition():
    errors = analyze("class A is x done\nclass A is y z done")
    assert reported(errors) == [
        (DiagnosticLevel.WARNING, "class 'A' redefined; later allocations use the new layout"),
    ]
