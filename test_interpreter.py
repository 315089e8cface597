import math
import sys
import pytest
from lexer import Lexer
from parser import Parser
from resolver import Resolver
import interpreter as interpreter_module
from interpreter import Interpreter, InterpreterError, Return, is_equal, is_truthy, stringify
import ast_nodes


def execute(source, interpreter=None, expression_mode=False):
    """Parse, resolve and run source. Returns (interpreter, runtime error or None)."""
    parser = Parser(Lexer(source).tokenize(), expression_mode)
    statements = parser.parse()
    assert parser.errors == []
    resolver = Resolver()
    assert resolver.resolve(statements) == []
    interpreter = interpreter or Interpreter()
    interpreter.load_distances(resolver.distances)
    if expression_mode:
        return interpreter, interpreter.interpret_and_print(statements)
    return interpreter, interpreter.interpret(statements)

def output_of(source, capsys):
    _, error = execute(source)
    assert error is None, error.format_error()
    return capsys.readouterr().out.splitlines()

def error_of(source, capsys):
    _, error = execute(source)
    assert isinstance(error, InterpreterError)
    return error


# --- Values and operators ---

@pytest.mark.parametrize("source,expected", [
    ("print 1 + 2;", "3"),
    ("print 7 / 2;", "3.5"),
    ("print -4 * 2;", "-8"),
    ("print 10 - 0.5;", "9.5"),
    ('print "a" + "b";', "ab"),
    ("print nil == nil;", "true"),
    ('print 0 == "0";', "false"),
    ("print 1 == 1;", "true"),
    ("print true == 1;", "false"),
    ("print 1 != 2;", "true"),
    ("print 3 >= 3;", "true"),
    ("print 2 < 1;", "false"),
    ("print !!0;", "true"),
    ("print !nil;", "true"),
    ('print !"";', "false"),
    ("print nil;", "nil"),
    ("print (1 + 2) * 3;", "9"),
    ("print 1 / 0;", "Infinity"),
    ("print -1 / 0;", "-Infinity"),
    ("print 0 / 0;", "NaN"),
])
def test_expression_values(source, expected, capsys):
    assert output_of(source, capsys) == [expected]

def test_logical_operators_return_operand_and_short_circuit(capsys):
    source = """
        print nil or "default";
        print "first" or undefined_name;
        print nil and undefined_name;
        print 1 and 2;
    """
    assert output_of(source, capsys) == ["default", "first", "nil", "2"]

@pytest.mark.parametrize("source,message", [
    ('print 1 + "1";', "Operands must be two numbers or two strings."),
    ('print -"x";', "Operand must be a number."),
    ('print 1 < "2";', "Operands must be numbers."),
    ('print nil * 2;', "Operands must be numbers."),
    ("print missing;", "Undefined variable 'missing'."),
    ("missing = 1;", "Undefined variable 'missing'."),
    ('"not callable"();', "Can only call functions and classes."),
    ("print 1.field;", "Only instances have properties."),
    ('"s".field = 1;', "Only instances have fields."),
])
def test_runtime_errors(source, message, capsys):
    assert error_of(source, capsys).message == message

def test_runtime_error_format_names_line(capsys):
    error = error_of("var a = 1;\n\nprint a + nil;", capsys)
    assert error.format_error() == "Operands must be two numbers or two strings.\n[line 3]"


# --- Variables and scope ---

def test_shadowing_leaves_outer_binding(capsys):
    assert output_of("var x = 1; { var x = 2; print x; } print x;", capsys) == ["2", "1"]

def test_assignment_inside_block_updates_outer(capsys):
    assert output_of("var x = 1; { x = 2; } print x;", capsys) == ["2"]

def test_assignment_is_an_expression(capsys):
    assert output_of("var a; var b; a = b = 3; print a; print b;", capsys) == ["3", "3"]

def test_uninitialized_variable_is_nil(capsys):
    assert output_of("var a; print a;", capsys) == ["nil"]

def test_closure_sees_resolved_binding_not_later_shadow(capsys):
    source = """
        var a = "global";
        {
          fun show() { print a; }
          show();
          var a = "block";
          show();
        }
    """
    assert output_of(source, capsys) == ["global", "global"]


# --- Control flow ---

def test_if_else(capsys):
    assert output_of('if (1 > 2) print "a"; else print "b";', capsys) == ["b"]

def test_while_loop(capsys):
    assert output_of("var i = 0; while (i < 3) { print i; i = i + 1; }", capsys) == ["0", "1", "2"]

def test_for_loop(capsys):
    assert output_of("for (var i = 0; i < 3; i = i + 1) print i;", capsys) == ["0", "1", "2"]

def test_return_unwinds_out_of_nested_loops(capsys):
    source = """
        fun find() {
          for (var i = 0; i < 10; i = i + 1) {
            while (i < 10) {
              if (i == 4) return i;
              i = i + 1;
            }
          }
          return -1;
        }
        print find();
    """
    assert output_of(source, capsys) == ["4"]


# --- Functions ---

def test_counter_closure(capsys):
    source = """
        fun makeCounter() {
          var i = 0;
          fun count() { i = i + 1; return i; }
          return count;
        }
        var counter = makeCounter();
        print counter();
        print counter();
    """
    assert output_of(source, capsys) == ["1", "2"]

def test_independent_closures(capsys):
    source = """
        fun makeCounter() { var i = 0; fun c() { i = i + 1; return i; } return c; }
        var a = makeCounter();
        var b = makeCounter();
        a(); a();
        print a();
        print b();
    """
    assert output_of(source, capsys) == ["3", "1"]

def test_recursion(capsys):
    source = "fun fib(n) { if (n < 2) return n; return fib(n - 2) + fib(n - 1); } print fib(10);"
    assert output_of(source, capsys) == ["55"]

def test_function_without_return_is_nil(capsys):
    assert output_of("fun f() {} print f();", capsys) == ["nil"]

def test_recursion_a_few_hundred_levels_deep(capsys):
    source = """
        fun count(n) { if (n == 0) return 0; return 1 + count(n - 1); }
        print count(200);
        print count(600);
    """
    assert output_of(source, capsys) == ["200", "600"]

def test_unbounded_recursion_is_returned_as_runtime_error(capsys):
    interpreter, error = execute("fun f() { return f(); }\nf();")
    assert isinstance(error, InterpreterError)
    assert error.message == "Stack overflow."
    assert error.line == 1
    assert interpreter.call_depth == 0
    # The session is still usable afterwards.
    _, error = execute("print 1;", interpreter)
    assert error is None
    assert capsys.readouterr().out == "1\n"

def test_call_depth_limit_is_configurable(monkeypatch, capsys):
    monkeypatch.setattr(interpreter_module, "MAX_CALL_DEPTH", 10)
    source = "fun count(n) { if (n == 0) return 0; return 1 + count(n - 1); }"
    interpreter, _ = execute(source + " print count(9);")
    assert capsys.readouterr().out == "9\n"
    _, error = execute("print count(10);", interpreter)
    assert error.message == "Stack overflow."

def test_python_recursion_error_becomes_stack_overflow(monkeypatch):
    interpreter = Interpreter()

    def explode(expr):
        raise RecursionError("maximum recursion depth exceeded")

    monkeypatch.setitem(interpreter._expr_evaluators, ast_nodes.CallExpr, explode)
    _, error = execute("fun f() {}\nf();", interpreter)
    assert isinstance(error, InterpreterError)
    assert error.message == "Stack overflow."
    assert interpreter.environment is interpreter.globals

def test_recursion_limit_is_raised():
    Interpreter()
    assert sys.getrecursionlimit() >= interpreter_module.RECURSION_LIMIT

def test_arity_mismatch_is_runtime_error(capsys):
    error = error_of("fun f() {} f(1);", capsys)
    assert error.message == "Expected 0 arguments but got 1."

def test_function_and_native_stringify(capsys):
    assert output_of("fun f() {} print f; print clock;", capsys) == ["<fn f>", "<native fn>"]

def test_clock_returns_number(capsys):
    assert output_of("print clock() > 0;", capsys) == ["true"]


# --- Classes ---

def test_inherited_method(capsys):
    source = """
        class A { greet() { return "hi"; } }
        class B < A {}
        print B().greet();
    """
    assert output_of(source, capsys) == ["hi"]

def test_super_calls_superclass_version_bound_to_instance(capsys):
    source = """
        class A { name() { return "A"; } who() { return this.tag + this.name(); } }
        class B < A { name() { return "B" + super.name(); } }
        class C < B { name() { return "C" + super.name(); } }
        var c = C();
        c.tag = ":";
        print c.name();
        print c.who();
    """
    assert output_of(source, capsys) == ["CBA", ":CBA"]

def test_super_inside_inherited_method_is_static(capsys):
    source = """
        class A { m() { return "A"; } }
        class B < A { m() { return super.m(); } }
        class C < B {}
        print C().m();
    """
    assert output_of(source, capsys) == ["A"]

def test_initializer_and_fields(capsys):
    source = """
        class Point {
          init(x, y) { this.x = x; this.y = y; }
          sum() { return this.x + this.y; }
        }
        var p = Point(1, 2);
        print p.sum();
        p.x = 10;
        print p.sum();
    """
    assert output_of(source, capsys) == ["3", "12"]

def test_early_return_in_initializer_still_yields_instance(capsys):
    source = """
        class A { init() { this.v = 1; return; this.v = 2; } }
        var a = A();
        print a.v;
        print a.init() == a;
    """
    assert output_of(source, capsys) == ["1", "true"]

def test_class_arity_from_initializer(capsys):
    error = error_of("class A { init(a) {} } A();", capsys)
    assert error.message == "Expected 1 arguments but got 0."

def test_bound_method_keeps_this(capsys):
    source = """
        class A { init() { this.n = "bound"; } get() { return this.n; } }
        var m = A().get;
        print m();
    """
    assert output_of(source, capsys) == ["bound"]

def test_class_and_instance_stringify(capsys):
    assert output_of("class Foo {} print Foo; print Foo();", capsys) == ["Foo", "Foo instance"]

def test_undefined_property(capsys):
    assert error_of("class A {} A().nope;", capsys).message == "Undefined property 'nope'."

def test_superclass_must_be_a_class(capsys):
    error = error_of("var NotClass = 1; class B < NotClass {}", capsys)
    assert error.message == "Superclass must be a class."

def test_undefined_super_method(capsys):
    source = "class A {} class B < A { m() { return super.nope(); } } B().m();"
    assert error_of(source, capsys).message == "Undefined property 'nope'."

def test_method_sees_own_class_after_declaration(capsys):
    source = """
        class A { make() { return A(); } }
        print A().make();
    """
    assert output_of(source, capsys) == ["A instance"]


# --- Entry points ---

def test_runtime_error_stops_program_but_keeps_earlier_effects(capsys):
    interpreter, error = execute('var a = "kept"; print a; print a + 1; print "never";')
    assert error is not None
    assert capsys.readouterr().out.splitlines() == ["kept"]
    assert interpreter.environment is interpreter.globals

def test_globals_persist_across_calls(capsys):
    interpreter, _ = execute("var total = 1;")
    execute("total = total + 1;", interpreter)
    _, error = execute("print total;", interpreter)
    assert error is None
    assert capsys.readouterr().out.splitlines() == ["2"]

def test_state_survives_a_runtime_error(capsys):
    interpreter, error = execute("fun f() { var x = 1; return x + nil; } f();")
    assert error is not None
    _, error = execute("var y = 3; print y;", interpreter)
    assert error is None
    assert capsys.readouterr().out.splitlines() == ["3"]

def test_interpret_and_print_echoes_lone_expression(capsys):
    _, error = execute("1 + 2", expression_mode=True)
    assert error is None
    assert capsys.readouterr().out.splitlines() == ["3"]

def test_interpret_and_print_runs_statements_normally(capsys):
    _, error = execute("var a = 2; print a * 2;", expression_mode=True)
    assert error is None
    assert capsys.readouterr().out.splitlines() == ["4"]

def test_interpret_and_print_reports_runtime_error(capsys):
    _, error = execute('"a" - 1', expression_mode=True)
    assert error.message == "Operands must be numbers."

def test_output_stream_can_be_redirected():
    import io
    out = io.StringIO()
    execute('print "to buffer";', Interpreter(out))
    assert out.getvalue() == "to buffer\n"


# --- Helpers ---

def test_return_completion_is_a_value():
    assert Return(1.0).value == 1.0

def test_truthiness():
    assert not is_truthy(None)
    assert not is_truthy(False)
    assert is_truthy(0.0)
    assert is_truthy("")

def test_equality_does_not_coerce():
    assert is_equal(None, None)
    assert not is_equal(None, False)
    assert not is_equal(True, 1.0)
    assert not is_equal(0.0, "0")
    assert is_equal("a", "a")
    assert is_equal(math.inf, math.inf)

def test_number_equality_compares_like_java_doubles():
    assert is_equal(math.nan, math.nan)
    assert not is_equal(0.0, -0.0)
    assert not is_equal(math.nan, 1.0)
    assert is_equal(-0.0, -0.0)

def test_nan_and_negative_zero_equality_in_programs(capsys):
    source = "var nan = 0/0; print nan == nan; print 0 == -0; print 0 != -0;"
    assert output_of(source, capsys) == ["true", "false", "true"]

@pytest.mark.parametrize("value,expected", [
    (None, "nil"), (True, "true"), (False, "false"),
    (3.0, "3"), (-0.5, "-0.5"), (2.5, "2.5"), ("text", "text"),
    (math.inf, "Infinity"), (-math.inf, "-Infinity"), (math.nan, "NaN"),
    (1e21, "1.0E21"), (12345678.0, "1.2345678E7"), (0.0001, "1.0E-4"), (-0.0, "-0"),
    (1234567.0, "1234567"),
])
def test_stringify(value, expected):
    assert stringify(value) == expected

def test_every_node_has_an_evaluator():
    interpreter = Interpreter()
    exprs = ast_nodes.Expr.__subclasses__()
    stmts = ast_nodes.Stmt.__subclasses__()
    assert [t.__name__ for t in exprs if t not in interpreter._expr_evaluators] == []
    assert [t.__name__ for t in stmts if t not in interpreter._stmt_visitors] == []

def test_unknown_node_is_an_internal_error():
    with pytest.raises(TypeError):
        Interpreter().execute(object())
