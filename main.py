import sys
import logging
from typing import List, Optional

from lexer import Lexer
from parser import Parser
from resolver import Resolver
from interpreter import Interpreter
from ast_printer import AstPrinter

logger = logging.getLogger(__name__)

# Exit codes (sysexits.h)
EXIT_OK = 0
EXIT_USAGE = 64
EXIT_STATIC_ERROR = 65
EXIT_NO_INPUT = 66
EXIT_RUNTIME_ERROR = 70

MODES = ('tokenize', 'parse', 'evaluate', 'run')

USAGE = "Usage: lox [--debug] [tokenize|parse|evaluate|run] [script]"


def report(errors):
    for error in errors:
        print(error, file=sys.stderr)


def run(source: str, interpreter: Interpreter, mode: str = 'run') -> int:
    """Push one source text through the pipeline as far as `mode` asks.

    Returns an exit code. The interpreter keeps its globals between calls,
    which is what gives the REPL its memory.
    """
    logger.debug("Running %d characters in %s mode", len(source), mode)

    # Lexing
    lexer = Lexer(source)
    tokens = lexer.tokenize()
    if mode == 'tokenize':
        for token in tokens:
            print(token)
        report(lexer.errors)
        return EXIT_STATIC_ERROR if lexer.errors else EXIT_OK

    # Parsing
    parser = Parser(tokens, expression_mode=(mode != 'run'))
    statements = parser.parse()
    report(lexer.errors)
    report(parser.errors)
    if lexer.errors or parser.errors:
        return EXIT_STATIC_ERROR

    if mode == 'parse':
        printer = AstPrinter()
        for stmt in statements:
            print(printer.print(stmt))
        return EXIT_OK

    # Resolution
    resolver = Resolver()
    static_errors = resolver.resolve(statements)
    if static_errors:
        report(static_errors)
        return EXIT_STATIC_ERROR
    interpreter.load_distances(resolver.distances)

    # Interpreting
    if mode == 'evaluate':
        error = interpreter.interpret_and_print(statements)
    else:
        error = interpreter.interpret(statements)
    if error is not None:
        print(error.format_error(), file=sys.stderr)
        return EXIT_RUNTIME_ERROR
    return EXIT_OK


def run_file(filename: str, mode: str = 'run') -> int:
    try:
        with open(filename, 'r') as f:
            source = f.read()
    except OSError as e:
        print(f"Could not read file '{filename}': {e.strerror}", file=sys.stderr)
        return EXIT_NO_INPUT
    return run(source, Interpreter(), mode)


def run_prompt() -> int:
    interpreter = Interpreter()
    while True:
        try:
            line = input("> ")
        except EOFError:
            break
        # Errors are reported and forgotten; the next line starts clean.
        run(line, interpreter)
    return EXIT_OK


def main(argv: Optional[List[str]] = None) -> int:
    args = sys.argv[1:] if argv is None else argv

    debug = False
    positional = []
    i = 0
    while i < len(args):
        if args[i] == '--debug':
            debug = True
        elif args[i].startswith('--'):
            print(USAGE, file=sys.stderr)
            return EXIT_USAGE
        else:
            positional.append(args[i])
        i += 1

    if debug:
        logging.basicConfig(level=logging.DEBUG)

    if not positional:
        return run_prompt()
    if len(positional) > 2:
        print(USAGE, file=sys.stderr)
        return EXIT_USAGE
    if len(positional) == 2 and positional[0] in MODES:
        return run_file(positional[1], positional[0])
    # A first word that is not a mode is the script itself; anything after it is ignored.
    return run_file(positional[0])


if __name__ == "__main__":
    sys.exit(main())
