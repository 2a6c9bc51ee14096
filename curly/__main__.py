"""CLI entry point for the Curly template engine.

Usage:
    python -m curly [-v...] [-e ENV_FILE]... [-c ENV_TEXT]... [-o OUTPUT] TEMPLATE...

Options:
  -v              Increase debug verbosity (can be repeated)
  -e FILE         Load an environment description file (can be repeated)
  -c TEXT         Load environment description text (can be repeated)
  -o FILE         Write the output to FILE instead of standard output
  --encoding ENC  Encoding of every input and output file
  --debug-file F  Write debug information to F instead of standard error
  --no-filters    Do not install the stock filters

Every template is rendered in turn against the same environment. A
template that fails is reported and skipped; the exit status is 1 if any
environment source or template failed.
"""

import argparse
import locale
import sys

from .environment import Environment
from .errors import CurlyError
from .filters import populate_filters
from .interpreter import Interpreter
from .lexer import lex_path
from .stream import OutputStream


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(prog='curly', description="Curly template engine")
    parser.add_argument('-v', '--verbose', action='count', default=0,
                        help='increase debug verbosity (can be repeated)')
    parser.add_argument('-e', '--env-file', action='append', default=[], metavar='FILE',
                        help='load environment from FILE (can be repeated)')
    parser.add_argument('-c', '--env-chunk', action='append', default=[], metavar='TEXT',
                        help='load environment from TEXT (can be repeated)')
    parser.add_argument('-o', '--output', metavar='FILE', help='output file (default: standard output)')
    parser.add_argument('--encoding', help='input and output encoding (default: locale encoding)')
    parser.add_argument('--debug-file', metavar='FILE', help='write debug information to FILE')
    parser.add_argument('--no-filters', action='store_true', help='do not install the stock filters')
    parser.add_argument('templates', nargs='+', metavar='TEMPLATE', help='template files to render')
    args = parser.parse_args(argv)

    encoding = args.encoding or locale.getpreferredencoding(False)
    env = Environment()
    if not args.no_filters:
        populate_filters(env)

    failed = False
    with Interpreter(debug_level=args.verbose, debug_file=args.debug_file) as interpreter:
        for path in args.env_file:
            interpreter.debug(f"loading environment from {path}")
            try:
                env.add_from_path(path, encoding)
            except CurlyError as e:
                print(f"curly: {path}: {e}", file=sys.stderr)
                sys.exit(1)
        for chunk in args.env_chunk:
            interpreter.debug(f"loading environment chunk {chunk!r}")
            try:
                env.add_from_string(chunk)
            except CurlyError as e:
                print(f"curly: {e}", file=sys.stderr)
                sys.exit(1)

        try:
            if args.output:
                output = OutputStream.from_path(args.output, encoding)
            else:
                output = OutputStream.from_stdout(encoding)
        except CurlyError as e:
            print(f"curly: {e}", file=sys.stderr)
            sys.exit(1)

        with output:
            for path in args.templates:
                interpreter.debug(f"rendering {path}")
                try:
                    template = lex_path(path, encoding)
                    # a failing template writes nothing
                    output.write(interpreter.render_to_string(template, env))
                except CurlyError as e:
                    print(f"curly: {path}: {e}", file=sys.stderr)
                    failed = True

    if failed:
        sys.exit(1)


if __name__ == '__main__':
    main()
