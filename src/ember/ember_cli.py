"""
Ember CLI Entrypoint.

Runs Ember source in whole-source mode, or starts the interactive REPL.

Features:
    - Read source from `.ember` files or inline strings.
    - Tokenize once, then parse and lower every unit; a bad unit is reported
      and the rest still run.
    - Optionally execute top-level expressions and print their values.
    - Launch an interactive REPL with optional verbosity.

Example usage:
    ember fib.ember -e
    ember -s "def add : x, y { x + y } add(2, 3)" -e
    ember --repl --verbose

Functions:
    run_ember(source: str, is_string: bool = False, execute: bool = False,
              pretty: bool = False, driver: Driver | None = None) -> list[float]:
        Runs the full pipeline (lex → parse → lower → optional execution).

    main(argv: list[str] | None = None) -> int:
        Parses CLI arguments and dispatches to the REPL or `run_ember`.
"""

import argparse
import sys

from ember.ember_driver import Driver


def run_ember(
    source: str,
    is_string: bool = False,
    execute: bool = False,
    pretty: bool = False,
    driver: Driver | None = None,
) -> list[float]:
    """
    Run the Ember pipeline over a whole source.

    Args:
        source (str): Ember source code or path to a `.ember` file.
        is_string (bool): If True, treats `source` as raw code instead of a file path.
        execute (bool): If True, top-level expressions are executed and printed.
        pretty (bool): If True, prints banners around the run.
        driver (Driver | None): Driver to run with; a fresh one by default.

    Returns:
        list[float]: Values of the executed top-level expressions, in order.

    Raises:
        ValueError: If `is_string` is False and the source does not end with '.ember'.
    """
    if not is_string and not source.endswith(".ember"):
        raise ValueError("Only .ember files are supported.")
    if not is_string:
        with open(source, encoding="utf-8") as f:
            source = f.read()

    driver = driver if driver is not None else Driver()
    banner = "=" * 20
    if pretty:
        print(f"{banner}\nEmber output\n{banner}")
    results = driver.run_source(source, execute=execute)
    if pretty:
        print(f"{banner}\n{len(driver.errors)} error(s)")
    return results


def main(argv: list[str] | None = None) -> int:
    """
    Entry point for the Ember CLI.

    Supported flags:
        - `-s`, `--string`: Interpret source as a raw string instead of a file path.
        - `-e`, `--exec`: Execute top-level expressions and print their values.
        - `-p`, `--pretty`: Show banners around the output.
        - `--repl`: Launch the interactive REPL.
        - `--verbose`: Verbose REPL mode.

    Returns:
        int: Process exit status; 1 when any unit failed.
    """
    args_in = sys.argv[1:] if argv is None else argv
    if not args_in:
        from ember.ember_repl import start_repl

        start_repl()
        return 0

    parser = argparse.ArgumentParser(prog="ember")
    parser.add_argument("source", nargs="?", help="Filename or raw source (with -s)")
    parser.add_argument(
        "-s", "--string", action="store_true", help="Interpret source as literal string"
    )
    parser.add_argument(
        "-e",
        "--exec",
        dest="execute",
        action="store_true",
        help="Execute top-level expressions",
    )
    parser.add_argument(
        "-p", "--pretty", action="store_true", help="Show output with banners"
    )
    parser.add_argument(
        "--repl",
        action="store_true",
        help="Launch interactive REPL instead of running a source",
    )
    parser.add_argument(
        "--verbose", action="store_true", help="Verbose REPL mode (if --repl)"
    )

    args = parser.parse_args(args_in)

    if args.repl or args.source is None:
        from ember.ember_repl import start_repl

        start_repl(verbose=args.verbose)
        return 0

    driver = Driver()
    try:
        run_ember(
            source=args.source,
            is_string=args.string,
            execute=args.execute,
            pretty=args.pretty,
            driver=driver,
        )
    except (OSError, ValueError) as e:
        print(f"[error] >>> {e}", file=sys.stderr)
        return 2
    return 1 if driver.errors else 0


if __name__ == "__main__":
    sys.exit(main())
