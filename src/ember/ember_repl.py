"""
Interactive read-evaluate-print loop for Ember.

Each input chunk is retokenized from scratch and handed to a single `Driver`,
so definitions persist across chunks while tokens never do. A chunk spans
several lines while it has unclosed braces.

Commands:
    exit, quit      leave the loop
    verbose-mode    toggle printing of each expression's IR
"""

import io
import traceback

from ember.ember_driver import Driver


def print_traceback() -> None:
    buf = io.StringIO()
    traceback.print_exc(file=buf)
    print("[error] >>>")
    print(buf.getvalue())


def read_chunk() -> str | None:
    """Reads one chunk, continuing while braces are unbalanced. None means exit."""
    src_lines: list[str] = []
    brace_count = 0
    while True:
        prompt = ">>> " if not src_lines else "... "
        line = input(prompt)
        if line.strip() in ("exit", "quit") and not src_lines:
            return None
        src_lines.append(line)
        brace_count += line.count("{") - line.count("}")
        if brace_count <= 0:
            return "\n".join(src_lines).strip()


def start_repl(verbose: bool = False, driver: Driver | None = None) -> None:
    print("Ember REPL. Type 'exit' or 'quit' to leave.")
    driver = driver if driver is not None else Driver(verbose=verbose)

    while True:
        try:
            src = read_chunk()
            if src is None:
                print("Exiting Ember REPL.")
                return
            if not src:
                continue
            if src.lower() == "verbose-mode":
                driver.verbose = not driver.verbose
                print(f"[mode] >>> Verbose mode {'ON' if driver.verbose else 'OFF'}")
                continue

            try:
                driver.run_chunk(src)
            except Exception:
                print_traceback()

        except (KeyboardInterrupt, EOFError):
            print("\nExiting Ember REPL.")
            break


def main() -> None:
    start_repl()


if __name__ == "__main__":
    main()
