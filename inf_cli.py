import asyncio
import os
import sys
from pathlib import Path

from inf.inf_runtime import ScriptRunner
from inf.inf_printer import Printer
from inf.inf_datatypes import Null

DEFAULT_RECURSION_LIMIT = 20000


# A basic awaitable input prompt.
async def ainput(prompt: str) -> str:
    loop = asyncio.get_running_loop()
    sys.stdout.write(prompt)
    sys.stdout.flush()
    return await loop.run_in_executor(None, sys.stdin.readline)


def _raise_recursion_limit():
    limit = int(os.environ.get("INF_RECURSION_LIMIT", DEFAULT_RECURSION_LIMIT))
    if limit > sys.getrecursionlimit():
        sys.setrecursionlimit(limit)


async def run_script_file(file_path: str):
    """Run an Inf program file non-interactively and exit with appropriate status."""
    runner = ScriptRunner()
    p = Path(file_path)
    try:
        source = p.read_text(encoding="utf-8")
    except FileNotFoundError:
        print(f"Error: file not found: {file_path}", file=sys.stderr)
        raise SystemExit(1)
    result = runner.handle_script(source)
    if result.status == 'error':
        print(result.format_error(), file=sys.stderr)
        raise SystemExit(1)


async def main():
    """Run a program file when provided, otherwise start the interactive REPL."""
    _raise_recursion_limit()
    if len(sys.argv) > 1:
        arg = sys.argv[1]
        if not arg.startswith("-"):
            await run_script_file(arg)
            return

    print("Inf REPL v0.1")
    print("Type 'exit' or press Ctrl+D to quit.")

    # One runner, so bindings persist from line to line.
    runner = ScriptRunner()
    printer = Printer()

    while True:
        try:
            raw = await ainput(">> ")
            if raw == "":
                raise EOFError
            line = raw.strip()

            if not line:
                continue
            if line == "exit":
                break

            result = runner.handle_line(line)

            if result.status == 'error':
                print(result.format_error(), file=sys.stderr)
                continue

            if result.value is not None and not isinstance(result.value, Null):
                print(printer.pformat(result.value))

        except EOFError:
            print("\nExiting.")
            break


if __name__ == "__main__":
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        print("\nExiting.")
