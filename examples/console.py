"""Drive a local shell through the bridge from this terminal.

Stands in for the chat relay: each line typed here is queued as shell input and
every output chunk is printed as it arrives, exactly as the bot would send it.

Usage: python examples/console.py [SHELL]
"""

import asyncio
import logging
import sys

from jarvisbot import Receiver, SpawnError, Terminal
from jarvisbot.log import configure_logging


async def read_console(prompt: str) -> str:
    loop = asyncio.get_running_loop()
    return await loop.run_in_executor(None, lambda: input(prompt))


async def print_output(output: Receiver[bytes]) -> None:
    async for chunk in output:
        print(f"| {chunk.decode('utf-8', errors='replace')}", end="", flush=True)
    print("| Shell output closed.")


async def main(argv: list[str]) -> int:
    configure_logging(logging.INFO)
    shell = argv[1] if len(argv) > 1 else "sh"
    try:
        terminal, output = await Terminal.open(shell)
    except SpawnError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 1

    printer = asyncio.create_task(print_output(output))
    async with terminal:
        while not printer.done():
            try:
                line = await read_console("> ")
            except EOFError:
                break
            if line.strip() == "/quit":
                break
            terminal.write(line)
    await printer
    return 0


if __name__ == "__main__":
    raise SystemExit(asyncio.run(main(sys.argv)))
