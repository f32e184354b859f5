"""Interactive console demo of the chat agent.

Reads settings from the environment / .env / config.yaml, connects to the
configured chat backend and MCP tool server, then loops over user input.
Commands: /reset clears the history, /history prints it, /quit exits.
"""

import asyncio

from chat_core.api.service import get_messages, reset_chat, run_chat, shutdown


async def main() -> None:
    try:
        while True:
            try:
                line = input("You: ").strip()
            except EOFError:
                break
            if not line:
                continue
            if line == "/quit":
                break
            if line == "/reset":
                await reset_chat()
                print("(history cleared)")
                continue
            if line == "/history":
                for item in get_messages():
                    print(f"[{item['role']}] {item['text'] or ''}")
                continue
            result = await run_chat(line)
            print("Agent:", result["response"])
    finally:
        await shutdown()


if __name__ == "__main__":
    asyncio.run(main())
