"""Minimal demonstration of the streaming chat client."""

import asyncio

from assistant_core.api.service import ask

if __name__ == "__main__":
    question = "What should I wear in Tokyo today?"
    reply = asyncio.run(ask(question, stream=True, on_fragment=lambda text: print(text, end="\r")))
    print()
    print("User:", question)
    print("Assistant:", reply)
