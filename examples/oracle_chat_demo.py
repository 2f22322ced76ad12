"""Minimal demonstration of the Oracle conversation controller."""

import asyncio

from oracle_core import get_default_controller


async def main():
    controller = get_default_controller()
    greeting = await controller.resume_most_recent()
    if greeting:
        print("Oracle:", greeting)

    question = "Should I sell my base set Charizard now or hold?"
    reply = await controller.send_message(question)
    print("User:", question)
    print("Oracle:", reply)


if __name__ == "__main__":
    asyncio.run(main())
