"""
Terminal client for HearthChat.

Prints every record as a line and reads messages from stdin.
`/reply <id>` sets the reply target, `/reply` clears it,
`!logout` forgets the credentials and quits.
"""

import asyncio
import getpass
import logging
from typing import List

from HearthChat.core.client.session import ClientSession, LOGOUT_COMMAND
from HearthChat.core.client.ui.renderer import TextRenderer
from HearthChat.core.exceptions import AuthenticationRefused
from HearthChat.core.message.protocol import Message

logger = logging.getLogger(__name__)

REPLY_COMMAND = "/reply"


class StandardCommandlineClient:
    """
    Text-based client built on ClientSession.
    """

    def __init__(self, host: str = "localhost", port: int = 8765, secure: bool = False):
        self.host = host
        self.port = port
        self.uri = f"{'wss' if secure else 'ws'}://{host}:{port}"

    @staticmethod
    def print_update(session: ClientSession, added: List[Message], replaced: bool) -> None:
        if replaced:
            print("\n--- history ---")
            lines = session.view
        else:
            lines = session.view[-len(added):] if added else []
        for line in lines:
            print(line)

    @staticmethod
    async def read_input(session: ClientSession) -> None:
        """Forward stdin lines to the session until logout or EOF."""
        loop = asyncio.get_running_loop()
        while True:
            try:
                text = await loop.run_in_executor(None, input, "> ")
            except EOFError:
                await session.stop()
                return

            match text.split(maxsplit=1):
                case [command] if command == REPLY_COMMAND:
                    session.set_reply(None)
                    print("Reply cleared")
                case [command, target] if command == REPLY_COMMAND:
                    if not target.isdigit():
                        print("Usage: /reply <message id>")
                        continue
                    session.set_reply(int(target))
                    print(session.reply_preview)
                case _:
                    sent = await session.send(text)
                    if text == LOGOUT_COMMAND:
                        print("Logged out.")
                        return
                    if not sent and text:
                        print("! Not connected, message not sent")

    async def run(self, username: str = None, password: str = None) -> None:
        if username is None:
            username = input("Username: ").strip()
        if password is None:
            password = getpass.getpass("Password: ")

        session = ClientSession(
            self.uri, username, password,
            renderer=TextRenderer(),
            on_update=self.print_update,
        )
        input_task = asyncio.create_task(self.read_input(session))
        try:
            await session.run()
        except AuthenticationRefused:
            print("! Login refused: wrong username or password")
        finally:
            input_task.cancel()
