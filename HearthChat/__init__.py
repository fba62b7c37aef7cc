r"""
    __  __                 __  __    ________          __
   / / / /__  ____ ______/ /_/ /_  / ____/ /_  ____ _/ /_
  / /_/ / _ \/ __ `/ ___/ __/ __ \/ /   / __ \/ __ `/ __/
 / __  /  __/ /_/ / /  / /_/ / / / /___/ / / / /_/ / /_
/_/ /_/\___/\__,_/_/   \__/_/ /_/\____/_/ /_/\__,_/\__/

HearthChat Project - one room, everybody at the fire.

A small real-time chat service: credential-gated WebSocket connections,
a durable message log replayed on connect, and reply threading.
"""

__version__ = "1.0.0"
