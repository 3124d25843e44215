"""
    _   __      __              ____       _     __
   / | / /___ _/ /_____  ____  / __ )_____(_)___/ /___ ____
  /  |/ / __ `/ //_/ _ \/ __ \/ __  / ___/ / __  / __ `/ _ \
 / /|  / /_/ / ,< /  __/ / / / /_/ / /  / / /_/ / /_/ /  __/
/_/ |_/\__,_/_/|_|\___/_/ /_/_____/_/  /_/\__,_/\__, /\___/
                                               /____/

NakenBridge Project - A WebSocket bridge for line-oriented chat servers.

A relay pairs each WebSocket client with a raw TCP connection to a legacy
chat server, and a client-side interpreter rebuilds roster, private threads,
banner and help from the server's human-readable text stream.

License: Apache-2.0 License
"""

__version__ = "1.0.0"
