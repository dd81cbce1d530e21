"""botflow: workflow automation graphs for Telegram bots.

Operators wire trigger, condition and action nodes into a graph; for
each inbound chat event the interpreter walks the bot's active graph
and returns the messages and waits to carry out.
"""

__version__ = "0.1.0"
