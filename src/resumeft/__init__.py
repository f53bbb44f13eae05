"""resumeft - Resumable single-file transfer over TCP.

A client and server exchange one named file per connection and resume
an interrupted transfer from the byte offset both sides can prove,
instead of restarting from zero.
"""

__version__ = "0.1.0"
