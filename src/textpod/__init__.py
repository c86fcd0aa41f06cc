"""
Textpod - a personal note-taking server.
Notes are short markdown entries kept in a single flat file. Links marked
with a leading ``+`` are fetched in the background and the note is rewritten
to point at the local copy.
"""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("textpod")
except PackageNotFoundError:
    __version__ = "0.3.0"
