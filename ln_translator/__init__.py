"""
Light-novel EPUB translator.

Reads an EPUB, partitions its chapters into translation units, streams them
through a text-generation backend and rebuilds an EPUB from the translated
markdown.
"""

__version__ = "0.3.0"
