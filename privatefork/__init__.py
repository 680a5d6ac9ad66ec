"""
PrivateFork - Turn a public GitHub repository into a private one.

Creates a private repository, clones the source, adds a remote for the
new repository and pushes all branches and tags to it.
"""

__version__ = "1.0.0"
