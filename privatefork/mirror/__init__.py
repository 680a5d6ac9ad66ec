"""
Mirror - Private fork creation.

GitHub REST and device-flow client, git operations, and the workflow
that sequences them with cleanup on failure.
"""
