"""dircli - directory-routed command line programs.

Commands are discovered from a directory tree: every directory holding a
`command.py` is a command, bracketed directory names (`[id]`) bind
parameters, and optional sibling files (`params.py`, `help.py`, `error.py`)
or root files (`env.py`, `version.py`, `middleware.py`, `global_error.py`)
attach behaviors. The execution engine resolves an invocation to a command
and runs the attached handlers in a fixed order.
"""
