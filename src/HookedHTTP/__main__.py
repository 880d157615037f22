"""Allow ``python -m HookedHTTP``."""

from .cli import app

app(prog_name="hookedhttp")
