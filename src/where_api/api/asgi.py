"""ASGI entrypoints for the REST and push apps.

Both apps share one container, so run them in the same process (see
`where_api.main`) for submissions to reach observers.
"""

from where_api.api.app import create_app
from where_api.api.push import create_push_app
from where_api.containers import bootstrap

container = bootstrap()
app = create_app(container)
push_app = create_push_app(container)
