"""
HTTP Handlers

One module per resource. Handlers reach shared resources through the AppKeys in
``social.tube.pod.app.config`` and raise ``PodAccessError`` subclasses, which the error
middleware in ``social.tube.pod.app.server`` turns into responses.
"""
