"""Package version, reported to HireFire in the ``HireFire-Resource`` header."""

VERSION = "1.0.0"

RESOURCE_IDENTITY = f"Python-{VERSION}"
