# accessgate/models/__init__.py

from accessgate.models.access_code import AccessCode  # noqa: F401
from accessgate.models.usage_log import UsageLog  # noqa: F401
