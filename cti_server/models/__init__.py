# SQLModel definitions; imported here to ensure metadata is populated.
from .base import IdMixin, TimestampMixin  # noqa: F401
from .organization import Organization  # noqa: F401
from .user import User  # noqa: F401
from .incident import Incident  # noqa: F401
from .threat_actor import ThreatActor  # noqa: F401
