"""Remote hosting subpackage."""

from modreg.core.hosting.abc import Hosting, Visibility
from modreg.core.hosting.real import RealHosting

__all__ = ["Hosting", "RealHosting", "Visibility"]
