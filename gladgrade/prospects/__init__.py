"""Sales pipeline prospects."""
from gladgrade.prospects.services import ProspectService

__all__ = ["ProspectService"]
