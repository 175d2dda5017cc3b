"""Cloud compute provider backends."""

from .base import CloudComputeProvider
from .ec2 import Ec2SpotProvider

__all__ = ["CloudComputeProvider", "Ec2SpotProvider"]
