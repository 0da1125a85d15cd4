"""Camera/LiDAR time-to-collision estimation."""

__version__ = "0.1.0"
__author__ = "Nagarjunan"

from . import data
from . import calibration
from . import sensors
from . import fusion
from . import perception2d
from . import viz
from . import utils
