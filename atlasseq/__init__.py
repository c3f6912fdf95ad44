from .atlasseq import Atlasseq
from .utils import utils
from .utils import argsParser
from .atlas import atlas
from .mrc import mrc
