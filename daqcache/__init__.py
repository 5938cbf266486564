"""daqcache: build DAQ suite packages with Spack and publish them to buildcaches.

Each package coordinate (name, version, qualifiers, compiler, arch) is
installed from source, its full dependency closure discovered, and every
hash pushed to the mirror bucket for its qualifier and compiler epoch.
"""

__version__ = "0.1.0"

from daqcache.core.batch import BatchRunner
from daqcache.core.publisher import Publisher
from daqcache.cli.app import app as cli

__all__ = ["Publisher", "BatchRunner", "cli", "__version__"]
