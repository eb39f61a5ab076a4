"""
Utility package setup.

Enables pandas Copy-on-Write globally so event tables can be sliced per event
without implicit duplication. pandas 3 always copies on write and warns when
the option is set, so it is only set on older releases.
"""

import pandas as pd

PANDAS_MAJOR = int(pd.__version__.split('.')[0])

# Reduce implicit copies across the batch engine.
if PANDAS_MAJOR < 3:
    pd.options.mode.copy_on_write = True
