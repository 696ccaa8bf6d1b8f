"""
Hackily fix up the path to pick up the package from `src/`.

Set `TEST_ILP_SENDER_PATCH_PATH=0` to test an installed package instead.
"""

import sys
import os
import pathlib
PROJ_ROOT = pathlib.Path(__file__).parent.parent

if os.environ.get('TEST_ILP_SENDER_PATCH_PATH', '1') == '1':
    sys.path.insert(0, str(PROJ_ROOT / 'src'))
