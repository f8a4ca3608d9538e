#!/usr/bin/env python
"""
Wrapper to run the Streamlit app
"""
import sys
from pathlib import Path

from streamlit.web import cli as stcli

import quickcompare.ui

sys.argv = ["streamlit", "run", str(Path(quickcompare.ui.__file__).parent / "app.py")]
sys.exit(stcli.main())
