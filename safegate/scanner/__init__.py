"""SafeGate scanner package.

Provides the scanning pipeline shared by the inbound and outbound paths:
Unicode sanitizer (unicode.py), pattern library (definitions.py),
evasion decoder (decoder.py), inbound scanner (inbound.py) and
outbound matcher (outbound.py).

IMPORT RULES:
  - ``import re2`` ONLY: ``import re`` is PROHIBITED in this package.
"""
