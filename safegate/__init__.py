"""SafeGate: content-safety gateway between an agent and a social platform API.

Public entry points live in ``safegate.gateway``; the scanning engine is under
``safegate.scanner``.
"""

__version__ = "0.1.0"
