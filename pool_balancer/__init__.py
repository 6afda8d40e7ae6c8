# __init__.py

"""Resource balancing decision engine for pools of VM hosts."""

__version__ = "0.1.0"
