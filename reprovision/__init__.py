"""reprovision — capture a workstation's software inventory and replay it elsewhere."""

__version__ = "0.1.0"
