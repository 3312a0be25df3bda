"""Power Watch: battery state monitor with throttled low-battery alerts."""

try:
    from importlib.metadata import version as _pkg_version
    __version__ = _pkg_version("power-watch")
except Exception:
    __version__ = "dev"
