from . import certificates, diagnose, install, preflight, reset, smoketest, upgrade, volume

__all__ = ['certificates', 'diagnose', 'install', 'preflight', 'reset', 'smoketest', 'upgrade', 'volume']
