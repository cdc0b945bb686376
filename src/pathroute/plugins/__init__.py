"""Plugin package initialiser (source of truth).

Rebuild rules:
- Keep this file lightweight; do not import concrete plugins here so imports of
  ``pathroute.plugins`` stay side-effect free (core modules import
  ``pathroute.plugins._base_plugin`` during package import).
- Concrete plugin modules (``logging``) self-register when imported from
  ``pathroute.__init__``.
"""

__all__: list[str] = []
