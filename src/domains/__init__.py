"""Google API domains.

Each domain contains its tool definitions and the adapter that maps
them onto one Google API surface.
"""

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from gdrive_server.registry import ToolRegistry


def load_all_domains(registry: "ToolRegistry") -> None:
    """
    Register the tools of every domain.

    Called once at startup; the registration order is the order
    tools/list reports.
    """
    from domains.drive import register_drive_domain
    from domains.sheets import register_sheets_domain

    register_drive_domain(registry)
    register_sheets_domain(registry)


__all__ = ["load_all_domains"]
