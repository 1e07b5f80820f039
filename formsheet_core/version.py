"""
FormSheet version, shared by the web server, the CLI and the notification footer.
"""

__version__ = "1.1.0"

BUILD_DATE = "2025-10-20"
BUILD_ORG = "ACM ESPRIT"


def get_banner(title: str = "Code Arena 2025") -> str:
    """Boxed banner printed by ``formsheet about``."""
    return f"""
╔══════════════════════════════════════════════════════════════╗
║  FormSheet v{__version__:<10}                                       ║
║  {title:<60}║
║  {BUILD_ORG:<60}║
║  Build: {BUILD_DATE:<53}║
╚══════════════════════════════════════════════════════════════╝
"""
