from app.clients.drive_client import DriveClient
from app.clients.groq_client import GroqClient
from app.clients.notion_client import NotionClient

__all__ = ["DriveClient", "GroqClient", "NotionClient"]
