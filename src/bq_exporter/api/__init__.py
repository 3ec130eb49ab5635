from .app import create_app
from .models import ExportRequest, ExportResponse

__all__ = ['ExportRequest', 'ExportResponse', 'create_app']
