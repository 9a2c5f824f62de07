"""ORM models shared across applications."""

# モデルの循環インポートを避けるため、ここで一括インポート
from .wiki.models import WikiPage, WikiRevision, WikiSubmission

__all__ = [
    'WikiPage',
    'WikiRevision',
    'WikiSubmission',
]
