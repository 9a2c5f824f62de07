"""Wiki ドメインモジュール。"""

from .commands import (
    PageCreationCommand,
    PageEditCommand,
    PageMoveCommand,
    PageProtectionCommand,
    WikiPageCommandFactory,
)
from .protection import ProtectionGate, ProtectionPolicy
from .slug import DEFAULT_NAMESPACE, Slug, SlugNormalizer, SlugService
from .types import (
    Actor,
    EditType,
    ProtectionLevel,
    ReviewDecision,
    SubmissionStatus,
    SubmissionType,
    WikiRole,
)

__all__ = [
    "Actor",
    "DEFAULT_NAMESPACE",
    "EditType",
    "PageCreationCommand",
    "PageEditCommand",
    "PageMoveCommand",
    "PageProtectionCommand",
    "ProtectionGate",
    "ProtectionLevel",
    "ProtectionPolicy",
    "ReviewDecision",
    "Slug",
    "SlugNormalizer",
    "SlugService",
    "SubmissionStatus",
    "SubmissionType",
    "WikiPageCommandFactory",
    "WikiRole",
]
