"""Wiki API のリクエスト／レスポンススキーマ."""

from __future__ import annotations

from marshmallow import Schema, fields, validate

from domain.wiki.types import EditType, ProtectionLevel, ReviewDecision, SubmissionStatus


def _choices(enum_cls):
    return [member.value for member in enum_cls]


# ----------------------------------------------------------------------
# Requests
# ----------------------------------------------------------------------
class PageListQuerySchema(Schema):
    namespace = fields.String(load_default=None, metadata={"description": "名前空間（省略時は全て）"})
    limit = fields.Integer(load_default=50, validate=validate.Range(min=1, max=200))
    skip = fields.Integer(load_default=0, validate=validate.Range(min=0))


class PageCreateSchema(Schema):
    """ページ作成リクエスト."""

    namespace = fields.String(load_default=None)
    title = fields.String(required=True, validate=validate.Length(min=1, max=255))
    content = fields.String(required=True, metadata={"description": "本文（Markdown）"})
    slug = fields.String(load_default=None, metadata={"description": "省略時はタイトルから生成"})
    summary = fields.String(load_default=None)
    categories = fields.List(fields.String(), load_default=list)


class PageEditSchema(Schema):
    """ページ編集リクエスト."""

    content = fields.String(required=True)
    summary = fields.String(load_default=None)
    expected_revision = fields.Integer(
        load_default=None,
        validate=validate.Range(min=1),
        metadata={"description": "編集の基準にしたリビジョン番号"},
    )
    title = fields.String(load_default=None)


class HistoryQuerySchema(Schema):
    limit = fields.Integer(load_default=None, validate=validate.Range(min=1))
    skip = fields.Integer(load_default=0, validate=validate.Range(min=0))
    author_id = fields.Integer(load_default=None)
    edit_type = fields.String(load_default=None, validate=validate.OneOf(_choices(EditType)))
    order = fields.String(load_default="desc", validate=validate.OneOf(["asc", "desc"]))


class RecentChangesQuerySchema(Schema):
    namespace = fields.String(load_default=None, metadata={"description": "名前空間（省略時は全て）"})
    edit_type = fields.String(load_default=None, validate=validate.OneOf(_choices(EditType)))
    author_id = fields.Integer(load_default=None)
    limit = fields.Integer(
        load_default=None,
        validate=validate.Range(min=1),
        metadata={"description": "既定 50、上限 500 に丸める"},
    )
    skip = fields.Integer(load_default=0, validate=validate.Range(min=0))


class LeaseRequestSchema(Schema):
    ttl = fields.Integer(load_default=None, validate=validate.Range(min=1))
    reason = fields.String(load_default=None)


class LeaseReleaseQuerySchema(Schema):
    force = fields.Boolean(load_default=False)


class RevertSchema(Schema):
    revision = fields.Integer(required=True, validate=validate.Range(min=1))
    summary = fields.String(load_default=None)
    expected_revision = fields.Integer(load_default=None, validate=validate.Range(min=1))


class ProtectSchema(Schema):
    level = fields.String(required=True, validate=validate.OneOf(_choices(ProtectionLevel)))
    reason = fields.String(load_default=None)


class MoveSchema(Schema):
    new_title = fields.String(required=True, validate=validate.Length(min=1, max=255))
    new_slug = fields.String(load_default=None)
    reason = fields.String(load_default=None)


class ReasonQuerySchema(Schema):
    reason = fields.String(load_default=None)


class SubmissionListQuerySchema(Schema):
    status = fields.String(
        load_default=SubmissionStatus.PENDING.value,
        validate=validate.OneOf(_choices(SubmissionStatus) + ["all"]),
    )
    limit = fields.Integer(load_default=50, validate=validate.Range(min=1, max=200))
    skip = fields.Integer(load_default=0, validate=validate.Range(min=0))


class ReviewSchema(Schema):
    decision = fields.String(required=True, validate=validate.OneOf(_choices(ReviewDecision)))
    reason = fields.String(load_default=None)


# ----------------------------------------------------------------------
# Responses
# ----------------------------------------------------------------------
class PageSchema(Schema):
    """ページレスポンス."""

    id = fields.Integer(required=True)
    namespace = fields.String(required=True)
    slug = fields.String(required=True)
    title = fields.String(required=True)
    content = fields.String(required=True)
    current_revision = fields.Integer(required=True, metadata={"description": "最新リビジョン番号"})
    edit_count = fields.Integer(required=True)
    protection_level = fields.String(required=True)
    protection_reason = fields.String(allow_none=True)
    is_deleted = fields.Boolean(required=True)
    created_at = fields.String(allow_none=True)
    updated_at = fields.String(allow_none=True)
    created_by_id = fields.Integer(allow_none=True)
    updated_by_id = fields.Integer(allow_none=True)


class PageListingSchema(Schema):
    items = fields.List(fields.Nested(PageSchema), required=True)
    total = fields.Integer(required=True)
    limit = fields.Integer(required=True)
    skip = fields.Integer(required=True)


class RevisionSchema(Schema):
    """リビジョンレスポンス."""

    id = fields.Integer(required=True)
    page_id = fields.Integer(required=True)
    revision_number = fields.Integer(required=True)
    title = fields.String(required=True)
    content = fields.String()
    summary = fields.String(allow_none=True)
    edit_type = fields.String(required=True)
    content_length = fields.Integer(required=True)
    size_change = fields.Integer(required=True, metadata={"description": "直前リビジョンとの文字数差"})
    is_reverted = fields.Boolean(required=True)
    is_verified = fields.Boolean(required=True)
    author_id = fields.Integer(required=True)
    author_name = fields.String(allow_none=True)
    created_at = fields.String(allow_none=True)


class RevisionHistorySchema(Schema):
    items = fields.List(fields.Nested(RevisionSchema), required=True)
    total = fields.Integer(required=True)
    limit = fields.Integer(required=True)
    skip = fields.Integer(required=True)
    has_more = fields.Boolean(required=True)


class RecentPageSchema(Schema):
    id = fields.Integer(required=True)
    namespace = fields.String(required=True)
    slug = fields.String(required=True)
    title = fields.String(required=True)


class RecentChangeSchema(Schema):
    """最近の変更1件（本文は含めない）."""

    page = fields.Nested(RecentPageSchema, required=True)
    revision = fields.Nested(RevisionSchema, required=True)


class RecentChangesSchema(Schema):
    items = fields.List(fields.Nested(RecentChangeSchema), required=True)
    total = fields.Integer(required=True)
    limit = fields.Integer(required=True)
    skip = fields.Integer(required=True)
    has_more = fields.Boolean(required=True)


class RevisionDetailSchema(Schema):
    revision = fields.Nested(RevisionSchema, required=True)
    previous = fields.Nested(RevisionSchema, allow_none=True)


class LeaseSchema(Schema):
    page_id = fields.Integer(required=True)
    holder_id = fields.Integer(required=True)
    holder_name = fields.String(allow_none=True)
    started_at = fields.String(allow_none=True)
    expires_at = fields.String(required=True)
    reason = fields.String(allow_none=True)


class LeaseStatusSchema(Schema):
    """編集リースの状態レスポンス."""

    held = fields.Boolean(required=True)
    lease = fields.Nested(LeaseSchema, allow_none=True)
    remaining_seconds = fields.Integer(allow_none=True)


class LeaseReleaseSchema(Schema):
    released = fields.Boolean(required=True)


class SubmissionSchema(Schema):
    """承認待ち提案レスポンス."""

    id = fields.Integer(required=True)
    type = fields.String(required=True)
    status = fields.String(required=True)
    namespace = fields.String(required=True)
    target_slug = fields.String(required=True)
    target_title = fields.String(required=True)
    page_id = fields.Integer(allow_none=True)
    content = fields.String(required=True)
    summary = fields.String(allow_none=True)
    categories = fields.List(fields.String())
    expected_revision = fields.Integer(allow_none=True)
    author_id = fields.Integer(required=True)
    author_name = fields.String(allow_none=True)
    reviewer_id = fields.Integer(allow_none=True)
    reviewer_name = fields.String(allow_none=True)
    decision_reason = fields.String(allow_none=True)
    reviewed_at = fields.String(allow_none=True)
    created_at = fields.String(allow_none=True)


class SubmissionListingSchema(Schema):
    items = fields.List(fields.Nested(SubmissionSchema), required=True)
    total = fields.Integer(required=True)
    limit = fields.Integer(required=True)
    skip = fields.Integer(required=True)
    has_more = fields.Boolean(required=True)
    counts = fields.Dict(keys=fields.String(), values=fields.Integer())


class ProposeResultSchema(Schema):
    """編集・作成結果レスポンス（即時反映または承認待ち）."""

    result = fields.String(required=True, validate=validate.OneOf(["applied", "queued"]))
    page = fields.Nested(PageSchema, allow_none=True)
    submission = fields.Nested(SubmissionSchema, allow_none=True)


class ReviewOutcomeSchema(Schema):
    submission = fields.Nested(SubmissionSchema, required=True)
    page = fields.Nested(PageSchema, allow_none=True)


__all__ = [
    "HistoryQuerySchema",
    "LeaseReleaseQuerySchema",
    "LeaseReleaseSchema",
    "LeaseRequestSchema",
    "LeaseSchema",
    "LeaseStatusSchema",
    "MoveSchema",
    "PageCreateSchema",
    "PageEditSchema",
    "PageListQuerySchema",
    "PageListingSchema",
    "PageSchema",
    "ProposeResultSchema",
    "ProtectSchema",
    "ReasonQuerySchema",
    "RecentChangeSchema",
    "RecentChangesQuerySchema",
    "RecentChangesSchema",
    "RecentPageSchema",
    "RevertSchema",
    "ReviewOutcomeSchema",
    "ReviewSchema",
    "RevisionDetailSchema",
    "RevisionHistorySchema",
    "RevisionSchema",
    "SubmissionListQuerySchema",
    "SubmissionListingSchema",
    "SubmissionSchema",
]
