"""
Wiki機能のJSON APIルート
"""

from __future__ import annotations

from application.wiki.dto import ProposeEditResult
from application.wiki.engine import current_wiki_engine
from application.wiki.use_cases import (
    AcquireEditSessionUseCase,
    DeletePageUseCase,
    EditSessionStatusUseCase,
    GetHistoryUseCase,
    GetPageUseCase,
    GetRecentChangesUseCase,
    GetRevisionUseCase,
    ListPagesUseCase,
    ListSubmissionsUseCase,
    MovePageUseCase,
    ProposeEditUseCase,
    ProposePageCreationUseCase,
    ProtectPageUseCase,
    ReleaseEditSessionUseCase,
    RestorePageUseCase,
    ReviewSubmissionUseCase,
    RevertPageUseCase,
)

from . import bp
from .actor import require_actor
from .schemas import (
    HistoryQuerySchema,
    LeaseReleaseQuerySchema,
    LeaseReleaseSchema,
    LeaseRequestSchema,
    LeaseStatusSchema,
    MoveSchema,
    PageCreateSchema,
    PageEditSchema,
    PageListQuerySchema,
    PageListingSchema,
    PageSchema,
    ProposeResultSchema,
    ProtectSchema,
    ReasonQuerySchema,
    RecentChangesQuerySchema,
    RecentChangesSchema,
    RevertSchema,
    ReviewOutcomeSchema,
    ReviewSchema,
    RevisionDetailSchema,
    RevisionHistorySchema,
    RevisionSchema,
    SubmissionListQuerySchema,
    SubmissionListingSchema,
)


def _propose_payload(result: ProposeEditResult, applied_status: int = 200):
    if result.is_applied:
        return {"result": "applied", "page": result.applied.to_dict(), "submission": None}, applied_status
    return {"result": "queued", "page": None, "submission": result.queued.to_dict()}, 202


# --- ページ ---------------------------------------------------------------
@bp.get("/pages")
@bp.arguments(PageListQuerySchema, location="query")
@bp.response(200, PageListingSchema)
def list_pages(args):
    """公開中のページ一覧"""
    listing = ListPagesUseCase().execute(args["namespace"], limit=args["limit"], skip=args["skip"])
    return {
        "items": [page.to_dict() for page in listing.pages],
        "total": listing.total,
        "limit": listing.limit,
        "skip": listing.skip,
    }


@bp.post("/pages")
@bp.arguments(PageCreateSchema)
@bp.response(200, ProposeResultSchema)
def create_page(payload):
    """ページ作成（権限が足りなければ承認待ちに積む）"""
    result = ProposePageCreationUseCase().execute(
        payload["namespace"],
        payload["title"],
        payload["content"],
        require_actor(),
        slug=payload["slug"],
        summary=payload["summary"],
        categories=payload["categories"],
    )
    return _propose_payload(result, applied_status=201)


@bp.get("/pages/<namespace>/<slug>")
@bp.response(200, PageSchema)
def get_page(namespace, slug):
    return GetPageUseCase().execute(namespace, slug).to_dict()


@bp.put("/pages/<namespace>/<slug>")
@bp.arguments(PageEditSchema)
@bp.response(200, ProposeResultSchema)
def edit_page(payload, namespace, slug):
    """ページ編集（直接反映または承認待ち）"""
    result = ProposeEditUseCase().execute(
        namespace,
        slug,
        payload["content"],
        require_actor(),
        summary=payload["summary"],
        expected_revision=payload["expected_revision"],
        title=payload["title"],
    )
    return _propose_payload(result)


@bp.delete("/pages/<namespace>/<slug>")
@bp.arguments(ReasonQuerySchema, location="query")
@bp.response(200, PageSchema)
def delete_page(args, namespace, slug):
    return DeletePageUseCase().execute(namespace, slug, require_actor(), args["reason"]).to_dict()


@bp.post("/pages/<int:page_id>/restore")
@bp.response(200, PageSchema)
def restore_page(page_id):
    return RestorePageUseCase().execute(page_id, require_actor()).to_dict()


@bp.post("/pages/<namespace>/<slug>/revert")
@bp.arguments(RevertSchema)
@bp.response(200, PageSchema)
def revert_page(payload, namespace, slug):
    page = RevertPageUseCase().execute(
        namespace,
        slug,
        payload["revision"],
        require_actor(),
        summary=payload["summary"],
        expected_revision=payload["expected_revision"],
    )
    return page.to_dict()


@bp.post("/pages/<namespace>/<slug>/protect")
@bp.arguments(ProtectSchema)
@bp.response(200, PageSchema)
def protect_page(payload, namespace, slug):
    page = ProtectPageUseCase().execute(
        namespace, slug, payload["level"], require_actor(), payload["reason"]
    )
    return page.to_dict()


@bp.post("/pages/<namespace>/<slug>/move")
@bp.arguments(MoveSchema)
@bp.response(200, PageSchema)
def move_page(payload, namespace, slug):
    page = MovePageUseCase().execute(
        namespace,
        slug,
        payload["new_title"],
        require_actor(),
        new_slug=payload["new_slug"],
        reason=payload["reason"],
    )
    return page.to_dict()


# --- 履歴 -----------------------------------------------------------------
@bp.get("/pages/<namespace>/<slug>/history")
@bp.arguments(HistoryQuerySchema, location="query")
@bp.response(200, RevisionHistorySchema)
def page_history(args, namespace, slug):
    """リビジョン履歴（本文は含めない）"""
    history = GetHistoryUseCase().execute(
        namespace,
        slug,
        limit=args["limit"],
        skip=args["skip"],
        author_id=args["author_id"],
        edit_type=args["edit_type"],
        order=args["order"],
    )
    return {
        "items": [revision.to_dict(include_content=False) for revision in history.revisions],
        "total": history.total,
        "limit": history.limit,
        "skip": history.skip,
        "has_more": history.has_more,
    }


@bp.get("/pages/<namespace>/<slug>/revisions/<int:revision_number>")
@bp.response(200, RevisionDetailSchema)
def page_revision(namespace, slug, revision_number):
    detail = GetRevisionUseCase().execute(namespace, slug, revision_number)
    return {
        "revision": detail.revision.to_dict(),
        "previous": detail.previous.to_dict() if detail.previous is not None else None,
    }


@bp.get("/recent")
@bp.arguments(RecentChangesQuerySchema, location="query")
@bp.response(200, RecentChangesSchema)
def recent_changes(args):
    """全ページを横断した最近の変更（削除済みページは除く）"""
    recent = GetRecentChangesUseCase().execute(
        namespace=args["namespace"],
        edit_type=args["edit_type"],
        author_id=args["author_id"],
        limit=args["limit"],
        skip=args["skip"],
    )
    return {
        "items": [
            {
                "page": {
                    "id": change.page.id,
                    "namespace": change.page.namespace,
                    "slug": change.page.slug,
                    "title": change.page.title,
                },
                "revision": change.revision.to_dict(include_content=False),
            }
            for change in recent.changes
        ],
        "total": recent.total,
        "limit": recent.limit,
        "skip": recent.skip,
        "has_more": recent.has_more,
    }


@bp.get("/revisions/<int:revision_id>")
@bp.response(200, RevisionSchema)
def revision_by_id(revision_id):
    """リビジョンIDで取得（削除済みページでも参照可能）"""
    return GetRevisionUseCase().execute_by_id(revision_id).to_dict()


# --- 編集リース -----------------------------------------------------------
def _lease_status(lease):
    if lease is None:
        return {"held": False, "lease": None, "remaining_seconds": None}
    now = current_wiki_engine().clock()
    return {"held": True, "lease": lease.to_dict(), "remaining_seconds": lease.remaining_seconds(now)}


@bp.get("/pages/<namespace>/<slug>/lease")
@bp.response(200, LeaseStatusSchema)
def lease_status(namespace, slug):
    return _lease_status(EditSessionStatusUseCase().execute(namespace, slug))


@bp.post("/pages/<namespace>/<slug>/lease")
@bp.arguments(LeaseRequestSchema)
@bp.response(200, LeaseStatusSchema)
def acquire_lease(payload, namespace, slug):
    """編集開始（既に自分が保持していれば延長）"""
    lease = AcquireEditSessionUseCase().execute(
        namespace, slug, require_actor(), ttl=payload["ttl"], reason=payload["reason"]
    )
    return _lease_status(lease)


@bp.delete("/pages/<namespace>/<slug>/lease")
@bp.arguments(LeaseReleaseQuerySchema, location="query")
@bp.response(200, LeaseReleaseSchema)
def release_lease(args, namespace, slug):
    released = ReleaseEditSessionUseCase().execute(
        namespace, slug, require_actor(), force=args["force"]
    )
    return {"released": released}


# --- 承認待ち -------------------------------------------------------------
@bp.get("/submissions")
@bp.arguments(SubmissionListQuerySchema, location="query")
@bp.response(200, SubmissionListingSchema)
def list_submissions(args):
    status = None if args["status"] == "all" else args["status"]
    listing = ListSubmissionsUseCase().execute(
        require_actor(), status, limit=args["limit"], skip=args["skip"]
    )
    return {
        "items": [submission.to_dict() for submission in listing.submissions],
        "total": listing.total,
        "limit": listing.limit,
        "skip": listing.skip,
        "has_more": listing.has_more,
        "counts": {key.value: count for key, count in listing.counts.items()},
    }


@bp.post("/submissions/<int:submission_id>/review")
@bp.arguments(ReviewSchema)
@bp.response(200, ReviewOutcomeSchema)
def review_submission(payload, submission_id):
    """提案の承認・却下・保留・保留解除"""
    outcome = ReviewSubmissionUseCase().execute(
        submission_id, payload["decision"], require_actor(), payload["reason"]
    )
    return {
        "submission": outcome.submission.to_dict(),
        "page": outcome.page.to_dict() if outcome.page is not None else None,
    }
