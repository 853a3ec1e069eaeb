import logging
from typing import Any, Dict, List, Optional, Tuple

from fastapi import APIRouter, Body, Depends, File, Form, HTTPException, Query, UploadFile
from pydantic import BaseModel

from optinest.core.errors import ContentValidationError, OptinestError
from optinest.db.supabase import SupabaseClient, get_supabase
from optinest.models.admin_user import AdminRole, AdminUser
from optinest.models.analytics import AnalyticsSummary
from optinest.models.author import Author
from optinest.models.media import MediaAsset
from optinest.models.newsletter import NewsletterSubscriber
from optinest.models.post import Post
from optinest.routers.auth import get_auth_service, require_admin_session, require_trusted_admin_mutation
from optinest.services import analytics as analytics_service
from optinest.services import authors as author_service
from optinest.services import categories as category_service
from optinest.services import cms as cms_service
from optinest.services import media as media_service
from optinest.services import newsletter as newsletter_service
from optinest.services import posts as post_service
from optinest.services.auth import AuthService
from optinest.services.media_paths import get_renderable_image_src
from optinest.services.permissions import Capability, capabilities_for, ensure_capability, ensure_post_capability
from optinest.services.publication import PublicationState, publication_state, status_label
from optinest.services.seo import SeoReport, evaluate_seo
from optinest.services.storage import StorageService, get_storage

logger = logging.getLogger(__name__)

router = APIRouter()

ADMIN_ONLY = (AdminRole.ADMIN,)


# Pydantic models for requests/responses
class AdminPost(Post):
    status_label: str
    publication_state: PublicationState
    cover_image_src: str = ""
    seo: SeoReport


class MessageResponse(BaseModel):
    message: str


class CategoryList(BaseModel):
    categories: List[str]


class SeoCheckRequest(BaseModel):
    title: str = ""
    content: str = ""
    slug: str = ""
    excerpt: str = ""
    seo_title: Optional[str] = None
    seo_description: Optional[str] = None
    focus_keyword: Optional[str] = None


def to_admin_post(post: Post) -> AdminPost:
    return AdminPost(
        **post.model_dump(),
        status_label=status_label(post.status),
        publication_state=publication_state(post.status, post.publish_at),
        cover_image_src=get_renderable_image_src(post.cover_image),
        seo=evaluate_seo(
            post.title,
            post.content,
            post.slug,
            seo_title=post.seo_title,
            seo_description=post.seo_description,
            focus_keyword=post.focus_keyword,
            excerpt=post.excerpt,
        ),
    )


def caller_author_id(client: SupabaseClient, user: AdminUser) -> Optional[str]:
    author = author_service.get_author_by_admin_user_id(client, user.id)
    return author.id if author else None


async def read_upload(upload: Optional[UploadFile]) -> Tuple[Optional[str], Optional[str], Optional[bytes]]:
    if upload is None or not upload.filename:
        return None, None, None
    return upload.filename, upload.content_type, await upload.read()


# Posts


@router.get("/posts", response_model=List[AdminPost])
def list_posts(
    client: SupabaseClient = Depends(get_supabase), _user: AdminUser = Depends(require_admin_session())
):
    return [to_admin_post(post) for post in post_service.get_all_posts(client, include_unpublished=True)]


@router.get("/posts/{slug}", response_model=AdminPost)
def get_post(
    slug: str, client: SupabaseClient = Depends(get_supabase), _user: AdminUser = Depends(require_admin_session())
):
    post = post_service.get_post_by_slug(client, slug, include_unpublished=True)
    if not post:
        raise HTTPException(status_code=404, detail="Post not found")
    return to_admin_post(post)


@router.post("/posts", response_model=AdminPost, status_code=201)
async def create_post(
    title: str = Form(""),
    slug: str = Form(""),
    excerpt: str = Form(""),
    date: str = Form(""),
    category: str = Form(""),
    author_id: str = Form(""),
    cover_alt: str = Form(""),
    content: str = Form(""),
    status: str = Form("published"),
    publish_at: Optional[str] = Form(None),
    seo_title: Optional[str] = Form(None),
    seo_description: Optional[str] = Form(None),
    focus_keyword: Optional[str] = Form(None),
    featured: bool = Form(False),
    recommended: bool = Form(False),
    existing_cover_image: str = Form(""),
    cover_image: Optional[UploadFile] = File(None),
    client: SupabaseClient = Depends(get_supabase),
    storage: StorageService = Depends(get_storage),
    user: AdminUser = Depends(require_trusted_admin_mutation()),
):
    """Create a post. Editors always publish under their linked author profile."""
    own_author_id = caller_author_id(client, user)
    ensure_post_capability(user.role, Capability.CREATE_POST, None, own_author_id)
    if user.role == AdminRole.EDITOR:
        author_id = own_author_id

    record = post_service.parse_post_payload(
        title, slug, excerpt, date, category, author_id, cover_alt, content,
        status=status,
        publish_at=publish_at,
        seo_title=seo_title,
        seo_description=seo_description,
        focus_keyword=focus_keyword,
        featured=featured,
        recommended=recommended,
        categories=category_service.get_categories(client),
        author_ids=[author.id for author in author_service.get_authors(client)],
    )
    if post_service.get_post_by_slug(client, record.slug, include_unpublished=True):
        raise ContentValidationError("A post with that slug already exists.")

    file_name, content_type, data = await read_upload(cover_image)
    record.cover_image = media_service.resolve_image(
        client, storage, "posts", record.slug, "Featured image",
        file_name=file_name, content_type=content_type, content=data, fallback=existing_cover_image,
    )
    post_service.save_post(client, record)
    logger.info("Post %s created by %s", record.slug, user.email)
    return to_admin_post(post_service.get_post_by_slug(client, record.slug, include_unpublished=True))


@router.put("/posts/{old_slug}", response_model=AdminPost)
async def update_post(
    old_slug: str,
    title: str = Form(""),
    slug: str = Form(""),
    excerpt: str = Form(""),
    date: str = Form(""),
    category: str = Form(""),
    author_id: str = Form(""),
    cover_alt: str = Form(""),
    content: str = Form(""),
    status: str = Form("published"),
    publish_at: Optional[str] = Form(None),
    seo_title: Optional[str] = Form(None),
    seo_description: Optional[str] = Form(None),
    focus_keyword: Optional[str] = Form(None),
    featured: bool = Form(False),
    recommended: bool = Form(False),
    existing_cover_image: str = Form(""),
    cover_image: Optional[UploadFile] = File(None),
    client: SupabaseClient = Depends(get_supabase),
    storage: StorageService = Depends(get_storage),
    user: AdminUser = Depends(require_trusted_admin_mutation()),
):
    old_slug = (old_slug or "").strip()
    if not old_slug:
        raise ContentValidationError("Missing original post slug.")
    existing = post_service.get_post_by_slug(client, old_slug, include_unpublished=True)
    if not existing:
        raise ContentValidationError("Original post was not found.")

    own_author_id = caller_author_id(client, user)
    ensure_post_capability(user.role, Capability.EDIT_POST, existing.author_id, own_author_id)
    if user.role == AdminRole.EDITOR:
        author_id = own_author_id

    record = post_service.parse_post_payload(
        title, slug, excerpt, date, category, author_id, cover_alt, content,
        status=status,
        publish_at=publish_at,
        seo_title=seo_title,
        seo_description=seo_description,
        focus_keyword=focus_keyword,
        featured=featured,
        recommended=recommended,
        categories=category_service.get_categories(client),
        author_ids=[author.id for author in author_service.get_authors(client)],
    )
    if record.slug != old_slug and post_service.get_post_by_slug(client, record.slug, include_unpublished=True):
        raise ContentValidationError("Slug is already used by another post.")

    file_name, content_type, data = await read_upload(cover_image)
    record.cover_image = media_service.resolve_image(
        client, storage, "posts", record.slug, "Featured image",
        file_name=file_name, content_type=content_type, content=data,
        fallback=existing_cover_image or existing.cover_image,
    )

    # Slug is the identity: save under the new slug, then drop the old row
    post_service.save_post(client, record)
    if record.slug != old_slug:
        post_service.delete_post_by_slug(client, old_slug)
    return to_admin_post(post_service.get_post_by_slug(client, record.slug, include_unpublished=True))


@router.delete("/posts/{slug}", response_model=MessageResponse)
def delete_post(
    slug: str,
    client: SupabaseClient = Depends(get_supabase),
    user: AdminUser = Depends(require_trusted_admin_mutation()),
):
    existing = post_service.get_post_by_slug(client, slug, include_unpublished=True)
    if not existing:
        raise HTTPException(status_code=404, detail="Post not found")
    ensure_post_capability(user.role, Capability.DELETE_POST, existing.author_id, caller_author_id(client, user))
    post_service.delete_post_by_slug(client, slug)
    logger.info("Post %s deleted by %s", slug, user.email)
    return MessageResponse(message="Post deleted.")


# Categories


@router.get("/categories", response_model=CategoryList)
def list_categories(
    client: SupabaseClient = Depends(get_supabase), _user: AdminUser = Depends(require_admin_session())
):
    return CategoryList(categories=category_service.get_categories(client))


@router.post("/categories", response_model=CategoryList, status_code=201)
def add_category(
    name: str = Form(""),
    client: SupabaseClient = Depends(get_supabase),
    _user: AdminUser = Depends(require_trusted_admin_mutation()),
):
    return CategoryList(categories=category_service.add_category(client, name))


@router.put("/categories", response_model=CategoryList)
def rename_category(
    previous_name: str = Form(""),
    name: str = Form(""),
    client: SupabaseClient = Depends(get_supabase),
    _user: AdminUser = Depends(require_trusted_admin_mutation()),
):
    return CategoryList(categories=category_service.rename_category(client, previous_name, name))


# Authors


def _resolve_linked_user(
    service: AuthService, authors: List[Author], admin_user_id: Optional[str], exclude_author_id: Optional[str]
) -> str:
    admin_user_id = (admin_user_id or "").strip()
    if not admin_user_id:
        raise ContentValidationError("Choose the user account linked to this author.")
    if not service.get_user(admin_user_id):
        raise ContentValidationError("Selected user account was not found or is inactive.")
    if any(a.admin_user_id == admin_user_id and a.id != exclude_author_id for a in authors):
        raise ContentValidationError("That user is already linked to another author.")
    return admin_user_id


@router.get("/authors", response_model=List[Author])
def list_authors(
    client: SupabaseClient = Depends(get_supabase), _user: AdminUser = Depends(require_admin_session())
):
    posts = post_service.get_all_posts(client, include_unpublished=True)
    return [
        author.model_copy(update={"post_count": sum(1 for post in posts if post.author_id == author.id)})
        for author in author_service.get_authors(client)
    ]


@router.post("/authors", response_model=Author, status_code=201)
async def create_author(
    author_id: str = Form(""),
    name: str = Form(""),
    role: str = Form(""),
    short_bio: str = Form(""),
    bio: str = Form(""),
    x_url: Optional[str] = Form(None),
    admin_user_id: Optional[str] = Form(None),
    existing_avatar: str = Form(""),
    avatar: Optional[UploadFile] = File(None),
    client: SupabaseClient = Depends(get_supabase),
    storage: StorageService = Depends(get_storage),
    service: AuthService = Depends(get_auth_service),
    user: AdminUser = Depends(require_trusted_admin_mutation()),
):
    if user.role == AdminRole.EDITOR:
        admin_user_id = user.id

    authors = author_service.get_authors(client)
    author = author_service.parse_author_payload(author_id, name, role, short_bio, bio, x_url)
    author.admin_user_id = _resolve_linked_user(service, authors, admin_user_id, exclude_author_id=None)
    if any(existing.id == author.id for existing in authors):
        raise ContentValidationError("Author ID already exists.")

    file_name, content_type, data = await read_upload(avatar)
    author.avatar = media_service.resolve_image(
        client, storage, "authors", author.id, "Avatar",
        file_name=file_name, content_type=content_type, content=data, fallback=existing_avatar,
        missing_message="Please upload an avatar image.",
    )
    author_service.save_authors(client, authors + [author])
    return author


@router.put("/authors/{previous_id}", response_model=Author)
async def update_author(
    previous_id: str,
    author_id: str = Form(""),
    name: str = Form(""),
    role: str = Form(""),
    short_bio: str = Form(""),
    bio: str = Form(""),
    x_url: Optional[str] = Form(None),
    admin_user_id: Optional[str] = Form(None),
    existing_avatar: str = Form(""),
    avatar: Optional[UploadFile] = File(None),
    client: SupabaseClient = Depends(get_supabase),
    storage: StorageService = Depends(get_storage),
    service: AuthService = Depends(get_auth_service),
    user: AdminUser = Depends(require_trusted_admin_mutation()),
):
    authors = author_service.get_authors(client)
    existing = next((author for author in authors if author.id == previous_id), None)
    if not existing:
        raise HTTPException(status_code=404, detail="Author not found")

    ensure_capability(
        capabilities_for(user.role, existing.admin_user_id, user.id),
        Capability.EDIT_AUTHOR,
        "Editors can only update their own author profile.",
    )
    if user.role == AdminRole.EDITOR:
        admin_user_id = user.id

    author = author_service.parse_author_payload(author_id, name, role, short_bio, bio, x_url)
    author.admin_user_id = _resolve_linked_user(service, authors, admin_user_id, exclude_author_id=previous_id)
    if author.id != previous_id and any(a.id == author.id for a in authors):
        raise ContentValidationError("Author ID already exists.")

    file_name, content_type, data = await read_upload(avatar)
    author.avatar = media_service.resolve_image(
        client, storage, "authors", author.id, "Avatar",
        file_name=file_name, content_type=content_type, content=data,
        fallback=existing_avatar or existing.avatar,
        missing_message="Please upload an avatar image.",
    )

    updated = [author if a.id == previous_id else a for a in authors]
    if author.id == previous_id:
        author_service.save_authors(client, updated)
        return author

    # Renamed: create the new row, move the posts over, then drop the old row
    author_service.save_authors(client, updated, allow_referenced_delete=True)
    post_service.rename_author_in_posts(client, previous_id, author.id)
    author_service.save_authors(client, updated)
    return author


@router.delete("/authors/{author_id}", response_model=MessageResponse)
def delete_author(
    author_id: str,
    reassign_to: Optional[str] = Query(None),
    client: SupabaseClient = Depends(get_supabase),
    _user: AdminUser = Depends(require_trusted_admin_mutation(ADMIN_ONLY)),
):
    authors = author_service.get_authors(client)
    if not any(author.id == author_id for author in authors):
        raise HTTPException(status_code=404, detail="Author not found")
    if len(authors) <= 1:
        raise ContentValidationError("Cannot delete the last author profile. Create another author first.")

    posts = post_service.get_posts_by_author(client, author_id, include_unpublished=True)
    reassign_to = (reassign_to or "").strip()
    if posts:
        if not reassign_to:
            raise ContentValidationError(
                f"Author has {len(posts)} post(s). Select another author to reassign posts before delete."
            )
        if reassign_to == author_id:
            raise ContentValidationError("Reassignment target must be a different author.")
        if not any(author.id == reassign_to for author in authors):
            raise ContentValidationError("Reassignment target was not found.")
        post_service.rename_author_in_posts(client, author_id, reassign_to)

    author_service.save_authors(client, [author for author in authors if author.id != author_id])
    return MessageResponse(message="Author deleted.")


# Site content


@router.get("/cms")
def get_cms(client: SupabaseClient = Depends(get_supabase), _user: AdminUser = Depends(require_admin_session())):
    return cms_service.get_cms_content(client).model_dump(by_alias=True, mode="json")


@router.put("/cms")
def update_cms(
    content: Dict[str, Any] = Body(...),
    client: SupabaseClient = Depends(get_supabase),
    _user: AdminUser = Depends(require_trusted_admin_mutation()),
):
    return cms_service.save_cms_content(client, content).model_dump(by_alias=True, mode="json")


@router.delete("/cms")
def reset_cms(
    client: SupabaseClient = Depends(get_supabase),
    _user: AdminUser = Depends(require_trusted_admin_mutation()),
):
    cms_service.delete_cms_content(client)
    return cms_service.DEFAULT_CMS_CONTENT.model_dump(by_alias=True, mode="json")


@router.put("/cms/site")
def update_site_settings(
    site_name: str = Form(...),
    site_title: str = Form(...),
    site_description: str = Form(...),
    site_url: str = Form(...),
    menu_links: str = Form(""),
    pages_links: str = Form(""),
    resource_links: str = Form(""),
    social_links: str = Form(""),
    client: SupabaseClient = Depends(get_supabase),
    _user: AdminUser = Depends(require_trusted_admin_mutation()),
):
    """Form variant of the site settings: one ``Label | /href`` link per line."""
    current = cms_service.get_cms_content(client)
    updated = current.model_copy(
        update={
            "site_config": current.site_config.model_copy(
                update={
                    "name": site_name.strip(),
                    "title": site_title.strip(),
                    "description": site_description.strip(),
                    "url": cms_service.parse_site_url(site_url),
                }
            ),
            "header": current.header.model_copy(
                update={"menu_links": tuple(cms_service.parse_link_rows(menu_links, "Menu"))}
            ),
            "footer": current.footer.model_copy(
                update={
                    "pages_links": tuple(cms_service.parse_link_rows(pages_links, "Pages")),
                    "resource_links": tuple(cms_service.parse_link_rows(resource_links, "Resources")),
                    "social_links": tuple(cms_service.parse_social_rows(social_links)),
                }
            ),
        }
    )
    return cms_service.save_cms_content(client, updated.model_dump(by_alias=True, mode="json")).model_dump(
        by_alias=True, mode="json"
    )


# Media


@router.get("/media", response_model=List[MediaAsset])
def list_media(
    client: SupabaseClient = Depends(get_supabase), _user: AdminUser = Depends(require_admin_session())
):
    return media_service.get_media_assets(client)


@router.get("/media/posts", response_model=List[MediaAsset])
def list_post_media(
    client: SupabaseClient = Depends(get_supabase), _user: AdminUser = Depends(require_admin_session())
):
    """Images already uploaded as post covers, for reuse in the post form."""
    return media_service.get_post_media_assets(client)


@router.post("/media", response_model=MediaAsset, status_code=201)
async def upload_media(
    folder: str = Form("general"),
    file: UploadFile = File(...),
    client: SupabaseClient = Depends(get_supabase),
    storage: StorageService = Depends(get_storage),
    _user: AdminUser = Depends(require_trusted_admin_mutation()),
):
    content = await file.read()
    return media_service.upload_media_file(client, storage, folder, file.filename, file.content_type, content)


@router.delete("/media", response_model=MessageResponse)
def delete_media(
    path: str = Query(""),
    client: SupabaseClient = Depends(get_supabase),
    storage: StorageService = Depends(get_storage),
    _user: AdminUser = Depends(require_trusted_admin_mutation()),
):
    path = path.strip()
    if not path:
        raise ContentValidationError("Missing media URL.")
    if media_service.is_media_in_use(client, path):
        raise ContentValidationError(
            "Cannot delete this media file because it is currently used by a post or author."
        )
    media_service.delete_media_file(client, storage, path)
    return MessageResponse(message="Media deleted.")


# Newsletter


@router.get("/newsletter", response_model=List[NewsletterSubscriber])
def list_subscribers(
    q: Optional[str] = None,
    client: SupabaseClient = Depends(get_supabase),
    _user: AdminUser = Depends(require_admin_session()),
):
    subscribers = newsletter_service.get_newsletter_subscribers(client)
    return newsletter_service.filter_subscribers(subscribers, q)


@router.delete("/newsletter/{subscriber_id}", response_model=MessageResponse)
def delete_subscriber(
    subscriber_id: str,
    client: SupabaseClient = Depends(get_supabase),
    _user: AdminUser = Depends(require_trusted_admin_mutation()),
):
    if not newsletter_service.delete_newsletter_subscriber(client, subscriber_id):
        raise HTTPException(status_code=404, detail="Subscriber not found")
    return MessageResponse(message="Subscriber removed.")


# Analytics


@router.get("/analytics", response_model=AnalyticsSummary)
def analytics_summary(
    days: int = Query(30, ge=1, le=365),
    client: SupabaseClient = Depends(get_supabase),
    _user: AdminUser = Depends(require_admin_session()),
):
    return analytics_service.get_analytics_summary(client, days=days)


# SEO


@router.post("/seo/check", response_model=SeoReport)
def seo_check(payload: SeoCheckRequest, _user: AdminUser = Depends(require_admin_session())):
    return evaluate_seo(
        payload.title,
        payload.content,
        payload.slug,
        seo_title=payload.seo_title,
        seo_description=payload.seo_description,
        focus_keyword=payload.focus_keyword,
        excerpt=payload.excerpt,
    )


# Users (admin only)


@router.get("/users", response_model=List[AdminUser])
def list_users(
    service: AuthService = Depends(get_auth_service),
    _user: AdminUser = Depends(require_admin_session(ADMIN_ONLY)),
):
    return service.list_users()


@router.post("/users", response_model=AdminUser, status_code=201)
def create_user(
    email: str = Form(""),
    name: str = Form(""),
    password: str = Form(""),
    role: AdminRole = Form(AdminRole.EDITOR),
    client: SupabaseClient = Depends(get_supabase),
    service: AuthService = Depends(get_auth_service),
    current: AdminUser = Depends(require_trusted_admin_mutation(ADMIN_ONLY)),
):
    """Create an admin account together with its author profile."""
    user = service.create_user(email, name, password, role)
    try:
        authors = author_service.get_authors(client)
        profile = author_service.build_default_author_profile(user, authors)
        author_service.save_authors(client, authors + [profile])
    except OptinestError:
        logger.error("Author profile for %s could not be created; removing the account", user.email)
        service.delete_user(user.id)
        raise
    logger.info("Admin user %s created by %s", user.email, current.email)
    return user


@router.put("/users/{user_id}/role", response_model=MessageResponse)
def update_user_role(
    user_id: str,
    role: AdminRole = Form(...),
    client: SupabaseClient = Depends(get_supabase),
    service: AuthService = Depends(get_auth_service),
    _user: AdminUser = Depends(require_trusted_admin_mutation(ADMIN_ONLY)),
):
    service.update_user_role(user_id, role)
    author_service.create_missing_author_profiles(client, service.list_users())
    return MessageResponse(message="Role updated.")


@router.put("/users/{user_id}/password", response_model=MessageResponse)
def update_user_password(
    user_id: str,
    password: str = Form(""),
    service: AuthService = Depends(get_auth_service),
    _user: AdminUser = Depends(require_trusted_admin_mutation(ADMIN_ONLY)),
):
    service.update_user_password(user_id, password)
    return MessageResponse(message="Password updated.")


@router.delete("/users/{user_id}", response_model=MessageResponse)
def delete_user(
    user_id: str,
    reassign_to_user_id: Optional[str] = Query(None),
    client: SupabaseClient = Depends(get_supabase),
    service: AuthService = Depends(get_auth_service),
    current: AdminUser = Depends(require_trusted_admin_mutation(ADMIN_ONLY)),
):
    """Delete an account; its author profile goes with it, posts move to another user's profile."""
    if user_id == current.id:
        raise ContentValidationError("You cannot delete your own account.")
    if not service.get_user(user_id):
        raise HTTPException(status_code=404, detail="User not found")

    authors = author_service.get_authors(client)
    linked = next((author for author in authors if author.admin_user_id == user_id), None)
    target_author = None
    if linked:
        remaining = [author for author in authors if author.id != linked.id]
        if not any(author.admin_user_id for author in remaining):
            raise ContentValidationError("Cannot delete the last linked author profile. Create another user first.")

        posts = post_service.get_posts_by_author(client, linked.id, include_unpublished=True)
        reassign_to_user_id = (reassign_to_user_id or "").strip()
        if posts and not reassign_to_user_id:
            raise ContentValidationError(
                f"This user's author profile has {len(posts)} post(s). Choose a user to reassign them to."
            )
        if reassign_to_user_id:
            if reassign_to_user_id == user_id:
                raise ContentValidationError("Reassignment target must be a different user.")
            target_author = next((a for a in remaining if a.admin_user_id == reassign_to_user_id), None)
            if not target_author:
                raise ContentValidationError("Selected user does not have a linked author profile.")

    service.delete_user(user_id)
    if linked:
        if target_author:
            post_service.rename_author_in_posts(client, linked.id, target_author.id)
        author_service.save_authors(client, [author for author in authors if author.id != linked.id])
    return MessageResponse(message="User deleted.")


@router.post("/users/sync-authors", response_model=List[Author])
def sync_user_authors(
    client: SupabaseClient = Depends(get_supabase),
    service: AuthService = Depends(get_auth_service),
    _user: AdminUser = Depends(require_trusted_admin_mutation(ADMIN_ONLY)),
):
    return author_service.create_missing_author_profiles(client, service.list_users())
