from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import JSONResponse

from optinest.db.supabase import SupabaseClient, get_supabase
from optinest.models.author import Author
from optinest.models.post import Post
from optinest.services import authors as author_service
from optinest.services import categories as category_service
from optinest.services import cms as cms_service
from optinest.services import posts as post_service
from optinest.services.media_paths import get_renderable_image_src

router = APIRouter()


class PublicPost(Post):
    cover_image_src: str = ""


def to_public_post(post: Post) -> PublicPost:
    return PublicPost(**post.model_dump(), cover_image_src=get_renderable_image_src(post.cover_image))


@router.get("/site")
def get_site(client: SupabaseClient = Depends(get_supabase)):
    """Site configuration and page copy; defaults when the backend is unavailable."""
    content = cms_service.get_cms_content(client)
    return JSONResponse(content.model_dump(by_alias=True, mode="json"))


@router.get("/posts", response_model=List[PublicPost])
def list_posts(
    featured: bool = False,
    recommended: bool = False,
    limit: Optional[int] = Query(None, ge=1, le=100),
    client: SupabaseClient = Depends(get_supabase),
):
    if featured:
        posts = post_service.get_featured_posts(client, limit or 4)
    elif recommended:
        posts = post_service.get_recommended_posts(client, limit or 4)
    else:
        posts = post_service.get_latest_posts(client, limit)
    return [to_public_post(post) for post in posts]


@router.get("/posts/{slug}", response_model=PublicPost)
def get_post(slug: str, client: SupabaseClient = Depends(get_supabase)):
    post = post_service.get_post_by_slug(client, slug)
    if not post:
        raise HTTPException(status_code=404, detail="Post not found")
    return to_public_post(post)


@router.get("/authors", response_model=List[Author])
def list_authors(client: SupabaseClient = Depends(get_supabase)):
    published = post_service.get_all_posts(client)
    return [
        author.model_copy(update={"post_count": sum(1 for post in published if post.author_id == author.id)})
        for author in author_service.get_authors(client)
    ]


@router.get("/authors/{author_id}/posts", response_model=List[PublicPost])
def list_author_posts(author_id: str, client: SupabaseClient = Depends(get_supabase)):
    if not author_service.get_author_by_id(client, author_id):
        raise HTTPException(status_code=404, detail="Author not found")
    return [to_public_post(post) for post in post_service.get_posts_by_author(client, author_id)]


@router.get("/categories", response_model=List[str])
def list_categories(client: SupabaseClient = Depends(get_supabase)):
    return category_service.get_categories(client)
