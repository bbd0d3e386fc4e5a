from functools import lru_cache
from typing import List, Literal, Optional

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # Firestore
    gcp_project: Optional[str] = None
    comments_collection: str = "comments"
    users_collection: str = "users"
    store_backend: Literal["firestore", "memory"] = "firestore"

    # Comments
    default_page_size: int = 50
    max_page_size: int = 100
    max_comment_length: int = 280

    # Auth
    jwt_secret: Optional[str] = None
    jwt_secret_name: Optional[str] = None  # projects/<id>/secrets/<name>/versions/<v>
    jwt_algorithm: str = "HS256"
    access_token_expire_minutes: int = 150

    allowed_hosts: List[str] = ["musings-mr.net", "*.musings-mr.net", "localhost", "127.0.0.1"]

    model_config = {"env_prefix": "MUSINGS_"}


@lru_cache
def get_settings() -> Settings:
    return Settings()
